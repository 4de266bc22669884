"""Humanizing: optional rewrite pass; without a provider the draft passes through."""

from __future__ import annotations

import logging

from content_engine.humanizer import Humanizer
from content_engine.models import Aggressiveness

logger = logging.getLogger(__name__)


class HumanizeStage:
    def __init__(self, humanizer: Humanizer | None) -> None:
        self._humanizer = humanizer

    def run(self, content: str, aggressiveness: Aggressiveness = "medium") -> str:
        if self._humanizer is None:
            logger.info("No humanizer configured, keeping draft as is")
            return content
        return self._humanizer.rewrite(content, aggressiveness)
