"""Gathering context: tenant generation config and target word count."""

from __future__ import annotations

import logging

from content_engine.config import Settings
from content_engine.errors import ConfigurationError
from content_engine.models import GenerateRequest, GenerationContext, TenantGenerationConfig
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)


class ContextGatherer:
    def __init__(self, store: JsonStore, settings: Settings) -> None:
        self._store = store
        self._settings = settings

    def run(self, request: GenerateRequest) -> GenerationContext:
        try:
            config = self._store.get_generation_config(request.tenant_id)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(
                f"Could not read generation settings for tenant {request.tenant_id}: {exc}"
            ) from exc

        if config is None:
            logger.info("No generation config for tenant %s, using defaults", request.tenant_id)
            config = TenantGenerationConfig(
                tenant_id=request.tenant_id,
                default_word_count=self._settings.default_word_count,
            )

        target = request.target_word_count or config.default_word_count
        return GenerationContext(tenant_config=config, target_word_count=target)
