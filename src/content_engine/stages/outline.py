"""Generating outline: supplied outline or a structured Gemini call."""

from __future__ import annotations

import logging

from content_engine.config import Settings
from content_engine.errors import ProviderError
from content_engine.gemini import GeminiClient
from content_engine.models import GenerateRequest, OutlineResponse, VoiceProfile

logger = logging.getLogger(__name__)


def _build_outline_prompt(
    request: GenerateRequest, voice: VoiceProfile, target_word_count: int
) -> str:
    return f"""Create an outline for an article about: {request.topic}

Content Type: {request.content_type}
Target Word Count: {target_word_count}
Primary Keyword: {request.primary_keyword or request.topic}

Voice Profile:
{voice.description}

Guidelines:
{voice.guidelines}

Return the main section headings in reading order, starting with an introduction
and ending with a conclusion:
{{"sections": ["Introduction", "...", "Conclusion"]}}

Return valid JSON only."""


class OutlineGenerator:
    def __init__(self, client: GeminiClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    def run(
        self, request: GenerateRequest, voice: VoiceProfile, target_word_count: int
    ) -> list[str]:
        if request.outline:
            return list(request.outline)

        prompt = _build_outline_prompt(request, voice, target_word_count)
        result = self._client.generate(
            prompt,
            response_model=OutlineResponse,
            temperature=self._settings.generation_temperature,
        )
        sections = [s.strip() for s in result.sections if s.strip()]
        if not sections:
            raise ProviderError("Outline generation returned no sections")

        logger.info("Outline for %r: %d sections", request.topic, len(sections))
        return sections
