"""Drafting: full article from the outline in the contributor's voice."""

from __future__ import annotations

import logging

from content_engine.config import Settings
from content_engine.errors import ProviderError
from content_engine.gemini import GeminiClient
from content_engine.models import DraftResult, GenerateRequest, VoiceProfile
from content_engine.scoring import find_phrases

logger = logging.getLogger(__name__)


def _build_draft_prompt(
    request: GenerateRequest,
    voice: VoiceProfile,
    outline: list[str],
    target_word_count: int,
    phrases_to_avoid: list[str],
) -> str:
    outline_str = "\n".join(f"{i + 1}. {item}" for i, item in enumerate(outline))
    signature = ", ".join(voice.signature_phrases) or "None specified"
    avoid = ", ".join(phrases_to_avoid) or "None specified"

    return f"""Write a comprehensive article about: {request.topic}

Content Type: {request.content_type}
Target Word Count: {target_word_count}
Primary Keyword: {request.primary_keyword or request.topic}

Outline:
{outline_str}

Voice Profile:
{voice.description}

Guidelines:
{voice.guidelines}

Signature Phrases to Use:
{signature}

Phrases to AVOID:
{avoid}

Write the full article in Markdown following the outline and voice profile.
Use "## " for section headings."""


class Drafter:
    def __init__(self, client: GeminiClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    def run(
        self,
        request: GenerateRequest,
        voice: VoiceProfile,
        outline: list[str],
        target_word_count: int,
        banned_phrases: list[str],
    ) -> DraftResult:
        phrases_to_avoid = list(dict.fromkeys([*voice.phrases_to_avoid, *banned_phrases]))
        prompt = _build_draft_prompt(request, voice, outline, target_word_count, phrases_to_avoid)

        content = self._client.generate(prompt, temperature=self._settings.generation_temperature)
        if not isinstance(content, str) or not content.strip():
            raise ProviderError("Draft generation returned no content")

        flagged = find_phrases(content, phrases_to_avoid)
        if flagged:
            logger.warning("Draft for %r contains avoided phrases: %s", request.topic, flagged)
        return DraftResult(content=content.strip(), flagged_phrases=flagged)
