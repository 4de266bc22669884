"""Generation provider backed by Google GenAI.

Stages call ``generate`` for plain article text or, with ``response_model``,
for a validated pydantic instance (outlines). Transport failures are retried
with exponential backoff; rate-limit waits are capped, and a project whose
quota is zero fails immediately. Call and token counters feed run usage.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel

from content_engine.config import Settings
from content_engine.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)
T = TypeVar("T", bound=BaseModel)

MAX_ATTEMPTS = 5
BASE_WAIT = 5.0
RATE_LIMIT_WAIT_CAP = 15.0
MIN_CALL_INTERVAL = 2.0  # seconds

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _is_rate_limited(exc: Exception) -> bool:
    message = str(exc)
    return "429" in message or "RESOURCE_EXHAUSTED" in message


def _quota_is_zero(exc: Exception) -> bool:
    return _is_rate_limited(exc) and "limit: 0" in str(exc)


def retry_wait(attempt: int, rate_limited: bool) -> float:
    """Seconds to wait after the given zero-based failed attempt."""
    wait = BASE_WAIT * 2**attempt
    return min(wait, RATE_LIMIT_WAIT_CAP) if rate_limited else wait


def extract_json(text: str) -> str:
    """Pull a JSON object out of a reply that may wrap it in prose or fences."""
    match = _FENCED_JSON.search(text)
    if match:
        return match.group(1).strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text.strip()


def _total_tokens(response: Any) -> int:
    usage = getattr(response, "usage_metadata", None)
    return int(getattr(usage, "total_token_count", 0) or 0) if usage is not None else 0


class GeminiClient:
    def __init__(self, settings: Settings) -> None:
        if not settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is not configured")
        self._client = genai.Client(api_key=settings.gemini_api_key)
        self._model_id = settings.model_id
        self._last_call = 0.0
        self.call_count = 0
        self.tokens_used = 0

    def generate(
        self,
        prompt: str,
        *,
        response_model: type[T] | None = None,
        temperature: float = 0.7,
    ) -> str | T:
        if response_model is None:
            config = types.GenerateContentConfig(temperature=temperature)
        else:
            config = types.GenerateContentConfig(
                temperature=temperature,
                response_mime_type="application/json",
                response_schema=response_model,
            )

        self._pace()
        text = self._send(prompt, config)
        self.call_count += 1

        if response_model is None:
            return text
        try:
            return response_model.model_validate_json(text)
        except ValueError:
            logger.debug("Structured reply was not clean JSON, extracting")
            return response_model.model_validate(json.loads(extract_json(text)))

    def _pace(self) -> None:
        if not self._last_call:
            return
        elapsed = time.monotonic() - self._last_call
        if elapsed < MIN_CALL_INTERVAL:
            time.sleep(MIN_CALL_INTERVAL - elapsed)

    def _send(self, prompt: str, config: types.GenerateContentConfig) -> str:
        failure: Exception | None = None
        attempt = 0
        for attempt in range(MAX_ATTEMPTS):
            try:
                response = self._client.models.generate_content(
                    model=self._model_id, contents=prompt, config=config
                )
            except Exception as exc:
                failure = exc
                if _quota_is_zero(exc):
                    logger.warning("Generation quota is zero, giving up: %s", exc)
                    break
                if attempt == MAX_ATTEMPTS - 1:
                    break
                wait = retry_wait(attempt, _is_rate_limited(exc))
                logger.warning(
                    "Generation call %d/%d failed, retrying in %.0fs: %s",
                    attempt + 1,
                    MAX_ATTEMPTS,
                    wait,
                    exc,
                )
                time.sleep(wait)
            else:
                self._last_call = time.monotonic()
                self.tokens_used += _total_tokens(response)
                return response.text or ""

        self._last_call = time.monotonic()
        raise ProviderError(
            f"Generation failed after {attempt + 1} attempt(s): {failure}"
        ) from failure
