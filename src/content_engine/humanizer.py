"""Humanization provider: rewrites generated text through a stealth-rewrite API."""

from __future__ import annotations

import logging
import re

import httpx

from content_engine.config import Settings
from content_engine.errors import ProviderError
from content_engine.models import Aggressiveness

logger = logging.getLogger(__name__)

_OPTIMAL_CHUNK = 1200
_MAX_SECTION = 1500
_MIN_CHUNK = 50

_MODES: dict[str, str] = {"light": "Low", "medium": "Medium", "heavy": "High"}


def _split_sections(text: str) -> list[str]:
    parts = re.split(r"(?=^##\s)", text, flags=re.MULTILINE)
    return [p for p in parts if p.strip()]


def split_into_chunks(text: str) -> list[str]:
    """Split on h2 headings, then pack paragraphs into ~1200 character chunks."""
    chunks: list[str] = []
    for section in _split_sections(text):
        if len(section) <= _MAX_SECTION:
            chunks.append(section.strip())
            continue

        current = ""
        for para in section.split("\n\n"):
            if current and len(current) + len(para) > _OPTIMAL_CHUNK:
                chunks.append(current.strip())
                current = ""
            current = f"{current}\n\n{para}" if current else para
        if current.strip():
            chunks.append(current.strip())

    return [c for c in chunks if c]


class Humanizer:
    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self._url = settings.humanizer_url
        self._api_key = settings.humanizer_api_key
        self._client = client or httpx.Client(follow_redirects=True, timeout=60.0)

    def rewrite(self, text: str, aggressiveness: Aggressiveness = "medium") -> str:
        mode = _MODES.get(aggressiveness, "Medium")
        chunks = split_into_chunks(text)
        logger.info("Humanizing %d chars in %d chunks (mode=%s)", len(text), len(chunks), mode)

        rewritten = []
        for index, chunk in enumerate(chunks):
            if len(chunk) < _MIN_CHUNK:
                rewritten.append(chunk)
                continue
            rewritten.append(self._rewrite_chunk(chunk, mode, index, len(chunks)))
        return "\n\n".join(rewritten)

    def _rewrite_chunk(self, chunk: str, mode: str, index: int, total: int) -> str:
        payload = {
            "prompt": chunk,
            "rephrase": True,
            "tone": "College",
            "mode": mode,
            "business": True,
        }
        try:
            resp = self._client.post(
                self._url,
                json=payload,
                headers={"api-token": self._api_key},
            )
            resp.raise_for_status()
            result = resp.json().get("result")
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(
                f"Humanizer request failed on chunk {index + 1}/{total}: {exc}"
            ) from exc

        if not result:
            raise ProviderError(f"Humanizer returned an empty result for chunk {index + 1}/{total}")
        return result
