"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import pytest
from pydantic import BaseModel

from content_engine.config import Settings
from content_engine.models import Contributor, TenantGenerationConfig, VoiceProfile
from content_engine.queue import GenerationQueue
from content_engine.store import JsonStore

T = TypeVar("T", bound=BaseModel)

TENANT = "tenant-1"

SAMPLE_ARTICLE = """Online degrees have changed how working adults study.

## Why Accreditation Matters

Accreditation tells employers a program meets standards.

- Regional accreditation
- Programmatic accreditation

## Choosing a Program

Compare tuition, format and support services.

## Conclusion

Pick a program that fits your schedule and budget.
"""


class MockGeminiClient:
    """A mock Gemini client that returns pre-configured responses.

    An Exception instance in the response list is raised instead of returned.
    """

    def __init__(self, tokens_per_call: int = 0) -> None:
        self.call_count = 0
        self.tokens_used = 0
        self.prompts: list[str] = []
        self.tokens_per_call = tokens_per_call
        self._responses: list[Any] = []
        self._response_index = 0

    def set_responses(self, responses: list[Any]) -> None:
        self._responses = responses
        self._response_index = 0

    def generate(
        self,
        prompt: str,
        *,
        response_model: type[T] | None = None,
        temperature: float = 0.7,
    ) -> str | T:
        self.call_count += 1
        self.tokens_used += self.tokens_per_call
        self.prompts.append(prompt)

        if self._response_index < len(self._responses):
            resp = self._responses[self._response_index]
            self._response_index += 1
            if isinstance(resp, Exception):
                raise resp
            if response_model is not None and isinstance(resp, dict):
                return response_model.model_validate(resp)
            return resp

        if response_model is not None:
            return response_model()
        return ""


@pytest.fixture
def mock_client() -> MockGeminiClient:
    return MockGeminiClient()


@pytest.fixture
def sample_settings(tmp_path: Path) -> Settings:
    return Settings(
        gemini_api_key="test-key",
        model_id="test-model",
        store_path=str(tmp_path / "store.json"),
        wordpress_url="https://blog.example.com",
        wordpress_username="editor",
        wordpress_app_password="app-pass",
        humanizer_api_key="stealth-key",
        humanizer_url="https://humanizer.example.com/api",
    )


@pytest.fixture
def store() -> JsonStore:
    return JsonStore()


@pytest.fixture
def queue() -> GenerationQueue:
    return GenerationQueue()


@pytest.fixture
def now() -> datetime:
    # Wednesday 2026-03-04 15:00 UTC = 10:00 in New York
    return datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def contributor(store: JsonStore) -> Contributor:
    contributor = Contributor(
        tenant_id=TENANT,
        name="Dana Reyes",
        voice_profile=VoiceProfile(
            description="Warm and practical",
            guidelines="Short paragraphs, concrete examples",
            signature_phrases=["here's the thing"],
            phrases_to_avoid=["delve"],
        ),
        content_types=["guide"],
        is_default=True,
    )
    store.save_contributor(contributor)
    return contributor


@pytest.fixture
def tenant_config(store: JsonStore) -> TenantGenerationConfig:
    config = TenantGenerationConfig(
        tenant_id=TENANT,
        default_word_count=50,
        blocked_domains=["spam.example"],
        banned_phrases=["guaranteed job"],
    )
    store.save_generation_config(config)
    return config


@pytest.fixture
def sample_article() -> str:
    return SAMPLE_ARTICLE
