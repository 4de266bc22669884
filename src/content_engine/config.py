"""Configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from content_engine.queue import QueueConfig


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    model_id: str = "gemini-2.5-flash"
    generation_temperature: float = 0.7
    store_path: str = "data/store.json"
    default_priority: int = 0
    default_max_attempts: int = 3
    processing_timeout_ms: int = 10 * 60 * 1000
    retry_delay_ms: int = 30 * 1000
    concurrent_workers: int = 2
    default_word_count: int = 2000
    humanizer_api_key: str = ""
    humanizer_url: str = "https://stealthgpt.ai/api/stealthify"
    humanizer_aggressiveness: str = "medium"
    wordpress_url: str = ""
    wordpress_username: str = ""
    wordpress_app_password: str = ""
    link_min_score: int = 60
    link_limit: int = 10
    cost_per_1k_tokens: float = 0.0

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            gemini_api_key=os.environ.get("GEMINI_API_KEY", ""),
            model_id=os.environ.get("GEMINI_MODEL_ID", "gemini-2.5-flash"),
            generation_temperature=float(os.environ.get("GENERATION_TEMPERATURE", "0.7")),
            store_path=os.environ.get("STORE_PATH", "data/store.json"),
            default_priority=int(os.environ.get("DEFAULT_PRIORITY", "0")),
            default_max_attempts=int(os.environ.get("DEFAULT_MAX_ATTEMPTS", "3")),
            processing_timeout_ms=int(os.environ.get("PROCESSING_TIMEOUT_MS", "600000")),
            retry_delay_ms=int(os.environ.get("RETRY_DELAY_MS", "30000")),
            concurrent_workers=int(os.environ.get("CONCURRENT_WORKERS", "2")),
            default_word_count=int(os.environ.get("DEFAULT_WORD_COUNT", "2000")),
            humanizer_api_key=os.environ.get("HUMANIZER_API_KEY", ""),
            humanizer_url=os.environ.get(
                "HUMANIZER_URL", "https://stealthgpt.ai/api/stealthify"
            ),
            humanizer_aggressiveness=os.environ.get("HUMANIZER_AGGRESSIVENESS", "medium"),
            wordpress_url=os.environ.get("WORDPRESS_URL", ""),
            wordpress_username=os.environ.get("WORDPRESS_USERNAME", ""),
            wordpress_app_password=os.environ.get("WORDPRESS_APP_PASSWORD", ""),
            link_min_score=int(os.environ.get("LINK_MIN_SCORE", "60")),
            link_limit=int(os.environ.get("LINK_LIMIT", "10")),
            cost_per_1k_tokens=float(os.environ.get("COST_PER_1K_TOKENS", "0.0")),
        )

    def queue_config(self) -> QueueConfig:
        return QueueConfig(
            default_priority=self.default_priority,
            default_max_attempts=self.default_max_attempts,
            processing_timeout_ms=self.processing_timeout_ms,
            retry_delay_ms=self.retry_delay_ms,
            concurrent_workers=self.concurrent_workers,
        )
