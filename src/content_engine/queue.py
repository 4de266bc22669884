"""Generation queue: priority ordering, retry/backoff, timeouts and ETA math.

Every function here is a pure computation over ``QueueItem`` values. Nothing
blocks or touches storage, so the queue can be used from request handlers,
the worker loop and tests alike.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import get_args

from content_engine.errors import QueueValidationError
from content_engine.models import (
    EnqueueOptions,
    GenerationOptions,
    QueueItem,
    QueueStats,
    QueueStatus,
    as_utc,
    utcnow,
)

_DEFAULT_AVG_PROCESSING_MS = 3 * 60 * 1000
_ONE_HOUR = timedelta(hours=1)

ACTIONABLE_STATUSES: tuple[QueueStatus, ...] = ("pending", "scheduled")


@dataclass(frozen=True)
class QueueConfig:
    default_priority: int = 0
    default_max_attempts: int = 3
    processing_timeout_ms: int = 10 * 60 * 1000
    retry_delay_ms: int = 30 * 1000
    concurrent_workers: int = 2


def _elapsed_ms(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() * 1000


def validate_source(content_idea_id: str | None, article_id: str | None) -> None:
    """Exactly one of the two source ids must be set."""
    if not content_idea_id and not article_id:
        raise QueueValidationError("Either content_idea_id or article_id is required")
    if content_idea_id and article_id:
        raise QueueValidationError("Provide only one of content_idea_id or article_id")


class GenerationQueue:
    def __init__(self, config: QueueConfig | None = None) -> None:
        self.config = config or QueueConfig()

    # --- Creation ---

    def create_queue_item(
        self,
        tenant_id: str,
        *,
        content_idea_id: str | None = None,
        article_id: str | None = None,
        options: EnqueueOptions | None = None,
        created_by: str | None = None,
        now: datetime | None = None,
    ) -> QueueItem:
        validate_source(content_idea_id, article_id)
        options = options or EnqueueOptions()
        now = as_utc(now) or utcnow()
        return QueueItem(
            tenant_id=tenant_id,
            content_idea_id=content_idea_id,
            article_id=article_id,
            priority=(
                options.priority if options.priority is not None else self.config.default_priority
            ),
            status="scheduled" if options.scheduled_for else "pending",
            attempts=0,
            max_attempts=(
                options.max_attempts
                if options.max_attempts is not None
                else self.config.default_max_attempts
            ),
            scheduled_for=options.scheduled_for,
            config=options.config or GenerationOptions(),
            created_at=now,
            created_by=created_by,
            updated_at=now,
        )

    # --- Ordering / filtering ---

    def sort_queue(self, items: Iterable[QueueItem]) -> list[QueueItem]:
        """Higher priority first, FIFO within equal priority. Stable."""
        return sorted(items, key=lambda i: (-i.priority, i.created_at))

    def filter_by_status(
        self, items: Iterable[QueueItem], statuses: Iterable[QueueStatus]
    ) -> list[QueueItem]:
        wanted = set(statuses)
        return [i for i in items if i.status in wanted]

    def queue_position(self, items: Iterable[QueueItem], item_id: str) -> int | None:
        ordered = self.sort_queue(self.filter_by_status(items, ACTIONABLE_STATUSES))
        for index, item in enumerate(ordered):
            if item.id == item_id:
                return index + 1
        return None

    def is_due(self, item: QueueItem, now: datetime | None = None) -> bool:
        """A pending item, or a scheduled one whose time has come."""
        now = as_utc(now) or utcnow()
        if item.status not in ACTIONABLE_STATUSES:
            return False
        return item.scheduled_for is None or item.scheduled_for <= now

    # --- Retry / timeout ---

    def should_retry(self, item: QueueItem) -> bool:
        return item.status == "failed" and item.attempts < item.max_attempts

    def retry_delay(self, attempts: int) -> int:
        """Exponential backoff with base 3: 30s, 90s, 270s, ..."""
        return self.config.retry_delay_ms * 3 ** (max(attempts, 1) - 1)

    def has_timed_out(
        self,
        item: QueueItem,
        now: datetime | None = None,
        timeout_ms: int | None = None,
    ) -> bool:
        if item.status != "processing" or item.processing_started_at is None:
            return False
        now = as_utc(now) or utcnow()
        timeout = self.config.processing_timeout_ms if timeout_ms is None else timeout_ms
        return _elapsed_ms(item.processing_started_at, now) > timeout

    # --- Progress / ETA ---

    def progress(self, item: QueueItem, now: datetime | None = None) -> int:
        if item.status == "completed":
            return 100
        if item.status == "processing":
            if item.processing_started_at is None:
                return 10
            now = as_utc(now) or utcnow()
            elapsed = max(_elapsed_ms(item.processing_started_at, now), 0.0)
            return min(95, round(elapsed / _DEFAULT_AVG_PROCESSING_MS * 100))
        return 0

    def estimated_wait_time(self, stats: QueueStats, position: int | None = None) -> int:
        avg_time = stats.avg_processing_time or _DEFAULT_AVG_PROCESSING_MS
        items_ahead = position if position is not None else stats.pending
        workers = max(self.config.concurrent_workers, 1)
        return int(math.ceil(items_ahead / workers) * avg_time)

    def calculate_stats(
        self, items: Iterable[QueueItem], now: datetime | None = None
    ) -> QueueStats:
        items = list(items)
        now = as_utc(now) or utcnow()
        one_hour_ago = now - _ONE_HOUR

        completed = [i for i in items if i.status == "completed"]
        recent = [i for i in completed if i.completed_at and i.completed_at > one_hour_ago]
        timed = [i for i in completed if i.processing_started_at and i.completed_at]

        avg_processing_time = None
        if timed:
            total = sum(_elapsed_ms(i.processing_started_at, i.completed_at) for i in timed)
            avg_processing_time = total / len(timed)

        counts = {status: 0 for status in get_args(QueueStatus)}
        for item in items:
            counts[item.status] += 1

        stats = QueueStats(
            pending=counts["pending"],
            scheduled=counts["scheduled"],
            processing=counts["processing"],
            completed=counts["completed"],
            failed=counts["failed"],
            cancelled=counts["cancelled"],
            avg_processing_time=avg_processing_time,
            items_last_hour=len(recent),
        )
        stats.estimated_wait_time = self.estimated_wait_time(stats)
        return stats


def format_wait_time(ms: int | float) -> str:
    if ms < 60 * 1000:
        return "Less than a minute"

    minutes = round(ms / (60 * 1000))
    if minutes < 60:
        return f"~{minutes} minute{'s' if minutes > 1 else ''}"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"~{hours} hour{'s' if hours > 1 else ''}"
    return f"~{hours}h {remaining}m"
