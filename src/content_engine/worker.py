"""Queue worker: claims due items, runs the pipeline, records the outcome."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

from content_engine.config import Settings
from content_engine.errors import (
    ConfigurationError,
    NotFoundError,
    PipelineCancelled,
)
from content_engine.gemini import GeminiClient
from content_engine.humanizer import Humanizer
from content_engine.models import GenerateRequest, QueueItem, as_utc, utcnow
from content_engine.pipeline import PipelineOrchestrator
from content_engine.queue import GenerationQueue
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Processing timed out"


class QueueWorker:
    def __init__(
        self,
        store: JsonStore,
        orchestrator: PipelineOrchestrator,
        queue: GenerationQueue,
        worker_id: str = "worker-1",
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._queue = queue
        self.worker_id = worker_id

    # --- Maintenance ---

    def release_scheduled(self, now: datetime | None = None) -> int:
        """Move scheduled items whose time has come back to pending."""
        now = as_utc(now) or utcnow()
        released = 0
        for item in self._store.list_queue_items(statuses=["scheduled"]):
            due = item.scheduled_for is None or item.scheduled_for <= now
            if due and self._store.move_queue_item(item.id, ["scheduled"], status="pending"):
                released += 1
        return released

    def release_retries(self, now: datetime | None = None) -> int:
        """Return retryable failures to pending once their backoff has elapsed."""
        now = as_utc(now) or utcnow()
        released = 0
        for item in self._store.list_queue_items(statuses=["failed"]):
            if not self._queue.should_retry(item):
                continue
            delay = timedelta(milliseconds=self._queue.retry_delay(item.attempts))
            if item.updated_at + delay > now:
                continue
            if self._store.move_queue_item(item.id, ["failed"], status="pending"):
                logger.info(
                    "Retrying %s (attempt %d/%d)", item.id, item.attempts + 1, item.max_attempts
                )
                released += 1
        return released

    def sweep_timeouts(self, now: datetime | None = None) -> int:
        now = as_utc(now) or utcnow()
        swept = 0
        for item in self._store.list_queue_items(statuses=["processing"]):
            if self._queue.has_timed_out(item, now) and self._store.fail_queue_item(
                item.id, TIMEOUT_MESSAGE, now
            ):
                logger.warning("Queue item %s timed out", item.id)
                swept += 1
        return swept

    # --- Processing ---

    def _build_request(self, item: QueueItem) -> GenerateRequest:
        options = item.config
        topic = options.topic
        primary_keyword = options.primary_keyword
        content_type = options.content_type
        cluster_id = None

        try:
            if item.content_idea_id:
                idea = self._store.get_idea(item.content_idea_id)
                topic = topic or idea.title
                primary_keyword = primary_keyword or idea.primary_keyword
                cluster_id = idea.cluster_id
            elif item.article_id:
                article = self._store.get_article(item.article_id)
                topic = topic or article.title
                primary_keyword = primary_keyword or article.primary_keyword
                cluster_id = article.cluster_id
        except NotFoundError as exc:
            raise ConfigurationError(f"Queue item source is missing: {exc}") from exc

        if not topic.strip():
            raise ConfigurationError("Queue item has no topic")

        return GenerateRequest(
            tenant_id=item.tenant_id,
            topic=topic,
            content_type=content_type,
            primary_keyword=primary_keyword,
            contributor_id=options.contributor_id,
            target_word_count=options.target_word_count,
            outline=options.outline,
            cluster_id=cluster_id,
            idea_id=item.content_idea_id,
            queue_item_id=item.id,
        )

    def _is_cancelled(self, item_id: str) -> bool:
        return self._store.get_queue_item(item_id).status == "cancelled"

    def process_next(
        self, tenant_id: str | None = None, now: datetime | None = None
    ) -> QueueItem | None:
        """Claim and process one item. None when nothing is due."""
        item = self._store.claim_next(tenant_id, now)
        if item is None:
            return None
        logger.info("[%s] Claimed %s (priority %d)", self.worker_id, item.id, item.priority)

        try:
            request = self._build_request(item)
            run = self._orchestrator.create_run(request)
            run = self._orchestrator.execute(run, request, lambda: self._is_cancelled(item.id))
        except PipelineCancelled:
            logger.info("[%s] %s was cancelled mid-run", self.worker_id, item.id)
        except ConfigurationError as exc:
            self._store.fail_queue_item(item.id, str(exc), fatal=True)
        except Exception as exc:
            logger.exception("[%s] Generation failed for %s", self.worker_id, item.id)
            self._store.fail_queue_item(item.id, str(exc) or type(exc).__name__)
        else:
            result = {"run_id": run.id, "article_id": run.article_id}
            if not self._store.complete_queue_item(item.id, result):
                logger.warning(
                    "[%s] %s left processing before completion; result not recorded",
                    self.worker_id,
                    item.id,
                )

        return self._store.get_queue_item(item.id)

    def drain(self, tenant_id: str | None = None, max_items: int | None = None) -> int:
        processed = 0
        while max_items is None or processed < max_items:
            if self.process_next(tenant_id) is None:
                break
            processed += 1
        return processed

    def run_once(self, now: datetime | None = None, max_items: int | None = None) -> int:
        """One maintenance pass followed by processing everything that is due."""
        self.sweep_timeouts(now)
        self.release_scheduled(now)
        self.release_retries(now)
        return self.drain(max_items=max_items)


def main() -> None:
    """CLI entry point: one worker cycle with the configured number of workers."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    settings = Settings.from_env()
    if not settings.gemini_api_key:
        raise SystemExit("GEMINI_API_KEY environment variable is required")

    store = JsonStore(settings.store_path)
    queue = GenerationQueue(settings.queue_config())
    client = GeminiClient(settings)
    humanizer = Humanizer(settings) if settings.humanizer_api_key else None
    orchestrator = PipelineOrchestrator(store, client, settings, humanizer)

    workers = [
        QueueWorker(store, orchestrator, queue, worker_id=f"worker-{n + 1}")
        for n in range(max(settings.concurrent_workers, 1))
    ]
    workers[0].sweep_timeouts()
    workers[0].release_scheduled()
    workers[0].release_retries()

    with ThreadPoolExecutor(max_workers=len(workers)) as pool:
        processed = sum(pool.map(lambda w: w.drain(), workers))

    logger.info("Processed %d queue items (%d Gemini calls)", processed, client.call_count)
