"""Application boundary: read models and commands used by the dashboard/API layer."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from content_engine.articles import transition
from content_engine.errors import (
    ConfigurationError,
    ConfigValidationError,
    PublishBlockedError,
    QueueValidationError,
)
from content_engine.keywords import rank_by_opportunity
from content_engine.linking import InternalLinker, insert_links
from content_engine.models import (
    Article,
    ArticleContext,
    ArticleInternalLink,
    AutoPublishConfig,
    EnqueueOptions,
    GenerateRequest,
    KeywordData,
    LinkSuggestion,
    PipelineRun,
    PublishDecision,
    PublishLogEntry,
    PublishRequest,
    QueueItem,
    QueueStats,
    QueueStatus,
    utcnow,
)
from content_engine.pipeline import PipelineOrchestrator
from content_engine.publish_gate import DUE_STATUSES, evaluate, validate_publish_request
from content_engine.publishers.wordpress import WordPressPublisher
from content_engine.queue import GenerationQueue
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)


class ContentService:
    def __init__(
        self,
        store: JsonStore,
        queue: GenerationQueue,
        *,
        orchestrator: PipelineOrchestrator | None = None,
        publisher: WordPressPublisher | None = None,
        linker: InternalLinker | None = None,
    ) -> None:
        self._store = store
        self._queue = queue
        self._orchestrator = orchestrator
        self._publisher = publisher
        self._linker = linker

    # --- Queue reads ---

    def queue_stats(self, tenant_id: str, now: datetime | None = None) -> QueueStats:
        return self._queue.calculate_stats(self._store.list_queue_items(tenant_id), now)

    def list_queue(
        self, tenant_id: str, statuses: Iterable[QueueStatus] | None = None
    ) -> list[QueueItem]:
        return self._queue.sort_queue(self._store.list_queue_items(tenant_id, statuses))

    def queue_position(self, tenant_id: str, item_id: str) -> int | None:
        return self._queue.queue_position(self._store.list_queue_items(tenant_id), item_id)

    def estimated_wait(self, tenant_id: str, item_id: str) -> int | None:
        """Milliseconds until the item is likely picked up, None if it is not waiting."""
        items = self._store.list_queue_items(tenant_id)
        position = self._queue.queue_position(items, item_id)
        if position is None:
            return None
        stats = self._queue.calculate_stats(items)
        return self._queue.estimated_wait_time(stats, position - 1)

    # --- Queue commands ---

    def enqueue(
        self,
        tenant_id: str,
        *,
        content_idea_id: str | None = None,
        article_id: str | None = None,
        options: EnqueueOptions | None = None,
        created_by: str | None = None,
    ) -> QueueItem:
        item = self._queue.create_queue_item(
            tenant_id,
            content_idea_id=content_idea_id,
            article_id=article_id,
            options=options,
            created_by=created_by,
        )
        self._store.add_queue_item(item)
        logger.info("Enqueued %s for tenant %s (priority %d)", item.id, tenant_id, item.priority)
        return item

    def cancel(self, item_id: str) -> bool:
        cancelled = self._store.cancel_queue_item(item_id)
        if cancelled:
            logger.info("Cancelled queue item %s", item_id)
        return cancelled

    def retry(self, item_id: str) -> QueueItem:
        item = self._store.get_queue_item(item_id)
        if not self._queue.should_retry(item):
            raise QueueValidationError(
                f"Queue item {item_id} cannot be retried "
                f"(status={item.status}, attempts={item.attempts}/{item.max_attempts})"
            )
        moved = self._store.move_queue_item(
            item_id, ["failed"], status="pending", scheduled_for=None
        )
        if moved is None:
            raise QueueValidationError(f"Queue item {item_id} is no longer failed")
        return moved

    def change_priority(self, item_id: str, priority: int) -> QueueItem:
        """Reprioritize an item that is still waiting to be processed."""
        moved = self._store.move_queue_item(item_id, ["pending", "scheduled"], priority=priority)
        if moved is None:
            raise QueueValidationError(f"Queue item {item_id} is not waiting; priority unchanged")
        return moved

    # --- Pipeline ---

    def generate(self, request: GenerateRequest) -> PipelineRun:
        if self._orchestrator is None:
            raise ConfigurationError("Generation is not configured")
        return self._orchestrator.run(request)

    def pipeline_status(self, run_id: str) -> PipelineRun:
        return self._store.get_run(run_id)

    # --- Auto-publish ---

    def save_auto_publish_config(
        self, tenant_id: str, config: AutoPublishConfig | dict[str, Any]
    ) -> AutoPublishConfig:
        """Validate and replace the tenant's config as a whole."""
        try:
            validated = AutoPublishConfig.model_validate(
                config.model_dump() if isinstance(config, AutoPublishConfig) else config
            )
        except ValidationError as exc:
            raise ConfigValidationError(str(exc)) from exc
        self._store.save_auto_publish_config(tenant_id, validated)
        return validated

    def publish_decision(self, article_id: str, now: datetime | None = None) -> PublishDecision:
        article = self._store.get_article(article_id)
        return evaluate(article, self._store.get_auto_publish_config(article.tenant_id), now)

    def mark_reviewed(self, article_id: str, reviewer: str) -> Article:
        return self._store.update_article(article_id, reviewed_at=utcnow(), reviewed_by=reviewer)

    def publish(
        self, article_id: str, *, override: bool = False, now: datetime | None = None
    ) -> PublishLogEntry:
        """Publish now, schedule for the next window, or refuse.

        With override the gate is skipped (manual publish), but an article that is
        already published or archived is still refused.
        """
        now = now or utcnow()
        self._require_publisher()
        article = self._store.get_article(article_id)

        if override:
            transition(article, "published")
        else:
            config = self._store.get_auto_publish_config(article.tenant_id)
            decision = evaluate(article, config, now)
            if decision.deferred and decision.publish_at is not None:
                return self._schedule(article, decision.publish_at)
            if not decision.allowed:
                raise PublishBlockedError(decision.reasons)

        entry = PublishLogEntry(
            tenant_id=article.tenant_id,
            article_id=article.id,
            scheduled_for=now,
            override=override,
        )
        self._store.add_publish_log(entry)
        return self._send(article, entry)

    def publish_scheduled(self, now: datetime | None = None) -> list[PublishLogEntry]:
        """Send every pending publish whose time has come, re-checking the gate first.

        Entries the gate now blocks are cancelled and their article returns to ready.
        Entries that fall outside the (possibly changed) windows move to the next one.
        """
        now = now or utcnow()
        results = []
        for entry in self._store.list_publish_log():
            if entry.status != "pending" or entry.scheduled_for > now:
                continue
            article = self._store.get_article(entry.article_id)
            config = self._store.get_auto_publish_config(article.tenant_id)
            decision = evaluate(article, config, entry.scheduled_for, DUE_STATUSES)

            if decision.deferred and decision.publish_at is not None:
                logger.info("Scheduled publish %s moved to %s", entry.id, decision.publish_at)
                self._store.update_article(article.id, scheduled_at=decision.publish_at)
                results.append(
                    self._store.update_publish_log(entry.id, scheduled_for=decision.publish_at)
                )
                continue
            if not decision.allowed:
                logger.warning("Scheduled publish %s blocked: %s", entry.id, decision.reasons)
                results.append(self._unschedule(article, entry, decision.reasons))
                continue

            try:
                results.append(self._send(article, entry))
            except PublishBlockedError as exc:
                logger.warning("Scheduled publish %s rejected: %s", entry.id, exc)
                results.append(self._store.get_publish_log(entry.id))
        return results

    def _schedule(self, article: Article, publish_at: datetime) -> PublishLogEntry:
        scheduled = transition(article, "scheduled")
        entry = PublishLogEntry(
            tenant_id=article.tenant_id, article_id=article.id, scheduled_for=publish_at
        )
        self._store.add_publish_log(entry)
        self._store.update_article(article.id, status=scheduled.status, scheduled_at=publish_at)
        logger.info("Article %s scheduled for %s", article.id, publish_at.isoformat())
        return entry

    def _unschedule(
        self, article: Article, entry: PublishLogEntry, reasons: list[str]
    ) -> PublishLogEntry:
        if article.status == "scheduled":
            ready = transition(article, "ready", override=True)
            self._store.update_article(article.id, status=ready.status, scheduled_at=None)
        return self._store.update_publish_log(
            entry.id, status="cancelled", error="; ".join(reasons)
        )

    def _require_publisher(self) -> WordPressPublisher:
        if self._publisher is None:
            raise ConfigurationError("No publishing target configured")
        return self._publisher

    def _send(self, article: Article, entry: PublishLogEntry) -> PublishLogEntry:
        publisher = self._require_publisher()
        published = transition(article, "published")
        request = PublishRequest(
            title=article.title,
            content=article.content,
            slug=article.slug or None,
            excerpt=article.excerpt,
        )
        errors = validate_publish_request(request)
        if errors:
            self._store.update_publish_log(
                entry.id, status="failed", error="; ".join(errors), attempts=entry.attempts + 1
            )
            raise PublishBlockedError(errors)

        self._store.update_publish_log(entry.id, status="publishing")
        result = publisher.publish(request)
        if not result.success:
            return self._store.update_publish_log(
                entry.id, status="failed", error=result.error, attempts=entry.attempts + 1
            )

        published_at = utcnow()
        self._store.update_article(
            article.id,
            status=published.status,
            published_at=published_at,
            wp_post_id=result.post_id,
            published_url=result.post_url,
        )
        return self._store.update_publish_log(
            entry.id,
            status="published",
            published_at=published_at,
            wp_post_id=result.post_id,
            published_url=result.post_url,
            attempts=entry.attempts + 1,
        )

    # --- Links / keywords ---

    def _require_linker(self) -> InternalLinker:
        if self._linker is None:
            raise ConfigurationError("Internal linking is not configured")
        return self._linker

    def suggest_links(self, article_id: str) -> list[LinkSuggestion]:
        article = self._store.get_article(article_id)
        context = ArticleContext(
            title=article.title,
            content=article.content,
            topics=article.topics,
            keywords=article.keywords,
        )
        return self._require_linker().suggest(article.tenant_id, context, article_id=article.id)

    def accept_link_suggestion(
        self, article_id: str, suggestion: LinkSuggestion
    ) -> ArticleInternalLink:
        """Record the link and insert the anchor into the article body."""
        article = self._store.get_article(article_id)
        link = self._require_linker().record(article.tenant_id, article.id, suggestion)
        result = insert_links(article.content, [(suggestion.target_url, suggestion.anchor_text)])
        if result.links_inserted:
            self._store.update_article(article.id, content=result.content)
        return link

    def rank_keywords(self, keywords: Iterable[KeywordData]) -> list[tuple[KeywordData, int]]:
        return rank_by_opportunity(keywords)
