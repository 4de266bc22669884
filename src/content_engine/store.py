"""JSON-document store: queue items, runs, articles and tenant settings.

All public methods are safe to call from several worker threads. Reads return
copies; every write goes through a transaction that is flushed to disk with a
temp-file replace and rolled back in memory if the flush fails.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field

from content_engine.errors import NotFoundError, RunFinalizedError
from content_engine.models import (
    Article,
    ArticleInternalLink,
    AutoPublishConfig,
    ContentIdea,
    Contributor,
    PipelineRun,
    PublishLogEntry,
    QueueItem,
    QueueStatus,
    SiteCatalogEntry,
    TenantGenerationConfig,
    utcnow,
)
from content_engine.queue import GenerationQueue

logger = logging.getLogger(__name__)
M = TypeVar("M", bound=BaseModel)


class StoreData(BaseModel):
    queue_items: dict[str, QueueItem] = Field(default_factory=dict)
    runs: dict[str, PipelineRun] = Field(default_factory=dict)
    articles: dict[str, Article] = Field(default_factory=dict)
    ideas: dict[str, ContentIdea] = Field(default_factory=dict)
    contributors: dict[str, Contributor] = Field(default_factory=dict)
    generation_configs: dict[str, TenantGenerationConfig] = Field(default_factory=dict)
    auto_publish_configs: dict[str, AutoPublishConfig] = Field(default_factory=dict)
    catalog: dict[str, SiteCatalogEntry] = Field(default_factory=dict)
    internal_links: dict[str, ArticleInternalLink] = Field(default_factory=dict)
    publish_log: dict[str, PublishLogEntry] = Field(default_factory=dict)


def _copy(model: M) -> M:
    return model.model_copy(deep=True)


def _apply(model: M, changes: dict[str, Any]) -> M:
    """Return a validated copy of model with changes applied."""
    return type(model).model_validate({**model.model_dump(), **changes})


class JsonStore:
    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.RLock()
        self._data = StoreData()
        self._queue = GenerationQueue()
        self.load()

    def load(self) -> None:
        with self._lock:
            if self._path is not None and self._path.exists():
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                self._data = StoreData.model_validate(raw)
                logger.info("Loaded store from %s", self._path)
            else:
                self._data = StoreData()

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(self._data.model_dump_json(indent=2) + "\n", encoding="utf-8")
        os.replace(tmp, self._path)

    @contextmanager
    def _transaction(self) -> Iterator[StoreData]:
        with self._lock:
            snapshot = self._data.model_copy(deep=True)
            try:
                yield self._data
                self._flush()
            except Exception:
                self._data = snapshot
                raise

    @staticmethod
    def _require(table: dict[str, M], key: str, kind: str) -> M:
        try:
            return table[key]
        except KeyError:
            raise NotFoundError(f"{kind} {key} not found") from None

    # --- Queue items ---

    def add_queue_item(self, item: QueueItem) -> QueueItem:
        with self._transaction() as data:
            data.queue_items[item.id] = _copy(item)
        return item

    def get_queue_item(self, item_id: str) -> QueueItem:
        with self._lock:
            return _copy(self._require(self._data.queue_items, item_id, "Queue item"))

    def list_queue_items(
        self,
        tenant_id: str | None = None,
        statuses: Iterable[QueueStatus] | None = None,
    ) -> list[QueueItem]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            return [
                _copy(i)
                for i in self._data.queue_items.values()
                if (tenant_id is None or i.tenant_id == tenant_id)
                and (wanted is None or i.status in wanted)
            ]

    def update_queue_item(self, item_id: str, **changes: Any) -> QueueItem:
        with self._transaction() as data:
            item = self._require(data.queue_items, item_id, "Queue item")
            updated = _apply(item, {**changes, "updated_at": utcnow()})
            data.queue_items[item_id] = updated
        return _copy(updated)

    def move_queue_item(
        self, item_id: str, from_statuses: Iterable[QueueStatus], **changes: Any
    ) -> QueueItem | None:
        """Apply changes only while the item is in one of from_statuses. None otherwise."""
        allowed = set(from_statuses)
        with self._transaction() as data:
            item = self._require(data.queue_items, item_id, "Queue item")
            if item.status not in allowed:
                return None
            updated = _apply(item, {**changes, "updated_at": utcnow()})
            data.queue_items[item_id] = updated
        return _copy(updated)

    def _start_processing(self, item: QueueItem, now: datetime) -> QueueItem:
        updated = _apply(
            item,
            {"status": "processing", "processing_started_at": now, "updated_at": now},
        )
        self._data.queue_items[item.id] = updated
        return updated

    def claim(self, item_id: str, now: datetime | None = None) -> QueueItem | None:
        """Move one due item to processing. None if another caller got there first."""
        now = now or utcnow()
        with self._transaction() as data:
            item = self._require(data.queue_items, item_id, "Queue item")
            if not self._queue.is_due(item, now):
                return None
            claimed = self._start_processing(item, now)
        return _copy(claimed)

    def claim_next(
        self, tenant_id: str | None = None, now: datetime | None = None
    ) -> QueueItem | None:
        """Claim the highest-priority due item, oldest first within a priority."""
        now = now or utcnow()
        with self._transaction() as data:
            candidates = [
                i
                for i in data.queue_items.values()
                if (tenant_id is None or i.tenant_id == tenant_id) and self._queue.is_due(i, now)
            ]
            if not candidates:
                return None
            claimed = self._start_processing(self._queue.sort_queue(candidates)[0], now)
        return _copy(claimed)

    def complete_queue_item(
        self,
        item_id: str,
        result: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Mark a processing item completed. False if it is no longer processing."""
        now = now or utcnow()
        with self._transaction() as data:
            item = self._require(data.queue_items, item_id, "Queue item")
            if item.status != "processing":
                return False
            data.queue_items[item_id] = _apply(
                item,
                {
                    "status": "completed",
                    "completed_at": now,
                    "last_error": None,
                    "result": result,
                    "updated_at": now,
                },
            )
        return True

    def fail_queue_item(
        self,
        item_id: str,
        error: str,
        now: datetime | None = None,
        *,
        fatal: bool = False,
    ) -> bool:
        """Record a failed attempt. Fatal failures exhaust the remaining attempts."""
        now = now or utcnow()
        with self._transaction() as data:
            item = self._require(data.queue_items, item_id, "Queue item")
            if item.status != "processing":
                return False
            attempts = item.max_attempts if fatal else item.attempts + 1
            data.queue_items[item_id] = _apply(
                item,
                {
                    "status": "failed",
                    "attempts": attempts,
                    "last_error": error,
                    "processing_started_at": None,
                    "updated_at": now,
                },
            )
        return True

    def cancel_queue_item(self, item_id: str) -> bool:
        with self._transaction() as data:
            item = self._require(data.queue_items, item_id, "Queue item")
            if item.status not in ("pending", "scheduled", "processing"):
                return False
            data.queue_items[item_id] = _apply(
                item,
                {"status": "cancelled", "processing_started_at": None, "updated_at": utcnow()},
            )
        return True

    # --- Pipeline runs ---

    def create_run(self, run: PipelineRun) -> PipelineRun:
        with self._transaction() as data:
            data.runs[run.id] = _copy(run)
        return run

    def get_run(self, run_id: str) -> PipelineRun:
        with self._lock:
            return _copy(self._require(self._data.runs, run_id, "Pipeline run"))

    def list_runs(
        self, tenant_id: str | None = None, queue_item_id: str | None = None
    ) -> list[PipelineRun]:
        with self._lock:
            runs = [
                _copy(r)
                for r in self._data.runs.values()
                if (tenant_id is None or r.tenant_id == tenant_id)
                and (queue_item_id is None or r.queue_item_id == queue_item_id)
            ]
        return sorted(runs, key=lambda r: r.started_at)

    def update_run(self, run_id: str, **changes: Any) -> PipelineRun:
        with self._transaction() as data:
            run = self._require(data.runs, run_id, "Pipeline run")
            if run.is_terminal:
                raise RunFinalizedError(f"Pipeline run {run_id} is already {run.stage}")
            updated = _apply(run, changes)
            data.runs[run_id] = updated
        return _copy(updated)

    # --- Articles / ideas ---

    def save_article(self, article: Article) -> Article:
        with self._transaction() as data:
            data.articles[article.id] = _copy(article)
        return article

    def get_article(self, article_id: str) -> Article:
        with self._lock:
            return _copy(self._require(self._data.articles, article_id, "Article"))

    def list_articles(
        self, tenant_id: str | None = None, status: str | None = None
    ) -> list[Article]:
        with self._lock:
            return [
                _copy(a)
                for a in self._data.articles.values()
                if (tenant_id is None or a.tenant_id == tenant_id)
                and (status is None or a.status == status)
            ]

    def update_article(self, article_id: str, **changes: Any) -> Article:
        with self._transaction() as data:
            article = self._require(data.articles, article_id, "Article")
            updated = _apply(article, {**changes, "updated_at": utcnow()})
            data.articles[article_id] = updated
        return _copy(updated)

    def save_idea(self, idea: ContentIdea) -> ContentIdea:
        with self._transaction() as data:
            data.ideas[idea.id] = _copy(idea)
        return idea

    def get_idea(self, idea_id: str) -> ContentIdea:
        with self._lock:
            return _copy(self._require(self._data.ideas, idea_id, "Content idea"))

    def update_idea(self, idea_id: str, **changes: Any) -> ContentIdea:
        with self._transaction() as data:
            idea = self._require(data.ideas, idea_id, "Content idea")
            updated = _apply(idea, changes)
            data.ideas[idea_id] = updated
        return _copy(updated)

    # --- Contributors / tenant settings ---

    def save_contributor(self, contributor: Contributor) -> Contributor:
        with self._transaction() as data:
            data.contributors[contributor.id] = _copy(contributor)
        return contributor

    def get_contributor(self, contributor_id: str) -> Contributor:
        with self._lock:
            return _copy(self._require(self._data.contributors, contributor_id, "Contributor"))

    def list_contributors(self, tenant_id: str) -> list[Contributor]:
        with self._lock:
            return [
                _copy(c) for c in self._data.contributors.values() if c.tenant_id == tenant_id
            ]

    def get_generation_config(self, tenant_id: str) -> TenantGenerationConfig | None:
        with self._lock:
            config = self._data.generation_configs.get(tenant_id)
            return _copy(config) if config else None

    def save_generation_config(self, config: TenantGenerationConfig) -> None:
        with self._transaction() as data:
            data.generation_configs[config.tenant_id] = _copy(config)

    def get_auto_publish_config(self, tenant_id: str) -> AutoPublishConfig:
        """The tenant's saved config, or defaults when none was saved."""
        with self._lock:
            config = self._data.auto_publish_configs.get(tenant_id)
            return _copy(config) if config else AutoPublishConfig()

    def save_auto_publish_config(self, tenant_id: str, config: AutoPublishConfig) -> None:
        with self._transaction() as data:
            data.auto_publish_configs[tenant_id] = _copy(config)

    # --- Site catalog / internal links ---

    def save_catalog_entry(self, entry: SiteCatalogEntry) -> SiteCatalogEntry:
        with self._transaction() as data:
            data.catalog[entry.id] = _copy(entry)
        return entry

    def get_catalog_entry(self, entry_id: str) -> SiteCatalogEntry:
        with self._lock:
            return _copy(self._require(self._data.catalog, entry_id, "Catalog entry"))

    def list_catalog(self, tenant_id: str, *, active_only: bool = True) -> list[SiteCatalogEntry]:
        with self._lock:
            return [
                _copy(e)
                for e in self._data.catalog.values()
                if e.tenant_id == tenant_id and (e.is_active or not active_only)
            ]

    def add_internal_link(self, link: ArticleInternalLink) -> ArticleInternalLink:
        """Persist an accepted link and bump the target's inbound link count."""
        with self._transaction() as data:
            entry = self._require(data.catalog, link.target_catalog_id, "Catalog entry")
            data.catalog[entry.id] = _apply(entry, {"times_linked_to": entry.times_linked_to + 1})
            data.internal_links[link.id] = _copy(link)
        return link

    def list_internal_links(self, source_article_id: str) -> list[ArticleInternalLink]:
        with self._lock:
            return [
                _copy(link)
                for link in self._data.internal_links.values()
                if link.source_article_id == source_article_id
            ]

    # --- Publish log ---

    def add_publish_log(self, entry: PublishLogEntry) -> PublishLogEntry:
        with self._transaction() as data:
            data.publish_log[entry.id] = _copy(entry)
        return entry

    def get_publish_log(self, entry_id: str) -> PublishLogEntry:
        with self._lock:
            return _copy(self._require(self._data.publish_log, entry_id, "Publish log entry"))

    def update_publish_log(self, entry_id: str, **changes: Any) -> PublishLogEntry:
        with self._transaction() as data:
            entry = self._require(data.publish_log, entry_id, "Publish log entry")
            updated = _apply(entry, changes)
            data.publish_log[entry_id] = updated
        return _copy(updated)

    def list_publish_log(
        self, tenant_id: str | None = None, article_id: str | None = None
    ) -> list[PublishLogEntry]:
        with self._lock:
            return [
                _copy(e)
                for e in self._data.publish_log.values()
                if (tenant_id is None or e.tenant_id == tenant_id)
                and (article_id is None or e.article_id == article_id)
            ]
