"""Internal linking: suggest catalog pages to link to and insert the anchors."""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable
from datetime import datetime

from content_engine.config import Settings
from content_engine.models import (
    ArticleContext,
    ArticleInternalLink,
    LinkInsertResult,
    LinkSuggestion,
    SiteCatalogEntry,
)
from content_engine.scoring import rank_candidates
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\b\w{4,}\b")
_STOPWORDS = frozenset(
    {
        "about", "after", "also", "been", "before", "being", "could", "does", "each",
        "from", "have", "here", "into", "just", "like", "make", "many", "more", "most",
        "much", "only", "other", "over", "same", "should", "some", "such", "than",
        "that", "their", "them", "then", "there", "these", "they", "this", "those",
        "very", "want", "were", "what", "when", "where", "which", "while", "will",
        "with", "would", "your",
    }
)


def extract_topics(content: str, limit: int = 10) -> list[str]:
    """Most frequent words of four or more letters, most frequent first."""
    words = [w for w in _WORD_RE.findall(content.lower()) if w not in _STOPWORDS]
    return [word for word, _ in Counter(words).most_common(limit)]


def extract_keywords(content: str, limit: int = 5) -> list[str]:
    return extract_topics(content, limit)


def anchor_text(title: str, matched_keywords: list[str]) -> str:
    if matched_keywords:
        return matched_keywords[0]
    return " ".join(title.split()[:5])


def insert_links(
    content: str,
    links: Iterable[tuple[str, str]],
    max_links: int = 5,
) -> LinkInsertResult:
    """Link the first whole-word, case-insensitive match of each (url, anchor) pair."""
    inserted: list[str] = []
    for url, anchor in list(links)[:max_links]:
        if not anchor:
            continue
        pattern = re.compile(rf"\b{re.escape(anchor)}\b", re.IGNORECASE)
        content, count = pattern.subn(
            lambda m, url=url: f'<a href="{url}">{m.group(0)}</a>', content, count=1
        )
        if count:
            inserted.append(url)
    return LinkInsertResult(content=content, links_inserted=len(inserted), inserted_urls=inserted)


class InternalLinker:
    def __init__(self, store: JsonStore, settings: Settings) -> None:
        self._store = store
        self._min_score = settings.link_min_score
        self._limit = settings.link_limit

    def suggest(
        self,
        tenant_id: str,
        context: ArticleContext,
        *,
        article_id: str | None = None,
        exclude_urls: Iterable[str] = (),
        now: datetime | None = None,
    ) -> list[LinkSuggestion]:
        excluded = set(exclude_urls)
        if article_id:
            excluded.update(link.target_url for link in self._store.list_internal_links(article_id))

        catalog = [e for e in self._store.list_catalog(tenant_id) if e.url not in excluded]
        catalog.sort(
            key=lambda e: e.published_at.timestamp() if e.published_at else 0.0, reverse=True
        )

        ranked = rank_candidates(
            context, catalog, min_score=self._min_score, limit=self._limit, now=now
        )
        return [
            LinkSuggestion(
                catalog_id=entry.id,
                target_url=entry.url,
                target_title=entry.title,
                target_excerpt=entry.excerpt,
                anchor_text=anchor_text(entry.title, score.matched_keywords),
                relevance_score=score.total,
                score_breakdown=score.breakdown,
                matched_topics=score.matched_topics,
                matched_keywords=score.matched_keywords,
            )
            for entry, score in ranked
        ]

    def record(
        self, tenant_id: str, article_id: str, suggestion: LinkSuggestion
    ) -> ArticleInternalLink:
        link = ArticleInternalLink(
            tenant_id=tenant_id,
            source_article_id=article_id,
            target_catalog_id=suggestion.catalog_id,
            target_url=suggestion.target_url,
            anchor_text=suggestion.anchor_text,
            relevance_score=suggestion.relevance_score,
        )
        self._store.add_internal_link(link)
        logger.info("Article %s links to %s", article_id, suggestion.target_url)
        return link

    def sync_catalog_entry(self, entry: SiteCatalogEntry) -> SiteCatalogEntry:
        """Upsert by (tenant, url), keeping the id and inbound link count."""
        for existing in self._store.list_catalog(entry.tenant_id, active_only=False):
            if existing.url == entry.url:
                entry = entry.model_copy(
                    update={"id": existing.id, "times_linked_to": existing.times_linked_to}
                )
                break
        return self._store.save_catalog_entry(entry)
