"""Site catalog source: a tenant's own RSS feed, optionally with full page text."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from html import unescape
from re import sub as re_sub

import feedparser
import httpx
import trafilatura

from content_engine.articles import count_words
from content_engine.linking import extract_keywords, extract_topics
from content_engine.models import SiteCatalogEntry

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 15.0
_MAX_EXCERPT_CHARS = 500


def _strip_html(text: str) -> str:
    clean = re_sub(r"<[^>]+>", "", text)
    return unescape(clean).strip()


def _parse_published(entry: dict) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _page_text(url: str) -> str | None:
    """Main text of a page via trafilatura. None on failure."""
    try:
        downloaded = trafilatura.fetch_url(url)
        if downloaded is None:
            return None
        return trafilatura.extract(downloaded)
    except Exception:
        logger.warning("Text extraction failed for %s", url, exc_info=True)
        return None


def fetch_site_feed(
    feed_url: str,
    tenant_id: str,
    *,
    extract_text: bool = False,
) -> list[SiteCatalogEntry]:
    """Catalog entries for every item in the feed.

    Topics and keywords are derived from the page text when extract_text is set,
    otherwise from the feed summary.
    """
    try:
        with httpx.Client(follow_redirects=True, timeout=_REQUEST_TIMEOUT) as client:
            response = client.get(feed_url)
            response.raise_for_status()
            content = response.text
    except httpx.HTTPError:
        logger.warning("Failed to fetch site feed %s", feed_url, exc_info=True)
        return []

    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        logger.warning("Feed parse error for %s: %s", feed_url, feed.bozo_exception)
        return []

    entries = []
    for item in feed.entries:
        title = _strip_html(item.get("title", ""))
        link = item.get("link", "")
        if not title or not link:
            continue

        summary = _strip_html(item.get("summary", item.get("description", "")))
        text = (_page_text(link) if extract_text else None) or summary
        entries.append(
            SiteCatalogEntry(
                tenant_id=tenant_id,
                url=link,
                title=title,
                excerpt=summary[:_MAX_EXCERPT_CHARS] or None,
                topics=extract_topics(f"{title} {text}"),
                keywords=extract_keywords(f"{title} {text}"),
                published_at=_parse_published(item),
                word_count=count_words(text) if text else None,
            )
        )

    logger.info("Site feed %s: %d entries", feed_url, len(entries))
    return entries
