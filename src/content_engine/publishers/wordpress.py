"""Publishing target: create a post through the WordPress REST API."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from content_engine.config import Settings
from content_engine.errors import ConfigurationError
from content_engine.models import PublishRequest, PublishResult

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)


def _api_base(site_url: str) -> str:
    site_url = site_url.rstrip("/")
    if not site_url.startswith("http"):
        site_url = f"https://{site_url}"
    return f"{site_url}/wp-json/wp/v2"


def _prepare_content(content: str) -> str:
    return _SCRIPT_RE.sub("", content).strip()


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or resp.text
    return resp.text


class WordPressPublisher:
    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        if not settings.wordpress_url:
            raise ConfigurationError("WORDPRESS_URL is not configured")
        self._api_base = _api_base(settings.wordpress_url)
        self._auth = (settings.wordpress_username, settings.wordpress_app_password)
        self._client = client or httpx.Client(follow_redirects=True, timeout=30.0)

    def build_payload(self, request: PublishRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": request.title,
            "content": _prepare_content(request.content),
            "status": request.status,
        }
        if request.slug:
            payload["slug"] = request.slug
        if request.excerpt:
            payload["excerpt"] = request.excerpt
        if request.categories:
            payload["categories"] = request.categories
        if request.tags:
            payload["tags"] = request.tags
        if request.publish_date and request.status == "future":
            payload["date_gmt"] = request.publish_date.isoformat()
        return payload

    def publish(self, request: PublishRequest) -> PublishResult:
        """Create the post. Transport and API failures come back as a failed result."""
        try:
            resp = self._client.post(
                f"{self._api_base}/posts",
                json=self.build_payload(request),
                auth=self._auth,
            )
        except httpx.HTTPError as exc:
            logger.warning("WordPress publish failed for %r: %s", request.title, exc)
            return PublishResult(success=False, error=str(exc))

        if resp.is_error:
            message = f"WordPress API error ({resp.status_code}): {_error_message(resp)}"
            logger.warning("WordPress publish failed for %r: %s", request.title, message)
            return PublishResult(success=False, error=message)

        try:
            post = resp.json()
        except ValueError:
            post = None
        if not isinstance(post, dict):
            message = f"WordPress returned an unreadable response ({resp.status_code})"
            logger.warning("WordPress publish failed for %r: %s", request.title, message)
            return PublishResult(success=False, error=message)

        logger.info("Published %r as post %s", request.title, post.get("id"))
        return PublishResult(success=True, post_id=post.get("id"), post_url=post.get("link"))
