"""Tests for the WordPress publisher."""

import base64
import json
from datetime import datetime, timezone

import httpx
import pytest

from content_engine.config import Settings
from content_engine.errors import ConfigurationError
from content_engine.models import PublishRequest
from content_engine.publishers.wordpress import WordPressPublisher, _api_base


def _publisher(settings, handler) -> WordPressPublisher:
    return WordPressPublisher(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_requires_site_url():
    with pytest.raises(ConfigurationError):
        WordPressPublisher(Settings())


def test_api_base():
    assert _api_base("blog.example.com/") == "https://blog.example.com/wp-json/wp/v2"
    assert _api_base("http://localhost:8080") == "http://localhost:8080/wp-json/wp/v2"


def test_build_payload(sample_settings):
    publisher = WordPressPublisher(sample_settings)
    request = PublishRequest(
        title="Guide",
        content="<p>Body</p><script>alert(1)</script>",
        status="future",
        slug="guide",
        publish_date=datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc),
        categories=[3],
    )

    payload = publisher.build_payload(request)

    assert payload["content"] == "<p>Body</p>"
    assert payload["slug"] == "guide"
    assert payload["categories"] == [3]
    assert payload["date_gmt"] == "2026-03-05T14:00:00+00:00"
    assert "tags" not in payload


def test_publish_success(sample_settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": 42, "link": "https://blog.example.com/guide"})

    publisher = _publisher(sample_settings, handler)
    result = publisher.publish(PublishRequest(title="Guide", content="Body"))

    assert result.success
    assert result.post_id == 42
    assert result.post_url == "https://blog.example.com/guide"
    [request] = seen
    assert request.method == "POST"
    assert str(request.url) == "https://blog.example.com/wp-json/wp/v2/posts"
    token = base64.b64encode(b"editor:app-pass").decode()
    assert request.headers["authorization"] == f"Basic {token}"
    assert json.loads(request.content)["status"] == "publish"


def test_publish_api_error(sample_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"code": "rest_cannot_create", "message": "Sorry, you are not allowed"}
        return httpx.Response(401, json=body)

    publisher = _publisher(sample_settings, handler)
    result = publisher.publish(PublishRequest(title="Guide", content="Body"))

    assert not result.success
    assert result.error == "WordPress API error (401): Sorry, you are not allowed"


def test_publish_transport_error(sample_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    publisher = _publisher(sample_settings, handler)
    result = publisher.publish(PublishRequest(title="Guide", content="Body"))

    assert not result.success
    assert result.error == "connection refused"


def test_publish_unreadable_success_body(sample_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, text="<html>Created</html>")

    publisher = _publisher(sample_settings, handler)
    result = publisher.publish(PublishRequest(title="Guide", content="Body"))

    assert not result.success
    assert result.error == "WordPress returned an unreadable response (201)"
