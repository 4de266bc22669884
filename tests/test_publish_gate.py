"""Tests for the auto-publish gate."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from content_engine.models import Article, AutoPublishConfig, PublishingWindow, PublishRequest
from content_engine.publish_gate import (
    DUE_STATUSES,
    calculate_publish_date,
    can_auto_publish,
    check_eligibility,
    evaluate,
    is_risk_acceptable,
    is_within_window,
    next_eligible_window,
    notification_time,
    should_notify,
    time_until_publish,
    validate_publish_request,
)

# Wednesday 2026-03-04 15:00 UTC = 10:00 America/New_York
INSIDE = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)
# Wednesday 2026-03-04 23:00 UTC = 18:00 America/New_York
AFTER_HOURS = datetime(2026, 3, 4, 23, 0, tzinfo=timezone.utc)


def _article(**kwargs) -> Article:
    defaults = {
        "tenant_id": "t",
        "title": "Guide",
        "status": "ready",
        "quality_score": 90,
        "risk_level": "LOW",
    }
    return Article(**{**defaults, **kwargs})


def _config(**kwargs) -> AutoPublishConfig:
    defaults = {
        "minimum_quality_score": 70,
        "maximum_risk_level": "MEDIUM",
        "require_human_review": False,
    }
    return AutoPublishConfig(**{**defaults, **kwargs})


def test_default_config():
    config = AutoPublishConfig()
    assert config.minimum_quality_score == 75
    assert config.maximum_risk_level == "LOW"
    assert config.require_human_review is True
    assert [w.day_of_week for w in config.publishing_windows] == [1, 2, 3, 4, 5]
    assert all(w.start_hour == 9 and w.end_hour == 17 for w in config.publishing_windows)
    assert config.timezone == "America/New_York"


def test_window_validation():
    with pytest.raises(ValidationError):
        PublishingWindow(day_of_week=1, start_hour=17, end_hour=9)
    with pytest.raises(ValidationError):
        PublishingWindow(day_of_week=7, start_hour=9, end_hour=17)
    with pytest.raises(ValidationError):
        AutoPublishConfig(timezone="Mars/Olympus_Mons")


def test_can_auto_publish_inside_window():
    assert can_auto_publish(_article(), _config(), INSIDE)


def test_critical_risk_always_blocks():
    assert not can_auto_publish(_article(risk_level="CRITICAL"), _config(), INSIDE)
    assert not is_risk_acceptable("CRITICAL", "HIGH")


@pytest.mark.parametrize(
    "risk, maximum, ok",
    [
        ("LOW", "LOW", True),
        ("MEDIUM", "LOW", False),
        ("MEDIUM", "HIGH", True),
        ("HIGH", "MEDIUM", False),
        ("HIGH", "HIGH", True),
    ],
)
def test_is_risk_acceptable(risk, maximum, ok):
    assert is_risk_acceptable(risk, maximum) is ok


def test_check_eligibility_reasons():
    reasons = check_eligibility(
        _article(quality_score=60, risk_level="HIGH"),
        _config(require_human_review=True),
    )
    assert reasons == [
        "Quality score 60 is below minimum 70",
        "Risk level HIGH exceeds maximum allowed MEDIUM",
        "Human review is required but not completed",
    ]


def test_check_eligibility_missing_scores():
    reasons = check_eligibility(_article(quality_score=None, risk_level=None), _config())
    assert reasons == ["Article has no quality score", "Article has no risk assessment"]


@pytest.mark.parametrize("status", ["draft", "scheduled", "published", "archived"])
def test_only_ready_articles_are_eligible(status):
    reasons = check_eligibility(_article(status=status), _config())
    assert reasons == [f"Article status must be 'ready' (current: {status})"]
    assert not can_auto_publish(_article(status=status), _config(), INSIDE)


def test_due_schedule_accepts_scheduled_article():
    article = _article(status="scheduled")
    assert check_eligibility(article, _config(), DUE_STATUSES) == []
    assert evaluate(article, _config(), INSIDE, DUE_STATUSES).allowed

    reasons = check_eligibility(_article(status="published"), _config(), DUE_STATUSES)
    assert reasons == ["Article status must be 'ready' or 'scheduled' (current: published)"]


def test_reviewed_article_passes_review_check():
    article = _article(reviewed_at=INSIDE - timedelta(hours=1), reviewed_by="editor")
    assert check_eligibility(article, _config(require_human_review=True)) == []


def test_is_within_window_uses_tenant_timezone():
    config = _config()
    assert is_within_window(config, INSIDE)
    assert not is_within_window(config, AFTER_HOURS)
    # 15:00 UTC is inside 9-17 in New York but not in Tokyo (midnight)
    assert not is_within_window(_config(timezone="Asia/Tokyo"), INSIDE)


def test_window_start_inclusive_end_exclusive():
    window = {"day_of_week": 3, "start_hour": 9, "end_hour": 17}
    config = _config(timezone="UTC", publishing_windows=[window])
    assert is_within_window(config, datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc))
    assert is_within_window(config, datetime(2026, 3, 4, 16, 59, tzinfo=timezone.utc))
    assert not is_within_window(config, datetime(2026, 3, 4, 17, 0, tzinfo=timezone.utc))


def test_sunday_is_day_zero():
    window = {"day_of_week": 0, "start_hour": 0, "end_hour": 24}
    config = _config(timezone="UTC", publishing_windows=[window])
    assert is_within_window(config, datetime(2026, 3, 1, 12, tzinfo=timezone.utc))
    assert not is_within_window(config, datetime(2026, 3, 2, 12, tzinfo=timezone.utc))


def test_no_windows_is_unrestricted():
    config = _config(publishing_windows=[])
    assert is_within_window(config, AFTER_HOURS)
    assert next_eligible_window(config, AFTER_HOURS) == AFTER_HOURS


def test_next_eligible_window_inside_returns_now():
    assert next_eligible_window(_config(), INSIDE) == INSIDE


def test_next_eligible_window_after_hours_is_next_morning():
    result = next_eligible_window(_config(), AFTER_HOURS)
    # Thursday 09:00 EST = 14:00 UTC
    assert result == datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc)


def test_next_eligible_window_skips_weekend():
    friday_evening = datetime(2026, 3, 6, 23, 0, tzinfo=timezone.utc)
    result = next_eligible_window(_config(), friday_evening)
    # Monday 2026-03-09 09:00 EDT (DST starts 03-08) = 13:00 UTC
    assert result == datetime(2026, 3, 9, 13, 0, tzinfo=timezone.utc)


def test_next_eligible_window_before_opening_same_day():
    early = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)  # 07:00 New York
    expected = datetime(2026, 3, 4, 14, 0, tzinfo=timezone.utc)
    assert next_eligible_window(_config(), early) == expected


def test_evaluate_allowed():
    decision = evaluate(_article(), _config(), INSIDE)
    assert decision.allowed
    assert not decision.deferred
    assert decision.publish_at == INSIDE


def test_evaluate_deferred_outside_window():
    decision = evaluate(_article(), _config(), AFTER_HOURS)
    assert not decision.allowed
    assert decision.deferred
    assert decision.publish_at == datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc)


def test_evaluate_blocked_is_not_deferred():
    decision = evaluate(_article(quality_score=10), _config(), AFTER_HOURS)
    assert not decision.allowed
    assert not decision.deferred
    assert decision.publish_at is None
    assert decision.reasons == ["Quality score 10 is below minimum 70"]


def test_calculate_publish_date():
    # ready Wednesday evening + 3 days = Saturday evening -> Monday morning
    result = calculate_publish_date(_config(), AFTER_HOURS)
    assert result == datetime(2026, 3, 9, 13, 0, tzinfo=timezone.utc)


def test_notification_time_and_should_notify():
    config = _config(notify_hours_before_publish=24)
    publish_at = datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc)

    assert notification_time(config, publish_at) == publish_at - timedelta(hours=24)
    assert should_notify(config, publish_at, publish_at - timedelta(hours=2))
    assert not should_notify(config, publish_at, publish_at - timedelta(hours=30))
    assert not should_notify(config, publish_at, publish_at)


def test_notifications_disabled():
    config = _config(notify_before_publish=False)
    assert notification_time(config, INSIDE) is None
    assert not should_notify(config, INSIDE, INSIDE - timedelta(hours=1))


def test_time_until_publish():
    assert time_until_publish(INSIDE, INSIDE) == "Now"
    assert time_until_publish(INSIDE + timedelta(minutes=45), INSIDE) == "45m"
    assert time_until_publish(INSIDE + timedelta(hours=3, minutes=5), INSIDE) == "3h 5m"
    assert time_until_publish(INSIDE + timedelta(days=3), INSIDE) == "3 days"


def test_validate_publish_request():
    assert validate_publish_request(PublishRequest(title="T", content="x" * 120)) == []
    errors = validate_publish_request(PublishRequest(title="  ", content="short"))
    assert errors == ["Title is required", "Content must be at least 100 characters"]
