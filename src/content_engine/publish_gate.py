"""Auto-publish gate: eligibility rules and publishing-window arithmetic.

Windows are evaluated in the tenant's configured timezone. Day of week follows
the 0=Sunday convention used by the settings UI; start hours are inclusive and
end hours exclusive. Datetimes without tzinfo are taken to be UTC.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from content_engine.models import (
    Article,
    ArticleStatus,
    AutoPublishConfig,
    PublishDecision,
    PublishRequest,
    RiskLevel,
    utcnow,
)
from content_engine.scoring import RISK_ORDER

_SEARCH_DAYS = 14
_MIN_CONTENT_CHARS = 100

# An article must be ready to publish now; a due scheduled publish also accepts "scheduled".
READY_STATUSES: tuple[ArticleStatus, ...] = ("ready",)
DUE_STATUSES: tuple[ArticleStatus, ...] = ("ready", "scheduled")


def risk_rank(level: RiskLevel) -> int:
    return RISK_ORDER[level]


def is_risk_acceptable(article_risk: RiskLevel, maximum: RiskLevel) -> bool:
    if article_risk == "CRITICAL":
        return False
    return risk_rank(article_risk) <= risk_rank(maximum)


def _aware(when: datetime) -> datetime:
    return when if when.tzinfo is not None else when.replace(tzinfo=timezone.utc)


def _day_of_week(local: datetime) -> int:
    # datetime.weekday() is Monday=0
    return (local.weekday() + 1) % 7


def check_eligibility(
    article: Article,
    config: AutoPublishConfig,
    statuses: tuple[ArticleStatus, ...] = READY_STATUSES,
) -> list[str]:
    """Reasons the article may not be published automatically; empty when eligible."""
    reasons: list[str] = []

    if article.status not in statuses:
        allowed = " or ".join(f"'{s}'" for s in statuses)
        reasons.append(f"Article status must be {allowed} (current: {article.status})")

    if article.quality_score is None:
        reasons.append("Article has no quality score")
    elif article.quality_score < config.minimum_quality_score:
        reasons.append(
            f"Quality score {article.quality_score} is below minimum "
            f"{config.minimum_quality_score}"
        )

    if article.risk_level is None:
        reasons.append("Article has no risk assessment")
    elif not is_risk_acceptable(article.risk_level, config.maximum_risk_level):
        reasons.append(
            f"Risk level {article.risk_level} exceeds maximum allowed {config.maximum_risk_level}"
        )

    if config.require_human_review and article.reviewed_at is None:
        reasons.append("Human review is required but not completed")

    return reasons


def is_within_window(config: AutoPublishConfig, when: datetime | None = None) -> bool:
    if not config.publishing_windows:
        return True
    local = _aware(when or utcnow()).astimezone(ZoneInfo(config.timezone))
    day = _day_of_week(local)
    return any(
        w.day_of_week == day and w.start_hour <= local.hour < w.end_hour
        for w in config.publishing_windows
    )


def next_eligible_window(config: AutoPublishConfig, now: datetime | None = None) -> datetime:
    """now if it falls inside a window, otherwise the start of the next window."""
    now = _aware(now or utcnow())
    if is_within_window(config, now):
        return now

    tz = ZoneInfo(config.timezone)
    local_now = now.astimezone(tz)
    windows = sorted(config.publishing_windows, key=lambda w: w.start_hour)

    for offset in range(_SEARCH_DAYS):
        day = local_now.date() + timedelta(days=offset)
        dow = (day.weekday() + 1) % 7
        for window in windows:
            if window.day_of_week != dow:
                continue
            start = datetime.combine(day, time(window.start_hour), tzinfo=tz)
            if start > local_now:
                return start.astimezone(now.tzinfo)

    return now


def can_auto_publish(
    article: Article, config: AutoPublishConfig, now: datetime | None = None
) -> bool:
    return not check_eligibility(article, config) and is_within_window(config, now)


def evaluate(
    article: Article,
    config: AutoPublishConfig,
    now: datetime | None = None,
    statuses: tuple[ArticleStatus, ...] = READY_STATUSES,
) -> PublishDecision:
    now = _aware(now or utcnow())
    reasons = check_eligibility(article, config, statuses)
    if reasons:
        return PublishDecision(allowed=False, reasons=reasons)
    if is_within_window(config, now):
        return PublishDecision(allowed=True, publish_at=now)
    return PublishDecision(
        allowed=False,
        deferred=True,
        reasons=["Outside publishing window"],
        publish_at=next_eligible_window(config, now),
    )


def calculate_publish_date(config: AutoPublishConfig, ready_at: datetime | None = None) -> datetime:
    target = _aware(ready_at or utcnow()) + timedelta(days=config.default_days_after_ready)
    return next_eligible_window(config, target)


def notification_time(config: AutoPublishConfig, scheduled_for: datetime) -> datetime | None:
    if not config.notify_before_publish:
        return None
    return _aware(scheduled_for) - timedelta(hours=config.notify_hours_before_publish)


def should_notify(
    config: AutoPublishConfig, scheduled_for: datetime, now: datetime | None = None
) -> bool:
    notify_at = notification_time(config, scheduled_for)
    if notify_at is None:
        return False
    now = _aware(now or utcnow())
    return notify_at <= now < _aware(scheduled_for)


def time_until_publish(scheduled_for: datetime, now: datetime | None = None) -> str:
    diff = _aware(scheduled_for) - _aware(now or utcnow())
    if diff <= timedelta(0):
        return "Now"

    total_minutes = int(diff.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 24:
        days = hours // 24
        return f"{days} day{'s' if days > 1 else ''}"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def validate_publish_request(request: PublishRequest) -> list[str]:
    errors = []
    if not request.title.strip():
        errors.append("Title is required")
    if len(request.content.strip()) < _MIN_CONTENT_CHARS:
        errors.append(f"Content must be at least {_MIN_CONTENT_CHARS} characters")
    return errors
