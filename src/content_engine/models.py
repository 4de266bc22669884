"""Pydantic data models for the queue, pipeline, publishing and scoring layers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


QueueStatus = Literal["pending", "scheduled", "processing", "completed", "failed", "cancelled"]

PipelineStageName = Literal[
    "INITIALIZING",
    "GATHERING_CONTEXT",
    "SELECTING_CONTRIBUTOR",
    "GENERATING_OUTLINE",
    "DRAFTING",
    "HUMANIZING",
    "QUALITY_CHECK",
    "FINALIZING",
    "COMPLETE",
    "ERROR",
]

# Fixed progress checkpoint for each stage, in pipeline order.
STAGE_PROGRESS: dict[str, int] = {
    "INITIALIZING": 0,
    "GATHERING_CONTEXT": 10,
    "SELECTING_CONTRIBUTOR": 20,
    "GENERATING_OUTLINE": 30,
    "DRAFTING": 40,
    "HUMANIZING": 60,
    "QUALITY_CHECK": 80,
    "FINALIZING": 90,
    "COMPLETE": 100,
}
STAGE_ORDER: list[str] = list(STAGE_PROGRESS)
TERMINAL_STAGES = frozenset({"COMPLETE", "ERROR"})

ArticleStatus = Literal[
    "idea",
    "outline",
    "drafting",
    "draft",
    "humanizing",
    "review",
    "ready",
    "scheduled",
    "published",
    "archived",
]

RiskLevel = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
Aggressiveness = Literal["light", "medium", "heavy"]
PublishLogStatus = Literal["pending", "publishing", "published", "failed", "cancelled"]


# --- Queue ---


class GenerationOptions(BaseModel):
    """Per-item generation overrides carried on a queue item."""

    topic: str = ""
    primary_keyword: str | None = None
    content_type: str = "blog_post"
    contributor_id: str | None = None
    target_word_count: int | None = None
    outline: list[str] | None = None


class QueueItem(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    content_idea_id: str | None = None
    article_id: str | None = None
    priority: int = 0
    status: QueueStatus = "pending"
    attempts: int = 0
    max_attempts: int = 3
    last_error: str | None = None
    scheduled_for: datetime | None = None
    processing_started_at: datetime | None = None
    completed_at: datetime | None = None
    config: GenerationOptions = Field(default_factory=GenerationOptions)
    result: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator(
        "scheduled_for", "processing_started_at", "completed_at", "created_at", "updated_at"
    )
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class EnqueueOptions(BaseModel):
    priority: int | None = None
    scheduled_for: datetime | None = None
    config: GenerationOptions | None = None
    max_attempts: int | None = None

    @field_validator("scheduled_for")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class QueueStats(BaseModel):
    pending: int = 0
    scheduled: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    avg_processing_time: float | None = None  # ms
    items_last_hour: int = 0
    estimated_wait_time: int = 0  # ms


# --- Contributors / tenant configuration ---


class VoiceProfile(BaseModel):
    formality_scale: int = Field(default=5, ge=1, le=10)
    description: str = "Professional and informative"
    guidelines: str = "Write clearly and helpfully"
    signature_phrases: list[str] = Field(default_factory=list)
    transition_words: list[str] = Field(default_factory=list)
    phrases_to_avoid: list[str] = Field(default_factory=list)


class Contributor(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    name: str
    voice_profile: VoiceProfile = Field(default_factory=VoiceProfile)
    expertise_areas: list[str] = Field(default_factory=list)
    content_types: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_default: bool = False


class TenantGenerationConfig(BaseModel):
    tenant_id: str
    default_word_count: int = 2000
    allowed_domains: list[str] = Field(default_factory=list)
    blocked_domains: list[str] = Field(default_factory=list)
    banned_phrases: list[str] = Field(default_factory=list)
    humanize_aggressiveness: Aggressiveness = "medium"


class PublishingWindow(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0=Sunday
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=1, le=24)

    @model_validator(mode="after")
    def _check_range(self) -> PublishingWindow:
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self


def _weekday_windows() -> list[PublishingWindow]:
    return [PublishingWindow(day_of_week=d, start_hour=9, end_hour=17) for d in range(1, 6)]


class AutoPublishConfig(BaseModel):
    minimum_quality_score: int = Field(default=75, ge=0, le=100)
    maximum_risk_level: Literal["LOW", "MEDIUM", "HIGH"] = "LOW"
    require_human_review: bool = True
    publishing_windows: list[PublishingWindow] = Field(default_factory=_weekday_windows)
    default_days_after_ready: int = Field(default=3, ge=0)
    notify_before_publish: bool = True
    notify_hours_before_publish: int = Field(default=24, ge=0)
    timezone: str = "America/New_York"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value


# --- Content ---


class ContentIdea(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    title: str
    description: str = ""
    primary_keyword: str | None = None
    content_type: str = "blog_post"
    status: Literal[
        "new", "approved", "in_progress", "completed", "rejected", "generated"
    ] = "new"
    article_id: str | None = None
    cluster_id: str | None = None


class Article(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    title: str
    slug: str = ""
    content: str = ""
    excerpt: str | None = None
    status: ArticleStatus = "draft"
    contributor_id: str | None = None
    primary_keyword: str | None = None
    cluster_id: str | None = None
    idea_id: str | None = None

    quality_score: int | None = None
    readability_score: int | None = None
    seo_score: int | None = None
    human_score: int | None = None  # lower = more human-like
    risk_level: RiskLevel | None = None
    risk_score: int | None = None

    word_count: int = 0
    reading_time: int = 0
    topics: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)

    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    scheduled_at: datetime | None = None
    published_at: datetime | None = None
    wp_post_id: int | None = None
    published_url: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# --- Pipeline ---


class GenerateRequest(BaseModel):
    tenant_id: str
    topic: str
    content_type: str = "blog_post"
    primary_keyword: str | None = None
    contributor_id: str | None = None
    target_word_count: int | None = None
    outline: list[str] | None = None
    cluster_id: str | None = None
    idea_id: str | None = None
    queue_item_id: str | None = None

    @field_validator("topic", "content_type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value


class PipelineRun(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    topic: str
    primary_keyword: str | None = None
    content_type: str = "blog_post"
    contributor_id: str | None = None
    target_word_count: int | None = None
    idea_id: str | None = None
    cluster_id: str | None = None
    queue_item_id: str | None = None

    stage: PipelineStageName = "INITIALIZING"
    progress: int = Field(default=0, ge=0, le=100)
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    outline: list[str] | None = None
    generated_content: str | None = None
    quality_score: int | None = None
    article_id: str | None = None

    tokens_used: int = 0
    estimated_cost: float = 0.0
    duration: int | None = None  # ms

    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES


# --- Scoring ---


class RelevanceBreakdown(BaseModel):
    title_overlap: int = 0
    topic_match: int = 0
    keyword_match: int = 0
    recency_bonus: int = 0
    link_equity_penalty: int = 0


class RelevanceScore(BaseModel):
    total: int = 0
    breakdown: RelevanceBreakdown = Field(default_factory=RelevanceBreakdown)
    matched_topics: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)


class RiskFactors(BaseModel):
    ai_detection_risk: int = Field(default=0, ge=0, le=40)
    compliance_violations: int = Field(default=0, ge=0, le=30)
    quality_deficits: int = Field(default=0, ge=0, le=20)
    structural_issues: int = Field(default=0, ge=0, le=10)


class BlockingIssue(BaseModel):
    id: str
    category: Literal["ai_detection", "compliance", "quality", "structure"]
    message: str


class RiskAssessment(BaseModel):
    level: RiskLevel = "LOW"
    score: int = 0
    factors: RiskFactors = Field(default_factory=RiskFactors)
    blocking_issues: list[BlockingIssue] = Field(default_factory=list)


# --- Internal linking ---


class SiteCatalogEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    url: str
    title: str
    excerpt: str | None = None
    topics: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    published_at: datetime | None = None
    times_linked_to: int = 0
    word_count: int | None = None
    is_active: bool = True


class ArticleContext(BaseModel):
    title: str
    content: str = ""
    topics: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class LinkSuggestion(BaseModel):
    catalog_id: str
    target_url: str
    target_title: str
    target_excerpt: str | None = None
    anchor_text: str
    relevance_score: int
    score_breakdown: RelevanceBreakdown
    matched_topics: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)


class ArticleInternalLink(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    source_article_id: str
    target_catalog_id: str
    target_url: str
    anchor_text: str
    relevance_score: int | None = None
    created_at: datetime = Field(default_factory=utcnow)


# --- Keyword research ---


class MonthlyTrend(BaseModel):
    month: str  # YYYY-MM
    volume: int


class SeasonalityPattern(BaseModel):
    peak_months: list[int] = Field(default_factory=list)
    low_months: list[int] = Field(default_factory=list)
    variance: float = 0.0


class KeywordData(BaseModel):
    keyword: str
    search_volume: int | None = None
    keyword_difficulty: int | None = None
    cpc: float | None = None
    competition: Literal["low", "medium", "high"] | None = None
    competition_level: float | None = None
    trend_data: list[MonthlyTrend] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_starred: bool = False
    source: Literal["manual", "dataforseo", "import"] = "manual"


# --- Publishing ---


class PublishRequest(BaseModel):
    title: str
    content: str
    status: Literal["draft", "publish", "pending", "private", "future"] = "publish"
    slug: str | None = None
    excerpt: str | None = None
    categories: list[int] = Field(default_factory=list)
    tags: list[int] = Field(default_factory=list)
    publish_date: datetime | None = None


class PublishResult(BaseModel):
    success: bool
    post_id: int | None = None
    post_url: str | None = None
    error: str | None = None


class PublishDecision(BaseModel):
    allowed: bool = False
    deferred: bool = False
    reasons: list[str] = Field(default_factory=list)
    publish_at: datetime | None = None


class PublishLogEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    tenant_id: str
    article_id: str
    scheduled_for: datetime
    published_at: datetime | None = None
    status: PublishLogStatus = "pending"
    wp_post_id: int | None = None
    published_url: str | None = None
    error: str | None = None
    attempts: int = 0
    override: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# --- Stage outputs ---


class GenerationContext(BaseModel):
    tenant_config: TenantGenerationConfig
    target_word_count: int


class OutlineResponse(BaseModel):
    sections: list[str] = Field(default_factory=list)


class DraftResult(BaseModel):
    content: str
    flagged_phrases: list[str] = Field(default_factory=list)


class QualityReport(BaseModel):
    quality_score: int
    word_count: int
    risk: RiskAssessment = Field(default_factory=RiskAssessment)


class LinkInsertResult(BaseModel):
    content: str
    links_inserted: int = 0
    inserted_urls: list[str] = Field(default_factory=list)
