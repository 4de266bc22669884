"""Tests for Pydantic models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from content_engine.models import (
    STAGE_ORDER,
    STAGE_PROGRESS,
    AutoPublishConfig,
    GenerateRequest,
    PipelineRun,
    PublishingWindow,
    QueueItem,
    QueueStats,
    RiskFactors,
    VoiceProfile,
    as_utc,
)


def test_queue_item_defaults():
    item = QueueItem(tenant_id="t")
    assert item.status == "pending"
    assert item.priority == 0
    assert item.attempts == 0
    assert item.max_attempts == 3
    assert item.config.content_type == "blog_post"
    assert item.created_at.tzinfo is not None


def test_queue_item_ids_unique():
    assert QueueItem(tenant_id="t").id != QueueItem(tenant_id="t").id


def test_queue_stats_empty():
    stats = QueueStats()
    assert stats.pending == 0
    assert stats.avg_processing_time is None
    assert stats.estimated_wait_time == 0


def test_stage_checkpoints_increase():
    progress = [STAGE_PROGRESS[stage] for stage in STAGE_ORDER]
    assert progress == sorted(progress)
    assert STAGE_ORDER[0] == "INITIALIZING"
    assert STAGE_ORDER[-1] == "COMPLETE"


def test_pipeline_run_terminal():
    run = PipelineRun(tenant_id="t", topic="Guide")
    assert run.stage == "INITIALIZING"
    assert not run.is_terminal
    assert run.model_copy(update={"stage": "ERROR"}).is_terminal
    assert run.model_copy(update={"stage": "COMPLETE"}).is_terminal


def test_pipeline_run_progress_bounds():
    with pytest.raises(ValidationError):
        PipelineRun(tenant_id="t", topic="Guide", progress=101)


def test_generate_request_rejects_blank_topic():
    with pytest.raises(ValidationError):
        GenerateRequest(tenant_id="t", topic="   ")


def test_voice_profile_formality_range():
    assert VoiceProfile().formality_scale == 5
    with pytest.raises(ValidationError):
        VoiceProfile(formality_scale=11)


def test_publishing_window_range():
    window = PublishingWindow(day_of_week=1, start_hour=9, end_hour=24)
    assert window.end_hour == 24
    with pytest.raises(ValidationError):
        PublishingWindow(day_of_week=1, start_hour=17, end_hour=9)
    with pytest.raises(ValidationError):
        PublishingWindow(day_of_week=7, start_hour=9, end_hour=17)


def test_auto_publish_config_defaults():
    config = AutoPublishConfig()
    assert config.minimum_quality_score == 75
    assert config.maximum_risk_level == "LOW"
    assert config.require_human_review
    assert [w.day_of_week for w in config.publishing_windows] == [1, 2, 3, 4, 5]
    assert config.timezone == "America/New_York"


def test_auto_publish_config_rejects_critical_and_bad_timezone():
    with pytest.raises(ValidationError):
        AutoPublishConfig(maximum_risk_level="CRITICAL")
    with pytest.raises(ValidationError):
        AutoPublishConfig(timezone="Mars/Olympus_Mons")


def test_risk_factor_caps():
    with pytest.raises(ValidationError):
        RiskFactors(ai_detection_risk=41)


def test_naive_queue_times_are_utc():
    item = QueueItem(tenant_id="t", scheduled_for=datetime(2026, 3, 5, 14, 0))
    assert item.scheduled_for == datetime(2026, 3, 5, 14, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None
