"""Integration tests for the pipeline orchestrator."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from content_engine.errors import (
    ConfigurationError,
    PipelineCancelled,
    ProviderError,
    RunFinalizedError,
)
from content_engine.models import ContentIdea, GenerateRequest
from content_engine.pipeline import CANCELLED_MESSAGE, PipelineOrchestrator

TENANT = "tenant-1"

OUTLINE = {"sections": ["Introduction", "Why Accreditation Matters", "Conclusion"]}


def _request(**kwargs) -> GenerateRequest:
    return GenerateRequest(
        tenant_id=TENANT, topic="Online Degree Guide", content_type="guide", **kwargs
    )


def test_pipeline_end_to_end(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([OUTLINE, sample_article])
    orchestrator = PipelineOrchestrator(store, mock_client, sample_settings)

    run = orchestrator.run(_request(primary_keyword="online degrees"))

    assert run.stage == "COMPLETE"
    assert run.progress == 100
    assert run.error is None
    assert run.contributor_id == contributor.id
    assert run.target_word_count == 50
    assert run.outline == OUTLINE["sections"]
    assert run.quality_score == 100
    assert run.completed_at is not None
    assert run.duration is not None and run.duration >= 0
    assert store.get_run(run.id) == run

    article = store.get_article(run.article_id)
    assert article.status == "draft"
    assert article.title == "Online Degree Guide"
    assert article.slug == "online-degree-guide"
    assert article.content == sample_article.strip()
    assert article.contributor_id == contributor.id
    assert article.primary_keyword == "online degrees"
    assert article.quality_score == 100
    assert article.risk_level == "LOW"
    assert article.word_count == 46
    assert article.reading_time == 1
    assert "accreditation" in article.topics

    # voice and tenant phrases both reach the draft prompt
    assert mock_client.call_count == 2
    assert "delve, guaranteed job" in mock_client.prompts[1]


def test_completed_run_cannot_be_modified(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([OUTLINE, sample_article])
    run = PipelineOrchestrator(store, mock_client, sample_settings).run(_request())

    with pytest.raises(RunFinalizedError):
        store.update_run(run.id, progress=50)


def test_pipeline_failure_records_error_stage(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([OUTLINE, ProviderError("Draft generation failed")])
    orchestrator = PipelineOrchestrator(store, mock_client, sample_settings)

    with pytest.raises(ProviderError):
        orchestrator.run(_request())

    [run] = store.list_runs(TENANT)
    assert run.stage == "ERROR"
    assert run.progress == 40
    assert run.error == "Draft generation failed"
    assert run.outline == OUTLINE["sections"]
    assert run.article_id is None
    assert run.completed_at is not None
    assert store.list_articles(TENANT) == []


def test_pipeline_without_contributor_fails_at_selection(
    store, mock_client, sample_settings, tenant_config
):
    orchestrator = PipelineOrchestrator(store, mock_client, sample_settings)

    with pytest.raises(ConfigurationError):
        orchestrator.run(_request())

    [run] = store.list_runs(TENANT)
    assert run.stage == "ERROR"
    assert run.progress == 20
    assert run.error == "No contributor available"
    assert mock_client.call_count == 0


def test_pipeline_uses_defaults_without_tenant_config(
    store, mock_client, sample_settings, contributor, sample_article
):
    mock_client.set_responses([OUTLINE, sample_article])
    run = PipelineOrchestrator(store, mock_client, sample_settings).run(_request())

    assert run.target_word_count == sample_settings.default_word_count


def test_request_word_count_overrides_tenant_default(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([OUTLINE, sample_article])
    run = PipelineOrchestrator(store, mock_client, sample_settings).run(
        _request(target_word_count=1500)
    )

    assert run.target_word_count == 1500
    assert "Target Word Count: 1500" in mock_client.prompts[0]


def test_pipeline_cancellation(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([OUTLINE, sample_article])
    orchestrator = PipelineOrchestrator(store, mock_client, sample_settings)
    # cancelled while the outline call is in flight
    with pytest.raises(PipelineCancelled):
        orchestrator.run(_request(), is_cancelled=lambda: mock_client.call_count >= 1)

    [run] = store.list_runs(TENANT)
    assert run.stage == "ERROR"
    assert run.error == CANCELLED_MESSAGE
    assert run.progress == 30
    assert run.outline is None
    assert mock_client.call_count == 1


def test_cancelled_draft_is_not_recorded(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([OUTLINE, sample_article])
    orchestrator = PipelineOrchestrator(store, mock_client, sample_settings)

    with pytest.raises(PipelineCancelled):
        orchestrator.run(_request(), is_cancelled=lambda: mock_client.call_count >= 2)

    [run] = store.list_runs(TENANT)
    assert run.stage == "ERROR"
    assert run.progress == 40
    assert run.outline == OUTLINE["sections"]
    assert run.generated_content is None
    assert run.article_id is None
    assert store.list_articles(TENANT) == []


def test_supplied_outline_skips_generation(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.set_responses([sample_article])
    outline = ["Intro", "Costs", "Conclusion"]

    run = PipelineOrchestrator(store, mock_client, sample_settings).run(_request(outline=outline))

    assert run.stage == "COMPLETE"
    assert run.outline == outline
    assert mock_client.call_count == 1
    assert "1. Intro\n2. Costs\n3. Conclusion" in mock_client.prompts[0]


def test_empty_outline_fails(store, mock_client, sample_settings, contributor, tenant_config):
    mock_client.set_responses([{"sections": []}])

    with pytest.raises(ProviderError):
        PipelineOrchestrator(store, mock_client, sample_settings).run(_request())

    [run] = store.list_runs(TENANT)
    assert run.progress == 30


def test_avoided_phrases_become_warnings(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    draft = sample_article.replace("Compare tuition", "Let us delve into tuition")
    mock_client.set_responses([OUTLINE, draft])

    run = PipelineOrchestrator(store, mock_client, sample_settings).run(_request())

    assert run.stage == "COMPLETE"
    assert run.warnings == ["Draft contains avoided phrases: delve"]


def test_banned_phrase_raises_risk(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    draft = sample_article.replace("Compare tuition", "A guaranteed job follows. Compare tuition")
    mock_client.set_responses([OUTLINE, draft])

    run = PipelineOrchestrator(store, mock_client, sample_settings).run(_request())

    article = store.get_article(run.article_id)
    assert article.risk_score == 3
    assert run.warnings == ["Draft contains avoided phrases: guaranteed job"]


def test_idea_marked_generated(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    idea = store.save_idea(ContentIdea(tenant_id=TENANT, title="Online Degree Guide"))
    mock_client.set_responses([OUTLINE, sample_article])

    run = PipelineOrchestrator(store, mock_client, sample_settings).run(_request(idea_id=idea.id))

    saved = store.get_idea(idea.id)
    assert saved.status == "generated"
    assert saved.article_id == run.article_id
    assert store.get_article(run.article_id).idea_id == idea.id


def test_humanizer_rewrites_draft(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    humanized = sample_article.replace("have changed", "reshaped")
    humanizer = MagicMock()
    humanizer.rewrite.return_value = humanized
    mock_client.set_responses([OUTLINE, sample_article])

    run = PipelineOrchestrator(store, mock_client, sample_settings, humanizer).run(_request())

    humanizer.rewrite.assert_called_once_with(sample_article.strip(), "medium")
    assert run.generated_content == humanized
    assert store.get_article(run.article_id).content == humanized


def test_humanizer_failure_fails_run(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    humanizer = MagicMock()
    humanizer.rewrite.side_effect = ProviderError("Humanizer request failed")
    mock_client.set_responses([OUTLINE, sample_article])

    with pytest.raises(ProviderError):
        PipelineOrchestrator(store, mock_client, sample_settings, humanizer).run(_request())

    [run] = store.list_runs(TENANT)
    assert run.progress == 60
    assert run.generated_content == sample_article.strip()

def test_usage_accounting(
    store, mock_client, sample_settings, contributor, tenant_config, sample_article
):
    mock_client.tokens_per_call = 500
    mock_client.tokens_used = 2000  # earlier runs
    mock_client.set_responses([OUTLINE, sample_article])
    settings = dataclasses.replace(sample_settings, cost_per_1k_tokens=0.5)

    run = PipelineOrchestrator(store, mock_client, settings).run(_request())

    assert run.tokens_used == 1000
    assert run.estimated_cost == 0.5
