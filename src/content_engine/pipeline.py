"""Pipeline orchestrator: runs the generation stages for one request, in order.

Each stage transition is written to the store before the stage does its work,
so a poller reading the run sees the stage in progress. Any failure moves the
run to ERROR with the message recorded and progress left at the last
checkpoint; nothing written by earlier stages is rolled back.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from content_engine.config import Settings
from content_engine.errors import PipelineCancelled
from content_engine.gemini import GeminiClient
from content_engine.humanizer import Humanizer
from content_engine.models import STAGE_PROGRESS, GenerateRequest, PipelineRun, utcnow
from content_engine.stages.context import ContextGatherer
from content_engine.stages.contributor import ContributorSelector
from content_engine.stages.draft import Drafter
from content_engine.stages.finalize import Finalizer
from content_engine.stages.humanize import HumanizeStage
from content_engine.stages.outline import OutlineGenerator
from content_engine.stages.quality import QualityChecker
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Generation cancelled"


class PipelineOrchestrator:
    def __init__(
        self,
        store: JsonStore,
        client: GeminiClient,
        settings: Settings,
        humanizer: Humanizer | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._settings = settings
        self._context = ContextGatherer(store, settings)
        self._selector = ContributorSelector(store)
        self._outliner = OutlineGenerator(client, settings)
        self._drafter = Drafter(client, settings)
        self._humanize = HumanizeStage(humanizer)
        self._quality = QualityChecker()
        self._finalizer = Finalizer(store)

    def create_run(self, request: GenerateRequest) -> PipelineRun:
        run = PipelineRun(
            tenant_id=request.tenant_id,
            topic=request.topic,
            primary_keyword=request.primary_keyword,
            content_type=request.content_type,
            contributor_id=request.contributor_id,
            target_word_count=request.target_word_count,
            idea_id=request.idea_id,
            cluster_id=request.cluster_id,
            queue_item_id=request.queue_item_id,
        )
        self._store.create_run(run)
        logger.info("Run %s: INITIALIZING (0%%) topic=%r", run.id, request.topic)
        return run

    def run(
        self,
        request: GenerateRequest,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> PipelineRun:
        return self.execute(self.create_run(request), request, is_cancelled)

    def execute(
        self,
        run: PipelineRun,
        request: GenerateRequest,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> PipelineRun:
        """Drive run through every stage. Re-raises the failure after recording ERROR."""
        started = time.monotonic()
        tokens_before = self._client.tokens_used

        def check() -> None:
            if is_cancelled is not None and is_cancelled():
                raise PipelineCancelled(CANCELLED_MESSAGE)

        def record(**payload: Any) -> PipelineRun:
            check()
            return self._store.update_run(run.id, **payload)

        def advance(stage: str, **payload: Any) -> PipelineRun:
            check()
            updated = self._store.update_run(
                run.id, stage=stage, progress=STAGE_PROGRESS[stage], **payload
            )
            logger.info("Run %s: %s (%d%%)", run.id, stage, STAGE_PROGRESS[stage])
            return updated

        def usage() -> dict[str, Any]:
            tokens = self._client.tokens_used - tokens_before
            return {
                "tokens_used": tokens,
                "estimated_cost": round(tokens / 1000 * self._settings.cost_per_1k_tokens, 6),
                "duration": int((time.monotonic() - started) * 1000),
                "completed_at": utcnow(),
            }

        stage = run.stage
        try:
            stage = "GATHERING_CONTEXT"
            advance(stage)
            context = self._context.run(request)

            stage = "SELECTING_CONTRIBUTOR"
            advance(stage)
            contributor = self._selector.run(request)
            record(contributor_id=contributor.id, target_word_count=context.target_word_count)

            stage = "GENERATING_OUTLINE"
            advance(stage)
            voice = contributor.voice_profile
            outline = self._outliner.run(request, voice, context.target_word_count)
            record(outline=outline)

            stage = "DRAFTING"
            advance(stage)
            draft = self._drafter.run(
                request,
                voice,
                outline,
                context.target_word_count,
                context.tenant_config.banned_phrases,
            )
            warnings = []
            if draft.flagged_phrases:
                flagged = ", ".join(draft.flagged_phrases)
                warnings.append(f"Draft contains avoided phrases: {flagged}")
            record(generated_content=draft.content, warnings=warnings)

            stage = "HUMANIZING"
            advance(stage)
            content = self._humanize.run(
                draft.content, context.tenant_config.humanize_aggressiveness
            )
            record(generated_content=content)

            stage = "QUALITY_CHECK"
            advance(stage)
            report = self._quality.run(
                content, context.target_word_count, context.tenant_config
            )
            record(quality_score=report.quality_score)

            stage = "FINALIZING"
            advance(stage)
            article = self._finalizer.run(request, contributor, content, report)

            stage = "COMPLETE"
            return advance(stage, article_id=article.id, **usage())
        except PipelineCancelled:
            logger.info("Run %s: cancelled during %s", run.id, stage)
            self._store.update_run(run.id, stage="ERROR", error=CANCELLED_MESSAGE, **usage())
            raise
        except Exception as exc:
            logger.exception("Run %s failed during %s", run.id, stage)
            message = str(exc) or type(exc).__name__
            self._store.update_run(run.id, stage="ERROR", error=message, **usage())
            raise
