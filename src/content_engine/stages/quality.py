"""Quality check: heuristic content score plus the pre-publish risk assessment."""

from __future__ import annotations

import logging

from content_engine.articles import count_words
from content_engine.models import QualityReport, TenantGenerationConfig
from content_engine.scoring import assess_risk

logger = logging.getLogger(__name__)

_BASE_SCORE = 35


def quality_score(content: str, target_word_count: int) -> int:
    words = count_words(content)
    score = (
        (30 if words >= target_word_count * 0.8 else 15)
        + (20 if "## " in content else 10)
        + (15 if "- " in content else 5)
        + _BASE_SCORE
    )
    return min(100, score)


class QualityChecker:
    def run(
        self,
        content: str,
        target_word_count: int,
        tenant_config: TenantGenerationConfig,
        human_score: int | None = None,
    ) -> QualityReport:
        score = quality_score(content, target_word_count)
        risk = assess_risk(
            content,
            quality_score=score,
            human_score=human_score,
            blocked_domains=tenant_config.blocked_domains,
            banned_phrases=tenant_config.banned_phrases,
        )
        logger.info("Quality %d, risk %s (%d)", score, risk.level, risk.score)
        return QualityReport(quality_score=score, word_count=count_words(content), risk=risk)
