"""Finalizing: persist the article and mark the originating idea generated."""

from __future__ import annotations

import logging

from content_engine.articles import reading_time, slugify
from content_engine.linking import extract_keywords, extract_topics
from content_engine.models import Article, Contributor, GenerateRequest, QualityReport
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)


class Finalizer:
    def __init__(self, store: JsonStore) -> None:
        self._store = store

    def run(
        self,
        request: GenerateRequest,
        contributor: Contributor,
        content: str,
        report: QualityReport,
    ) -> Article:
        article = Article(
            tenant_id=request.tenant_id,
            title=request.topic,
            slug=slugify(request.topic),
            content=content,
            status="draft",
            contributor_id=contributor.id,
            primary_keyword=request.primary_keyword,
            cluster_id=request.cluster_id,
            idea_id=request.idea_id,
            quality_score=report.quality_score,
            risk_level=report.risk.level,
            risk_score=report.risk.score,
            word_count=report.word_count,
            reading_time=reading_time(report.word_count),
            topics=extract_topics(content),
            keywords=extract_keywords(content),
        )
        self._store.save_article(article)

        if request.idea_id:
            self._store.update_idea(request.idea_id, status="generated", article_id=article.id)

        logger.info("Saved article %s (%d words)", article.id, article.word_count)
        return article
