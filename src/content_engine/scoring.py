"""Additive scoring: independently capped contributions, penalties, clamp to [0, 100].

Used for internal-link relevance, keyword opportunity and pre-publish risk.
Missing optional inputs contribute nothing; none of these functions raise on
well-formed models.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import datetime
from urllib.parse import urlparse

from content_engine.models import (
    ArticleContext,
    BlockingIssue,
    KeywordData,
    RelevanceBreakdown,
    RelevanceScore,
    RiskAssessment,
    RiskFactors,
    RiskLevel,
    SiteCatalogEntry,
    utcnow,
)

_LINK_RE = re.compile(r"https?://[^\s)\]\"'<>]+")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
_CONCLUSION_WORDS = ("conclusion", "summary", "final thoughts", "wrapping up", "takeaway")


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


def js_round(value: float) -> int:
    """Round half up, matching how the dashboard rounds scores."""
    return math.floor(value + 0.5)


def _title_words(title: str) -> set[str]:
    return {w for w in title.lower().split() if len(w) > 3}


def _days_between(earlier: datetime, later: datetime) -> int:
    return js_round(abs((later - earlier).total_seconds()) / 86400)


def recency_bonus(published_at: datetime | None, now: datetime | None = None) -> int:
    if published_at is None:
        return 0
    days = _days_between(published_at, now or utcnow())
    if days < 30:
        return 10
    if days < 90:
        return 7
    if days < 180:
        return 4
    return 0


def link_equity_penalty(times_linked_to: int) -> int:
    if times_linked_to > 20:
        return -20
    if times_linked_to > 10:
        return -10
    if times_linked_to > 5:
        return -5
    return 0


def relevance_score(
    context: ArticleContext,
    candidate: SiteCatalogEntry,
    now: datetime | None = None,
) -> RelevanceScore:
    overlap = _title_words(context.title) & _title_words(candidate.title)
    title_score = min(len(overlap) * 10, 40)

    candidate_topics = set(candidate.topics)
    matched_topics = list(dict.fromkeys(t for t in context.topics if t in candidate_topics))
    topic_score = min(len(matched_topics) * 10, 30)

    candidate_keywords = {k.lower() for k in candidate.keywords}
    matched_keywords = list(
        dict.fromkeys(k for k in context.keywords if k.lower() in candidate_keywords)
    )
    keyword_score = min(len(matched_keywords) * 5, 20)

    recency = recency_bonus(candidate.published_at, now)
    penalty = link_equity_penalty(candidate.times_linked_to)

    total = clamp(title_score + topic_score + keyword_score + recency + penalty)
    return RelevanceScore(
        total=total,
        breakdown=RelevanceBreakdown(
            title_overlap=title_score,
            topic_match=topic_score,
            keyword_match=keyword_score,
            recency_bonus=recency,
            link_equity_penalty=penalty,
        ),
        matched_topics=matched_topics,
        matched_keywords=matched_keywords,
    )


def rank_candidates(
    context: ArticleContext,
    candidates: Iterable[SiteCatalogEntry],
    *,
    min_score: int = 0,
    limit: int | None = None,
    now: datetime | None = None,
) -> list[tuple[SiteCatalogEntry, RelevanceScore]]:
    """Score, filter and order candidates. Ties keep their input order."""
    scored = [(c, relevance_score(context, c, now)) for c in candidates]
    scored = [pair for pair in scored if pair[1].total >= min_score]
    scored.sort(key=lambda pair: pair[1].total, reverse=True)
    return scored[:limit] if limit is not None else scored


def opportunity_score(keyword: KeywordData) -> int:
    score = 0

    volume = keyword.search_volume
    if volume:
        if volume >= 10000:
            score += 40
        elif volume >= 5000:
            score += 35
        elif volume >= 1000:
            score += 30
        elif volume >= 500:
            score += 20
        elif volume >= 100:
            score += 10

    if keyword.keyword_difficulty is not None:
        score += js_round((100 - keyword.keyword_difficulty) * 0.4)

    if keyword.competition_level is not None:
        score += js_round((1 - keyword.competition_level) * 20)

    return clamp(score)


# --- Risk ---

RISK_ORDER: dict[str, int] = {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 3}


def risk_level_for_score(score: int) -> RiskLevel:
    if score <= 25:
        return "LOW"
    if score <= 50:
        return "MEDIUM"
    if score <= 75:
        return "HIGH"
    return "CRITICAL"


def find_phrases(content: str, phrases: Iterable[str]) -> list[str]:
    """Return the phrases that occur in content (case-insensitive), in given order."""
    lowered = content.lower()
    return [p for p in dict.fromkeys(phrases) if p and p.lower() in lowered]


def _link_domains(content: str) -> list[str]:
    domains = []
    for link in _LINK_RE.findall(content):
        host = urlparse(link).hostname
        if host:
            domains.append(host.lower())
    return domains


def _is_blocked(domain: str, blocked: Iterable[str]) -> str | None:
    for entry in blocked:
        entry = entry.lower()
        if domain == entry or domain.endswith(f".{entry}"):
            return entry
    return None


def _ai_detection_risk(human_score: int | None) -> int:
    if human_score is None:
        return 0
    humanness = 100 - human_score
    if humanness < 25:
        return 40
    if humanness < 50:
        return 30
    if humanness < 70:
        return 20
    if humanness < 85:
        return 10
    return 0


def _structural_issues(content: str) -> int:
    headings = _HEADING_RE.findall(content)
    issues = 0
    if len(headings) < 3:
        issues += 2

    first_heading = re.search(r"^##\s", content, re.MULTILINE)
    intro = content[: first_heading.start()] if first_heading else content
    intro_lines = [ln for ln in intro.splitlines() if ln.strip() and not ln.startswith("#")]
    if not intro_lines:
        issues += 2

    if not any(w in text.lower() for _, text in headings for w in _CONCLUSION_WORDS):
        issues += 2

    # an h3 before any h2 means the hierarchy is broken
    levels = [len(marks) for marks, _ in headings]
    if 3 in levels and (2 not in levels or levels.index(3) < levels.index(2)):
        issues += 2

    return min(issues, 10)


def assess_risk(
    content: str,
    *,
    quality_score: int | None = None,
    human_score: int | None = None,
    blocked_domains: Iterable[str] = (),
    banned_phrases: Iterable[str] = (),
    block_edu_links: bool = True,
    minimum_quality: int = 60,
    acceptable_quality: int = 70,
) -> RiskAssessment:
    blocked_domains = list(blocked_domains)
    issues: list[BlockingIssue] = []

    ai_risk = _ai_detection_risk(human_score)
    if ai_risk >= 40:
        issues.append(
            BlockingIssue(
                id="ai_detection_high",
                category="ai_detection",
                message=f"AI detection score ({human_score}) is too high to publish",
            )
        )

    compliance = 0
    edu_links = 0
    blocked_found: list[str] = []
    for domain in _link_domains(content):
        if block_edu_links and domain.endswith(".edu"):
            compliance += 10
            edu_links += 1
        hit = _is_blocked(domain, blocked_domains)
        if hit:
            compliance += 5
            if hit not in blocked_found:
                blocked_found.append(hit)

    lowered = content.lower()
    found_phrases = find_phrases(content, banned_phrases)
    for phrase in found_phrases:
        compliance += lowered.count(phrase.lower()) * 3
    compliance = min(compliance, 30)

    if edu_links:
        issues.append(
            BlockingIssue(
                id="edu_links_found",
                category="compliance",
                message=f"Found {edu_links} .edu link(s) which are not allowed",
            )
        )
    if blocked_found:
        issues.append(
            BlockingIssue(
                id="blocked_domains_found",
                category="compliance",
                message=f"Found links to blocked domains: {', '.join(blocked_found)}",
            )
        )
    if found_phrases:
        issues.append(
            BlockingIssue(
                id="banned_phrases_found",
                category="compliance",
                message=f"Found banned phrases: {', '.join(found_phrases)}",
            )
        )

    deficits = 0
    if quality_score is not None:
        if quality_score < minimum_quality:
            deficits = 20
            issues.append(
                BlockingIssue(
                    id="quality_below_minimum",
                    category="quality",
                    message=(
                        f"Quality score ({quality_score}) is below minimum "
                        f"threshold ({minimum_quality})"
                    ),
                )
            )
        elif quality_score < acceptable_quality:
            deficits = 10

    factors = RiskFactors(
        ai_detection_risk=ai_risk,
        compliance_violations=compliance,
        quality_deficits=deficits,
        structural_issues=_structural_issues(content),
    )
    score = clamp(
        factors.ai_detection_risk
        + factors.compliance_violations
        + factors.quality_deficits
        + factors.structural_issues
    )
    return RiskAssessment(
        level=risk_level_for_score(score),
        score=score,
        factors=factors,
        blocking_issues=issues,
    )
