"""Keyword research helpers: opportunity ranking, seasonality, clustering, CSV."""

from __future__ import annotations

import csv
import io
import logging
import math
from collections.abc import Iterable
from typing import NamedTuple

from content_engine.models import KeywordData, SeasonalityPattern
from content_engine.scoring import opportunity_score

logger = logging.getLogger(__name__)

_KEYWORD_HEADERS = {"keyword", "keywords", "query"}
_VOLUME_HEADERS = {"volume", "search_volume", "searchvolume"}
_DIFFICULTY_HEADERS = {"difficulty", "kd", "keyword_difficulty"}
_CPC_HEADERS = {"cpc", "cost"}

EXPORT_HEADERS = [
    "keyword",
    "search_volume",
    "keyword_difficulty",
    "cpc",
    "competition",
    "is_starred",
    "tags",
]


class DifficultyLabel(NamedTuple):
    label: str
    description: str


def rank_by_opportunity(keywords: Iterable[KeywordData]) -> list[tuple[KeywordData, int]]:
    scored = [(kw, opportunity_score(kw)) for kw in keywords]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored


def competition_from_level(level: float | None) -> str | None:
    if level is None:
        return None
    if level < 0.33:
        return "low"
    if level < 0.66:
        return "medium"
    return "high"


def difficulty_label(difficulty: int) -> DifficultyLabel:
    if difficulty <= 20:
        return DifficultyLabel("Very Easy", "Great opportunity - low competition")
    if difficulty <= 40:
        return DifficultyLabel("Easy", "Good opportunity with some effort")
    if difficulty <= 60:
        return DifficultyLabel("Medium", "Moderate competition - requires quality content")
    if difficulty <= 80:
        return DifficultyLabel("Hard", "High competition - requires authority")
    return DifficultyLabel("Very Hard", "Extremely competitive - difficult to rank")


def format_volume(volume: int | None) -> str:
    if not volume:
        return "-"
    if volume >= 1_000_000:
        return f"{volume / 1_000_000:.1f}M"
    if volume >= 1000:
        return f"{volume / 1000:.1f}K"
    return str(volume)


def detect_seasonality(keyword: KeywordData) -> SeasonalityPattern | None:
    """Peak/low months from at least a year of trend data, using a +/-20% band."""
    trend = keyword.trend_data
    if len(trend) < 12:
        return None

    volumes = [t.volume for t in trend]
    avg = sum(volumes) / len(volumes)
    threshold = avg * 0.2

    peak: list[int] = []
    low: list[int] = []
    for index, volume in enumerate(volumes):
        month = index % 12 + 1
        if volume > avg + threshold and month not in peak:
            peak.append(month)
        elif volume < avg - threshold and month not in low:
            low.append(month)

    stddev = math.sqrt(sum((v - avg) ** 2 for v in volumes) / len(volumes))
    return SeasonalityPattern(
        peak_months=peak,
        low_months=low,
        variance=stddev / avg if avg else 0.0,
    )


def auto_cluster(keywords: Iterable[KeywordData]) -> dict[str, list[KeywordData]]:
    """Group keywords by their first word longer than three letters."""
    clusters: dict[str, list[KeywordData]] = {}
    for kw in keywords:
        words = kw.keyword.lower().split()
        if not words:
            continue
        primary = next((w for w in words if len(w) > 3), words[0])
        clusters.setdefault(primary, []).append(kw)
    return {name: group for name, group in clusters.items() if len(group) >= 2}


def _to_int(value: str) -> int | None:
    try:
        return int(float(value))
    except ValueError:
        return None


def _to_float(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def parse_csv(content: str) -> list[KeywordData]:
    rows = list(csv.reader(io.StringIO(content.strip())))
    if len(rows) < 2:
        return []

    headers = [h.strip().lower() for h in rows[0]]
    keywords: list[KeywordData] = []
    for row in rows[1:]:
        data: dict = {"source": "import"}
        for header, raw in zip(headers, row):
            value = raw.strip()
            if not value:
                continue
            if header in _KEYWORD_HEADERS:
                data["keyword"] = value
            elif header in _VOLUME_HEADERS:
                data["search_volume"] = _to_int(value)
            elif header in _DIFFICULTY_HEADERS:
                data["keyword_difficulty"] = _to_int(value)
            elif header in _CPC_HEADERS:
                data["cpc"] = _to_float(value)
            elif header == "competition" and value.lower() in ("low", "medium", "high"):
                data["competition"] = value.lower()
        if data.get("keyword"):
            keywords.append(KeywordData.model_validate(data))

    logger.info("Parsed %d keywords from CSV", len(keywords))
    return keywords


def export_csv(keywords: Iterable[KeywordData]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for kw in keywords:
        writer.writerow(
            [
                kw.keyword,
                kw.search_volume if kw.search_volume is not None else "",
                kw.keyword_difficulty if kw.keyword_difficulty is not None else "",
                kw.cpc if kw.cpc is not None else "",
                kw.competition or "",
                "true" if kw.is_starred else "false",
                ";".join(kw.tags),
            ]
        )
    return buf.getvalue()
