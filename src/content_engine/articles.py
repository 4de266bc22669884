"""Article workflow helpers: status transitions, slugs, word counts."""

from __future__ import annotations

import logging
import math
import re

from content_engine.errors import InvalidTransitionError
from content_engine.models import Article, ArticleStatus, utcnow

logger = logging.getLogger(__name__)

STATUS_ORDER: list[ArticleStatus] = [
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

_WORDS_PER_MINUTE = 200


def can_transition(current: ArticleStatus, target: ArticleStatus) -> bool:
    """Forward moves only. Archiving is allowed from any status."""
    if current == target:
        return False
    if target == "archived":
        return True
    return STATUS_ORDER.index(target) > STATUS_ORDER.index(current)


def transition(article: Article, target: ArticleStatus, *, override: bool = False) -> Article:
    """Return a copy of article moved to target.

    With override the workflow order is ignored; this is how manual edits set a
    status directly.
    """
    if not override and not can_transition(article.status, target):
        raise InvalidTransitionError(f"Cannot move article from {article.status} to {target}")
    if override:
        logger.info("Article %s: status override %s -> %s", article.id, article.status, target)
    return article.model_copy(update={"status": target, "updated_at": utcnow()})


def slugify(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def count_words(text: str) -> int:
    return len(text.split())


def reading_time(word_count: int) -> int:
    """Minutes at 200 words per minute, rounded up."""
    return math.ceil(word_count / _WORDS_PER_MINUTE)
