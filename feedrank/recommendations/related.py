"""Content-based related items for a target item.

Score each public candidate against the target (category, tags, title
tokens, duration, popularity, recency), then sort by score descending,
stable by original index, and keep the top ``limit``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Sequence

from feedrank.data.content import ContentItem
from feedrank.data.time import age_days, now_ms
from feedrank.server_config import FEED_PIPELINE


@dataclass(frozen=True)
class RelatedSettings:
    """Represent related-content scoring settings."""
    limit: int
    category_match: float
    tag_overlap: float
    title_overlap: float
    title_min_token_length: int
    duration_match: float
    duration_window_seconds: float
    popularity_factor: float
    recent_bonus: float
    recent_days: float


def build_related_settings(config: dict[str, Any]) -> RelatedSettings:
    """Handle build related settings."""
    related = config.get("related", {})
    return RelatedSettings(
        limit=int(related.get("limit", 12)),
        category_match=float(related.get("category_match", 10.0)),
        tag_overlap=float(related.get("tag_overlap", 3.0)),
        title_overlap=float(related.get("title_overlap", 2.0)),
        title_min_token_length=int(related.get("title_min_token_length", 4)),
        duration_match=float(related.get("duration_match", 2.0)),
        duration_window_seconds=float(related.get("duration_window_seconds", 300.0)),
        popularity_factor=float(related.get("popularity_factor", 0.5)),
        recent_bonus=float(related.get("recent_bonus", 2.0)),
        recent_days=float(related.get("recent_days", 7.0)),
    )


def related_score(
    target: ContentItem,
    candidate: ContentItem,
    now_ms_value: int,
    settings: RelatedSettings,
) -> float:
    """Score one candidate's similarity to the target."""
    score = 0.0
    if target.category and candidate.category == target.category:
        score += settings.category_match

    target_tags = set(target.tags)
    score += settings.tag_overlap * sum(1 for tag in candidate.tags if tag in target_tags)

    score += settings.title_overlap * _title_overlap(
        target.title, candidate.title, settings.title_min_token_length
    )

    if candidate.type == target.type:
        if abs(target.duration_seconds - candidate.duration_seconds) < settings.duration_window_seconds:
            score += settings.duration_match

    engagement = max(candidate.view_count, 0) + max(candidate.like_count, 0)
    score += settings.popularity_factor * math.log1p(engagement)

    if age_days(candidate.created_at, now_ms_value) < settings.recent_days:
        score += settings.recent_bonus
    return score


def related_items(
    target: ContentItem,
    candidates: Sequence[ContentItem],
    limit: int | None = None,
    now_ms_value: int | None = None,
    pipeline: dict[str, Any] | None = None,
) -> list[ContentItem]:
    """Return up to ``limit`` public candidates most similar to ``target``."""
    settings = build_related_settings(pipeline or FEED_PIPELINE)
    if limit is None:
        limit = settings.limit
    if limit <= 0 or not candidates:
        return []
    if now_ms_value is None:
        now_ms_value = now_ms()

    scored: list[tuple[float, int, ContentItem]] = []
    for index, candidate in enumerate(candidates):
        if candidate.id == target.id or candidate.visibility != "public":
            continue
        scored.append((related_score(target, candidate, now_ms_value, settings), index, candidate))

    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    output = [entry[2] for entry in scored[:limit]]
    logging.info(
        "[related] done target=%s candidates=%d eligible=%d count=%d",
        target.id,
        len(candidates),
        len(scored),
        len(output),
    )
    return output


def _title_overlap(target_title: str, candidate_title: str, min_length: int) -> int:
    """Count target title tokens that also appear in the candidate title."""
    candidate_tokens = set(candidate_title.lower().split())
    return sum(
        1
        for token in target_title.lower().split()
        if len(token) >= min_length and token in candidate_tokens
    )
