"""Item rank helpers for viewer-independent popularity ordering."""

from __future__ import annotations

import math
from typing import Iterable

from feedrank.data.content import ContentItem
from feedrank.data.time import age_hours, now_ms
from feedrank.server_config import (
    ITEM_RANK_CATEGORY_BOOSTS,
    ITEM_RANK_DECAY_HOURS,
    ITEM_RANK_FRESH_BOOST,
    ITEM_RANK_FRESH_HOURS,
)


def compute_item_rank(item: ContentItem, now_ms_value: int | None = None) -> float:
    """Compute a popularity rank from engagement, vote ratio and hourly age decay."""
    if now_ms_value is None:
        now_ms_value = now_ms()
    views = max(int(item.view_count or 0), 0)
    likes = max(int(item.like_count or 0), 0)
    dislikes = max(int(item.dislike_count or 0), 0)
    comments = max(int(item.comment_count or 0), 0)
    hours = age_hours(item.created_at, now_ms_value)

    decay = math.exp(-hours / ITEM_RANK_DECAY_HOURS)
    engagement_rate = (likes + 2 * comments) / views if views > 0 else 0.0
    ctr_boost = min(engagement_rate * 10, 1.0)
    if item.duration_seconds > 60:
        watch_time_boost = min(item.duration_seconds / 600, 2.0) * engagement_rate
    else:
        watch_time_boost = 1.0
    votes = likes + dislikes
    like_ratio = likes / votes if votes > 0 else 0.5
    freshness_boost = ITEM_RANK_FRESH_BOOST if hours < ITEM_RANK_FRESH_HOURS else 1.0
    category_boost = ITEM_RANK_CATEGORY_BOOSTS.get(item.category or "", 1.0)

    base = math.log1p(views) * math.log1p(likes) * math.log1p(comments)
    return (
        base
        * decay
        * (1 + ctr_boost)
        * watch_time_boost
        * like_ratio
        * freshness_boost
        * category_boost
    )


def rank_items(items: Iterable[ContentItem], now_ms_value: int | None = None) -> list[ContentItem]:
    """Return items ordered by descending item rank (stable for ties)."""
    if now_ms_value is None:
        now_ms_value = now_ms()
    scored = [(compute_item_rank(item, now_ms_value), index, item) for index, item in enumerate(items)]
    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    return [entry[2] for entry in scored]
