"""Provide scoring runtime helpers.

All scorers are pure: they read a content item (and a profile or region)
and return a float. Missing optional fields contribute zero.
"""

from __future__ import annotations

from feedrank.data.content import ContentItem
from feedrank.data.profiles import InterestProfile
from feedrank.data.time import age_days, now_ms
from feedrank.server_config import (
    CHANNEL_AFFINITY_FACTOR,
    REGIONAL_MATCH_SCORE,
    TRENDING_DAILY_DECAY,
    TRENDING_ENGAGEMENT,
    TRENDING_RECENCY_BONUS,
    TRENDING_RECENCY_WINDOW_DAYS,
)


def relevance_score(item: ContentItem, profile: InterestProfile) -> float:
    """Score how well an item matches the viewer's interest profile."""
    score = 0.0
    if item.category:
        score += profile.categories.get(item.category, 0.0)
    if item.channel_id:
        score += CHANNEL_AFFINITY_FACTOR * profile.channels.get(item.channel_id, 0.0)
    for tag in item.tags:
        score += profile.tags.get(tag, 0.0)
    return score


def trending_score(item: ContentItem, now_ms_value: int | None = None) -> float:
    """Score engagement with daily exponential decay plus a cold-start recency bonus."""
    if now_ms_value is None:
        now_ms_value = now_ms()
    days = age_days(item.created_at, now_ms_value)
    recency_bonus = max(0.0, TRENDING_RECENCY_WINDOW_DAYS - days) / TRENDING_RECENCY_WINDOW_DAYS
    engagement = (
        TRENDING_ENGAGEMENT["views"] * max(item.view_count, 0)
        + TRENDING_ENGAGEMENT["likes"] * max(item.like_count, 0)
        + TRENDING_ENGAGEMENT["comments"] * max(item.comment_count, 0)
    )
    decay = TRENDING_DAILY_DECAY ** days
    return (engagement * decay) + (recency_bonus * TRENDING_RECENCY_BONUS)


def regional_score(item: ContentItem, viewer_region: str | None) -> float:
    """Return the full regional score on an exact region match, else zero."""
    if not viewer_region or not item.region:
        return 0.0
    return REGIONAL_MATCH_SCORE if item.region == viewer_region else 0.0
