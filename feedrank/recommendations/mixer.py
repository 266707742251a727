"""Provide feed composer runtime helpers.

The composer blends four signals per item (interest, trending, discovery,
regional) with normalized weights, stable-sorts by the blended total and
then perturbs only the top slice so repeated calls do not show the exact
same head in the exact same order.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Sequence

import numpy as np

from feedrank.data.content import ContentItem
from feedrank.data.profiles import InterestProfile
from feedrank.data.time import now_ms
from feedrank.recommendations.profile import FeedConfig, normalize_weights
from feedrank.recommendations.scoring import (
    regional_score,
    relevance_score,
    trending_score,
)
from feedrank.server_config import FEED_PIPELINE


@dataclass
class ScoredItem:
    """Represent an item with its blended score for one compose call."""
    item: ContentItem
    score: float
    breakdown: dict[str, float] = field(default_factory=dict)
    rank_before: int | None = None
    rank_after: int | None = None


@dataclass(frozen=True)
class PerturbationSettings:
    """Represent anti-filter-bubble settings."""
    top_fraction: float
    jitter: float
    discovery_max: float


def build_perturbation_settings(config: dict[str, Any]) -> PerturbationSettings:
    """Handle build perturbation settings."""
    perturbation = config.get("perturbation", {})
    return PerturbationSettings(
        top_fraction=min(max(float(perturbation.get("top_fraction", 0.3)), 0.0), 1.0),
        jitter=max(float(perturbation.get("jitter", 10.0)), 0.0),
        discovery_max=max(float(perturbation.get("discovery_max", 100.0)), 0.0),
    )


def score_items(
    items: Sequence[ContentItem],
    config: FeedConfig,
    profile: InterestProfile | None = None,
    now_ms_value: int | None = None,
    rng: np.random.Generator | None = None,
    settings: PerturbationSettings | None = None,
) -> list[ScoredItem]:
    """Blend interest, trending, discovery and regional signals per item."""
    if not items:
        return []
    if now_ms_value is None:
        now_ms_value = now_ms()
    if rng is None:
        rng = np.random.default_rng()
    if settings is None:
        settings = build_perturbation_settings(FEED_PIPELINE)
    profile = profile or InterestProfile()
    weights = normalize_weights(config)

    interest = np.array([relevance_score(item, profile) for item in items], dtype=float)
    trending = np.array([trending_score(item, now_ms_value) for item in items], dtype=float)
    # Fresh draw on every call; not cached.
    discovery = rng.uniform(0.0, settings.discovery_max, size=len(items))
    regional = np.array(
        [regional_score(item, config.user_region) for item in items], dtype=float
    )
    totals = (
        interest * weights["interest"]
        + trending * weights["trending"]
        + discovery * weights["discovery"]
        + regional * weights["regional"]
    )

    return [
        ScoredItem(
            item=item,
            score=float(totals[index]),
            breakdown={
                "interest": float(interest[index]),
                "trending": float(trending[index]),
                "discovery": float(discovery[index]),
                "regional": float(regional[index]),
            },
        )
        for index, item in enumerate(items)
    ]


def rank_scored_items(
    scored: Sequence[ScoredItem],
    rng: np.random.Generator | None = None,
    settings: PerturbationSettings | None = None,
) -> list[ScoredItem]:
    """Stable-sort by score, then shuffle and jitter the top slice."""
    if not scored:
        return []
    if rng is None:
        rng = np.random.default_rng()
    if settings is None:
        settings = build_perturbation_settings(FEED_PIPELINE)

    totals = np.array([entry.score for entry in scored], dtype=float)
    order = np.argsort(-totals, kind="stable")
    ranked = [scored[int(index)] for index in order]
    for index, entry in enumerate(ranked):
        entry.rank_before = index + 1

    if len(ranked) > 1:
        top_count = math.ceil(settings.top_fraction * len(ranked))
        top = _perturb(ranked[:top_count], rng, settings.jitter)
        ranked = top + ranked[top_count:]

    for index, entry in enumerate(ranked):
        entry.rank_after = index + 1
    return ranked


def compose_scored_feed(
    items: Sequence[ContentItem],
    config: FeedConfig,
    profile: InterestProfile | None = None,
    now_ms_value: int | None = None,
    rng: np.random.Generator | None = None,
    pipeline: dict[str, Any] | None = None,
) -> list[ScoredItem]:
    """Score and rank items, keeping the per-item breakdown."""
    if not items:
        return []
    start = perf_counter()
    if rng is None:
        rng = np.random.default_rng()
    settings = build_perturbation_settings(pipeline or FEED_PIPELINE)
    scored = score_items(items, config, profile, now_ms_value, rng, settings)
    ranked = rank_scored_items(scored, rng, settings)
    elapsed_ms = int((perf_counter() - start) * 1000)
    logging.info(
        "[feed] composed items=%d top=%d viewer=%s region=%s total=%dms",
        len(ranked),
        math.ceil(settings.top_fraction * len(ranked)) if len(ranked) > 1 else 0,
        config.user_id or "-",
        config.user_region or "-",
        elapsed_ms,
    )
    return ranked


def compose_feed(
    items: Sequence[ContentItem],
    config: FeedConfig,
    profile: InterestProfile | None = None,
    now_ms_value: int | None = None,
    rng: np.random.Generator | None = None,
    pipeline: dict[str, Any] | None = None,
) -> list[ContentItem]:
    """Return items in blended feed order."""
    if len(items) <= 1:
        return list(items)
    ranked = compose_scored_feed(items, config, profile, now_ms_value, rng, pipeline)
    return [entry.item for entry in ranked]


def _perturb(
    top: list[ScoredItem], rng: np.random.Generator, jitter: float
) -> list[ScoredItem]:
    """Shuffle the slice, then re-sort it by score plus a small jitter."""
    if len(top) <= 1:
        return list(top)
    shuffled = [top[int(index)] for index in rng.permutation(len(top))]
    noise = rng.uniform(-jitter, jitter, size=len(shuffled))
    keys = np.array([entry.score for entry in shuffled], dtype=float) + noise
    order = np.argsort(-keys, kind="stable")
    return [shuffled[int(index)] for index in order]
