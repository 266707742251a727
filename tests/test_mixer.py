"""Tests for the feed composer."""

from __future__ import annotations

import math

import numpy as np
import pytest

from factories import NOW_MS, make_item
from feedrank.data.profiles import InterestProfile
from feedrank.recommendations.mixer import (
    compose_feed,
    compose_scored_feed,
    rank_scored_items,
    score_items,
)
from feedrank.recommendations.profile import FeedConfig, normalize_weights

TRENDING_ONLY = FeedConfig(
    interest_weight=0.0, trending_weight=1.0, discovery_weight=0.0, regional_weight=0.0
)
NO_JITTER = {"perturbation": {"top_fraction": 0.3, "jitter": 0.0, "discovery_max": 100.0}}


def _old_items(count: int, step: int = 1000) -> list:
    # 30 days old: no recency bonus, trending = views * 0.9 ** 30.
    return [make_item(f"v{index}", age_days=30, view_count=step * index) for index in range(count)]


def test_empty_input_returns_empty(rng):
    assert compose_feed([], FeedConfig(), now_ms_value=NOW_MS, rng=rng) == []
    assert compose_scored_feed([], FeedConfig(), now_ms_value=NOW_MS, rng=rng) == []


def test_single_item_is_returned_unchanged(rng):
    item = make_item("only", view_count=3)
    assert compose_feed([item], FeedConfig(), now_ms_value=NOW_MS, rng=rng) == [item]
    ranked = compose_scored_feed([item], FeedConfig(), now_ms_value=NOW_MS, rng=rng)
    assert [entry.item for entry in ranked] == [item]


def test_normalized_weights_sum_to_one():
    weights = normalize_weights(FeedConfig(1.0, 2.0, 3.0, 4.0))
    assert math.fsum(weights.values()) == pytest.approx(1.0)
    assert weights == pytest.approx(
        {"interest": 0.1, "trending": 0.2, "discovery": 0.3, "regional": 0.4}
    )


def test_zero_weights_fall_back_to_equal_split(caplog):
    weights = normalize_weights(FeedConfig(0.0, 0.0, 0.0, 0.0))
    assert weights == {"interest": 0.25, "trending": 0.25, "discovery": 0.25, "regional": 0.25}
    assert "[feed] weights fallback" in caplog.text


def test_negative_weights_are_treated_as_zero():
    weights = normalize_weights(FeedConfig(-5.0, 1.0, 0.0, 1.0))
    assert weights == {"interest": 0.0, "trending": 0.5, "discovery": 0.0, "regional": 0.5}


def test_breakdown_holds_raw_signals(rng):
    profile = InterestProfile(categories={"Music": 6.0})
    item = make_item("v1", age_days=30, category="Music", region="NG")
    config = FeedConfig(1.0, 1.0, 1.0, 1.0, user_region="NG")
    [entry] = score_items([item], config, profile, NOW_MS, rng)
    assert entry.breakdown["interest"] == 6.0
    assert entry.breakdown["regional"] == 100.0
    assert 0.0 <= entry.breakdown["discovery"] < 100.0
    expected = 0.25 * (6.0 + entry.breakdown["trending"] + entry.breakdown["discovery"] + 100.0)
    assert entry.score == pytest.approx(expected)


def test_discovery_is_drawn_fresh_per_call():
    items = _old_items(5)
    rng = np.random.default_rng(99)
    first = score_items(items, FeedConfig(), None, NOW_MS, rng)
    second = score_items(items, FeedConfig(), None, NOW_MS, rng)
    assert [entry.breakdown["discovery"] for entry in first] != [
        entry.breakdown["discovery"] for entry in second
    ]


def test_seeded_generator_makes_order_reproducible():
    items = _old_items(20, step=3)
    first = compose_feed(items, FeedConfig(), None, NOW_MS, np.random.default_rng(7))
    second = compose_feed(items, FeedConfig(), None, NOW_MS, np.random.default_rng(7))
    assert first == second


def test_tail_keeps_stable_sorted_order(rng):
    items = _old_items(10)
    ranked = compose_feed(items, TRENDING_ONLY, None, NOW_MS, rng)
    expected = sorted(items, key=lambda item: item.view_count, reverse=True)
    top_count = math.ceil(0.3 * len(items))
    assert {item.id for item in ranked[:top_count]} == {item.id for item in expected[:top_count]}
    assert ranked[top_count:] == expected[top_count:]


def test_jitter_cannot_swap_far_apart_scores(rng):
    # Adjacent trending totals differ by ~42, more than the +/-10 jitter span.
    items = _old_items(10)
    ranked = compose_feed(items, TRENDING_ONLY, None, NOW_MS, rng)
    assert [item.id for item in ranked] == [f"v{index}" for index in range(9, -1, -1)]


def test_close_scores_in_top_slice_can_reorder():
    items = _old_items(10, step=1)
    orders = {
        tuple(item.id for item in compose_feed(items, TRENDING_ONLY, None, NOW_MS, np.random.default_rng(seed))[:3])
        for seed in range(40)
    }
    assert len(orders) > 1
    assert all(set(order) == {"v9", "v8", "v7"} for order in orders)


def test_zero_jitter_keeps_exact_score_order(rng):
    items = _old_items(6, step=1)
    ranked = compose_scored_feed(items, TRENDING_ONLY, None, NOW_MS, rng, NO_JITTER)
    assert [entry.item.id for entry in ranked] == [f"v{index}" for index in range(5, -1, -1)]
    assert [entry.rank_after for entry in ranked] == [1, 2, 3, 4, 5, 6]


def test_interest_weight_follows_profile(rng):
    profile = InterestProfile(categories={"Gaming": 50.0, "Music": 10.0})
    items = [
        make_item("news", age_days=30, category="News"),
        make_item("music", age_days=30, category="Music"),
        make_item("gaming", age_days=30, category="Gaming"),
    ]
    config = FeedConfig(1.0, 0.0, 0.0, 0.0)
    ranked = compose_feed(items, config, profile, NOW_MS, rng, NO_JITTER)
    assert [item.id for item in ranked] == ["gaming", "music", "news"]


def test_rank_scored_items_records_positions(rng):
    scored = score_items(_old_items(4), TRENDING_ONLY, None, NOW_MS, rng)
    ranked = rank_scored_items(scored, rng)
    assert [entry.rank_before for entry in ranked] == [1, 2, 3, 4]
    assert sorted(entry.rank_after for entry in ranked) == [1, 2, 3, 4]
