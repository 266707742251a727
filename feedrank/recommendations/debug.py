"""Provide debug runtime helpers."""

from __future__ import annotations

from typing import Any, Sequence

from feedrank.recommendations.mixer import ScoredItem


def attach_debug_info(scored: Sequence[ScoredItem]) -> list[dict[str, Any]]:
    """Render scored items as plain rows with their score breakdown."""
    output: list[dict[str, Any]] = []
    for entry in scored:
        debug = {
            "score": entry.score,
            "interest_score": entry.breakdown.get("interest"),
            "trending_score": entry.breakdown.get("trending"),
            "discovery_score": entry.breakdown.get("discovery"),
            "regional_score": entry.breakdown.get("regional"),
            "rank_before": entry.rank_before,
            "rank_after": entry.rank_after,
        }
        output.append({"id": entry.item.id, "type": entry.item.type, "debug": debug})
    return output
