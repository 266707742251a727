"""Feed configuration and preset resolution."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Mapping

from feedrank.server_config import FEED_PIPELINE

WEIGHT_NAMES = ("interest", "trending", "discovery", "regional")


@dataclass(frozen=True)
class FeedConfig:
    """Represent per-request feed blend settings."""
    interest_weight: float = 0.4
    trending_weight: float = 0.3
    discovery_weight: float = 0.2
    regional_weight: float = 0.1
    user_region: str | None = None
    user_id: str | None = None

    def weights(self) -> dict[str, float]:
        """Return the raw blend weights keyed by signal name."""
        return {
            "interest": self.interest_weight,
            "trending": self.trending_weight,
            "discovery": self.discovery_weight,
            "regional": self.regional_weight,
        }


def resolve_preset(config: dict[str, Any], preset: str | None) -> tuple[str, dict[str, Any]]:
    """Return the named preset, falling back to the configured default."""
    presets = config.get("presets") or {}
    if preset and preset in presets:
        return preset, presets[preset]
    default_preset = config.get("default_preset")
    if preset:
        logging.info("[feed] unknown preset=%s fallback=%s", preset, default_preset)
    if default_preset and default_preset in presets:
        return default_preset, presets[default_preset]
    if not presets:
        return "default", {}
    name = next(iter(presets.keys()))
    return name, presets[name]


def build_feed_config(
    preset: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    *,
    viewer_id: str | None = None,
    viewer_region: str | None = None,
    pipeline: dict[str, Any] | None = None,
) -> FeedConfig:
    """Build a FeedConfig from defaults, a named preset and explicit overrides."""
    _, preset_values = resolve_preset(pipeline or FEED_PIPELINE, preset)
    config = FeedConfig(user_id=viewer_id, user_region=viewer_region)
    values: dict[str, Any] = {}
    for key, raw in {**preset_values, **dict(overrides or {})}.items():
        if key not in FeedConfig.__dataclass_fields__:
            continue
        if key.endswith("_weight"):
            values[key] = _clean_weight(raw)
        else:
            values[key] = raw
    return replace(config, **values)


def normalize_weights(config: FeedConfig) -> dict[str, float]:
    """Scale the four weights to sum to 1; an all-zero config splits evenly."""
    raw = {name: _clean_weight(value) for name, value in config.weights().items()}
    total = sum(raw.values())
    if total <= 0:
        logging.warning("[feed] weights fallback total=%s split=equal", total)
        share = 1.0 / len(WEIGHT_NAMES)
        return {name: share for name in WEIGHT_NAMES}
    return {name: raw[name] / total for name in WEIGHT_NAMES}


def _clean_weight(value: Any) -> float:
    try:
        weight = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(weight) or weight < 0:
        return 0.0
    return weight
