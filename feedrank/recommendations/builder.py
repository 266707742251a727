"""Provide builder runtime helpers."""

from __future__ import annotations

# Feed service builder.
#
# This module centralizes:
# - wiring of the profile store and the content store boundary,
# - per-request FeedConfig construction from presets and overrides,
# - the public entry points (feed, related, popular, record).
#
# It does not score anything itself; scoring lives in scoring/popularity/
# mixer/related and stays pure.

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np

from feedrank.data.content import ContentItem, ContentStore, filter_by_type
from feedrank.data.db import connect_profile_db
from feedrank.data.interactions import record_interaction
from feedrank.data.profiles import (
    InteractionEvent,
    InterestProfile,
    ProfileStore,
    SqliteProfileStore,
)
from feedrank.data.time import now_ms
from feedrank.recommendations.debug import attach_debug_info
from feedrank.recommendations.mixer import ScoredItem, compose_scored_feed
from feedrank.recommendations.popularity import rank_items
from feedrank.recommendations.profile import build_feed_config
from feedrank.recommendations.related import related_items
from feedrank.server_config import DEFAULT_PROFILE_DB_PATH, FEED_PIPELINE


@dataclass(frozen=True)
class FeedServiceDeps:
    """Collaborators required by the feed service.

    ``content_store`` is optional; callers may always pass items
    explicitly instead.
    """
    profile_store: ProfileStore
    content_store: ContentStore | None = None


def recommended_feed(
    items: Sequence[ContentItem],
    store: ProfileStore,
    *,
    viewer_id: str | None = None,
    viewer_region: str | None = None,
    limit: int | None = None,
    content_type: str | None = None,
    preset: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    now_ms_value: int | None = None,
    rng: np.random.Generator | None = None,
    pipeline: dict[str, Any] | None = None,
) -> list[ContentItem]:
    """Filter, compose and truncate a personalized feed; a non-positive ``limit`` keeps everything."""
    ranked = _compose(
        items,
        store,
        viewer_id=viewer_id,
        viewer_region=viewer_region,
        content_type=content_type,
        preset=preset,
        overrides=overrides,
        now_ms_value=now_ms_value,
        rng=rng,
        pipeline=pipeline,
    )
    output = [entry.item for entry in ranked]
    if limit and limit > 0:
        output = output[:limit]
    return output


class FeedService:
    """Serve feeds, related items and popularity lists over injected stores."""
    name = "blended"

    def __init__(self, deps: FeedServiceDeps, pipeline: dict[str, Any] | None = None) -> None:
        """Initialize the instance."""
        self.deps = deps
        self.pipeline = pipeline or FEED_PIPELINE

    def record(
        self, event: InteractionEvent | dict[str, Any], viewer_id: str | None = None
    ) -> InterestProfile:
        """Record an interaction for a viewer."""
        return record_interaction(self.deps.profile_store, event, viewer_id)

    def build_feed(
        self,
        items: Sequence[ContentItem] | None = None,
        viewer_id: str | None = None,
        viewer_region: str | None = None,
        limit: int | None = None,
        *,
        content_type: str | None = None,
        preset: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        now_ms_value: int | None = None,
        rng: np.random.Generator | None = None,
        debug: bool = False,
    ) -> list[Any]:
        """Return the ranked feed; with ``debug`` rows carry score breakdowns."""
        pool = self._resolve_items(items, {"type": content_type} if content_type else None)
        ranked = _compose(
            pool,
            self.deps.profile_store,
            viewer_id=viewer_id,
            viewer_region=viewer_region,
            content_type=content_type,
            preset=preset,
            overrides=overrides,
            now_ms_value=now_ms_value,
            rng=rng,
            pipeline=self.pipeline,
        )
        if limit and limit > 0:
            ranked = ranked[:limit]
        if debug:
            return attach_debug_info(ranked)
        return [entry.item for entry in ranked]

    def related(
        self,
        target: ContentItem,
        candidates: Sequence[ContentItem] | None = None,
        limit: int | None = None,
        now_ms_value: int | None = None,
    ) -> list[ContentItem]:
        """Return items related to ``target``."""
        pool = self._resolve_items(candidates, None)
        return related_items(target, pool, limit, now_ms_value, self.pipeline)

    def popular(
        self,
        items: Sequence[ContentItem] | None = None,
        channel_id: str | None = None,
        limit: int | None = None,
        now_ms_value: int | None = None,
    ) -> list[ContentItem]:
        """Return items by descending item rank, optionally for one channel."""
        pool = self._resolve_items(items, {"channel_id": channel_id} if channel_id else None)
        if channel_id:
            pool = [item for item in pool if item.channel_id == channel_id]
        ranked = rank_items(pool, now_ms_value)
        if limit and limit > 0:
            ranked = ranked[:limit]
        return ranked

    def _resolve_items(
        self,
        items: Sequence[ContentItem] | None,
        filters: Mapping[str, Any] | None,
    ) -> list[ContentItem]:
        """Use explicit items or fall back to the content store."""
        if items is not None:
            return list(items)
        if self.deps.content_store is None:
            raise ValueError("No content items given and no content store configured")
        return list(self.deps.content_store.list_content_items(filters))


def build_feed_service(
    db_path: Path | str | None = None,
    content_store: ContentStore | None = None,
    pipeline: dict[str, Any] | None = None,
) -> FeedService:
    """Open the sqlite profile store and return a ready feed service."""
    conn = connect_profile_db(db_path or DEFAULT_PROFILE_DB_PATH)
    deps = FeedServiceDeps(
        profile_store=SqliteProfileStore(conn),
        content_store=content_store,
    )
    return FeedService(deps, pipeline)


def _compose(
    items: Sequence[ContentItem],
    store: ProfileStore,
    *,
    viewer_id: str | None,
    viewer_region: str | None,
    content_type: str | None,
    preset: str | None,
    overrides: Mapping[str, Any] | None,
    now_ms_value: int | None,
    rng: np.random.Generator | None,
    pipeline: dict[str, Any] | None,
) -> list[ScoredItem]:
    pool = filter_by_type(items, content_type)
    config = build_feed_config(
        preset,
        overrides,
        viewer_id=viewer_id,
        viewer_region=viewer_region,
        pipeline=pipeline,
    )
    logging.info(
        "[feed] request viewer=%s preset=%s type=%s pool=%d",
        viewer_id or "-",
        preset or "default",
        content_type or "all",
        len(pool),
    )
    if not pool:
        return []
    profile = store.load(viewer_id)
    if now_ms_value is None:
        now_ms_value = now_ms()
    return compose_scored_feed(pool, config, profile, now_ms_value, rng, pipeline)
