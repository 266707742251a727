"""Record viewer interactions into interest profiles."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from feedrank.data.profiles import (
    InteractionEvent,
    InterestProfile,
    ProfileStore,
    normalize_event_payload,
    profile_key,
)
from feedrank.data.time import now_ms
from feedrank.server_config import (
    INTERACTION_WEIGHTS,
    MAX_RECENT_INTERACTIONS,
    TAG_WEIGHT_FACTOR,
    TOP_CATEGORIES_LIMIT,
    TOP_CHANNELS_LIMIT,
    TOP_TAGS_LIMIT,
)


def apply_interaction(profile: InterestProfile, event: InteractionEvent) -> None:
    """Push the event to the front of the history and accumulate scores."""
    profile.recent_interactions.insert(0, event)
    if len(profile.recent_interactions) > MAX_RECENT_INTERACTIONS:
        del profile.recent_interactions[MAX_RECENT_INTERACTIONS:]

    weight = INTERACTION_WEIGHTS[event.kind]
    if event.category:
        profile.categories[event.category] = profile.categories.get(event.category, 0.0) + weight
    if event.channel_id:
        profile.channels[event.channel_id] = profile.channels.get(event.channel_id, 0.0) + weight
    for tag in event.tags:
        profile.tags[tag] = profile.tags.get(tag, 0.0) + (weight * TAG_WEIGHT_FACTOR)


def record_interaction(
    store: ProfileStore,
    event: InteractionEvent | dict[str, Any],
    viewer_id: str | None = None,
) -> InterestProfile:
    """Record one interaction for a viewer (or the default profile)."""
    if not isinstance(event, InteractionEvent):
        event = normalize_event_payload(event)
    elif event.kind not in INTERACTION_WEIGHTS:
        raise ValueError("Unsupported interaction kind")
    profile = store.update(viewer_id, lambda current: apply_interaction(current, event))
    logging.info(
        "[interactions] recorded viewer=%s kind=%s content=%s history=%d",
        profile_key(viewer_id),
        event.kind,
        event.content_id or "-",
        len(profile.recent_interactions),
    )
    return profile


def track_view(
    store: ProfileStore,
    content_id: str,
    *,
    channel_id: str | None = None,
    category: str | None = None,
    tags: Iterable[str] = (),
    watch_duration_seconds: float | None = None,
    viewer_id: str | None = None,
    timestamp: int | None = None,
) -> InterestProfile:
    """Record a view."""
    event = InteractionEvent(
        content_id=content_id,
        kind="view",
        timestamp=timestamp if timestamp is not None else now_ms(),
        channel_id=channel_id,
        category=category,
        tags=tuple(tags),
        watch_duration_seconds=watch_duration_seconds,
    )
    return record_interaction(store, event, viewer_id)


def track_like(
    store: ProfileStore,
    content_id: str,
    *,
    channel_id: str | None = None,
    category: str | None = None,
    tags: Iterable[str] = (),
    viewer_id: str | None = None,
    timestamp: int | None = None,
) -> InterestProfile:
    """Record a like."""
    event = InteractionEvent(
        content_id=content_id,
        kind="like",
        timestamp=timestamp if timestamp is not None else now_ms(),
        channel_id=channel_id,
        category=category,
        tags=tuple(tags),
    )
    return record_interaction(store, event, viewer_id)


def track_comment(
    store: ProfileStore,
    content_id: str,
    *,
    channel_id: str | None = None,
    category: str | None = None,
    tags: Iterable[str] = (),
    viewer_id: str | None = None,
    timestamp: int | None = None,
) -> InterestProfile:
    """Record a comment."""
    event = InteractionEvent(
        content_id=content_id,
        kind="comment",
        timestamp=timestamp if timestamp is not None else now_ms(),
        channel_id=channel_id,
        category=category,
        tags=tuple(tags),
    )
    return record_interaction(store, event, viewer_id)


def track_subscribe(
    store: ProfileStore,
    channel_id: str,
    *,
    viewer_id: str | None = None,
    timestamp: int | None = None,
) -> InterestProfile:
    """Record a channel subscription (not tied to a content item)."""
    event = InteractionEvent(
        content_id="",
        kind="subscribe",
        timestamp=timestamp if timestamp is not None else now_ms(),
        channel_id=channel_id,
    )
    return record_interaction(store, event, viewer_id)


def clear_profile(store: ProfileStore, viewer_id: str | None = None) -> None:
    """Wipe a viewer's interest profile."""
    store.clear(viewer_id)
    logging.info("[interactions] cleared viewer=%s", profile_key(viewer_id))


def top_categories(
    store: ProfileStore, viewer_id: str | None = None, limit: int = TOP_CATEGORIES_LIMIT
) -> list[str]:
    """Return the viewer's strongest categories."""
    return _top_keys(store.load(viewer_id).categories, limit)


def top_channels(
    store: ProfileStore, viewer_id: str | None = None, limit: int = TOP_CHANNELS_LIMIT
) -> list[str]:
    """Return the viewer's strongest channels."""
    return _top_keys(store.load(viewer_id).channels, limit)


def top_tags(
    store: ProfileStore, viewer_id: str | None = None, limit: int = TOP_TAGS_LIMIT
) -> list[str]:
    """Return the viewer's strongest tags."""
    return _top_keys(store.load(viewer_id).tags, limit)


def _top_keys(scores: dict[str, float], limit: int) -> list[str]:
    if limit <= 0:
        return []
    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [key for key, _ in ranked[:limit]]
