"""Content item records consumed by the ranking engine.

Items are owned by the external content store; the engine only reads them.
``normalize_content_row`` turns loosely-typed store rows into ``ContentItem``
records, degrading malformed fields to neutral values instead of failing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from feedrank.data.time import now_ms, to_ms

CONTENT_TYPES = ("video", "short")
VISIBILITIES = ("public", "unlisted", "private")


@dataclass(frozen=True)
class ContentItem:
    """Represent a video or short with metadata and engagement counters."""
    id: str
    created_at: int
    category: str | None = None
    channel_id: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    title: str = ""
    duration_seconds: float = 0.0
    type: str = "video"
    view_count: int = 0
    like_count: int = 0
    dislike_count: int = 0
    comment_count: int = 0
    region: str | None = None
    visibility: str = "public"
    owner_id: str | None = None


class ContentStore(Protocol):
    """Represent the external content store boundary."""

    def list_content_items(self, filters: Mapping[str, Any] | None = None) -> list[ContentItem]:
        """Return content items matching optional filters."""
        raise NotImplementedError


def normalize_content_row(row: Mapping[str, Any], now_ms_value: int | None = None) -> ContentItem:
    """Build a ContentItem from a store row (snake_case or camelCase keys)."""
    item_id = _clean_text(_pick(row, "id", "content_id", "contentId"))
    if not item_id:
        raise ValueError("Missing content id")
    fallback_ts = now_ms_value if now_ms_value is not None else now_ms()
    created_at = to_ms(_pick(row, "created_at", "createdAt"), default=fallback_ts)

    content_type = _clean_text(row.get("type")) or "video"
    if content_type not in CONTENT_TYPES:
        content_type = "video"
    visibility = _clean_text(row.get("visibility")) or "public"
    if visibility not in VISIBILITIES:
        visibility = "private"

    return ContentItem(
        id=item_id,
        created_at=int(created_at if created_at is not None else fallback_ts),
        category=_clean_text(row.get("category")),
        channel_id=_clean_text(_pick(row, "channel_id", "channelId")),
        tags=_clean_tags(row.get("tags")),
        title=_clean_text(row.get("title")) or "",
        duration_seconds=_clean_number(_pick(row, "duration_seconds", "durationSeconds")),
        type=content_type,
        view_count=_clean_count(_pick(row, "view_count", "viewCount")),
        like_count=_clean_count(_pick(row, "like_count", "likeCount")),
        dislike_count=_clean_count(_pick(row, "dislike_count", "dislikeCount")),
        comment_count=_clean_count(_pick(row, "comment_count", "commentCount")),
        region=_clean_text(row.get("region")),
        visibility=visibility,
        owner_id=_clean_text(_pick(row, "owner_id", "ownerId")),
    )


def filter_by_type(items: Iterable[ContentItem], content_type: str | None) -> list[ContentItem]:
    """Keep only items of the requested content type (all when None)."""
    if not content_type:
        return list(items)
    return [item for item in items if item.type == content_type]


def _pick(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return None


def _clean_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized if normalized else None


def _clean_tags(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    tags: list[str] = []
    for entry in value:
        cleaned = _clean_text(entry)
        if cleaned:
            tags.append(cleaned)
    return tuple(tags)


def _clean_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _clean_count(value: Any) -> int:
    return int(_clean_number(value))
