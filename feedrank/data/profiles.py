"""Interest profile records and their persistence.

A profile is recomputed from persisted JSON on every load; stores never hand
out a long-lived shared object. Viewers without an id resolve to the
well-known ``DEFAULT_PROFILE_KEY`` row.
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from feedrank.data.time import now_ms
from feedrank.server_config import (
    DEFAULT_PROFILE_KEY,
    INTERACTION_WEIGHTS,
    MAX_RECENT_INTERACTIONS,
)

INTERACTION_KINDS = tuple(INTERACTION_WEIGHTS.keys())


@dataclass(frozen=True)
class InteractionEvent:
    """Represent one recorded viewer action."""
    content_id: str
    kind: str
    timestamp: int
    channel_id: str | None = None
    category: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    watch_duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the event for profile storage."""
        return {
            "content_id": self.content_id,
            "kind": self.kind,
            "timestamp": self.timestamp,
            "channel_id": self.channel_id,
            "category": self.category,
            "tags": list(self.tags),
            "watch_duration_seconds": self.watch_duration_seconds,
        }


@dataclass
class InterestProfile:
    """Represent a viewer's accumulated affinities."""
    categories: dict[str, float] = field(default_factory=dict)
    channels: dict[str, float] = field(default_factory=dict)
    tags: dict[str, float] = field(default_factory=dict)
    recent_interactions: list[InteractionEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the profile for storage."""
        return {
            "categories": dict(self.categories),
            "channels": dict(self.channels),
            "tags": dict(self.tags),
            "recent_interactions": [event.to_dict() for event in self.recent_interactions],
        }


def profile_key(viewer_id: str | None) -> str:
    """Resolve the storage key for a viewer, falling back to the default profile."""
    if isinstance(viewer_id, str) and viewer_id.strip():
        return viewer_id.strip()
    return DEFAULT_PROFILE_KEY


def normalize_event_payload(payload: dict[str, Any]) -> InteractionEvent:
    """Validate and normalize an interaction payload.

    Only ``kind`` is mandatory; optional fields that are missing or malformed
    are dropped so they contribute nothing to the profile.
    """
    kind = _clean_text(payload.get("kind") or payload.get("type"))
    if kind not in INTERACTION_KINDS:
        raise ValueError("Unsupported interaction kind")

    timestamp = _clean_finite(payload.get("timestamp"))
    if timestamp is None:
        timestamp = now_ms()
    watch_duration = _clean_finite(
        payload.get("watch_duration_seconds", payload.get("watchDuration"))
    )

    return InteractionEvent(
        content_id=_clean_text(payload.get("content_id") or payload.get("videoId")) or "",
        kind=kind,
        timestamp=int(timestamp),
        channel_id=_clean_text(payload.get("channel_id") or payload.get("channelId")),
        category=_clean_text(payload.get("category")),
        tags=_clean_tags(payload.get("tags")),
        watch_duration_seconds=watch_duration,
    )


def profile_from_payload(payload: Any) -> InterestProfile:
    """Rebuild a profile from decoded JSON, skipping malformed parts."""
    if not isinstance(payload, dict):
        return InterestProfile()
    events: list[InteractionEvent] = []
    raw_events = payload.get("recent_interactions", payload.get("recentInteractions"))
    if isinstance(raw_events, list):
        for entry in raw_events:
            if not isinstance(entry, dict):
                continue
            try:
                events.append(normalize_event_payload(entry))
            except ValueError:
                continue
    return InterestProfile(
        categories=_clean_scores(payload.get("categories")),
        channels=_clean_scores(payload.get("channels")),
        tags=_clean_scores(payload.get("tags")),
        recent_interactions=events[:MAX_RECENT_INTERACTIONS],
    )


def decode_profile(raw: str | bytes | None, key: str = DEFAULT_PROFILE_KEY) -> InterestProfile:
    """Decode stored JSON; corrupt state yields an empty profile."""
    if not raw:
        return InterestProfile()
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logging.warning("[profiles] corrupt profile key=%s, using empty profile", key)
        return InterestProfile()
    if not isinstance(parsed, dict):
        logging.warning("[profiles] corrupt profile key=%s, using empty profile", key)
        return InterestProfile()
    return profile_from_payload(parsed)


def encode_profile(profile: InterestProfile) -> str:
    """Encode a profile as compact JSON."""
    return json.dumps(profile.to_dict(), ensure_ascii=False, separators=(",", ":"))


class ProfileStore(Protocol):
    """Represent profile persistence keyed by optional viewer id."""

    def load(self, viewer_id: str | None = None) -> InterestProfile:
        """Return the viewer's profile (empty when unknown)."""
        raise NotImplementedError

    def save(self, viewer_id: str | None, profile: InterestProfile) -> None:
        """Persist the viewer's profile."""
        raise NotImplementedError

    def update(
        self, viewer_id: str | None, mutate: Callable[[InterestProfile], None]
    ) -> InterestProfile:
        """Load, mutate and save the viewer's profile."""
        raise NotImplementedError

    def clear(self, viewer_id: str | None) -> None:
        """Remove the viewer's profile."""
        raise NotImplementedError


class _KeyedLocks:
    """Hand out one lock per profile key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


class MemoryProfileStore:
    """Keep encoded profiles in a dict; decodes on every load."""

    def __init__(self) -> None:
        self._rows: dict[str, str] = {}
        self._locks = _KeyedLocks()

    def load(self, viewer_id: str | None = None) -> InterestProfile:
        key = profile_key(viewer_id)
        return decode_profile(self._rows.get(key), key)

    def save(self, viewer_id: str | None, profile: InterestProfile) -> None:
        self._rows[profile_key(viewer_id)] = encode_profile(profile)

    def update(
        self, viewer_id: str | None, mutate: Callable[[InterestProfile], None]
    ) -> InterestProfile:
        with self._locks.get(profile_key(viewer_id)):
            profile = self.load(viewer_id)
            mutate(profile)
            self.save(viewer_id, profile)
            return profile

    def clear(self, viewer_id: str | None) -> None:
        key = profile_key(viewer_id)
        with self._locks.get(key):
            self._rows.pop(key, None)

    def put_raw(self, viewer_id: str | None, raw: str) -> None:
        """Store raw JSON as-is (used to seed legacy or corrupt state)."""
        self._rows[profile_key(viewer_id)] = raw


def ensure_profile_schema(conn: sqlite3.Connection) -> None:
    """Create the interest profile table if missing."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS interest_profiles (
          profile_key TEXT PRIMARY KEY,
          payload_json TEXT NOT NULL,
          updated_at INTEGER NOT NULL
        );
        """
    )
    conn.commit()


def fetch_profile_payload(conn: sqlite3.Connection, key: str) -> str | None:
    """Return the stored JSON for a profile key."""
    row = conn.execute(
        "SELECT payload_json FROM interest_profiles WHERE profile_key = ?",
        (key,),
    ).fetchone()
    if row is None:
        return None
    return row["payload_json"]


def upsert_profile_payload(conn: sqlite3.Connection, key: str, payload_json: str) -> None:
    """Insert or replace the stored JSON for a profile key (no commit)."""
    conn.execute(
        """
        INSERT INTO interest_profiles (profile_key, payload_json, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(profile_key)
        DO UPDATE SET payload_json = excluded.payload_json, updated_at = excluded.updated_at
        """,
        (key, payload_json, now_ms()),
    )


class SqliteProfileStore:
    """Persist profiles in sqlite.

    ``update`` runs load-mutate-save under a per-viewer lock inside one
    transaction, so concurrent recorders for the same viewer do not lose
    updates within this process.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._db_lock = threading.Lock()
        self._locks = _KeyedLocks()
        ensure_profile_schema(conn)

    def load(self, viewer_id: str | None = None) -> InterestProfile:
        key = profile_key(viewer_id)
        with self._db_lock:
            raw = fetch_profile_payload(self.conn, key)
        return decode_profile(raw, key)

    def save(self, viewer_id: str | None, profile: InterestProfile) -> None:
        key = profile_key(viewer_id)
        with self._db_lock:
            upsert_profile_payload(self.conn, key, encode_profile(profile))
            self.conn.commit()

    def update(
        self, viewer_id: str | None, mutate: Callable[[InterestProfile], None]
    ) -> InterestProfile:
        key = profile_key(viewer_id)
        with self._locks.get(key):
            profile = self.load(viewer_id)
            mutate(profile)
            with self._db_lock:
                try:
                    upsert_profile_payload(self.conn, key, encode_profile(profile))
                    self.conn.commit()
                except sqlite3.Error:
                    self.conn.rollback()
                    raise
            return profile

    def clear(self, viewer_id: str | None) -> None:
        key = profile_key(viewer_id)
        with self._locks.get(key), self._db_lock:
            self.conn.execute(
                "DELETE FROM interest_profiles WHERE profile_key = ?",
                (key,),
            )
            self.conn.commit()


def _clean_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized if normalized else None


def _clean_tags(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(tag for tag in (_clean_text(entry) for entry in value) if tag)


def _clean_scores(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    scores: dict[str, float] = {}
    for key, raw in value.items():
        if not isinstance(key, str):
            continue
        score = _clean_finite(raw)
        if score is not None:
            scores[key] = score
    return scores


def _clean_finite(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None
