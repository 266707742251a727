"""Tests for interest profile persistence."""

from __future__ import annotations

import json
import logging
import threading
import unittest

import pytest

from feedrank.data.content import ContentItem
from feedrank.data.interactions import record_interaction
from feedrank.data.profiles import (
    InteractionEvent,
    InterestProfile,
    MemoryProfileStore,
    decode_profile,
    encode_profile,
    profile_key,
)
from feedrank.recommendations.scoring import relevance_score
from feedrank.server_config import DEFAULT_PROFILE_KEY


class ProfileCodecTests(unittest.TestCase):
    """Validate JSON encoding and tolerant decoding of stored profiles."""

    def test_round_trip_keeps_scores_and_history(self) -> None:
        """Encoded profiles decode back to equal values."""
        profile = InterestProfile(
            categories={"Music": 4.0},
            channels={"ch": 2.0},
            tags={"lofi": 0.5},
            recent_interactions=[
                InteractionEvent(content_id="v1", kind="like", timestamp=10, tags=("lofi",))
            ],
        )
        self.assertEqual(decode_profile(encode_profile(profile)), profile)

    def test_corrupt_json_yields_empty_profile(self) -> None:
        """Unparsable state is logged and treated as empty."""
        with self.assertLogs(level=logging.WARNING) as captured:
            profile = decode_profile("{not json", "viewer-1")
        self.assertEqual(profile, InterestProfile())
        self.assertIn("[profiles] corrupt profile key=viewer-1", captured.output[0])

    def test_non_object_json_yields_empty_profile(self) -> None:
        """A JSON list is not a profile."""
        with self.assertLogs(level=logging.WARNING):
            self.assertEqual(decode_profile("[1, 2]"), InterestProfile())

    def test_legacy_camel_case_payload_is_accepted(self) -> None:
        """Profiles saved with camelCase history keys still load."""
        raw = json.dumps(
            {
                "categories": {"Gaming": "12", "bad": "x"},
                "channels": {},
                "tags": {},
                "recentInteractions": [
                    {"videoId": "v1", "type": "like", "timestamp": 5},
                    {"videoId": "v2", "type": "bogus", "timestamp": 6},
                    "garbage",
                ],
            }
        )
        profile = decode_profile(raw)
        self.assertEqual(profile.categories, {"Gaming": 12.0})
        self.assertEqual([event.content_id for event in profile.recent_interactions], ["v1"])

    def test_non_finite_history_timestamp_is_replaced(self) -> None:
        """An Infinity timestamp in stored history does not break loading."""
        raw = '{"categories":{"Music":3},"recent_interactions":[{"kind":"view","timestamp":Infinity}]}'
        profile = decode_profile(raw)
        self.assertEqual(profile.categories, {"Music": 3.0})
        self.assertEqual(len(profile.recent_interactions), 1)
        self.assertIsInstance(profile.recent_interactions[0].timestamp, int)

    def test_non_finite_scores_are_dropped(self) -> None:
        """NaN and infinite scores never reach relevance scoring."""
        raw = '{"categories":{"Music":NaN,"News":2},"channels":{"c":Infinity},"tags":{"t":-Infinity}}'
        profile = decode_profile(raw)
        self.assertEqual(profile.categories, {"News": 2.0})
        self.assertEqual(profile.channels, {})
        self.assertEqual(profile.tags, {})
        item = ContentItem(id="v1", created_at=0, category="Music", channel_id="c", tags=("t",))
        self.assertEqual(relevance_score(item, profile), 0.0)

    def test_profile_key_falls_back_to_default(self) -> None:
        """Blank and missing viewer ids share the default key."""
        self.assertEqual(profile_key(None), DEFAULT_PROFILE_KEY)
        self.assertEqual(profile_key("   "), DEFAULT_PROFILE_KEY)
        self.assertEqual(profile_key(" u1 "), "u1")


class MemoryProfileStoreTests(unittest.TestCase):
    """Validate the dict-backed store."""

    def test_loads_are_independent_copies(self) -> None:
        """Mutating a loaded profile does not change stored state."""
        store = MemoryProfileStore()
        store.save("u", InterestProfile(categories={"Music": 1.0}))
        loaded = store.load("u")
        loaded.categories["Music"] = 99.0
        self.assertEqual(store.load("u").categories, {"Music": 1.0})

    def test_corrupt_raw_state_loads_empty(self) -> None:
        """Seeded corrupt JSON behaves like a missing profile."""
        store = MemoryProfileStore()
        store.put_raw("u", "}{")
        with self.assertLogs(level=logging.WARNING):
            self.assertEqual(store.load("u"), InterestProfile())

    def test_clear_removes_profile(self) -> None:
        """Clearing wipes the viewer's data."""
        store = MemoryProfileStore()
        store.save("u", InterestProfile(categories={"Music": 1.0}))
        store.clear("u")
        self.assertEqual(store.load("u"), InterestProfile())


def test_sqlite_store_round_trip_and_clear(sqlite_store):
    sqlite_store.save("u", InterestProfile(channels={"ch": 3.0}))
    assert sqlite_store.load("u").channels == {"ch": 3.0}
    sqlite_store.save("u", InterestProfile(channels={"ch": 4.0}))
    assert sqlite_store.load("u").channels == {"ch": 4.0}
    sqlite_store.clear("u")
    assert sqlite_store.load("u") == InterestProfile()


def test_sqlite_store_corrupt_row_loads_empty(sqlite_store, caplog):
    sqlite_store.conn.execute(
        "INSERT INTO interest_profiles (profile_key, payload_json, updated_at) VALUES (?, ?, ?)",
        ("u", "not-json", 0),
    )
    sqlite_store.conn.commit()
    with caplog.at_level(logging.WARNING):
        assert sqlite_store.load("u") == InterestProfile()
    assert "[profiles] corrupt" in caplog.text


def test_concurrent_records_do_not_lose_updates(sqlite_store):
    threads = []

    def worker(offset: int) -> None:
        for index in range(25):
            record_interaction(
                sqlite_store,
                InteractionEvent(
                    content_id=f"v{offset}-{index}",
                    kind="view",
                    timestamp=index,
                    category="Music",
                ),
                "shared-viewer",
            )

    for offset in range(8):
        thread = threading.Thread(target=worker, args=(offset,))
        threads.append(thread)
        thread.start()
    for thread in threads:
        thread.join()

    profile = sqlite_store.load("shared-viewer")
    assert profile.categories["Music"] == 200.0
    assert len(profile.recent_interactions) == 100


@pytest.mark.parametrize("store_fixture", ["memory_store", "sqlite_store"])
def test_clear_waits_for_in_flight_update(request, store_fixture):
    store = request.getfixturevalue(store_fixture)
    store.save("u", InterestProfile(categories={"Music": 1.0}))
    clearer = threading.Thread(target=store.clear, args=("u",))

    def mutate(profile: InterestProfile) -> None:
        profile.categories["Music"] += 1.0
        clearer.start()
        clearer.join(timeout=0.2)
        assert clearer.is_alive()

    store.update("u", mutate)
    clearer.join()
    assert store.load("u") == InterestProfile()
