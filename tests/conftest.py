import sqlite3

import numpy as np
import pytest

from factories import NOW_MS
from feedrank.data.profiles import MemoryProfileStore, SqliteProfileStore
from feedrank.request_context import clear_request_context


@pytest.fixture
def now_ms_value():
    return NOW_MS


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def memory_store():
    return MemoryProfileStore()


@pytest.fixture
def sqlite_store():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    yield SqliteProfileStore(conn)
    conn.close()


@pytest.fixture(autouse=True)
def _clear_request_context():
    yield
    clear_request_context()
