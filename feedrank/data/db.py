"""Provide db runtime helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path


def connect_profile_db(path: Path | str) -> sqlite3.Connection:
    """Open or create the interest profile database."""
    target = path if isinstance(path, str) else path.as_posix()
    conn = sqlite3.connect(target, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn
