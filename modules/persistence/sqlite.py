"""
persistence/sqlite.py
---------------------
SQLite home of the shared state blob.  One row holds the whole snapshot plus
a version counter; every write is a single transaction, so a reader sees
either the previous snapshot or the new one, never a mix.
"""

from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS state (
    id         INTEGER PRIMARY KEY CHECK (id = 1),
    version    INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    payload    TEXT    NOT NULL    -- full JSON blob
);
"""


class StaleVersionError(Exception):
    """Raised when a write is based on a version that is no longer current."""

    def __init__(self, expected: Optional[int], current: int):
        super().__init__(f"stale version {expected}, store is at {current}")
        self.expected = expected
        self.current = current


class SQLiteStateStore:
    def __init__(self, db_path: str = "data/trades.db"):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    # ----------------------------- READS --------------------------------- #
    def load(self) -> Tuple[Optional[Dict[str, Any]], int]:
        """Return (payload, version); (None, 0) for an empty store."""
        row = self.conn.execute(
            "SELECT version, payload FROM state WHERE id = 1"
        ).fetchone()
        if row is None:
            return None, 0
        return json.loads(row["payload"]), row["version"]

    def current_version(self) -> int:
        row = self.conn.execute("SELECT version FROM state WHERE id = 1").fetchone()
        return row["version"] if row else 0

    # ----------------------------- WRITES -------------------------------- #
    def save(self, payload: Dict[str, Any], expected_version: Optional[int] = None) -> int:
        """
        Replace the snapshot and return the new version.

        With `expected_version` set, the write only lands if the stored
        version still matches; otherwise StaleVersionError is raised.
        """
        with self.conn:
            current = self.current_version()
            if expected_version is not None and expected_version != current:
                raise StaleVersionError(expected_version, current)
            new_version = current + 1
            payload = dict(payload, version=new_version)
            self.conn.execute(
                """
                INSERT INTO state (id, version, updated_at, payload)
                VALUES (1, :version, :updated_at, :payload)
                ON CONFLICT(id) DO UPDATE SET
                  version = excluded.version,
                  updated_at = excluded.updated_at,
                  payload = excluded.payload
                """,
                {
                    "version": new_version,
                    "updated_at": int(time.time() * 1000),
                    "payload": json.dumps(payload),
                },
            )
        return new_version

    def close(self) -> None:
        self.conn.close()
