"""Persistence port for the single run snapshot."""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SESSION_KEY = "current"


class SessionStore(Protocol):
    """Keyed storage for the latest run snapshot."""

    def save(self, snapshot: dict) -> None:
        """Overwrite the stored snapshot as a whole."""
        ...

    def load(self) -> dict | None:
        """Return the stored snapshot, or None if nothing is stored."""
        ...

    def clear(self) -> None:
        """Discard the stored snapshot."""
        ...


class SqliteSessionStore:
    """Snapshot kept as one JSON row under a fixed key.

    Each save replaces the row inside a transaction, so a failed write
    leaves the previous snapshot in place.
    """

    def __init__(self, db_path: Path, key: str = SESSION_KEY) -> None:
        self._db_path = db_path
        self._key = key
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._lock = threading.Lock()
        self.init_db()

    def init_db(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def save(self, snapshot: dict) -> None:
        payload = json.dumps(snapshot)
        now = datetime.now(timezone.utc).isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO session (key, payload, updated_at) VALUES (?, ?, ?)",
                (self._key, payload, now),
            )
        logger.debug("Saved session snapshot (%d bytes)", len(payload))

    def load(self) -> dict | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM session WHERE key = ?", (self._key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def clear(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM session WHERE key = ?", (self._key,))

    def close(self) -> None:
        self._conn.close()


class MemorySessionStore:
    """In-process store, used by the CLI and in tests."""

    def __init__(self) -> None:
        self._snapshot: dict | None = None
        self.save_count = 0

    def save(self, snapshot: dict) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1

    def load(self) -> dict | None:
        return copy.deepcopy(self._snapshot)

    def clear(self) -> None:
        self._snapshot = None
