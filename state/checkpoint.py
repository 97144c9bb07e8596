"""
SQLite-backed state checkpoint.

Holds small named JSON documents (today: the daily trade counter) so a
restart on the same calendar day resumes the count instead of starting at
zero. One row per name; every save is a single transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("state.db")

_CREATE_TABLE = (
    "CREATE TABLE IF NOT EXISTS loop_state ("
    " name TEXT PRIMARY KEY,"
    " payload TEXT NOT NULL,"
    " saved_at REAL NOT NULL)"
)


@runtime_checkable
class Serializable(Protocol):
    def to_dict(self) -> dict: ...

    @classmethod
    def from_dict(cls, data: dict) -> Any: ...


T = TypeVar("T")


class StateCheckpoint:
    """
    Single connection shared across threads, serialized by a lock.

        ckpt = StateCheckpoint("state.db")
        ckpt.save("daily_counters", counters)
        counters = ckpt.load("daily_counters", DailyCounters)
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        with self._cursor() as cur:
            cur.execute(_CREATE_TABLE)

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            self._conn = conn
        return self._conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            conn = self._connect()
            with conn:  # commit on success, rollback on error
                yield conn.cursor()

    def save(self, name: str, obj: Serializable) -> None:
        payload = json.dumps(obj.to_dict(), default=str)
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO loop_state (name, payload, saved_at) VALUES (?, ?, ?) "
                "ON CONFLICT(name) DO UPDATE SET payload = excluded.payload, saved_at = excluded.saved_at",
                (name, payload, time.time()),
            )
        logger.debug("Saved %s: %s", name, payload)

    def load(self, name: str, cls: type[T]) -> T | None:
        """cls.from_dict of the stored document, or None when absent or unreadable."""
        with self._cursor() as cur:
            row = cur.execute("SELECT payload, saved_at FROM loop_state WHERE name = ?", (name,)).fetchone()
        if row is None:
            return None

        payload, saved_at = row
        try:
            obj = cls.from_dict(json.loads(payload))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable %s checkpoint: %s", name, e)
            return None
        logger.info("Restored %s saved %.0fs ago", name, time.time() - saved_at)
        return obj

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
