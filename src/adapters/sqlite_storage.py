"""SQLite storage adapter.

Implements the core DedupStorePort and PreferencesPort using a simple SQLite
database, so both the notified-contest log and the preferences survive
restarts.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from core.errors import StorageError
from core.models import ContestId, Preferences

DEFAULT_CAPACITY = 100

PREF_NOTIFICATIONS_ENABLED = "notifications_enabled"
PREF_HANDLE = "handle"

_LAST_CLEARED_KEY = "last_cleared_at"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the dedup and preferences contracts."""

    def __init__(
        self,
        db_path: str,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if capacity < 1:
            raise ValueError("Dedup capacity must be at least 1")
        self._db_path = db_path
        self._capacity = capacity
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._capacity

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - preferences: small key-value settings (JSON-encoded values)
        - notified: ordered log of contest ids already alerted
        - dedup_state: bookkeeping for the cleanup epoch
        """

        with self._connect() as conn:
            # seq gives the insertion order used for FIFO trimming; ids are
            # stored as text because the feed treats them as opaque.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notified (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    contest_id TEXT NOT NULL UNIQUE,
                    notified_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS preferences (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS dedup_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            # A fresh database starts its first cleanup epoch now.
            conn.execute(
                "INSERT OR IGNORE INTO dedup_state (key, value) VALUES (?, ?)",
                (_LAST_CLEARED_KEY, self._clock().isoformat()),
            )

    # -- dedup store --------------------------------------------------------

    def contains(self, contest_id: ContestId) -> bool:
        """Check if a contest id has already been notified."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM notified WHERE contest_id = ?",
                (str(contest_id),),
            ).fetchone()
        return row is not None

    def record(self, contest_id: ContestId) -> None:
        """Append a contest id, keeping only the newest `capacity` entries."""

        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO notified (contest_id, notified_at) VALUES (?, ?)",
                (str(contest_id), self._clock().isoformat()),
            )
            conn.execute(
                """
                DELETE FROM notified WHERE seq NOT IN (
                    SELECT seq FROM notified ORDER BY seq DESC LIMIT ?
                )
                """,
                (self._capacity,),
            )

    def clear(self) -> None:
        """Empty the log and stamp the start of a new cleanup epoch."""

        with self._connect() as conn:
            conn.execute("DELETE FROM notified")
            conn.execute(
                """
                INSERT INTO dedup_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (_LAST_CLEARED_KEY, self._clock().isoformat()),
            )

    def ids(self) -> list[str]:
        """Return notified contest ids, oldest first."""

        with self._connect() as conn:
            rows = conn.execute("SELECT contest_id FROM notified ORDER BY seq").fetchall()
        return [row["contest_id"] for row in rows]

    def last_cleared_at(self) -> Optional[datetime]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM dedup_state WHERE key = ?",
                (_LAST_CLEARED_KEY,),
            ).fetchone()
        return datetime.fromisoformat(row["value"]) if row else None

    # -- preferences --------------------------------------------------------

    def _read_preferences(self) -> dict[str, Any]:
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM preferences").fetchall()
        return {row["key"]: json.loads(row["value"]) for row in rows}

    def load_preferences(self) -> Preferences:
        """Return stored preferences, falling back to defaults per key."""

        stored = self._read_preferences()
        defaults = Preferences()
        return Preferences(
            notifications_enabled=bool(
                stored.get(PREF_NOTIFICATIONS_ENABLED, defaults.notifications_enabled)
            ),
            handle=str(stored.get(PREF_HANDLE, defaults.handle)),
        )

    def seed_preferences(self, defaults: Preferences) -> None:
        """Write default preferences for keys that are not set yet."""

        with self._connect() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO preferences (key, value) VALUES (?, ?)",
                [
                    (PREF_NOTIFICATIONS_ENABLED, json.dumps(defaults.notifications_enabled)),
                    (PREF_HANDLE, json.dumps(defaults.handle)),
                ],
            )

    def set_preference(self, key: str, value: Any) -> None:
        """Upsert one preference value."""

        if key not in {PREF_NOTIFICATIONS_ENABLED, PREF_HANDLE}:
            raise ValueError(f"Unknown preference: {key}")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO preferences (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, json.dumps(value)),
            )
