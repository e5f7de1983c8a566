"""SQLite-backed TTL store.

Values are stored as JSON text next to an absolute expiry timestamp. A fresh
connection is opened per operation so the store is safe to share between
threads and between processes pointing at the same file. Counter updates run
inside ``BEGIN IMMEDIATE`` so concurrent writers serialize on the database
lock.

Calls block for up to ``busy_timeout_seconds`` while another writer holds the
lock; async callers run them off the event loop. A lock that is not released
in time surfaces as ``StoreUnavailableError``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from datafeed.adapters.store.base import AbstractTTLStore, CounterState
from datafeed.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

_PREFIX_CLAUSE = "substr(key, 1, length(?)) = ?"


class SqliteTTLStore(AbstractTTLStore):
    """TTL store persisted in a single SQLite table."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        clock: Callable[[], float] = time.time,
        busy_timeout_seconds: float = 5.0,
    ) -> None:
        """
        Initialize the store and create its table if needed.

        Args:
            db_path: Path to the SQLite database file.
            clock: Time source returning UNIX time in seconds.
            busy_timeout_seconds: How long to wait for a locked database.
        """
        self.db_path = str(db_path)
        self._clock = clock
        self._busy_timeout = busy_timeout_seconds
        self._init_db()

    @contextmanager
    def _connection(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        # Autocommit mode; ``immediate`` wraps the block in a write transaction.
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self._busy_timeout,
                isolation_level=None,
            )
        except sqlite3.OperationalError as exc:
            raise _unavailable(exc) from exc

        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
            else:
                yield conn
        except sqlite3.OperationalError as exc:
            logger.warning("store.unavailable", extra={"reason": str(exc)})
            raise _unavailable(exc) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ttl_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )

    def get(self, key: str) -> Any | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM ttl_store WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()

        if row is None:
            return None
        return json.loads(row[0])

    def set(self, key: str, value: Any, *, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        value_json = json.dumps(value)
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO ttl_store (key, value, expires_at) VALUES (?, ?, ?)",
                (key, value_json, self._clock() + ttl_seconds),
            )

    def delete(self, key: str) -> bool:
        with self._connection(immediate=True) as conn:
            live = conn.execute(
                "DELETE FROM ttl_store WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            ).rowcount
            conn.execute("DELETE FROM ttl_store WHERE key = ?", (key,))
        return live > 0

    def expires_at(self, key: str) -> float | None:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT expires_at FROM ttl_store WHERE key = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
        return row[0] if row else None

    def increment(
        self,
        key: str,
        *,
        ttl_seconds: float,
        ceiling: int | None = None,
    ) -> CounterState:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        with self._connection(immediate=True) as conn:
            return self._increment_locked(conn, key, ttl_seconds, ceiling)

    def _increment_locked(
        self,
        conn: sqlite3.Connection,
        key: str,
        ttl_seconds: float,
        ceiling: int | None,
    ) -> CounterState:
        now = self._clock()
        row = conn.execute(
            "SELECT value, expires_at FROM ttl_store WHERE key = ? AND expires_at > ?",
            (key, now),
        ).fetchone()

        if row is None:
            if ceiling is not None and ceiling < 1:
                return CounterState(count=0, expires_at=now + ttl_seconds, incremented=False)
            expires_at = now + ttl_seconds
            conn.execute(
                "INSERT OR REPLACE INTO ttl_store (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(1), expires_at),
            )
            return CounterState(count=1, expires_at=expires_at, incremented=True)

        count = int(json.loads(row[0]))
        expires_at = row[1]
        if ceiling is not None and count >= ceiling:
            return CounterState(count=count, expires_at=expires_at, incremented=False)

        conn.execute(
            "UPDATE ttl_store SET value = ? WHERE key = ?",
            (json.dumps(count + 1), key),
        )
        return CounterState(count=count + 1, expires_at=expires_at, incremented=True)

    def purge_expired(self, prefix: str = "") -> int:
        with self._connection() as conn:
            removed = conn.execute(
                f"DELETE FROM ttl_store WHERE expires_at <= ? AND {_PREFIX_CLAUSE}",
                (self._clock(), prefix, prefix),
            ).rowcount

        if removed:
            logger.debug("store.purged", extra={"removed": removed, "prefix": prefix})
        return removed

    def count(self, prefix: str = "") -> int:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM ttl_store WHERE expires_at > ? AND {_PREFIX_CLAUSE}",
                (self._clock(), prefix, prefix),
            ).fetchone()
        return int(row[0])


def _unavailable(exc: sqlite3.OperationalError) -> StoreUnavailableError:
    return StoreUnavailableError(
        code="store_unavailable",
        message="The cache store is temporarily unavailable",
        details={"reason": str(exc)},
    )
