"""In-memory TTL store.

Notes:
- Per-process only: running multiple workers gives each its own cache and
  its own rate limit counters.
- Thread-safe: uses a lock around shared state.
- Bounded: expired entries are swept on writes at most once per
  ``sweep_interval_seconds``, and ``max_entries`` caps the dictionary by
  dropping the oldest entries first.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from datafeed.adapters.store.base import AbstractTTLStore, CounterState

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float


class InMemoryTTLStore(AbstractTTLStore):
    """Dictionary-backed store with lazy expiry.

    Reads never mutate: an expired entry is reported as absent and stays in
    the dictionary until a write sweeps it, it is overwritten, or it is
    purged.

    Attributes:
        max_entries: Maximum number of held entries (None for unlimited).
        sweep_interval_seconds: Minimum time between two write-time sweeps.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        max_entries: int | None = 10_000,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self.max_entries = max_entries
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}
        self._last_sweep = clock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryTTLStore(max_entries={self.max_entries}, "
            f"entries={len(self._entries)}, evictions={self._evictions})"
        )

    def stats(self) -> dict[str, Any]:
        """Return held entry count (live or not) and eviction metrics."""
        with self._lock:
            return {
                "max_entries": self.max_entries,
                "entries": len(self._entries),
                "evictions": self._evictions,
            }

    def _live_entry_locked(self, key: str, now: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None or now >= entry.expires_at:
            return None
        return entry

    def _put_locked(self, key: str, entry: _Entry, now: float) -> None:
        if now - self._last_sweep >= self.sweep_interval_seconds:
            self._purge_locked("", now)
            self._last_sweep = now

        # Re-insert so dictionary order tracks write recency.
        self._entries.pop(key, None)
        self._entries[key] = entry
        self._evict_if_over_capacity_locked(now)

    def _evict_if_over_capacity_locked(self, now: float) -> None:
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return

        self._purge_locked("", now)
        self._last_sweep = now

        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self._evictions += 1
            logger.warning("store.evicted", extra={"max_entries": self.max_entries})

    def _purge_locked(self, prefix: str, now: float) -> int:
        expired = [
            key
            for key, entry in self._entries.items()
            if key.startswith(prefix) and now >= entry.expires_at
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            return entry.value if entry else None

    def set(self, key: str, value: Any, *, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        with self._lock:
            now = self._clock()
            self._put_locked(key, _Entry(value=value, expires_at=now + ttl_seconds), now)

    def delete(self, key: str) -> bool:
        with self._lock:
            live = self._live_entry_locked(key, self._clock()) is not None
            self._entries.pop(key, None)
            return live

    def expires_at(self, key: str) -> float | None:
        with self._lock:
            entry = self._live_entry_locked(key, self._clock())
            return entry.expires_at if entry else None

    def increment(
        self,
        key: str,
        *,
        ttl_seconds: float,
        ceiling: int | None = None,
    ) -> CounterState:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        with self._lock:
            now = self._clock()
            entry = self._live_entry_locked(key, now)

            if entry is None:
                if ceiling is not None and ceiling < 1:
                    return CounterState(count=0, expires_at=now + ttl_seconds, incremented=False)
                entry = _Entry(value=1, expires_at=now + ttl_seconds)
                self._put_locked(key, entry, now)
                return CounterState(count=1, expires_at=entry.expires_at, incremented=True)

            count = int(entry.value)
            if ceiling is not None and count >= ceiling:
                return CounterState(count=count, expires_at=entry.expires_at, incremented=False)

            entry.value = count + 1
            return CounterState(count=entry.value, expires_at=entry.expires_at, incremented=True)

    def purge_expired(self, prefix: str = "") -> int:
        with self._lock:
            removed = self._purge_locked(prefix, self._clock())

        if removed:
            logger.debug("store.purged", extra={"removed": removed, "prefix": prefix})
        return removed

    def count(self, prefix: str = "") -> int:
        with self._lock:
            now = self._clock()
            return sum(
                1
                for key, entry in self._entries.items()
                if key.startswith(prefix) and now < entry.expires_at
            )
