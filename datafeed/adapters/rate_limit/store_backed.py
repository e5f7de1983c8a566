"""Fixed-window rate limiter backed by a TTL store.

Each identity owns one counter that lives for one window. The window starts
with the first request and is not extended by later ones; once the counter
expires the next request opens a new window. This approximates a sliding
window with a single integer per client.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from typing import Any, Callable

from datafeed.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from datafeed.adapters.store.base import AbstractTTLStore

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "rate_limit:"


class StoreBackedRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping per-identity counters in an ``AbstractTTLStore``.

    The check and the increment are a single ``store.increment`` call with
    the limit as ceiling, so two concurrent requests at the boundary cannot
    both be admitted, and a denied request is never counted.
    """

    def __init__(
        self,
        store: AbstractTTLStore,
        *,
        limit: int,
        window_seconds: int,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: TTL store holding the counters.
            limit: Default maximum number of requests per window.
            window_seconds: Default window size in seconds.
            key_prefix: Namespace for counter keys inside the store.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        _validate_bounds(limit, window_seconds)

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._key_prefix = key_prefix
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def build_key(self, identity: str) -> str:
        """Derive the store key for identity without storing it verbatim."""
        digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:32]
        return f"{self._key_prefix}{digest}"

    def check_and_increment(
        self,
        identity: str,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> RateLimitResult:
        """Count one request for identity, or deny it without counting.

        Raises:
            ValueError: If identity is empty or the bounds are invalid.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")

        limit = self._limit if limit is None else limit
        window_seconds = self._window_seconds if window_seconds is None else window_seconds
        _validate_bounds(limit, window_seconds)

        state = self._store.increment(
            self.build_key(identity),
            ttl_seconds=window_seconds,
            ceiling=limit,
        )
        reset_at = int(math.ceil(state.expires_at))

        if state.incremented:
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=max(0, limit - state.count),
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        retry_after = max(0, int(math.ceil(state.expires_at - self._clock())))
        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    def stats(self) -> dict[str, Any]:
        return {
            "rate_limit_requests": self._limit,
            "rate_limit_window_seconds": self._window_seconds,
            "tracked_identities": self._store.count(self._key_prefix),
        }

    def cleanup(self) -> int:
        removed = self._store.purge_expired(self._key_prefix)
        logger.info("rate_limit.cleanup", extra={"removed": removed})
        return removed


def _validate_bounds(limit: int, window_seconds: int) -> None:
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if window_seconds < 1:
        raise ValueError("window_seconds must be >= 1")
