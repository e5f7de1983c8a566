"""TTL store interface.

Every operation must be atomic at the key level. Callers never lock around
sequences of calls; ``increment`` exists so a read-check-write on a counter
can happen as one step.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CounterState:
    """Outcome of an ``increment`` call.

    Attributes:
        count: Counter value after the call.
        expires_at: UNIX epoch seconds when the counter window ends.
        incremented: False when the ceiling was already reached and the
            counter was left untouched.
    """

    count: int
    expires_at: float
    incremented: bool


class AbstractTTLStore(ABC):
    """Key-value store with per-key expiry.

    An entry is live while ``now < expires_at``; expired entries behave as
    absent even if the backend has not physically removed them yet.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the live value for key, or None."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any, *, ttl_seconds: float) -> None:
        """Store value under key, replacing any previous entry."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True only if a live entry was removed."""
        raise NotImplementedError

    @abstractmethod
    def expires_at(self, key: str) -> float | None:
        """Return the expiry of a live entry, or None."""
        raise NotImplementedError

    @abstractmethod
    def increment(
        self,
        key: str,
        *,
        ttl_seconds: float,
        ceiling: int | None = None,
    ) -> CounterState:
        """Atomically bump an integer counter.

        A missing or expired counter starts at 1 with ``ttl_seconds`` to live.
        An existing counter keeps its expiry. When ``ceiling`` is given and
        the counter already reached it, nothing is written.

        Args:
            key: Counter key.
            ttl_seconds: Lifetime of a newly created counter.
            ceiling: Optional upper bound for the counter value.

        Returns:
            CounterState describing the counter after the call.
        """
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self, prefix: str = "") -> int:
        """Physically drop expired entries whose key starts with prefix."""
        raise NotImplementedError

    @abstractmethod
    def count(self, prefix: str = "") -> int:
        """Number of live entries whose key starts with prefix."""
        raise NotImplementedError
