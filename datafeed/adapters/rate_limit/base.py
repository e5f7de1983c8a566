"""Rate limiter interfaces.

The API depends on this abstraction rather than a concrete limiter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    ``allowed=False`` is the denial outcome (HTTP 429). It is a normal value,
    never an exception, so callers can tell it apart from fetch failures.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check_and_increment(
        self,
        identity: str,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
    ) -> RateLimitResult:
        """Count one request for identity unless its budget is spent.

        Args:
            identity: Client identity (normalized IP address).
            limit: Max requests per window; limiter default when omitted.
            window_seconds: Window length; limiter default when omitted.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    def consume(self, identity: str) -> RateLimitResult:
        """Apply the configured default limit to identity."""
        return self.check_and_increment(identity)

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Return limiter settings and usage without exposing identities."""
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Drop expired counters. Returns how many were removed."""
        raise NotImplementedError
