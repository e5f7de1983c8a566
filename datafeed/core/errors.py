"""Application-level exception types.

Fetch failures form their own branch (``FetchError``) so the service can hand
them back as values and the HTTP layer can map each kind to a status code.
A rate limit denial is deliberately absent: it is an expected outcome carried
by ``RateLimitResult``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    endpoint: str
    status_code: int
    reason: str
    timeout: bool
    position: int
    row_index: int
    value_type: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class StoreUnavailableError(AppError):
    """The TTL store could not complete an operation (e.g. database locked)."""


class FetchError(AppError):
    """Base for every failure while obtaining the remote payload."""


class TransportError(FetchError):
    """DNS, connection or timeout failure before a response arrived.

    Retryable by the caller; the service never retries on its own.
    """

    @property
    def is_timeout(self) -> bool:
        return bool(self.details and self.details.get("timeout"))


@dataclass
class ApiError(FetchError):
    """The endpoint answered with a status other than 200."""

    status_code: int = 0


class ParseError(FetchError):
    """The response body is not valid JSON."""


class InvalidResponseError(FetchError):
    """Well-formed JSON with a shape the payload transformer cannot use."""
