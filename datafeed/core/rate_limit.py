"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Rate limiting strategy:
- Fixed window per client IP (see ``datafeed.core.client_ip``).
- The counter lives in the shared TTL store, so with the sqlite backend all
  workers enforce one budget.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from datafeed.adapters.rate_limit.base import AbstractRateLimiter
from datafeed.core.client_ip import resolve_client_ip
from datafeed.core.config import settings
from datafeed.core.dependencies import get_rate_limiter
from datafeed.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def enforce_rate_limit(
    request: Request,
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
) -> None:
    """FastAPI dependency enforcing rate limits.

    Counts one request against the caller's budget. If the budget for the
    current window is spent, raises HTTP 429 without counting the request.
    Declared sync so FastAPI runs the blocking store call in its threadpool.

    Raises:
        HTTPException: 429 Too Many Requests when rate limit is exceeded.
        StoreUnavailableError: If the counter store cannot be reached (503).
    """

    if not settings.app.rate_limit_enabled:
        return

    remote_addr = request.client.host if request.client else None
    identity = resolve_client_ip(request.headers, remote_addr)
    identity_hash = hash_identifier(identity)

    result = limiter.consume(identity)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "identity_hash": identity_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "identity_hash": identity_hash,
            "limit": result.limit,
            "retry_after_s": retry_after,
            "route": request.url.path,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Please try again later.",
        headers=headers or None,
    )
