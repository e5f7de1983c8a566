"""API key checks for privileged operations.

Reading the cached data is public. Forcing a refresh, clearing the cache and
reading operational status require a key from the configured list, sent in
the ``X-API-Key`` header. Setting ``APP_API_KEY_REQUIRED=false`` opens these
routes (local development only).
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from datafeed.core.config import settings
from datafeed.core.errors import AuthenticationAppError
from datafeed.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _matches_any(provided_key: str, valid_keys: set[str]) -> bool:
    provided = provided_key.encode("utf-8")
    return any(hmac.compare_digest(provided, key.encode("utf-8")) for key in valid_keys)


def validate_api_key(provided_key: str | None) -> None:
    """Check provided_key against the configured keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is missing or unknown, or if
            authentication is required but no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)
    if not valid_keys:
        logger.error("auth.failed", extra={"reason": "api_keys_not_configured"})
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key or not _matches_any(provided_key, valid_keys):
        logger.warning(
            "auth.failed",
            extra={
                "reason": "invalid_api_key" if provided_key else "missing_api_key",
                "api_key_hash": hash_identifier(provided_key) if provided_key else None,
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding privileged routes.

    Usage:
        @router.delete("/cache", dependencies=[Depends(verify_api_key)])

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc
