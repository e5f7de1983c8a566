"""Cached access to the remote JSON resource.

This service is the single entry point for reading the remote data. It
handles:
- Serving the cached payload while it is fresh
- Fetching, validating and normalizing the remote JSON otherwise
- Replacing the cache entry after every successful fetch
- Cache introspection and invalidation for the operational routes/CLI

Fetch failures never escape as exceptions: ``get_data`` returns a
``FetchResult`` carrying either the payload or a typed ``FetchError``.
Concurrent misses may each fetch; the last successful writer wins.

Store calls block (SQLite waits on its lock), so the async methods run them
in the default executor. A store that cannot answer raises
``StoreUnavailableError``.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError

from datafeed.adapters.http.base import AbstractHttpClient
from datafeed.adapters.store.base import AbstractTTLStore
from datafeed.core.errors import (
    ApiError,
    FetchError,
    InvalidResponseError,
    ParseError,
    TransportError,
)
from datafeed.schemas.data import ApiPayload, CacheInfo, ConnectionCheck
from datafeed.utils.payload_transform import transform_payload

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {"Accept": "application/json"}


@dataclass(frozen=True)
class FetchResult:
    """Either a payload or the reason there is none.

    Attributes:
        payload: Normalized data when the call succeeded.
        error: Typed failure when it did not.
        from_cache: True when the payload was served without a remote call.
    """

    payload: ApiPayload | None = None
    error: FetchError | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class DataService:
    """TTL cache in front of one remote JSON endpoint.

    Attributes:
        endpoint: URL of the remote resource.
        cache_key: Store key holding the normalized payload.
        cache_ttl_seconds: Lifetime of a cached payload.
    """

    def __init__(
        self,
        http: AbstractHttpClient,
        store: AbstractTTLStore,
        *,
        endpoint: str,
        cache_key: str,
        cache_ttl_seconds: int = 3600,
        timeout_seconds: float = 30.0,
        check_timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the service with its collaborators.

        Args:
            http: Client used for the remote GET.
            store: TTL store holding the cached payload.
            endpoint: URL of the remote resource.
            cache_key: Store key for the payload.
            cache_ttl_seconds: Lifetime of a cached payload.
            timeout_seconds: Timeout for data fetches.
            check_timeout_seconds: Timeout for connectivity checks.
            clock: Time source used to stamp ``last_updated``.
        """
        self.endpoint = endpoint
        self.cache_key = cache_key
        self.cache_ttl_seconds = cache_ttl_seconds
        self._http = http
        self._store = store
        self._timeout = timeout_seconds
        self._check_timeout = check_timeout_seconds
        self._clock = clock

    async def get_data(self, force_refresh: bool = False) -> FetchResult:
        """Return the cached payload if fresh, otherwise fetch a new one.

        Args:
            force_refresh: Skip the cache lookup and always fetch.

        Returns:
            FetchResult with the payload or a TransportError, ApiError,
            ParseError or InvalidResponseError.

        Raises:
            StoreUnavailableError: If the cache store cannot be read or written.
        """
        if not force_refresh:
            cached = await _run_sync(self._read_cache)
            if cached is not None:
                return FetchResult(payload=cached, from_cache=True)

        try:
            payload = await self._fetch_remote()
        except FetchError as exc:
            logger.warning(
                "data.fetch_failed",
                extra={
                    "error_code": exc.code,
                    "error_message": exc.message,
                    "force_refresh": force_refresh,
                },
            )
            return FetchResult(error=exc)

        await _run_sync(
            self._store.set,
            self.cache_key,
            payload.model_dump(),
            ttl_seconds=self.cache_ttl_seconds,
        )
        logger.info(
            "data.fetched",
            extra={
                "total_records": payload.total_records,
                "force_refresh": force_refresh,
                "ttl_s": self.cache_ttl_seconds,
            },
        )
        return FetchResult(payload=payload)

    async def refresh(self) -> FetchResult:
        """Drop the cached payload and fetch a fresh one."""
        await _run_sync(self.clear_cache)
        return await self.get_data(force_refresh=True)

    def clear_cache(self) -> bool:
        """Delete the cached payload.

        Returns:
            True if a cached payload existed and was removed.
        """
        cleared = self._store.delete(self.cache_key)
        logger.info("cache.cleared", extra={"cache_key": self.cache_key, "cleared": cleared})
        return cleared

    def get_cache_info(self) -> CacheInfo:
        """Describe the cache without fetching or modifying anything."""
        return CacheInfo(
            is_cached=self._store.get(self.cache_key) is not None,
            cache_key=self.cache_key,
            cache_duration=self.cache_ttl_seconds,
        )

    async def check_connection(self) -> ConnectionCheck:
        """Check that the endpoint answers with usable JSON.

        Bypasses the cache entirely and uses the shorter check timeout.
        """
        start = time.perf_counter()
        try:
            response = await self._http.get(
                self.endpoint,
                headers=REQUEST_HEADERS,
                timeout=self._check_timeout,
            )
        except TransportError as exc:
            return ConnectionCheck(
                ok=False,
                elapsed_ms=_elapsed_ms(start),
                error=exc.message,
            )
        elapsed_ms = _elapsed_ms(start)

        if response.status_code != 200:
            return ConnectionCheck(
                ok=False,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
                error=f"API test failed with HTTP status {response.status_code}",
            )

        try:
            raw = _decode_json(response.body)
            payload = transform_payload(_require_container(raw), now=self._clock())
        except FetchError as exc:
            return ConnectionCheck(
                ok=False,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
                error=exc.message,
            )

        return ConnectionCheck(
            ok=True,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
            json_valid=True,
            row_count=payload.total_records,
            sample_row=payload.rows[0] if payload.rows else None,
        )

    def _read_cache(self) -> ApiPayload | None:
        raw = self._store.get(self.cache_key)
        if raw is None:
            logger.debug("cache.miss", extra={"cache_key": self.cache_key})
            return None

        try:
            payload = ApiPayload.model_validate(raw)
        except ValidationError:
            # Unreadable entries are treated as a miss and overwritten on fetch.
            logger.warning("cache.invalid_entry", extra={"cache_key": self.cache_key})
            return None

        logger.debug("cache.hit", extra={"cache_key": self.cache_key})
        return payload

    async def _fetch_remote(self) -> ApiPayload:
        response = await self._http.get(
            self.endpoint,
            headers=REQUEST_HEADERS,
            timeout=self._timeout,
        )

        if response.status_code != 200:
            raise ApiError(
                code="api_error",
                message=f"API request failed with status {response.status_code}",
                details={"endpoint": self.endpoint, "status_code": response.status_code},
                status_code=response.status_code,
            )

        raw = _require_container(_decode_json(response.body))
        return transform_payload(raw, now=self._clock())


def _decode_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ParseError(
            code="json_error",
            message="Failed to parse API response as JSON",
            details={"reason": str(exc)},
        ) from exc


def _require_container(raw: Any) -> dict[str, Any] | list[Any]:
    if not isinstance(raw, (dict, list)):
        raise InvalidResponseError(
            code="invalid_response",
            message="API response is not a JSON object or array",
            details={"value_type": type(raw).__name__},
        )
    return raw


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def _run_sync(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking store call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
