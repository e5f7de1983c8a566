"""Construction of the service graph.

All stateful collaborators (store, limiter, data service) are built once by
``build_container`` and passed around explicitly. The HTTP app keeps its
container on ``app.state``; the CLI builds its own from the same settings.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from datafeed.adapters.http.base import AbstractHttpClient
from datafeed.adapters.http.httpx_client import HttpxClient
from datafeed.adapters.rate_limit.base import AbstractRateLimiter
from datafeed.adapters.rate_limit.store_backed import StoreBackedRateLimiter
from datafeed.adapters.store.base import AbstractTTLStore
from datafeed.adapters.store.in_memory import InMemoryTTLStore
from datafeed.adapters.store.sqlite import SqliteTTLStore
from datafeed.core.config import Settings, settings as default_settings
from datafeed.core.errors import ValidationAppError
from datafeed.services.data_service import DataService


@dataclass
class ServiceContainer:
    store: AbstractTTLStore
    rate_limiter: AbstractRateLimiter
    data_service: DataService


def create_store(
    cfg: Settings,
    *,
    clock: Callable[[], float] = time.time,
) -> AbstractTTLStore:
    """Instantiate the configured TTL store backend.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = cfg.store.backend.lower()

    if backend == "memory":
        return InMemoryTTLStore(clock=clock)
    if backend == "sqlite":
        return SqliteTTLStore(cfg.store.sqlite_path, clock=clock)

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, sqlite",
    )


def build_container(
    cfg: Settings | None = None,
    *,
    store: AbstractTTLStore | None = None,
    http: AbstractHttpClient | None = None,
    clock: Callable[[], float] = time.time,
) -> ServiceContainer:
    """Wire store, rate limiter and data service from settings.

    Args:
        cfg: Settings to build from; the global settings when omitted.
        store: Pre-built store (tests); built from cfg when omitted.
        http: Pre-built HTTP client (tests); httpx when omitted.
        clock: Time source shared by every component.
    """
    cfg = cfg or default_settings
    store = store or create_store(cfg, clock=clock)

    rate_limiter = StoreBackedRateLimiter(
        store,
        limit=cfg.app.rate_limit_requests,
        window_seconds=cfg.app.rate_limit_window_seconds,
        clock=clock,
    )
    data_service = DataService(
        http or HttpxClient(),
        store,
        endpoint=cfg.api.endpoint,
        cache_key=cfg.api.cache_key,
        cache_ttl_seconds=cfg.api.cache_ttl_seconds,
        timeout_seconds=cfg.api.timeout_seconds,
        check_timeout_seconds=cfg.api.check_timeout_seconds,
        clock=clock,
    )
    return ServiceContainer(store=store, rate_limiter=rate_limiter, data_service=data_service)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_data_service(request: Request) -> DataService:
    return get_container(request).data_service


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    return get_container(request).rate_limiter
