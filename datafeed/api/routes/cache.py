from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from datafeed import __version__
from datafeed.adapters.rate_limit.base import AbstractRateLimiter
from datafeed.core.auth import verify_api_key
from datafeed.core.config import settings
from datafeed.core.dependencies import get_data_service, get_rate_limiter
from datafeed.schemas.data import CacheInfo, ClearCacheResponse
from datafeed.schemas.status import RateLimitStats, StatusResponse
from datafeed.services.data_service import DataService

router = APIRouter(tags=["Cache"], dependencies=[Depends(verify_api_key)])


@router.get("/cache", response_model=CacheInfo)
def cache_info(
    service: Annotated[DataService, Depends(get_data_service)],
) -> CacheInfo:
    """Report whether a payload is cached, under which key and for how long."""
    return service.get_cache_info()


@router.delete("/cache", response_model=ClearCacheResponse)
def clear_cache(
    service: Annotated[DataService, Depends(get_data_service)],
) -> ClearCacheResponse:
    """Drop the cached payload; the next read fetches from the remote API."""
    return ClearCacheResponse(cleared=service.clear_cache())


@router.get("/status", response_model=StatusResponse)
def service_status(
    service: Annotated[DataService, Depends(get_data_service)],
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
) -> StatusResponse:
    """Cache state, rate limit configuration and version in one response."""
    return StatusResponse(
        version=__version__,
        cache=service.get_cache_info(),
        rate_limit=RateLimitStats(
            rate_limit_enabled=settings.app.rate_limit_enabled,
            **limiter.stats(),
        ),
        security_headers_enabled=settings.app.security_headers_enabled,
    )
