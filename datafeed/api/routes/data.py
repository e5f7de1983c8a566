from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query

from datafeed.core.auth import validate_api_key, verify_api_key
from datafeed.core.dependencies import get_data_service
from datafeed.core.rate_limit import enforce_rate_limit
from datafeed.schemas.data import ApiPayload
from datafeed.services.data_service import DataService, FetchResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Data"])


def _unwrap(result: FetchResult) -> ApiPayload:
    # The one place a fetch failure turns back into an exception; the global
    # AppError handler maps it to 502/504.
    if result.error is not None:
        raise result.error
    return result.payload  # type: ignore[return-value]


@router.get(
    "/data",
    response_model=ApiPayload,
    dependencies=[Depends(enforce_rate_limit)],
)
async def read_data(
    service: Annotated[DataService, Depends(get_data_service)],
    force_refresh: bool = Query(
        False,
        description="Bypass the cache and fetch from the remote API (requires X-API-Key).",
    ),
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> ApiPayload:
    """Return the remote data, from cache when fresh.

    Anyone may read; only key holders may force a refresh.

    Raises:
        AuthenticationAppError: 403 when force_refresh is requested without a valid key.
        FetchError: 502/504 when the remote API cannot be used.
    """
    if force_refresh:
        validate_api_key(x_api_key)

    result = await service.get_data(force_refresh=force_refresh)
    payload = _unwrap(result)
    logger.info(
        "data.served",
        extra={
            "from_cache": result.from_cache,
            "force_refresh": force_refresh,
            "rows_count": payload.total_records,
        },
    )
    return payload


@router.post(
    "/data/refresh",
    response_model=ApiPayload,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def refresh_data(
    service: Annotated[DataService, Depends(get_data_service)],
) -> ApiPayload:
    """Clear the cache and fetch fresh data from the remote API."""
    return _unwrap(await service.refresh())
