"""Pydantic schemas for operational status responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from datafeed.schemas.data import CacheInfo


class RateLimitStats(BaseModel):
    rate_limit_enabled: bool = Field(..., description="Whether data routes are throttled.")
    rate_limit_requests: int = Field(..., description="Requests allowed per window.")
    rate_limit_window_seconds: int = Field(..., description="Window length in seconds.")
    tracked_identities: int = Field(..., description="Clients with a live counter.")


class StatusResponse(BaseModel):
    version: str
    cache: CacheInfo
    rate_limit: RateLimitStats
    security_headers_enabled: bool
