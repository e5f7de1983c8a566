"""Pydantic schemas for the cached payload and cache introspection."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ApiPayload(BaseModel):
    """Remote data normalized into one stable shape.

    ``total_records`` and ``last_updated`` are computed locally at fetch time;
    values sent by the remote API for these fields are ignored.
    """

    title: str = Field(..., description="Dataset title ('API Data' when the remote omits it).")
    headers: List[str] = Field(
        default_factory=list,
        description="Column headers in display order.",
    )
    rows: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Records in the order the remote API listed them.",
    )
    total_records: int = Field(..., description="Number of rows.", ge=0)
    last_updated: str = Field(
        ...,
        description="Fetch completion time, UTC, formatted 'YYYY-MM-DD HH:MM:SS'.",
    )


class CacheInfo(BaseModel):
    """Read-only view of the cache state."""

    is_cached: bool = Field(..., description="Whether a fresh payload is cached.")
    cache_key: str = Field(..., description="Store key of the cached payload.")
    cache_duration: int = Field(..., description="Cache lifetime in seconds.")


class ClearCacheResponse(BaseModel):
    cleared: bool = Field(..., description="True if a cached payload was removed.")


class ConnectionCheck(BaseModel):
    """Outcome of a connectivity check against the remote endpoint."""

    ok: bool = Field(..., description="Status 200 and a JSON object/array body.")
    status_code: int | None = Field(
        None, description="HTTP status, or None when the request failed in transport."
    )
    elapsed_ms: float = Field(..., description="Round-trip time in milliseconds.")
    json_valid: bool = Field(False, description="Whether the body parsed as a JSON object/array.")
    row_count: int = Field(0, description="Rows found after normalization.")
    sample_row: Dict[str, Any] | None = Field(None, description="First row, if any.")
    error: str | None = Field(None, description="Failure message when not ok.")
