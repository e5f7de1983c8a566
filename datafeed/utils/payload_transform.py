"""Normalization of the remote JSON into ``ApiPayload``.

The remote API nests its table as ``{title, data: {headers, rows: {id: row}}}``
with rows keyed by arbitrary ids. Consumers get a flat payload with an
ordered row list instead, so they never depend on that quirk.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from datafeed.core.errors import InvalidResponseError
from datafeed.schemas.data import ApiPayload

DEFAULT_TITLE = "API Data"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(epoch_seconds: float) -> str:
    """Render UNIX time as the canonical UTC ``YYYY-MM-DD HH:MM:SS`` string."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)


def _rows_as_list(rows: Any) -> list[Any]:
    # Mapping keys are ids with no meaning; keep values in insertion order.
    if isinstance(rows, Mapping):
        return list(rows.values())
    if isinstance(rows, list):
        return list(rows)
    return []


def _headers_as_list(headers: Any) -> list[str]:
    if not isinstance(headers, list):
        return []
    return [str(header) for header in headers]


def transform_payload(raw: Any, *, now: float) -> ApiPayload:
    """Collapse a raw API response into the flat payload shape.

    Args:
        raw: Parsed JSON (object or array).
        now: Fetch completion time as UNIX seconds.

    Returns:
        ApiPayload with derived ``total_records`` and ``last_updated``.

    Raises:
        InvalidResponseError: If any row is not a JSON object.

    Examples:
        >>> transform_payload(
        ...     {"title": "T", "data": {"headers": ["a"], "rows": {"5": {"a": 1}}}},
        ...     now=0,
        ... ).rows
        [{'a': 1}]
    """
    title: Any = DEFAULT_TITLE
    headers: list[str] = []

    if isinstance(raw, Mapping) and isinstance(raw.get("data"), Mapping):
        data = raw["data"]
        rows = _rows_as_list(data.get("rows"))
        headers = _headers_as_list(data.get("headers"))
        title = raw.get("title", DEFAULT_TITLE)
    elif isinstance(raw, list):
        rows = list(raw)
    elif isinstance(raw, Mapping) and "rows" in raw:
        # Already flat (e.g. a previously transformed payload).
        rows = _rows_as_list(raw["rows"])
        headers = _headers_as_list(raw.get("headers"))
        title = raw.get("title", DEFAULT_TITLE)
    else:
        rows = []

    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise InvalidResponseError(
                code="invalid_response",
                message="API response rows must be JSON objects",
                details={"row_index": index, "value_type": type(row).__name__},
            )

    return ApiPayload(
        title=DEFAULT_TITLE if title is None else str(title),
        headers=headers,
        rows=[dict(row) for row in rows],
        total_records=len(rows),
        last_updated=format_timestamp(now),
    )
