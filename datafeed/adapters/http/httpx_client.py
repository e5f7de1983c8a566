"""httpx-based HTTP client adapter."""

from __future__ import annotations

from typing import Mapping

import httpx

from datafeed.adapters.http.base import AbstractHttpClient, HttpResponse
from datafeed.core.errors import TransportError


class HttpxClient(AbstractHttpClient):
    """Client issuing GET requests with ``httpx.AsyncClient``.

    A client is opened per request, which fits the one-call-per-request
    execution model and keeps no connections alive between requests.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        follow_redirects: bool = True,
    ) -> None:
        """Initialize the adapter.

        Args:
            transport: Optional custom transport (e.g. ``httpx.MockTransport``).
            follow_redirects: Whether 3xx responses are followed.
        """
        self._transport = transport
        self._follow_redirects = follow_redirects

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float,
    ) -> HttpResponse:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=timeout,
                follow_redirects=self._follow_redirects,
            ) as client:
                response = await client.get(url, headers=dict(headers or {}))
        except httpx.TimeoutException as exc:
            raise TransportError(
                code="transport_timeout",
                message=f"Request to remote API timed out after {timeout:g}s",
                details={"endpoint": url, "reason": str(exc) or type(exc).__name__, "timeout": True},
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                code="transport_error",
                message=f"Request to remote API failed: {type(exc).__name__}",
                details={"endpoint": url, "reason": str(exc) or type(exc).__name__, "timeout": False},
            ) from exc

        return HttpResponse(status_code=response.status_code, body=response.content)
