from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class HttpResponse:
    """Status code and raw body of a completed request."""

    status_code: int
    body: bytes


class AbstractHttpClient(ABC):
    """Interface for clients performing the remote GET."""

    @abstractmethod
    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float,
    ) -> HttpResponse:
        """Fetch url and return whatever the server answered.

        Non-2xx statuses are returned, not raised; interpreting them is the
        caller's job.

        Args:
            url: Absolute URL to fetch.
            headers: Extra request headers.
            timeout: Overall timeout in seconds.

        Returns:
            HttpResponse with status code and body bytes.

        Raises:
            TransportError: If no response could be obtained (DNS, connect,
                timeout, protocol failure).
        """
        ...
