"""HTTP adapter layer - abstracts the remote fetch behind a tiny interface."""

from datafeed.adapters.http.base import AbstractHttpClient, HttpResponse
from datafeed.adapters.http.httpx_client import HttpxClient

__all__ = [
    "AbstractHttpClient",
    "HttpResponse",
    "HttpxClient",
]
