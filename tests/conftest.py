"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``datafeed.core.config``
so the global settings object is built for tests: in-memory store, known API
keys, a fake endpoint and no .env loading.
"""

import json
import os
from typing import Any, Mapping

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("API_ENDPOINT", "https://api.example.test/v1/challenge/")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from datafeed.adapters.http.base import AbstractHttpClient, HttpResponse
from datafeed.adapters.store.in_memory import InMemoryTTLStore
from datafeed.core.app_factory import create_app
from datafeed.core.config import settings
from datafeed.core.dependencies import ServiceContainer, build_container

# 2023-11-14 22:13:20 UTC
START_TIME = 1_700_000_000.0


class FakeClock:
    """Deterministic clock used to test expiration logic."""

    def __init__(self, start: float = START_TIME) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class StubHttpClient(AbstractHttpClient):
    """Scripted remote endpoint recording every call.

    Set ``response`` (HttpResponse) or ``error`` (exception to raise).
    """

    def __init__(self) -> None:
        self.response: HttpResponse = json_response({"title": "Empty", "data": {"headers": [], "rows": {}}})
        self.error: Exception | None = None
        self.calls: list[dict[str, Any]] = []

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float,
    ) -> HttpResponse:
        self.calls.append({"url": url, "headers": dict(headers or {}), "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def json_response(payload: Any, status_code: int = 200) -> HttpResponse:
    return HttpResponse(status_code=status_code, body=json.dumps(payload).encode())


SAMPLE_API_RESPONSE = {
    "title": "Sample Table",
    "data": {
        "headers": ["ID", "First Name", "Last Name", "Email", "Date"],
        "rows": {
            "1": {"id": 66, "fname": "Chris", "lname": "Test", "email": "chris@example.com", "date": 1700000000},
            "2": {"id": 12, "fname": "Bob", "lname": "Test", "email": "bob@example.com", "date": 1700000500},
            "3": {"id": 81, "fname": "Bill", "lname": "Test", "email": "bill@example.com", "date": 1700001000},
        },
    },
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def http_stub() -> StubHttpClient:
    stub = StubHttpClient()
    stub.response = json_response(SAMPLE_API_RESPONSE)
    return stub


@pytest.fixture
def store(clock: FakeClock) -> InMemoryTTLStore:
    return InMemoryTTLStore(clock=clock)


@pytest.fixture
def container(store: InMemoryTTLStore, http_stub: StubHttpClient, clock: FakeClock) -> ServiceContainer:
    return build_container(settings, store=store, http=http_stub, clock=clock)


@pytest.fixture
def client(container: ServiceContainer) -> TestClient:
    """Test client over an app wired to the fake store, clock and endpoint."""
    return TestClient(create_app(container))


@pytest.fixture
def api_key_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}
