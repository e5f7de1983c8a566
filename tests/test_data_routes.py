"""Tests for the data, cache and status routes.

Configuration:
- conftest.py sets the environment before any datafeed import
- Apps are built around a fake clock and stub endpoint, with the in-memory
  store unless a test exercises sqlite locking
- TestClient requests come from a non-IP host, so their identity is 127.0.0.1
"""

import inspect
import sqlite3
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from datafeed.adapters.rate_limit.store_backed import StoreBackedRateLimiter
from datafeed.adapters.store.sqlite import SqliteTTLStore
from datafeed.core.app_factory import create_app
from datafeed.core.config import settings
from datafeed.core.dependencies import ServiceContainer, build_container
from datafeed.core.errors import TransportError
from datafeed.core.rate_limit import enforce_rate_limit

from conftest import FakeClock, StubHttpClient, json_response


@pytest.fixture
def tight_client(container: ServiceContainer, clock: FakeClock) -> TestClient:
    """Client whose limiter allows only two requests per minute."""
    limited = ServiceContainer(
        store=container.store,
        rate_limiter=StoreBackedRateLimiter(container.store, limit=2, window_seconds=60, clock=clock),
        data_service=container.data_service,
    )
    return TestClient(create_app(limited))


class TestReadData:
    """GET /v1/data."""

    def test_public_read_returns_flat_payload(self, client: TestClient) -> None:
        response = client.get("/v1/data")

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Sample Table"
        assert data["total_records"] == 3
        assert [row["id"] for row in data["rows"]] == [66, 12, 81]
        assert data["last_updated"] == "2023-11-14 22:13:20"

    def test_second_read_is_served_from_cache(
        self, client: TestClient, http_stub: StubHttpClient
    ) -> None:
        first = client.get("/v1/data").json()
        second = client.get("/v1/data").json()

        assert first == second
        assert len(http_stub.calls) == 1

    def test_force_refresh_requires_api_key(
        self, client: TestClient, http_stub: StubHttpClient
    ) -> None:
        response = client.get("/v1/data", params={"force_refresh": "true"})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "invalid_api_key"
        assert http_stub.calls == []

    def test_force_refresh_with_key_bypasses_cache(
        self,
        client: TestClient,
        http_stub: StubHttpClient,
        api_key_headers: dict[str, str],
    ) -> None:
        client.get("/v1/data")

        response = client.get(
            "/v1/data", params={"force_refresh": "true"}, headers=api_key_headers
        )

        assert response.status_code == 200
        assert len(http_stub.calls) == 2

    def test_timeout_maps_to_504(self, client: TestClient, http_stub: StubHttpClient) -> None:
        http_stub.error = TransportError(
            code="transport_timeout",
            message="Request to remote API timed out after 30s",
            details={"timeout": True},
        )

        response = client.get("/v1/data")

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "transport_timeout"

    def test_upstream_failure_maps_to_502(
        self, client: TestClient, http_stub: StubHttpClient
    ) -> None:
        http_stub.response = json_response({"error": "boom"}, status_code=500)

        response = client.get("/v1/data")

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "api_error"
        assert error["details"]["status_code"] == 500

    def test_security_headers_present(self, client: TestClient) -> None:
        response = client.get("/v1/data")

        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_security_headers_can_be_disabled(self, client: TestClient) -> None:
        with patch("datafeed.core.middleware.settings") as mock_settings:
            mock_settings.app.security_headers_enabled = False
            mock_settings.log.request_id_header = "X-Request-ID"
            response = client.get("/health")

        assert "X-Frame-Options" not in response.headers


class TestRateLimiting:
    """Per-IP fixed window on the data routes."""

    def test_exceeding_limit_returns_429_with_headers(
        self, tight_client: TestClient, clock: FakeClock
    ) -> None:
        assert tight_client.get("/v1/data").status_code == 200
        assert tight_client.get("/v1/data").status_code == 200

        response = tight_client.get("/v1/data")

        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit exceeded. Please try again later."
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == str(int(clock() + 60))

    def test_window_reset_admits_again(self, tight_client: TestClient, clock: FakeClock) -> None:
        for _ in range(2):
            tight_client.get("/v1/data")
        assert tight_client.get("/v1/data").status_code == 429

        clock.advance(60)

        assert tight_client.get("/v1/data").status_code == 200

    def test_forwarded_clients_have_separate_budgets(self, tight_client: TestClient) -> None:
        first = {"X-Forwarded-For": "8.8.8.8"}
        second = {"X-Forwarded-For": "1.1.1.1"}

        for _ in range(2):
            assert tight_client.get("/v1/data", headers=first).status_code == 200

        assert tight_client.get("/v1/data", headers=first).status_code == 429
        assert tight_client.get("/v1/data", headers=second).status_code == 200

    def test_private_forwarded_address_shares_fallback_identity(
        self, tight_client: TestClient
    ) -> None:
        tight_client.get("/v1/data", headers={"X-Forwarded-For": "10.0.0.1"})
        tight_client.get("/v1/data", headers={"X-Forwarded-For": "192.168.1.1"})

        assert tight_client.get("/v1/data").status_code == 429

    def test_health_is_not_rate_limited(self, tight_client: TestClient) -> None:
        for _ in range(5):
            assert tight_client.get("/health").status_code == 200

    def test_disabled_rate_limiting_admits_everything(self, tight_client: TestClient) -> None:
        with patch("datafeed.core.rate_limit.settings") as mock_settings:
            mock_settings.app.rate_limit_enabled = False
            statuses = [tight_client.get("/v1/data").status_code for _ in range(5)]

        assert statuses == [200] * 5


class TestRefreshRoute:
    """POST /v1/data/refresh."""

    def test_refresh_requires_key(self, client: TestClient) -> None:
        response = client.post("/v1/data/refresh")

        assert response.status_code == 403
        assert response.json()["detail"] == "Invalid or missing API key"

    def test_refresh_refetches(
        self,
        client: TestClient,
        http_stub: StubHttpClient,
        api_key_headers: dict[str, str],
    ) -> None:
        client.get("/v1/data")
        http_stub.response = json_response([{"id": 1}, {"id": 2}])

        response = client.post("/v1/data/refresh", headers=api_key_headers)

        assert response.status_code == 200
        assert response.json()["total_records"] == 2
        assert client.get("/v1/data").json()["total_records"] == 2


class TestCacheRoutes:
    """Key-protected cache management and status."""

    @pytest.mark.parametrize(
        "method, path",
        [("get", "/v1/cache"), ("delete", "/v1/cache"), ("get", "/v1/status")],
    )
    def test_requires_api_key(self, client: TestClient, method: str, path: str) -> None:
        response = client.request(method.upper(), path, headers={"X-API-Key": "wrong"})

        assert response.status_code == 403

    def test_cache_info_reflects_state(
        self, client: TestClient, api_key_headers: dict[str, str], clock: FakeClock
    ) -> None:
        before = client.get("/v1/cache", headers=api_key_headers).json()
        client.get("/v1/data")
        after = client.get("/v1/cache", headers=api_key_headers).json()
        clock.advance(3600)
        expired = client.get("/v1/cache", headers=api_key_headers).json()

        assert before == {
            "is_cached": False,
            "cache_key": "datafeed_api_data",
            "cache_duration": 3600,
        }
        assert after["is_cached"] is True
        assert expired["is_cached"] is False

    def test_clear_cache(
        self,
        client: TestClient,
        http_stub: StubHttpClient,
        api_key_headers: dict[str, str],
    ) -> None:
        client.get("/v1/data")

        first = client.delete("/v1/cache", headers=api_key_headers)
        second = client.delete("/v1/cache", headers=api_key_headers)
        client.get("/v1/data")

        assert first.json() == {"cleared": True}
        assert second.json() == {"cleared": False}
        assert len(http_stub.calls) == 2

    def test_status(self, client: TestClient, api_key_headers: dict[str, str]) -> None:
        client.get("/v1/data")

        data = client.get("/v1/status", headers=api_key_headers).json()

        assert data["version"] == "0.1.0"
        assert data["cache"]["is_cached"] is True
        assert data["rate_limit"] == {
            "rate_limit_enabled": True,
            "rate_limit_requests": 60,
            "rate_limit_window_seconds": 3600,
            "tracked_identities": 1,
        }
        assert data["security_headers_enabled"] is True


class TestStoreUnavailable:
    """A locked sqlite store maps to 503 instead of a crash."""

    @pytest.fixture
    def locked_client(self, tmp_path, http_stub: StubHttpClient, clock: FakeClock):
        path = tmp_path / "routes.db"
        store = SqliteTTLStore(path, clock=clock, busy_timeout_seconds=0.05)
        container = build_container(settings, store=store, http=http_stub, clock=clock)
        holder = sqlite3.connect(path, isolation_level=None)
        holder.execute("BEGIN IMMEDIATE")
        yield TestClient(create_app(container))
        holder.execute("ROLLBACK")
        holder.close()

    def test_rate_limited_read_returns_503(
        self, locked_client: TestClient, http_stub: StubHttpClient
    ) -> None:
        response = locked_client.get("/v1/data")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"
        assert http_stub.calls == []

    def test_clear_cache_returns_503(
        self, locked_client: TestClient, api_key_headers: dict[str, str]
    ) -> None:
        response = locked_client.delete("/v1/cache", headers=api_key_headers)

        assert response.status_code == 503

    def test_rate_limit_dependency_runs_in_threadpool(self) -> None:
        assert not inspect.iscoroutinefunction(enforce_rate_limit)


def test_health(client: TestClient, http_stub: StubHttpClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert http_stub.calls == []


def test_openapi_marks_security(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    assert "ApiKeyAuth" in schema["components"]["securitySchemes"]
    assert schema["paths"]["/health"]["get"]["security"] == []
    assert schema["paths"]["/v1/data"]["get"]["security"] == [{}, {"ApiKeyAuth": []}]
