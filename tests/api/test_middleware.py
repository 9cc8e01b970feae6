"""Tests for API middleware and the health endpoints."""

from fastapi.testclient import TestClient

from fulfillment.domain.exceptions import StoreUnavailableError


class TestHealth:
    """Tests for health endpoints (no auth required)."""

    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "fulfillment-api"
        assert "version" in data

    def test_readiness_pings_database(self, client: TestClient) -> None:
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "database": "ok"}


class TestApiKeyMiddleware:
    """Tests for API key authentication."""

    def test_missing_authorization_header(self, client: TestClient) -> None:
        response = client.get("/cart", headers={"X-User-ID": "alice"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_scheme(self, client: TestClient) -> None:
        response = client.get("/cart", headers={"Authorization": "Basic abc", "X-User-ID": "alice"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_invalid_api_key(self, client: TestClient) -> None:
        response = client.get("/cart", headers={"Authorization": "Bearer wrong", "X-User-ID": "alice"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_API_KEY"


class TestIdentity:
    """Tests for identity header resolution."""

    def test_missing_user_id(self, client: TestClient, auth_headers) -> None:
        response = client.get("/cart", headers=auth_headers)
        assert response.status_code == 401
        body = response.json()
        assert body["error_code"] == "UNAUTHORIZED"
        assert body["request_id"]

    def test_admin_routes_require_admin_role(self, client: TestClient, customer_headers) -> None:
        response = client.get("/admin/orders", headers=customer_headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"


class TestRequestId:
    """Tests for request ID correlation."""

    def test_request_id_is_echoed(self, client: TestClient, customer_headers) -> None:
        response = client.get("/cart", headers={**customer_headers, "X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.headers["X-Request-ID"]


class TestStoreUnavailable:
    """Store outages surface as a retryable 503."""

    def test_store_outage_maps_to_503(self, client: TestClient, customer_headers, monkeypatch) -> None:
        async def unavailable(self, user_id):
            raise StoreUnavailableError()

        monkeypatch.setattr("fulfillment.application.cart_service.CartService.get_cart", unavailable)

        response = client.get("/cart", headers={**customer_headers, "X-Request-ID": "req-503"})

        assert response.status_code == 503
        body = response.json()
        assert body["error_code"] == "STORE_UNAVAILABLE"
        assert body["request_id"] == "req-503"
