"""Shared fixtures for API tests."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from fulfillment.infrastructure.config import Settings
from fulfillment.main import create_app

API_KEY = "test-api-key"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/api.db",
        database_create_tables=True,
        api_key=API_KEY,
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client without authentication."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Get API key headers without a user identity."""
    return {"Authorization": f"Bearer {API_KEY}"}


@pytest.fixture
def customer_headers(auth_headers) -> dict[str, str]:
    """Headers for customer alice."""
    return {**auth_headers, "X-User-ID": "alice"}


@pytest.fixture
def admin_headers(auth_headers) -> dict[str, str]:
    """Headers for an admin operator."""
    return {**auth_headers, "X-User-ID": "ops-1", "X-User-Role": "admin"}


@pytest.fixture
def address() -> dict[str, str]:
    return {
        "line1": "1 Test Street",
        "city": "Testville",
        "postal_code": "12345",
        "country": "US",
    }


@pytest.fixture
def create_product(client: TestClient, admin_headers):
    """Factory creating a product through the admin API."""

    def _create(sku: str, name: str, price_cents: int, stock_quantity: int) -> dict:
        response = client.post(
            "/admin/products",
            json={
                "sku": sku,
                "name": name,
                "price_cents": price_cents,
                "stock_quantity": stock_quantity,
            },
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create
