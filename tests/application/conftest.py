"""Shared fixtures for application service tests.

Each test gets its own SQLite database file, so transactions, rollbacks
and concurrent sessions behave like they do against a real store.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from fulfillment.application import (
    CartService,
    InventoryService,
    OrderService,
    PaymentService,
    ReturnService,
)
from fulfillment.application.inventory_service import ProductDTO
from fulfillment.infrastructure.config import Settings
from fulfillment.infrastructure.database import Database


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a per-test SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        restock_on_cancel=True,
    )


@pytest_asyncio.fixture
async def db(settings: Settings) -> AsyncIterator[Database]:
    """Database with all tables created."""
    database = Database.from_settings(settings)
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
def inventory(db: Database) -> InventoryService:
    return InventoryService(db, request_id="test-request")


@pytest.fixture
def carts(db: Database) -> CartService:
    return CartService(db, request_id="test-request")


@pytest.fixture
def orders(db: Database, settings: Settings) -> OrderService:
    return OrderService(db, settings, request_id="test-request")


@pytest.fixture
def payments(db: Database) -> PaymentService:
    return PaymentService(db, request_id="test-request")


@pytest.fixture
def returns(db: Database) -> ReturnService:
    return ReturnService(db, request_id="test-request")


@pytest.fixture
def make_product(inventory: InventoryService):
    """Factory creating a product and returning its DTO."""
    counter = {"n": 0}

    async def _make(name: str, price_cents: int, stock_quantity: int) -> ProductDTO:
        counter["n"] += 1
        result = await inventory.create_product(
            sku=f"SKU-{counter['n']:03d}",
            name=name,
            price_cents=price_cents,
            stock_quantity=stock_quantity,
        )
        assert result.success, result.error
        return result.product

    return _make


@pytest_asyncio.fixture
async def stocked(make_product) -> dict[str, ProductDTO]:
    """Scenario catalogue: P1 at 10.00 with 5 in stock, P2 at 5.00 with 1."""
    return {
        "p1": await make_product("P1", 1000, 5),
        "p2": await make_product("P2", 500, 1),
    }


@pytest.fixture
def address() -> dict[str, str]:
    return {
        "line1": "1 Test Street",
        "city": "Testville",
        "postal_code": "12345",
        "country": "US",
    }


@pytest.fixture
def stock_of(inventory: InventoryService):
    """Read the current stock of a product."""

    async def _stock_of(product_id: str) -> int:
        result = await inventory.get_product(product_id)
        return result.product.stock_quantity

    return _stock_of
