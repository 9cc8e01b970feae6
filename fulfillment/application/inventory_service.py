"""Inventory application service.

Provides:
- ``InventoryStore``: stock mutations that run inside a caller's transaction
- ``InventoryService``: product administration (create, update, lookup)
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.application.results import ServiceResult
from fulfillment.domain.exceptions import (
    DomainError,
    InsufficientStockError,
    NotFoundError,
    ValidationFailedError,
)
from fulfillment.domain.value_objects import Money
from fulfillment.infrastructure.database import Database
from fulfillment.infrastructure.models import ProductModel
from fulfillment.infrastructure.repositories import ProductRepository

logger = structlog.get_logger()


# ============================================================================
# Product Data Transfer Objects
# ============================================================================


@dataclass
class ProductDTO:
    """Product data transfer object."""

    id: str
    sku: str
    name: str
    price_cents: int
    stock_quantity: int
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, product: ProductModel) -> "ProductDTO":
        return cls(
            id=product.id,
            sku=product.sku,
            name=product.name,
            price_cents=product.price_cents,
            stock_quantity=product.stock_quantity,
            description=product.description,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


@dataclass
class ProductResult(ServiceResult):
    """Result of a product operation."""

    product: ProductDTO | None = None


# ============================================================================
# Inventory Store
# ============================================================================


class InventoryStore:
    """Stock counter mutations bound to an open transaction.

    Nothing here commits: a failed decrement raises, and the caller's
    transaction rolls back every earlier step with it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.products = ProductRepository(session)

    async def decrement_stock(
        self,
        product_id: str,
        quantity: int,
        product_name: str | None = None,
    ) -> None:
        """Remove stock with a single conditional update.

        Raises:
            InsufficientStockError: If fewer than ``quantity`` units remain.
        """
        if not await self.products.decrement_stock(product_id, quantity):
            logger.info(
                "Stock decrement refused",
                product_id=product_id,
                quantity=quantity,
            )
            raise InsufficientStockError(
                product_id=product_id,
                requested=quantity,
                product_name=product_name,
            )

    async def restock(self, product_id: str, quantity: int) -> None:
        """Return units to stock.

        Raises:
            NotFoundError: If the product no longer exists.
        """
        if not await self.products.increment_stock(product_id, quantity):
            raise NotFoundError("Product", product_id)


# ============================================================================
# Inventory Service
# ============================================================================


class InventoryService:
    """Application service for product administration."""

    def __init__(self, db: Database, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            db: Database handle.
            request_id: Request ID for correlation.
        """
        self.db = db
        self.request_id = request_id

    async def create_product(
        self,
        sku: str,
        name: str,
        price_cents: int,
        stock_quantity: int = 0,
        description: str | None = None,
    ) -> ProductResult:
        """Create a product.

        Args:
            sku: Unique stock keeping unit.
            name: Display name.
            price_cents: Unit price in cents.
            stock_quantity: Initial stock.
            description: Optional description.

        Returns:
            ProductResult with the created product.
        """
        try:
            Money(price_cents)
            if stock_quantity < 0:
                raise ValidationFailedError(
                    "Stock quantity cannot be negative",
                    details={"stock_quantity": stock_quantity},
                )
            async with self.db.transaction() as session:
                product = await ProductRepository(session).save(
                    ProductModel(
                        sku=sku,
                        name=name,
                        price_cents=price_cents,
                        stock_quantity=stock_quantity,
                        description=description,
                    )
                )
                dto = ProductDTO.from_model(product)
        except DomainError as e:
            return ProductResult.failure(e)

        logger.info(
            "Product created",
            product_id=dto.id,
            sku=sku,
            stock_quantity=stock_quantity,
            request_id=self.request_id,
        )
        return ProductResult(product=dto)

    async def update_product(
        self,
        product_id: str,
        sku: str | None = None,
        name: str | None = None,
        price_cents: int | None = None,
        stock_quantity: int | None = None,
        description: str | None = None,
    ) -> ProductResult:
        """Update product fields. ``None`` leaves a field unchanged.

        Price changes never touch existing orders: order items carry
        their own price snapshot.
        """
        try:
            if price_cents is not None:
                Money(price_cents)
            if stock_quantity is not None and stock_quantity < 0:
                raise ValidationFailedError(
                    "Stock quantity cannot be negative",
                    details={"stock_quantity": stock_quantity},
                )
            async with self.db.transaction() as session:
                repo = ProductRepository(session)
                product = await repo.get_by_id(product_id)
                if product is None:
                    raise NotFoundError("Product", product_id)

                if sku is not None:
                    product.sku = sku
                if name is not None:
                    product.name = name
                if price_cents is not None:
                    product.price_cents = price_cents
                if stock_quantity is not None:
                    product.stock_quantity = stock_quantity
                if description is not None:
                    product.description = description

                product = await repo.save(product)
                dto = ProductDTO.from_model(product)
        except DomainError as e:
            return ProductResult.failure(e)

        logger.info("Product updated", product_id=product_id, request_id=self.request_id)
        return ProductResult(product=dto)

    async def get_product(self, product_id: str) -> ProductResult:
        """Get a product by ID."""
        async with self.db.transaction() as session:
            product = await ProductRepository(session).get_by_id(product_id)
            if product is None:
                return ProductResult.failure(NotFoundError("Product", product_id))
            return ProductResult(product=ProductDTO.from_model(product))
