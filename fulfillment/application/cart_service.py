"""Cart application service.

Orchestrates the cart aggregate:
- Reading a user's cart with resolved products
- Adding, updating and removing line items
- Clearing the cart
- Validating stock sufficiency before checkout
"""

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from fulfillment.application.inventory_service import ProductDTO
from fulfillment.application.results import ServiceResult
from fulfillment.domain.exceptions import (
    DomainError,
    InsufficientStockError,
    NotFoundError,
)
from fulfillment.domain.value_objects import line_total, require_positive_quantity, sum_money
from fulfillment.infrastructure.database import Database
from fulfillment.infrastructure.models import CartModel
from fulfillment.infrastructure.repositories import CartRepository, ProductRepository

logger = structlog.get_logger()


# ============================================================================
# Cart Data Transfer Objects
# ============================================================================


@dataclass
class CartItemDTO:
    """Cart line item with the product snapshot joined in."""

    id: str
    product_id: str
    quantity: int
    product: ProductDTO
    created_at: datetime | None = None

    @property
    def line_total_cents(self) -> int:
        """Calculate line total at the current product price."""
        return line_total(self.product.price_cents, self.quantity).amount_cents

    @property
    def has_sufficient_stock(self) -> bool:
        return self.quantity <= self.product.stock_quantity


@dataclass
class CartDTO:
    """Cart data transfer object."""

    id: str
    user_id: str
    items: list[CartItemDTO] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def subtotal_cents(self) -> int:
        return sum_money([line_total(i.product.price_cents, i.quantity) for i in self.items]).amount_cents

    @property
    def is_empty(self) -> bool:
        return not self.items

    @classmethod
    def from_model(cls, cart: CartModel) -> "CartDTO":
        return cls(
            id=cart.id,
            user_id=cart.user_id,
            items=[
                CartItemDTO(
                    id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    product=ProductDTO.from_model(item.product),
                    created_at=item.created_at,
                )
                for item in cart.items
            ],
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class CartResult(ServiceResult):
    """Result of reading or mutating a cart.

    ``cart`` is None with ``success=True`` when the user has no cart.
    """

    cart: CartDTO | None = None


@dataclass
class ValidateCartResult(ServiceResult):
    """Result of validating a cart against current stock."""

    valid: bool = True
    errors: list[str] = field(default_factory=list)
    cart: CartDTO | None = None


# ============================================================================
# Cart Service
# ============================================================================


class CartService:
    """Application service for the cart aggregate.

    Stock checks here are advisory: nothing is reserved until checkout
    performs the conditional decrement.
    """

    def __init__(self, db: Database, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            db: Database handle.
            request_id: Request ID for correlation.
        """
        self.db = db
        self.request_id = request_id

    async def get_cart(self, user_id: str) -> CartResult:
        """Get a user's cart with resolved line items.

        Args:
            user_id: Cart owner.

        Returns:
            CartResult whose ``cart`` is None if the user never added anything.
        """
        async with self.db.transaction() as session:
            cart = await CartRepository(session).get_by_user(user_id)
            return CartResult(cart=CartDTO.from_model(cart) if cart else None)

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> CartResult:
        """Add a product to the user's cart.

        Creates the cart on first use. Adding a product that is already
        in the cart accumulates its quantity.

        Args:
            user_id: Cart owner.
            product_id: Product to add.
            quantity: Units to add (must be positive).

        Returns:
            CartResult with the updated cart.
        """
        try:
            require_positive_quantity(quantity)
            async with self.db.transaction() as session:
                product = await ProductRepository(session).get_by_id(product_id)
                if product is None:
                    raise NotFoundError("Product", product_id)
                if product.stock_quantity < quantity:
                    raise InsufficientStockError(
                        product_id=product_id,
                        requested=quantity,
                        available=product.stock_quantity,
                        product_name=product.name,
                    )

                carts = CartRepository(session)
                cart = await carts.get_or_create(user_id)
                await carts.add_quantity(cart.id, product_id, quantity)
                cart = await carts.get_by_user(user_id)
                dto = CartDTO.from_model(cart)
        except DomainError as e:
            logger.info(
                "Add to cart rejected",
                user_id=user_id,
                product_id=product_id,
                error_code=e.error_code,
                request_id=self.request_id,
            )
            return CartResult.failure(e)

        logger.info(
            "Item added to cart",
            user_id=user_id,
            cart_id=dto.id,
            product_id=product_id,
            quantity=quantity,
            request_id=self.request_id,
        )
        return CartResult(cart=dto)

    async def update_item(
        self,
        item_id: str,
        quantity: int,
        user_id: str | None = None,
    ) -> CartResult:
        """Set the quantity of a cart line item.

        Args:
            item_id: Line item ID.
            quantity: New quantity (must be positive).
            user_id: When given, items in other users' carts are treated as absent.

        Returns:
            CartResult with the updated cart.
        """
        try:
            require_positive_quantity(quantity)
            async with self.db.transaction() as session:
                carts = CartRepository(session)
                owner_id = await self._resolve_item_owner(carts, item_id, user_id)
                await carts.set_quantity(item_id, quantity)
                cart = await carts.get_by_user(owner_id)
                dto = CartDTO.from_model(cart)
        except DomainError as e:
            return CartResult.failure(e)

        logger.info(
            "Cart item updated",
            item_id=item_id,
            quantity=quantity,
            request_id=self.request_id,
        )
        return CartResult(cart=dto)

    async def remove_item(self, item_id: str, user_id: str | None = None) -> CartResult:
        """Remove a line item from its cart.

        Args:
            item_id: Line item ID.
            user_id: When given, items in other users' carts are treated as absent.

        Returns:
            CartResult with the remaining cart.
        """
        try:
            async with self.db.transaction() as session:
                carts = CartRepository(session)
                owner_id = await self._resolve_item_owner(carts, item_id, user_id)
                await carts.delete_item(item_id)
                cart = await carts.get_by_user(owner_id)
                dto = CartDTO.from_model(cart) if cart else None
        except DomainError as e:
            return CartResult.failure(e)

        logger.info("Cart item removed", item_id=item_id, request_id=self.request_id)
        return CartResult(cart=dto)

    async def clear(self, user_id: str) -> CartResult:
        """Delete every line item in the user's cart.

        Args:
            user_id: Cart owner.

        Returns:
            CartResult with the emptied cart, or no cart if none existed.
        """
        async with self.db.transaction() as session:
            carts = CartRepository(session)
            cart = await carts.get_by_user(user_id)
            if cart is None:
                return CartResult(cart=None)
            removed = await carts.delete_items(cart.id)
            cart = await carts.get_by_user(user_id)
            dto = CartDTO.from_model(cart)

        logger.info(
            "Cart cleared",
            user_id=user_id,
            removed_items=removed,
            request_id=self.request_id,
        )
        return CartResult(cart=dto)

    async def validate(self, user_id: str) -> ValidateCartResult:
        """Check every line item against current stock.

        Read-only: nothing is reserved, so a later checkout can still
        fail if stock moves in between.

        Args:
            user_id: Cart owner.

        Returns:
            ValidateCartResult with one message per short item.
        """
        async with self.db.transaction() as session:
            cart = await CartRepository(session).get_by_user(user_id)
            if cart is None:
                return ValidateCartResult(valid=True, cart=None)
            dto = CartDTO.from_model(cart)

        errors = [
            f"Insufficient stock for {item.product.name}"
            for item in dto.items
            if not item.has_sufficient_stock
        ]
        return ValidateCartResult(valid=not errors, errors=errors, cart=dto)

    async def _resolve_item_owner(
        self,
        carts: CartRepository,
        item_id: str,
        user_id: str | None,
    ) -> str:
        """Find the owner of a line item, enforcing ownership if requested."""
        item = await carts.get_item(item_id)
        if item is None or (user_id is not None and item.cart.user_id != user_id):
            raise NotFoundError("CartItem", item_id)
        return item.cart.user_id
