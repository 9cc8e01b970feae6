"""Repositories for database operations.

Each repository wraps an ``AsyncSession`` that is already inside a
transaction opened by ``Database.transaction()``. Repositories flush but
never commit, so several of them can take part in one atomic unit.
"""

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fulfillment.domain.exceptions import ConflictError
from fulfillment.infrastructure.models import (
    CartItemModel,
    CartModel,
    OrderModel,
    PaymentModel,
    ProductModel,
    ReturnModel,
)


def _offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


# ============================================================================
# Products
# ============================================================================


class ProductRepository:
    """Repository for product rows and their stock counters.

    Example usage:
        async with db.transaction() as session:
            repo = ProductRepository(session)
            if not await repo.decrement_stock(product_id, 2):
                raise InsufficientStockError(product_id, 2)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, product: ProductModel) -> ProductModel:
        """Insert or update a product.

        Raises:
            ConflictError: If the SKU is already taken.
        """
        self.session.add(product)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Product with SKU {product.sku} already exists",
                details={"sku": product.sku},
            ) from e
        return product

    async def get_by_id(self, product_id: str) -> ProductModel | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product if found, None otherwise.
        """
        result = await self.session.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically take ``quantity`` units out of stock.

        The availability check and the write are a single conditional
        UPDATE, so two concurrent decrements can never drive stock below
        zero.

        Args:
            product_id: Product ID.
            quantity: Units to remove.

        Returns:
            True if the row was updated, False if stock was insufficient
            (or the product does not exist).
        """
        result = await self.session.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.stock_quantity >= quantity,
            )
            .values(
                stock_quantity=ProductModel.stock_quantity - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        """Put ``quantity`` units back into stock.

        Returns:
            True if the product row exists and was updated.
        """
        result = await self.session.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(
                stock_quantity=ProductModel.stock_quantity + quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


# ============================================================================
# Carts
# ============================================================================


class CartRepository:
    """Repository for carts and their line items."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_user(self, user_id: str) -> CartModel | None:
        """Get a user's cart with items and their products loaded."""
        result = await self.session.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .options(selectinload(CartModel.items).selectinload(CartItemModel.product))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str) -> CartModel:
        """Get the user's cart, creating it on first use.

        A concurrent creation for the same user loses on the unique
        ``user_id`` constraint inside a savepoint and then reads the
        winner's row.
        """
        cart = await self.get_by_user(user_id)
        if cart is not None:
            return cart

        try:
            async with self.session.begin_nested():
                self.session.add(CartModel(user_id=user_id, items=[]))
        except IntegrityError:
            pass

        cart = await self.get_by_user(user_id)
        if cart is None:
            raise ConflictError("Cart could not be created", details={"user_id": user_id})
        return cart

    async def get_item(self, item_id: str) -> CartItemModel | None:
        """Get a cart item with its cart loaded."""
        result = await self.session.execute(
            select(CartItemModel)
            .where(CartItemModel.id == item_id)
            .options(selectinload(CartItemModel.cart))
        )
        return result.scalar_one_or_none()

    async def add_quantity(self, cart_id: str, product_id: str, quantity: int) -> None:
        """Add ``quantity`` of a product, accumulating onto an existing line."""
        result = await self.session.execute(
            update(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
            .values(quantity=CartItemModel.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.session.add(
                CartItemModel(cart_id=cart_id, product_id=product_id, quantity=quantity)
            )
            await self.session.flush()

    async def set_quantity(self, item_id: str, quantity: int) -> bool:
        """Overwrite the quantity of a line item."""
        result = await self.session.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_item(self, item_id: str) -> bool:
        """Delete a single line item."""
        result = await self.session.execute(
            delete(CartItemModel)
            .where(CartItemModel.id == item_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_items(self, cart_id: str) -> int:
        """Delete every line item of a cart.

        Returns:
            Number of deleted items.
        """
        result = await self.session.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def claim_for_checkout(self, cart_id: str, expected_version: int) -> bool:
        """Bump the cart version if nobody else has since the cart was read.

        Returns:
            False if another checkout already claimed this version.
        """
        result = await self.session.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == expected_version)
            .values(version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


# ============================================================================
# Orders
# ============================================================================


class OrderRepository:
    """Repository for orders, their items, payments and status history."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _select_order(self):
        return select(OrderModel).options(
            selectinload(OrderModel.items),
            selectinload(OrderModel.payments),
            selectinload(OrderModel.status_history),
        )

    async def add(self, order: OrderModel) -> OrderModel:
        """Insert a new order with its items.

        Raises:
            ConflictError: If the order number or idempotency key is taken.
        """
        self.session.add(order)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                "Order conflicts with an existing order",
                details={
                    "order_number": order.order_number,
                    "idempotency_key": order.idempotency_key,
                },
            ) from e
        return order

    async def get_by_id(self, order_id: str, user_id: str | None = None) -> OrderModel | None:
        """Get an order, optionally scoped to its owner.

        Args:
            order_id: Order ID.
            user_id: When given, orders of other users are treated as absent.

        Returns:
            Order if found (and owned), None otherwise.
        """
        query = self._select_order().where(OrderModel.id == order_id)
        if user_id is not None:
            query = query.where(OrderModel.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(self, user_id: str, idempotency_key: str) -> OrderModel | None:
        """Get the order a user already placed with this idempotency key."""
        result = await self.session.execute(
            self._select_order().where(
                OrderModel.user_id == user_id,
                OrderModel.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one_or_none()

    async def find_all(
        self,
        user_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[OrderModel], int]:
        """List orders newest first with a total count.

        Args:
            user_id: Filter by owner.
            status: Filter by status value.
            page: Page number (1-based).
            limit: Page size.

        Returns:
            Tuple of (orders on this page, total matching orders).
        """
        conditions = []
        if user_id is not None:
            conditions.append(OrderModel.user_id == user_id)
        if status is not None:
            conditions.append(OrderModel.status == status)

        query = self._select_order().where(*conditions)
        query = query.order_by(OrderModel.created_at.desc()).offset(_offset(page, limit)).limit(limit)
        orders = (await self.session.execute(query)).scalars().all()

        count_query = select(func.count()).select_from(OrderModel).where(*conditions)
        total = (await self.session.execute(count_query)).scalar_one()
        return orders, total


# ============================================================================
# Payments
# ============================================================================


class PaymentRepository:
    """Repository for payment attempts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, payment: PaymentModel) -> PaymentModel:
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_by_id(self, payment_id: str) -> PaymentModel | None:
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.id == payment_id)
        )
        return result.scalar_one_or_none()

    async def get_latest_for_order(
        self,
        order_id: str,
        statuses: Sequence[str] | None = None,
    ) -> PaymentModel | None:
        """Get the most recent payment attempt for an order.

        Args:
            order_id: Order identifier.
            statuses: Only consider attempts in one of these statuses.
        """
        query = select(PaymentModel).where(PaymentModel.order_id == order_id)
        if statuses is not None:
            query = query.where(PaymentModel.status.in_(statuses))
        result = await self.session.execute(
            query.order_by(PaymentModel.created_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()


# ============================================================================
# Returns
# ============================================================================


class ReturnRepository:
    """Repository for return requests."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, return_request: ReturnModel) -> ReturnModel:
        self.session.add(return_request)
        await self.session.flush()
        return return_request

    async def get_by_id(self, return_id: str, user_id: str | None = None) -> ReturnModel | None:
        """Get a return, optionally scoped to the requesting user."""
        query = select(ReturnModel).where(ReturnModel.id == return_id)
        if user_id is not None:
            query = query.where(ReturnModel.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def sum_refunds_for_order(
        self,
        order_id: str,
        statuses: Sequence[str],
        exclude_return_id: str | None = None,
    ) -> int:
        """Total refund amount recorded on an order's returns in the given statuses."""
        query = select(func.coalesce(func.sum(ReturnModel.refund_amount_cents), 0)).where(
            ReturnModel.order_id == order_id,
            ReturnModel.status.in_(statuses),
        )
        if exclude_return_id is not None:
            query = query.where(ReturnModel.id != exclude_return_id)
        return (await self.session.execute(query)).scalar_one()

    async def find_all(
        self,
        user_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[Sequence[ReturnModel], int]:
        """List returns newest first with a total count."""
        conditions = []
        if user_id is not None:
            conditions.append(ReturnModel.user_id == user_id)
        if status is not None:
            conditions.append(ReturnModel.status == status)

        query = (
            select(ReturnModel)
            .where(*conditions)
            .order_by(ReturnModel.created_at.desc())
            .offset(_offset(page, limit))
            .limit(limit)
        )
        returns = (await self.session.execute(query)).scalars().all()

        count_query = select(func.count()).select_from(ReturnModel).where(*conditions)
        total = (await self.session.execute(count_query)).scalar_one()
        return returns, total
