"""Order application service.

Orchestrates the order ledger:
- Checkout: converting a cart into an order in one atomic transaction
- Reading and listing orders
- Customer cancellation and administrative status transitions
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from fulfillment.application.inventory_service import InventoryStore
from fulfillment.application.payment_service import PaymentDTO
from fulfillment.application.results import ServiceResult
from fulfillment.domain.exceptions import (
    ConflictError,
    DomainError,
    EmptyCartError,
    InsufficientStockError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from fulfillment.domain.state_machines import (
    OrderStatus,
    PaymentStatus,
    validate_order_transition,
    validate_payment_transition,
)
from fulfillment.domain.value_objects import (
    OrderNumber,
    PaymentMethod,
    line_total,
    sum_money,
)
from fulfillment.infrastructure.config import Settings
from fulfillment.infrastructure.database import Database
from fulfillment.infrastructure.models import (
    OrderItemModel,
    OrderModel,
    OrderStatusHistoryModel,
    PaymentModel,
)
from fulfillment.infrastructure.repositories import CartRepository, OrderRepository

logger = structlog.get_logger()


# ============================================================================
# Order Data Transfer Objects
# ============================================================================


@dataclass
class OrderItemDTO:
    """Order item data transfer object."""

    id: str
    product_id: str
    quantity: int
    price_at_time_cents: int

    @property
    def line_total_cents(self) -> int:
        """Calculate line total from the price snapshot."""
        return line_total(self.price_at_time_cents, self.quantity).amount_cents


@dataclass
class StatusHistoryEntry:
    """Status history entry."""

    from_status: str | None
    to_status: str
    reason: str | None = None
    actor: str | None = None
    created_at: datetime | None = None


@dataclass
class OrderDTO:
    """Order data transfer object."""

    id: str
    user_id: str
    order_number: str
    status: OrderStatus
    payment_method: str
    total_amount_cents: int
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    items: list[OrderItemDTO] = field(default_factory=list)
    payments: list[PaymentDTO] = field(default_factory=list)
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    idempotency_key: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def from_model(cls, order: OrderModel) -> "OrderDTO":
        return cls(
            id=order.id,
            user_id=order.user_id,
            order_number=order.order_number,
            status=OrderStatus(order.status),
            payment_method=order.payment_method,
            total_amount_cents=order.total_amount_cents,
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            items=[
                OrderItemDTO(
                    id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price_at_time_cents=item.price_at_time_cents,
                )
                for item in order.items
            ],
            payments=[PaymentDTO.from_model(p) for p in order.payments],
            status_history=[
                StatusHistoryEntry(
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                    reason=entry.reason,
                    actor=entry.actor,
                    created_at=entry.created_at,
                )
                for entry in order.status_history
            ],
            idempotency_key=order.idempotency_key,
            created_at=order.created_at,
            updated_at=order.updated_at,
            cancelled_at=order.cancelled_at,
        )


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class OrderResult(ServiceResult):
    """Result of creating, reading or transitioning an order.

    ``replayed`` is True when checkout returned an order previously
    created with the same idempotency key.
    """

    order: OrderDTO | None = None
    replayed: bool = False


@dataclass
class ListOrdersResult(ServiceResult):
    """Result of listing orders."""

    orders: list[OrderDTO] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for managing orders.

    Handles order lifecycle:
    - Checkout from the user's cart
    - Customer cancellation (pending only)
    - Administrative transitions along the order state machine
    """

    def __init__(
        self,
        db: Database,
        settings: Settings,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            db: Database handle.
            settings: Application settings.
            request_id: Request ID for correlation.
        """
        self.db = db
        self.settings = settings
        self.request_id = request_id

    async def create_order(
        self,
        user_id: str,
        shipping_address: dict[str, Any],
        billing_address: dict[str, Any],
        payment_method: str,
        idempotency_key: str | None = None,
    ) -> OrderResult:
        """Check out the user's cart.

        In one transaction: insert the order and its items with price
        snapshots, conditionally decrement stock for every line, settle
        card payments, and empty the cart. Any failure rolls back all of
        it.

        Args:
            user_id: Cart owner placing the order.
            shipping_address: Shipping address snapshot.
            billing_address: Billing address snapshot.
            payment_method: One of "cc", "dc", "cod".
            idempotency_key: Optional client key; a replay returns the
                original order instead of creating a new one.

        Returns:
            OrderResult with the created (or replayed) order.
        """
        try:
            method = PaymentMethod.parse(payment_method)
            async with self.db.transaction() as session:
                orders = OrderRepository(session)
                if idempotency_key:
                    existing = await orders.get_by_idempotency_key(user_id, idempotency_key)
                    if existing is not None:
                        return self._replay(existing)

                carts = CartRepository(session)
                cart = await carts.get_by_user(user_id)
                if cart is None or not cart.items:
                    raise EmptyCartError(user_id)

                for item in cart.items:
                    if item.product.stock_quantity < item.quantity:
                        raise InsufficientStockError(
                            product_id=item.product_id,
                            requested=item.quantity,
                            available=item.product.stock_quantity,
                            product_name=item.product.name,
                        )

                if not await carts.claim_for_checkout(cart.id, cart.version):
                    raise ConflictError(
                        "Cart is already being checked out",
                        details={"cart_id": cart.id},
                    )

                total = sum_money(
                    [line_total(item.product.price_cents, item.quantity) for item in cart.items]
                )
                order = OrderModel(
                    user_id=user_id,
                    order_number=OrderNumber.generate(self.settings.order_number_prefix).value,
                    idempotency_key=idempotency_key,
                    total_amount_cents=total.amount_cents,
                    status=OrderStatus.PENDING.value,
                    payment_method=method.value,
                    shipping_address=shipping_address,
                    billing_address=billing_address,
                    items=[
                        OrderItemModel(
                            product_id=item.product_id,
                            quantity=item.quantity,
                            price_at_time_cents=item.product.price_cents,
                        )
                        for item in cart.items
                    ],
                    payments=[],
                    status_history=[
                        OrderStatusHistoryModel(
                            from_status=None,
                            to_status=OrderStatus.PENDING.value,
                            reason="Order created from cart",
                            actor="customer",
                        )
                    ],
                )
                await orders.add(order)

                inventory = InventoryStore(session)
                for item in cart.items:
                    await inventory.decrement_stock(
                        item.product_id, item.quantity, product_name=item.product.name
                    )

                if method.settles_at_checkout():
                    order.payments.append(
                        PaymentModel(
                            amount_cents=total.amount_cents,
                            status=PaymentStatus.COMPLETED.value,
                            payment_method=method.value,
                        )
                    )

                await carts.delete_items(cart.id)
                await session.flush()
                dto = OrderDTO.from_model(order)
        except ConflictError as e:
            if idempotency_key:
                replay = await self._find_replay(user_id, idempotency_key)
                if replay is not None:
                    return replay
            return self._reject(user_id, e)
        except DomainError as e:
            return self._reject(user_id, e)

        logger.info(
            "Order created",
            order_id=dto.id,
            order_number=dto.order_number,
            user_id=user_id,
            total_amount_cents=dto.total_amount_cents,
            item_count=len(dto.items),
            payment_method=method.value,
            request_id=self.request_id,
        )
        return OrderResult(order=dto)

    async def get_order(self, order_id: str, user_id: str | None = None) -> OrderResult:
        """Get an order by ID.

        Args:
            order_id: Order identifier.
            user_id: When given, other users' orders are reported as not found.

        Returns:
            OrderResult with the order if found.
        """
        async with self.db.transaction() as session:
            order = await OrderRepository(session).get_by_id(order_id, user_id=user_id)
            if order is None:
                return OrderResult.failure(NotFoundError("Order", order_id))
            return OrderResult(order=OrderDTO.from_model(order))

    async def list_orders(
        self,
        user_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ListOrdersResult:
        """List orders newest first.

        Args:
            user_id: Restrict to one user's orders (None for all, admin only).
            status: Filter by status.
            page: Page number (1-based).
            limit: Items per page.

        Returns:
            ListOrdersResult with paginated orders.
        """
        if status is not None:
            try:
                status = OrderStatus(status).value
            except ValueError:
                return ListOrdersResult.failure(
                    ValidationFailedError(f"Unknown order status: {status}", details={"status": status})
                )

        async with self.db.transaction() as session:
            orders, total = await OrderRepository(session).find_all(
                user_id=user_id, status=status, page=page, limit=limit
            )
            dtos = [OrderDTO.from_model(o) for o in orders]

        return ListOrdersResult(orders=dtos, total=total, page=page, limit=limit)

    async def cancel_order(
        self,
        order_id: str,
        user_id: str,
        reason: str | None = None,
    ) -> OrderResult:
        """Cancel one of the caller's orders.

        Customers can only cancel orders that are still pending.

        Args:
            order_id: Order identifier.
            user_id: Caller; must own the order.
            reason: Optional cancellation reason.

        Returns:
            OrderResult with the cancelled order.
        """
        try:
            async with self.db.transaction() as session:
                order = await OrderRepository(session).get_by_id(order_id, user_id=user_id)
                if order is None:
                    raise NotFoundError("Order", order_id)

                current = OrderStatus(order.status)
                if not current.is_customer_cancellable():
                    raise InvalidStateTransitionError(
                        entity_type="Order",
                        entity_id=order_id,
                        current_state=current.value,
                        target_state=OrderStatus.CANCELLED.value,
                    )
                await self._transition(session, order, OrderStatus.CANCELLED, "customer", reason)
                dto = OrderDTO.from_model(order)
        except DomainError as e:
            return OrderResult.failure(e)

        return OrderResult(order=dto)

    async def update_status(
        self,
        order_id: str,
        status: str,
        actor: str = "admin",
        reason: str | None = None,
    ) -> OrderResult:
        """Move an order along the order state machine (administrative).

        Args:
            order_id: Order identifier.
            status: Target status value.
            actor: Who initiated the transition.
            reason: Reason for the transition.

        Returns:
            OrderResult with the updated order.
        """
        try:
            try:
                target = OrderStatus(status)
            except ValueError as e:
                raise ValidationFailedError(
                    f"Unknown order status: {status}",
                    details={"status": status, "allowed": [s.value for s in OrderStatus]},
                ) from e

            async with self.db.transaction() as session:
                order = await OrderRepository(session).get_by_id(order_id)
                if order is None:
                    raise NotFoundError("Order", order_id)
                await self._transition(session, order, target, actor, reason)
                dto = OrderDTO.from_model(order)
        except DomainError as e:
            return OrderResult.failure(e)

        return OrderResult(order=dto)

    async def _transition(
        self,
        session,
        order: OrderModel,
        target: OrderStatus,
        actor: str,
        reason: str | None,
    ) -> None:
        """Apply a validated transition inside an open transaction.

        Cancelling compensates checkout when ``restock_on_cancel`` is on:
        every item goes back to stock and settled payments are refunded.
        """
        current = OrderStatus(order.status)
        validate_order_transition(order.id, current, target)

        now = datetime.now(timezone.utc)
        if target == OrderStatus.CANCELLED:
            order.cancelled_at = now
            if self.settings.restock_on_cancel:
                await self._compensate(session, order)

        order.status = target.value
        order.status_history.append(
            OrderStatusHistoryModel(
                from_status=current.value,
                to_status=target.value,
                reason=reason,
                actor=actor,
                created_at=now,
            )
        )
        await session.flush()

        logger.info(
            "Order status transitioned",
            order_id=order.id,
            from_status=current.value,
            to_status=target.value,
            actor=actor,
            request_id=self.request_id,
        )

    async def _compensate(self, session, order: OrderModel) -> None:
        """Restock items and unwind payments of a cancelled order."""
        inventory = InventoryStore(session)
        for item in order.items:
            await inventory.restock(item.product_id, item.quantity)

        for payment in order.payments:
            current = PaymentStatus(payment.status)
            if current == PaymentStatus.COMPLETED:
                target = PaymentStatus.REFUNDED
            elif current == PaymentStatus.PROCESSING:
                target = PaymentStatus.FAILED
            else:
                continue
            validate_payment_transition(payment.id, current, target)
            payment.status = target.value

        logger.info(
            "Order cancellation compensated",
            order_id=order.id,
            restocked_items=len(order.items),
            request_id=self.request_id,
        )

    def _replay(self, order: OrderModel) -> OrderResult:
        logger.info(
            "Order already exists for idempotency key",
            order_id=order.id,
            idempotency_key=order.idempotency_key,
            request_id=self.request_id,
        )
        return OrderResult(order=OrderDTO.from_model(order), replayed=True)

    async def _find_replay(self, user_id: str, idempotency_key: str) -> OrderResult | None:
        """Look up an order committed by a concurrent request with the same key."""
        async with self.db.transaction() as session:
            existing = await OrderRepository(session).get_by_idempotency_key(user_id, idempotency_key)
            return self._replay(existing) if existing is not None else None

    def _reject(self, user_id: str, error: DomainError) -> OrderResult:
        logger.info(
            "Checkout rejected",
            user_id=user_id,
            error_code=error.error_code,
            error=error.message,
            request_id=self.request_id,
        )
        return OrderResult.failure(error)
