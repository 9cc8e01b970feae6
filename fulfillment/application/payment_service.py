"""Payment application service.

Drives the payment state machine:
- Initiating a payment for an order
- Verifying a payment with a transaction identifier
- Marking a payment as failed
- Looking up the payment of an order
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from fulfillment.application.results import ServiceResult
from fulfillment.domain.exceptions import (
    DomainError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from fulfillment.domain.state_machines import (
    OrderStatus,
    PaymentStatus,
    validate_payment_transition,
)
from fulfillment.domain.value_objects import PaymentMethod
from fulfillment.infrastructure.database import Database
from fulfillment.infrastructure.models import PaymentModel
from fulfillment.infrastructure.repositories import OrderRepository, PaymentRepository

logger = structlog.get_logger()

MIN_TRANSACTION_ID_LENGTH = 5

# Attempts that still count as paying the order; failed or refunded ones don't.
OPEN_PAYMENT_STATUSES = (PaymentStatus.PROCESSING.value, PaymentStatus.COMPLETED.value)


# ============================================================================
# Payment Data Transfer Objects
# ============================================================================


@dataclass
class PaymentDTO:
    """Payment data transfer object."""

    id: str
    order_id: str
    amount_cents: int
    status: PaymentStatus
    payment_method: str
    transaction_id: str | None = None
    gateway_details: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, payment: PaymentModel) -> "PaymentDTO":
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            amount_cents=payment.amount_cents,
            status=PaymentStatus(payment.status),
            payment_method=payment.payment_method,
            transaction_id=payment.transaction_id,
            gateway_details=payment.gateway_details,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


@dataclass
class PaymentResult(ServiceResult):
    """Result of a payment operation.

    ``created`` is False when an existing payment was returned instead
    of inserting a new one.
    """

    payment: PaymentDTO | None = None
    created: bool = False


# ============================================================================
# Payment Service
# ============================================================================


class PaymentService:
    """Application service for payments.

    Checkout settles card payments directly; this service covers the
    deferred path (initiate, then verify) and the lookup/failure paths.
    """

    def __init__(self, db: Database, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            db: Database handle.
            request_id: Request ID for correlation.
        """
        self.db = db
        self.request_id = request_id

    async def initiate_payment(
        self,
        order_id: str,
        user_id: str,
        payment_method: str | None = None,
    ) -> PaymentResult:
        """Create a processing payment for an order if it has none yet.

        A processing or completed attempt is returned as is. After a
        failed attempt a new processing attempt is created, so the order
        can still be paid.

        Args:
            order_id: Order to pay for.
            user_id: Caller; must own the order.
            payment_method: Overrides the order's payment method.

        Returns:
            PaymentResult with the new or already existing payment.
        """
        try:
            async with self.db.transaction() as session:
                order = await OrderRepository(session).get_by_id(order_id, user_id=user_id)
                if order is None:
                    raise NotFoundError("Order", order_id)
                if OrderStatus(order.status) == OrderStatus.CANCELLED:
                    raise InvalidStateTransitionError(
                        entity_type="Order",
                        entity_id=order_id,
                        current_state=order.status,
                        target_state="paid",
                    )

                payments = PaymentRepository(session)
                existing = await payments.get_latest_for_order(
                    order_id, statuses=OPEN_PAYMENT_STATUSES
                )
                if existing is not None:
                    return PaymentResult(payment=PaymentDTO.from_model(existing), created=False)

                method = PaymentMethod.parse(payment_method or order.payment_method)
                payment = await payments.add(
                    PaymentModel(
                        order_id=order.id,
                        amount_cents=order.total_amount_cents,
                        status=PaymentStatus.PROCESSING.value,
                        payment_method=method.value,
                    )
                )
                dto = PaymentDTO.from_model(payment)
        except DomainError as e:
            return PaymentResult.failure(e)

        logger.info(
            "Payment initiated",
            payment_id=dto.id,
            order_id=order_id,
            amount_cents=dto.amount_cents,
            request_id=self.request_id,
        )
        return PaymentResult(payment=dto, created=True)

    async def verify_payment(self, payment_id: str, transaction_id: str) -> PaymentResult:
        """Mark a payment completed and record the gateway transaction ID.

        Verifying an already completed payment only records the new
        transaction ID; it never creates another payment row.

        Args:
            payment_id: Payment to verify.
            transaction_id: Identifier reported by the payment gateway.

        Returns:
            PaymentResult with the completed payment.
        """
        try:
            if len(transaction_id.strip()) < MIN_TRANSACTION_ID_LENGTH:
                raise ValidationFailedError(
                    f"Transaction ID must be at least {MIN_TRANSACTION_ID_LENGTH} characters",
                    details={"transaction_id": transaction_id},
                )
            async with self.db.transaction() as session:
                payment = await PaymentRepository(session).get_by_id(payment_id)
                if payment is None:
                    raise NotFoundError("Payment", payment_id)

                current = PaymentStatus(payment.status)
                if current != PaymentStatus.COMPLETED:
                    validate_payment_transition(payment_id, current, PaymentStatus.COMPLETED)
                    payment.status = PaymentStatus.COMPLETED.value
                payment.transaction_id = transaction_id
                await session.flush()
                dto = PaymentDTO.from_model(payment)
        except DomainError as e:
            return PaymentResult.failure(e)

        logger.info(
            "Payment verified",
            payment_id=payment_id,
            from_status=current.value,
            transaction_id=transaction_id,
            request_id=self.request_id,
        )
        return PaymentResult(payment=dto)

    async def fail_payment(self, payment_id: str, reason: str) -> PaymentResult:
        """Mark a processing payment as failed.

        Args:
            payment_id: Payment that the gateway declined.
            reason: Failure reason, kept in the gateway details.

        Returns:
            PaymentResult with the failed payment.
        """
        try:
            async with self.db.transaction() as session:
                payment = await PaymentRepository(session).get_by_id(payment_id)
                if payment is None:
                    raise NotFoundError("Payment", payment_id)

                validate_payment_transition(
                    payment_id, PaymentStatus(payment.status), PaymentStatus.FAILED
                )
                payment.status = PaymentStatus.FAILED.value
                payment.gateway_details = {**(payment.gateway_details or {}), "failure_reason": reason}
                await session.flush()
                dto = PaymentDTO.from_model(payment)
        except DomainError as e:
            return PaymentResult.failure(e)

        logger.warning(
            "Payment failed",
            payment_id=payment_id,
            reason=reason,
            request_id=self.request_id,
        )
        return PaymentResult(payment=dto)

    async def get_payment_for_order(self, order_id: str, user_id: str) -> PaymentResult:
        """Get the latest payment of one of the caller's orders."""
        async with self.db.transaction() as session:
            order = await OrderRepository(session).get_by_id(order_id, user_id=user_id)
            if order is None:
                return PaymentResult.failure(NotFoundError("Order", order_id))
            payment = await PaymentRepository(session).get_latest_for_order(order_id)
            if payment is None:
                return PaymentResult.failure(NotFoundError("Payment", order_id))
            return PaymentResult(payment=PaymentDTO.from_model(payment))
