"""Return application service.

Handles return requests raised against delivered orders and their
administrative processing through the return state machine.
"""

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from fulfillment.application.results import ServiceResult
from fulfillment.domain.exceptions import (
    DomainError,
    NotFoundError,
    OrderNotReturnableError,
    ValidationFailedError,
)
from fulfillment.domain.state_machines import (
    OrderStatus,
    ReturnStatus,
    validate_return_transition,
)
from fulfillment.domain.value_objects import Money
from fulfillment.infrastructure.database import Database
from fulfillment.infrastructure.models import ReturnModel
from fulfillment.infrastructure.repositories import OrderRepository, ReturnRepository

logger = structlog.get_logger()

MIN_REASON_LENGTH = 3

# Returns whose recorded refund counts against the order total.
REFUND_HOLDING_STATUSES = (ReturnStatus.APPROVED.value, ReturnStatus.SETTLED.value)


# ============================================================================
# Return Data Transfer Objects
# ============================================================================


@dataclass
class ReturnDTO:
    """Return request data transfer object."""

    id: str
    order_id: str
    user_id: str
    reason: str
    status: ReturnStatus
    refund_amount_cents: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, return_request: ReturnModel) -> "ReturnDTO":
        return cls(
            id=return_request.id,
            order_id=return_request.order_id,
            user_id=return_request.user_id,
            reason=return_request.reason,
            status=ReturnStatus(return_request.status),
            refund_amount_cents=return_request.refund_amount_cents,
            created_at=return_request.created_at,
            updated_at=return_request.updated_at,
        )


@dataclass
class ReturnResult(ServiceResult):
    """Result of a return operation."""

    return_request: ReturnDTO | None = None


@dataclass
class ListReturnsResult(ServiceResult):
    """Result of listing returns."""

    returns: list[ReturnDTO] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20


# ============================================================================
# Return Service
# ============================================================================


class ReturnService:
    """Application service for the return/refund workflow."""

    def __init__(self, db: Database, request_id: str | None = None) -> None:
        """Initialize service.

        Args:
            db: Database handle.
            request_id: Request ID for correlation.
        """
        self.db = db
        self.request_id = request_id

    async def create_return(self, order_id: str, user_id: str, reason: str) -> ReturnResult:
        """Request a return for one of the caller's delivered orders.

        Only orders in ``delivered`` status can be returned. Pending,
        processing and shipped orders are cancelled instead, or returned
        once they arrive, so they fail with ``OrderNotReturnableError``
        (INVALID_TRANSITION, 409) carrying the order's current status.

        Args:
            order_id: Order to return.
            user_id: Caller; must own the order.
            reason: Free-text reason.

        Returns:
            ReturnResult with the new request in ``requested`` status.
        """
        try:
            reason = reason.strip()
            if len(reason) < MIN_REASON_LENGTH:
                raise ValidationFailedError(
                    f"Return reason must be at least {MIN_REASON_LENGTH} characters",
                    details={"reason": reason},
                )
            async with self.db.transaction() as session:
                order = await OrderRepository(session).get_by_id(order_id, user_id=user_id)
                if order is None:
                    raise NotFoundError("Order", order_id)
                if not OrderStatus(order.status).is_returnable():
                    raise OrderNotReturnableError(order_id, order.status)

                return_request = await ReturnRepository(session).add(
                    ReturnModel(
                        order_id=order_id,
                        user_id=user_id,
                        reason=reason,
                        status=ReturnStatus.REQUESTED.value,
                    )
                )
                dto = ReturnDTO.from_model(return_request)
        except DomainError as e:
            return ReturnResult.failure(e)

        logger.info(
            "Return requested",
            return_id=dto.id,
            order_id=order_id,
            user_id=user_id,
            request_id=self.request_id,
        )
        return ReturnResult(return_request=dto)

    async def process_return(
        self,
        return_id: str,
        status: str,
        refund_amount_cents: int | None = None,
    ) -> ReturnResult:
        """Move a return along the return state machine (administrative).

        An amount may be recorded on approval and confirmed or replaced on
        settlement. Settlement fails if no amount is known by then. Refunds
        recorded on the order's other approved or settled returns count
        against the order total, so their sum never exceeds it.

        Args:
            return_id: Return request identifier.
            status: Target status value.
            refund_amount_cents: Refund to record, bounded by the unrefunded
                order total.

        Returns:
            ReturnResult with the updated request.
        """
        try:
            try:
                target = ReturnStatus(status)
            except ValueError as e:
                raise ValidationFailedError(
                    f"Unknown return status: {status}",
                    details={"status": status, "allowed": [s.value for s in ReturnStatus]},
                ) from e
            if refund_amount_cents is not None:
                Money(refund_amount_cents)
                if target == ReturnStatus.REJECTED:
                    raise ValidationFailedError(
                        "A rejected return cannot carry a refund amount",
                        details={"refund_amount_cents": refund_amount_cents},
                    )

            async with self.db.transaction() as session:
                returns = ReturnRepository(session)
                return_request = await returns.get_by_id(return_id)
                if return_request is None:
                    raise NotFoundError("Return", return_id)

                current = ReturnStatus(return_request.status)
                validate_return_transition(return_id, current, target)

                refund = (
                    refund_amount_cents
                    if refund_amount_cents is not None
                    else return_request.refund_amount_cents
                )
                if target.requires_refund_amount() and refund is None:
                    raise ValidationFailedError(
                        "Settling a return requires a refund amount",
                        details={"return_id": return_id},
                    )
                if refund is not None:
                    order = await OrderRepository(session).get_by_id(return_request.order_id)
                    already_refunded = await returns.sum_refunds_for_order(
                        order.id, REFUND_HOLDING_STATUSES, exclude_return_id=return_id
                    )
                    if refund > order.total_amount_cents - already_refunded:
                        raise ValidationFailedError(
                            "Refund amount exceeds the unrefunded order total",
                            details={
                                "refund_amount_cents": refund,
                                "order_total_cents": order.total_amount_cents,
                                "already_refunded_cents": already_refunded,
                            },
                        )

                return_request.status = target.value
                return_request.refund_amount_cents = refund
                await session.flush()
                dto = ReturnDTO.from_model(return_request)
        except DomainError as e:
            return ReturnResult.failure(e)

        logger.info(
            "Return processed",
            return_id=return_id,
            from_status=current.value,
            to_status=target.value,
            refund_amount_cents=dto.refund_amount_cents,
            request_id=self.request_id,
        )
        return ReturnResult(return_request=dto)

    async def get_return(self, return_id: str, user_id: str | None = None) -> ReturnResult:
        """Get a return request, scoped to its owner when ``user_id`` is given."""
        async with self.db.transaction() as session:
            return_request = await ReturnRepository(session).get_by_id(return_id, user_id=user_id)
            if return_request is None:
                return ReturnResult.failure(NotFoundError("Return", return_id))
            return ReturnResult(return_request=ReturnDTO.from_model(return_request))

    async def list_returns(
        self,
        user_id: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ListReturnsResult:
        """List return requests newest first.

        Args:
            user_id: Restrict to one user's returns (None for all, admin only).
            status: Filter by status.
            page: Page number (1-based).
            limit: Items per page.

        Returns:
            ListReturnsResult with paginated returns.
        """
        if status is not None:
            try:
                status = ReturnStatus(status).value
            except ValueError:
                return ListReturnsResult.failure(
                    ValidationFailedError(f"Unknown return status: {status}", details={"status": status})
                )

        async with self.db.transaction() as session:
            returns, total = await ReturnRepository(session).find_all(
                user_id=user_id, status=status, page=page, limit=limit
            )
            dtos = [ReturnDTO.from_model(r) for r in returns]

        return ListReturnsResult(returns=dtos, total=total, page=page, limit=limit)
