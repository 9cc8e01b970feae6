"""Tests for domain state machines."""

import pytest

from fulfillment.domain import OrderStatus, PaymentStatus, ReturnStatus
from fulfillment.domain.exceptions import InvalidStateTransitionError
from fulfillment.domain.state_machines import (
    validate_order_transition,
    validate_payment_transition,
    validate_return_transition,
)


class TestOrderStatus:
    """Tests for OrderStatus state machine."""

    def test_pending_can_be_processed_or_cancelled(self) -> None:
        """PENDING can move to PROCESSING or CANCELLED."""
        assert OrderStatus.PENDING.can_transition_to(OrderStatus.PROCESSING)
        assert OrderStatus.PENDING.can_transition_to(OrderStatus.CANCELLED)

    def test_pending_cannot_skip_to_shipped(self) -> None:
        """PENDING cannot jump straight to SHIPPED."""
        assert not OrderStatus.PENDING.can_transition_to(OrderStatus.SHIPPED)

    def test_processing_can_ship_or_cancel(self) -> None:
        assert OrderStatus.PROCESSING.can_transition_to(OrderStatus.SHIPPED)
        assert OrderStatus.PROCESSING.can_transition_to(OrderStatus.CANCELLED)

    def test_shipped_can_only_be_delivered(self) -> None:
        """SHIPPED orders can no longer be cancelled."""
        assert OrderStatus.SHIPPED.allowed_transitions() == [OrderStatus.DELIVERED]
        assert not OrderStatus.SHIPPED.can_transition_to(OrderStatus.CANCELLED)

    def test_delivered_and_cancelled_are_terminal(self) -> None:
        assert OrderStatus.DELIVERED.is_terminal()
        assert OrderStatus.CANCELLED.is_terminal()
        assert OrderStatus.CANCELLED.allowed_transitions() == []

    def test_only_pending_is_customer_cancellable(self) -> None:
        """Customers may cancel only before processing starts."""
        cancellable = [s for s in OrderStatus if s.is_customer_cancellable()]
        assert cancellable == [OrderStatus.PENDING]

    def test_only_delivered_is_returnable(self) -> None:
        returnable = [s for s in OrderStatus if s.is_returnable()]
        assert returnable == [OrderStatus.DELIVERED]

    def test_allowed_transitions_are_sorted(self) -> None:
        assert OrderStatus.PENDING.allowed_transitions() == [
            OrderStatus.CANCELLED,
            OrderStatus.PROCESSING,
        ]


class TestPaymentStatus:
    """Tests for PaymentStatus state machine."""

    def test_processing_can_complete_or_fail(self) -> None:
        assert PaymentStatus.PROCESSING.can_transition_to(PaymentStatus.COMPLETED)
        assert PaymentStatus.PROCESSING.can_transition_to(PaymentStatus.FAILED)

    def test_completed_can_be_refunded(self) -> None:
        assert PaymentStatus.COMPLETED.can_transition_to(PaymentStatus.REFUNDED)

    def test_completed_cannot_fail(self) -> None:
        assert not PaymentStatus.COMPLETED.can_transition_to(PaymentStatus.FAILED)

    def test_failed_and_refunded_are_terminal(self) -> None:
        assert PaymentStatus.FAILED.is_terminal()
        assert PaymentStatus.REFUNDED.is_terminal()


class TestReturnStatus:
    """Tests for ReturnStatus state machine."""

    def test_requested_can_be_approved_or_rejected(self) -> None:
        assert ReturnStatus.REQUESTED.allowed_transitions() == [
            ReturnStatus.APPROVED,
            ReturnStatus.REJECTED,
        ]

    def test_requested_cannot_be_settled_directly(self) -> None:
        """A return must be approved before it is settled."""
        assert not ReturnStatus.REQUESTED.can_transition_to(ReturnStatus.SETTLED)

    def test_approved_can_be_settled(self) -> None:
        assert ReturnStatus.APPROVED.can_transition_to(ReturnStatus.SETTLED)

    def test_rejected_and_settled_are_terminal(self) -> None:
        assert ReturnStatus.REJECTED.is_terminal()
        assert ReturnStatus.SETTLED.is_terminal()

    def test_only_settled_requires_refund_amount(self) -> None:
        assert [s for s in ReturnStatus if s.requires_refund_amount()] == [ReturnStatus.SETTLED]


class TestTransitionValidators:
    """Tests for the validate_*_transition helpers."""

    def test_valid_order_transition_passes(self) -> None:
        validate_order_transition("order-1", OrderStatus.PENDING, OrderStatus.PROCESSING)

    def test_invalid_order_transition_raises(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_order_transition("order-1", OrderStatus.DELIVERED, OrderStatus.CANCELLED)

        error = exc_info.value
        assert error.error_code == "INVALID_TRANSITION"
        assert error.details["entity_type"] == "Order"
        assert error.details["current_state"] == "delivered"
        assert error.details["target_state"] == "cancelled"
        assert error.details["allowed_transitions"] == []

    def test_invalid_payment_transition_lists_allowed_targets(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_payment_transition("pay-1", PaymentStatus.PROCESSING, PaymentStatus.REFUNDED)

        assert exc_info.value.details["allowed_transitions"] == ["completed", "failed"]

    def test_invalid_return_transition_raises(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_return_transition("ret-1", ReturnStatus.REJECTED, ReturnStatus.APPROVED)

        assert exc_info.value.details["entity_type"] == "Return"
