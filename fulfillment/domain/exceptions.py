"""Domain exceptions.

All domain-level errors that represent business rule violations.
These are raised by state machines, value objects and the inventory
store when invariants are violated, and are translated into typed
service results by the application layer.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    Every subclass carries a machine-readable ``error_code`` that the
    API layer maps to an HTTP status.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Lookup / Input Errors
# ============================================================================


class NotFoundError(DomainError):
    """Raised when an entity is absent or not owned by the caller.

    Ownership failures deliberately use this error too, so callers
    cannot probe for the existence of other users' records.
    """

    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "Order", "Product").
            entity_id: ID that was looked up.
        """
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationFailedError(DomainError):
    """Raised when input is malformed or out of range."""

    error_code = "VALIDATION_FAILED"


class InvalidQuantityError(ValidationFailedError):
    """Raised when a non-positive quantity is provided."""

    def __init__(self, quantity: int, reason: str = "Quantity must be positive") -> None:
        """Initialize invalid quantity error.

        Args:
            quantity: The invalid quantity value.
            reason: Explanation of why the quantity is invalid.
        """
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            details={"quantity": quantity, "reason": reason},
        )


class NegativeMoneyError(ValidationFailedError):
    """Raised when attempting to create money with negative amount."""

    def __init__(self, amount: int) -> None:
        """Initialize negative money error.

        Args:
            amount: The negative amount in cents.
        """
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )


# ============================================================================
# Inventory / Cart Errors
# ============================================================================


class InsufficientStockError(DomainError):
    """Raised when a requested quantity exceeds available stock."""

    error_code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int | None = None,
        product_name: str | None = None,
    ) -> None:
        """Initialize insufficient stock error.

        Args:
            product_id: Product that is short.
            requested: Quantity that was requested.
            available: Stock on hand when known.
            product_name: Display name for the message.
        """
        label = product_name or product_id
        super().__init__(
            f"Insufficient stock for {label}",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class EmptyCartError(DomainError):
    """Raised when trying to check out an absent or empty cart."""

    error_code = "EMPTY_CART"

    def __init__(self, user_id: str) -> None:
        """Initialize empty cart error.

        Args:
            user_id: Owner of the cart.
        """
        super().__init__("Cart is empty", details={"user_id": user_id})


# ============================================================================
# Concurrency / Uniqueness Errors
# ============================================================================


class ConflictError(DomainError):
    """Raised on a uniqueness violation or a lost concurrent race."""

    error_code = "CONFLICT"


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Payment", "Order").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


class OrderNotReturnableError(InvalidStateTransitionError):
    """Raised when a return is requested for an order that is not delivered."""

    def __init__(self, order_id: str, current_status: str) -> None:
        """Initialize order not returnable error.

        Args:
            order_id: ID of the order.
            current_status: Current status of the order.
        """
        DomainError.__init__(
            self,
            f"Order {order_id} cannot be returned in status '{current_status}'",
            details={"order_id": order_id, "current_status": current_status},
        )


# ============================================================================
# Infrastructure Errors
# ============================================================================


class StoreUnavailableError(Exception):
    """Raised when the relational store times out or drops the connection.

    Not a ``DomainError``: it is retryable and is handled once at the
    outermost boundary rather than returned as a service result.
    """

    error_code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "Store unavailable") -> None:
        super().__init__(message)
        self.message = message
