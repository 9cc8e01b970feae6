"""Domain layer - value objects, state machines and domain exceptions.

This module exports the core domain building blocks:

- **Value Objects**: Immutable objects compared by value (Money, PaymentMethod, OrderNumber)
- **State Machines**: Closed status enums with transition tables (OrderStatus, PaymentStatus, ReturnStatus)
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from fulfillment.domain import Money, OrderStatus

    total = Money(1000) * 2
    print(total)  # 20.00

    OrderStatus.PENDING.can_transition_to(OrderStatus.CANCELLED)  # True
"""

from fulfillment.domain.exceptions import (
    ConflictError,
    DomainError,
    EmptyCartError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    NegativeMoneyError,
    NotFoundError,
    OrderNotReturnableError,
    StoreUnavailableError,
    ValidationFailedError,
)
from fulfillment.domain.state_machines import (
    OrderStatus,
    PaymentStatus,
    ReturnStatus,
    validate_order_transition,
    validate_payment_transition,
    validate_return_transition,
)
from fulfillment.domain.value_objects import (
    Money,
    OrderNumber,
    PaymentMethod,
    line_total,
    require_positive_quantity,
    sum_money,
)

__all__ = [
    # Exceptions
    "ConflictError",
    "DomainError",
    "EmptyCartError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "InvalidStateTransitionError",
    "NegativeMoneyError",
    "NotFoundError",
    "OrderNotReturnableError",
    "StoreUnavailableError",
    "ValidationFailedError",
    # State machines
    "OrderStatus",
    "PaymentStatus",
    "ReturnStatus",
    "validate_order_transition",
    "validate_payment_transition",
    "validate_return_transition",
    # Value objects
    "Money",
    "OrderNumber",
    "PaymentMethod",
    "line_total",
    "require_positive_quantity",
    "sum_money",
]
