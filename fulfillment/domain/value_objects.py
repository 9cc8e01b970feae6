"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

import random
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Self

from fulfillment.domain.exceptions import (
    InvalidQuantityError,
    NegativeMoneyError,
    ValidationFailedError,
)


# ============================================================================
# Money
# ============================================================================


@dataclass(frozen=True)
class Money:
    """Represents a monetary amount.

    Money is stored in the smallest currency unit (cents) to avoid
    floating-point precision issues.

    Attributes:
        amount_cents: Amount in smallest currency unit.
    """

    amount_cents: int

    def __post_init__(self) -> None:
        """Validate money constraints."""
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)

    @classmethod
    def zero(cls) -> Self:
        """Create zero amount money."""
        return cls(amount_cents=0)

    @classmethod
    def from_decimal(cls, amount: Decimal) -> Self:
        """Create money from decimal amount.

        Args:
            amount: Decimal amount in major units (e.g., dollars).

        Returns:
            Money instance.
        """
        cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(amount_cents=cents)

    def to_decimal(self) -> Decimal:
        """Convert to decimal amount in major units.

        Returns:
            Decimal amount with two fractional digits.
        """
        return (Decimal(self.amount_cents) / 100).quantize(Decimal("0.01"))

    def __add__(self, other: "Money") -> "Money":
        return Money(amount_cents=self.amount_cents + other.amount_cents)

    def __mul__(self, quantity: int) -> "Money":
        return Money(amount_cents=self.amount_cents * quantity)

    def __str__(self) -> str:
        return f"{self.to_decimal()}"


def line_total(unit_price_cents: int, quantity: int) -> Money:
    """Price a single line: unit price times quantity."""
    return Money(unit_price_cents) * quantity


def sum_money(amounts: list[Money]) -> Money:
    """Sum a list of Money values, returning zero for an empty list."""
    total = Money.zero()
    for amount in amounts:
        total = total + amount
    return total


# ============================================================================
# Quantity
# ============================================================================


def require_positive_quantity(quantity: int) -> int:
    """Validate that a line item quantity is a positive integer.

    Raises:
        InvalidQuantityError: If quantity is zero or negative.
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


# ============================================================================
# Payment Method
# ============================================================================


class PaymentMethod(str, Enum):
    """Accepted payment methods.

    Card rails (credit and debit) settle at checkout; cash on delivery
    leaves payment to a later ``initiate_payment`` call.
    """

    CREDIT_CARD = "cc"
    DEBIT_CARD = "dc"
    CASH_ON_DELIVERY = "cod"

    def settles_at_checkout(self) -> bool:
        return self in {PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD}

    @classmethod
    def parse(cls, value: str) -> "PaymentMethod":
        """Parse a raw payment method string.

        Raises:
            ValidationFailedError: If the method is not supported.
        """
        try:
            return cls(value)
        except ValueError as e:
            raise ValidationFailedError(
                f"Unsupported payment method: {value}",
                details={"payment_method": value, "allowed": [m.value for m in cls]},
            ) from e


# ============================================================================
# Order Number
# ============================================================================


@dataclass(frozen=True)
class OrderNumber:
    """Human-readable order number: ``<prefix>-<epoch millis>-<random suffix>``."""

    value: str

    @classmethod
    def generate(cls, prefix: str = "ORD") -> Self:
        """Generate a new order number.

        The millisecond timestamp keeps numbers monotonically
        distinguishable; the random suffix separates orders placed
        within the same millisecond.
        """
        millis = int(time.time() * 1000)
        suffix = random.randint(0, 99999)
        return cls(value=f"{prefix}-{millis}-{suffix:05d}")

    def __str__(self) -> str:
        return self.value
