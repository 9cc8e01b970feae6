"""Tests for domain value objects."""

import re
from decimal import Decimal

import pytest

from fulfillment.domain import (
    Money,
    OrderNumber,
    PaymentMethod,
    line_total,
    require_positive_quantity,
    sum_money,
)
from fulfillment.domain.exceptions import (
    InvalidQuantityError,
    NegativeMoneyError,
    ValidationFailedError,
)


class TestMoney:
    """Tests for Money value object."""

    def test_create_from_cents(self) -> None:
        money = Money(amount_cents=1999)
        assert money.amount_cents == 1999

    def test_create_from_decimal(self) -> None:
        """Money can be created from Decimal."""
        assert Money.from_decimal(Decimal("19.99")).amount_cents == 1999

    def test_from_decimal_rounds_half_up(self) -> None:
        assert Money.from_decimal(Decimal("0.005")).amount_cents == 1

    def test_to_decimal(self) -> None:
        """Money can be converted to Decimal."""
        assert Money(amount_cents=1999).to_decimal() == Decimal("19.99")

    def test_str_renders_two_decimals(self) -> None:
        assert str(Money(amount_cents=500)) == "5.00"

    def test_negative_amount_raises_error(self) -> None:
        """Negative amounts raise NegativeMoneyError."""
        with pytest.raises(NegativeMoneyError):
            Money(amount_cents=-100)

    def test_negative_money_is_a_validation_failure(self) -> None:
        with pytest.raises(ValidationFailedError):
            Money(amount_cents=-1)

    def test_addition_and_multiplication(self) -> None:
        assert Money(1000) + Money(250) == Money(1250)
        assert Money(1000) * 3 == Money(3000)

    def test_money_is_immutable(self) -> None:
        money = Money(100)
        with pytest.raises(AttributeError):
            money.amount_cents = 200  # type: ignore[misc]


class TestTotals:
    """Tests for line and order totals."""

    def test_line_total(self) -> None:
        assert line_total(1000, 2) == Money(2000)

    def test_sum_money(self) -> None:
        """Order total from the Scenario A lines: 2 x 10.00 + 1 x 5.00."""
        assert sum_money([line_total(1000, 2), line_total(500, 1)]) == Money(2500)

    def test_sum_of_nothing_is_zero(self) -> None:
        assert sum_money([]) == Money.zero()


class TestQuantity:
    """Tests for quantity validation."""

    def test_positive_quantity_is_returned(self) -> None:
        assert require_positive_quantity(3) == 3

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_raises(self, quantity: int) -> None:
        with pytest.raises(InvalidQuantityError) as exc_info:
            require_positive_quantity(quantity)
        assert exc_info.value.error_code == "VALIDATION_FAILED"


class TestPaymentMethod:
    """Tests for PaymentMethod."""

    def test_card_methods_settle_at_checkout(self) -> None:
        assert PaymentMethod.CREDIT_CARD.settles_at_checkout()
        assert PaymentMethod.DEBIT_CARD.settles_at_checkout()

    def test_cash_on_delivery_does_not_settle_at_checkout(self) -> None:
        assert not PaymentMethod.CASH_ON_DELIVERY.settles_at_checkout()

    def test_parse_known_method(self) -> None:
        assert PaymentMethod.parse("cod") is PaymentMethod.CASH_ON_DELIVERY

    def test_parse_unknown_method_raises(self) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            PaymentMethod.parse("bitcoin")
        assert exc_info.value.details["allowed"] == ["cc", "dc", "cod"]


class TestOrderNumber:
    """Tests for OrderNumber generation."""

    def test_format(self) -> None:
        number = OrderNumber.generate()
        assert re.fullmatch(r"ORD-\d{13}-\d{5}", number.value)

    def test_custom_prefix(self) -> None:
        assert str(OrderNumber.generate("SHOP")).startswith("SHOP-")
