"""Tests for checkout and the order ledger."""

import asyncio

from sqlalchemy import func, select

from fulfillment.application import CartService, OrderService
from fulfillment.domain import OrderStatus, PaymentStatus, StoreUnavailableError
from fulfillment.infrastructure.models import OrderModel, PaymentModel
from fulfillment.infrastructure.repositories import CartRepository, ProductRepository


async def fill_cart(carts: CartService, user_id: str, *lines: tuple[str, int]) -> None:
    for product_id, quantity in lines:
        result = await carts.add_item(user_id, product_id, quantity)
        assert result.success, result.error


class TestCheckout:
    """Tests for create_order."""

    async def test_checkout_creates_order_and_empties_cart(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        """2 x P1 at 10.00 with stock 5: total 20.00, stock 3, cart emptied."""
        await fill_cart(carts, "alice", (stocked["p1"].id, 2))

        result = await orders.create_order("alice", address, address, "cod")

        assert result.success, result.error
        order = result.order
        assert order.total_amount_cents == 2000
        assert order.status == OrderStatus.PENDING
        assert order.order_number.startswith("ORD-")
        assert [(i.product_id, i.quantity, i.price_at_time_cents) for i in order.items] == [
            (stocked["p1"].id, 2, 1000)
        ]
        assert await stock_of(stocked["p1"].id) == 3
        assert (await carts.get_cart("alice")).cart.is_empty

    async def test_insufficient_stock_changes_nothing(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        """2 x P2 with stock 1 fails and leaves stock, cart and orders untouched."""
        added = await carts.add_item("alice", stocked["p2"].id, 1)
        await carts.update_item(added.cart.items[0].id, 2, user_id="alice")

        result = await orders.create_order("alice", address, address, "cod")

        assert not result.success
        assert result.error_code == "INSUFFICIENT_STOCK"
        assert result.error == "Insufficient stock for P2"
        assert await stock_of(stocked["p2"].id) == 1
        cart = (await carts.get_cart("alice")).cart
        assert [(i.product_id, i.quantity) for i in cart.items] == [(stocked["p2"].id, 2)]
        assert (await orders.list_orders(user_id="alice")).total == 0

    async def test_short_last_line_leaves_every_line_untouched(
        self, carts, inventory, orders: OrderService, stocked, stock_of, address
    ) -> None:
        """A line already short at checkout is refused before any stock moves."""
        await fill_cart(carts, "alice", (stocked["p1"].id, 2), (stocked["p2"].id, 1))
        await inventory.update_product(stocked["p2"].id, stock_quantity=0)

        result = await orders.create_order("alice", address, address, "cc")

        assert result.error_code == "INSUFFICIENT_STOCK"
        assert await stock_of(stocked["p1"].id) == 5
        assert len((await carts.get_cart("alice")).cart.items) == 2
        assert (await orders.list_orders()).total == 0

    async def test_decrement_failing_midway_rolls_back_checkout(
        self, carts, orders: OrderService, db, stocked, stock_of, address, monkeypatch
    ) -> None:
        """Stock taken between the pre-check and the decrement undoes every earlier write."""
        await fill_cart(carts, "alice", (stocked["p1"].id, 2), (stocked["p2"].id, 1))
        claim_for_checkout = CartRepository.claim_for_checkout

        async def claim_then_sell_out(self, cart_id, expected_version):
            claimed = await claim_for_checkout(self, cart_id, expected_version)
            assert await ProductRepository(self.session).decrement_stock(stocked["p2"].id, 1)
            return claimed

        monkeypatch.setattr(CartRepository, "claim_for_checkout", claim_then_sell_out)

        result = await orders.create_order("alice", address, address, "cc")

        assert result.error_code == "INSUFFICIENT_STOCK"
        assert result.details["product_id"] == stocked["p2"].id
        assert await stock_of(stocked["p1"].id) == 5
        assert await stock_of(stocked["p2"].id) == 1
        cart = (await carts.get_cart("alice")).cart
        assert [(i.product_id, i.quantity) for i in cart.items] == [
            (stocked["p1"].id, 2),
            (stocked["p2"].id, 1),
        ]
        async with db.transaction() as session:
            order_count = (await session.execute(select(func.count()).select_from(OrderModel))).scalar_one()
            payment_count = (
                await session.execute(select(func.count()).select_from(PaymentModel))
            ).scalar_one()
        assert order_count == 0
        assert payment_count == 0

    async def test_empty_cart_is_rejected(self, carts, orders: OrderService, stocked, address) -> None:
        assert (await orders.create_order("alice", address, address, "cod")).error_code == "EMPTY_CART"

        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        await carts.clear("alice")

        assert (await orders.create_order("alice", address, address, "cod")).error_code == "EMPTY_CART"

    async def test_unknown_payment_method_is_rejected(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))

        result = await orders.create_order("alice", address, address, "barter")

        assert result.error_code == "VALIDATION_FAILED"
        assert await stock_of(stocked["p1"].id) == 5

    async def test_total_survives_later_price_change(
        self, carts, inventory, orders: OrderService, stocked, address
    ) -> None:
        """Order items keep the price at checkout time."""
        await fill_cart(carts, "alice", (stocked["p1"].id, 2), (stocked["p2"].id, 1))
        created = await orders.create_order("alice", address, address, "cod")

        await inventory.update_product(stocked["p1"].id, price_cents=9999)
        order = (await orders.get_order(created.order.id, user_id="alice")).order

        assert order.total_amount_cents == 2500
        assert sum(i.line_total_cents for i in order.items) == order.total_amount_cents

    async def test_card_checkout_settles_payment(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))

        order = (await orders.create_order("alice", address, address, "cc")).order

        assert len(order.payments) == 1
        assert order.payments[0].status == PaymentStatus.COMPLETED
        assert order.payments[0].amount_cents == order.total_amount_cents

    async def test_cash_on_delivery_has_no_payment_yet(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))

        order = (await orders.create_order("alice", address, address, "cod")).order

        assert order.payments == []

    async def test_initial_status_is_recorded_in_history(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))

        order = (await orders.create_order("alice", address, address, "cod")).order

        assert [(h.from_status, h.to_status) for h in order.status_history] == [(None, "pending")]


class TestIdempotency:
    """Tests for checkout replays."""

    async def test_replay_returns_original_order(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 2))
        first = await orders.create_order("alice", address, address, "cod", idempotency_key="key-1")

        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        second = await orders.create_order("alice", address, address, "cod", idempotency_key="key-1")

        assert second.success
        assert second.replayed
        assert second.order.id == first.order.id
        assert await stock_of(stocked["p1"].id) == 3
        assert (await orders.list_orders(user_id="alice")).total == 1

    async def test_keys_are_scoped_per_user(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        await fill_cart(carts, "bob", (stocked["p1"].id, 1))

        alice = await orders.create_order("alice", address, address, "cod", idempotency_key="same")
        bob = await orders.create_order("bob", address, address, "cod", idempotency_key="same")

        assert not bob.replayed
        assert bob.order.id != alice.order.id


class TestReadOrders:
    """Tests for order lookup and listing."""

    async def test_other_users_order_is_not_found(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        created = await orders.create_order("alice", address, address, "cod")

        result = await orders.get_order(created.order.id, user_id="bob")

        assert result.error_code == "NOT_FOUND"

    async def test_list_orders_is_scoped_and_paginated(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        for _ in range(3):
            await fill_cart(carts, "alice", (stocked["p1"].id, 1))
            assert (await orders.create_order("alice", address, address, "cod")).success
        await fill_cart(carts, "bob", (stocked["p1"].id, 1))
        await orders.create_order("bob", address, address, "cod")

        page = await orders.list_orders(user_id="alice", page=1, limit=2)

        assert page.total == 3
        assert len(page.orders) == 2
        assert all(o.user_id == "alice" for o in page.orders)
        assert (await orders.list_orders()).total == 4

    async def test_list_by_unknown_status_is_rejected(self, orders: OrderService) -> None:
        assert (await orders.list_orders(status="lost")).error_code == "VALIDATION_FAILED"


class TestCancellation:
    """Tests for cancellation and its compensation."""

    async def test_cancel_pending_restocks_and_refunds(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 2))
        created = await orders.create_order("alice", address, address, "cc")

        result = await orders.cancel_order(created.order.id, "alice", reason="changed my mind")

        assert result.success, result.error
        assert result.order.status == OrderStatus.CANCELLED
        assert result.order.cancelled_at is not None
        assert await stock_of(stocked["p1"].id) == 5
        assert [p.status for p in result.order.payments] == [PaymentStatus.REFUNDED]
        assert result.order.status_history[-1].to_status == "cancelled"
        assert result.order.status_history[-1].actor == "customer"

    async def test_customer_cannot_cancel_processing_order(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        created = await orders.create_order("alice", address, address, "cod")
        await orders.update_status(created.order.id, "processing")

        result = await orders.cancel_order(created.order.id, "alice")

        assert result.error_code == "INVALID_TRANSITION"

    async def test_cancel_someone_elses_order_is_not_found(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        created = await orders.create_order("alice", address, address, "cod")

        assert (await orders.cancel_order(created.order.id, "bob")).error_code == "NOT_FOUND"

    async def test_cancel_without_restock_when_disabled(
        self, db, settings, carts, stocked, stock_of, address
    ) -> None:
        orders = OrderService(db, settings.model_copy(update={"restock_on_cancel": False}))
        await fill_cart(carts, "alice", (stocked["p1"].id, 2))
        created = await orders.create_order("alice", address, address, "cc")

        result = await orders.cancel_order(created.order.id, "alice")

        assert result.order.status == OrderStatus.CANCELLED
        assert await stock_of(stocked["p1"].id) == 3
        assert [p.status for p in result.order.payments] == [PaymentStatus.COMPLETED]


class TestAdminTransitions:
    """Tests for update_status."""

    async def test_full_lifecycle(self, carts, orders: OrderService, stocked, address) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        order_id = (await orders.create_order("alice", address, address, "cod")).order.id

        for target in ("processing", "shipped", "delivered"):
            result = await orders.update_status(order_id, target, reason=f"to {target}")
            assert result.success, result.error

        assert result.order.status == OrderStatus.DELIVERED
        assert [h.to_status for h in result.order.status_history] == [
            "pending",
            "processing",
            "shipped",
            "delivered",
        ]

    async def test_illegal_transition_is_rejected(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        order_id = (await orders.create_order("alice", address, address, "cod")).order.id

        result = await orders.update_status(order_id, "delivered")

        assert result.error_code == "INVALID_TRANSITION"
        assert result.details["allowed_transitions"] == ["cancelled", "processing"]

    async def test_unknown_status_is_rejected(
        self, carts, orders: OrderService, stocked, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 1))
        order_id = (await orders.create_order("alice", address, address, "cod")).order.id

        assert (await orders.update_status(order_id, "teleported")).error_code == "VALIDATION_FAILED"

    async def test_admin_cancel_of_processing_order_restocks(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        await fill_cart(carts, "alice", (stocked["p1"].id, 2))
        order_id = (await orders.create_order("alice", address, address, "cod")).order.id
        await orders.update_status(order_id, "processing")

        result = await orders.update_status(order_id, "cancelled", reason="out of stock at warehouse")

        assert result.order.status == OrderStatus.CANCELLED
        assert await stock_of(stocked["p1"].id) == 5


class TestConcurrency:
    """Tests for concurrent checkouts against the same stock."""

    async def test_concurrent_checkouts_never_oversell(
        self, db, carts, orders: OrderService, make_product, stock_of, address
    ) -> None:
        """Five buyers race for three units: stock never goes negative and
        every unit sold belongs to a successful order."""
        product = await make_product("Scarce", 1000, 3)
        buyers = [f"buyer-{n}" for n in range(5)]
        for buyer in buyers:
            await fill_cart(carts, buyer, (product.id, 1))

        outcomes = await asyncio.gather(
            *(orders.create_order(buyer, address, address, "cod") for buyer in buyers),
            return_exceptions=True,
        )

        succeeded = [o for o in outcomes if not isinstance(o, Exception) and o.success]
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                assert isinstance(outcome, StoreUnavailableError)
            elif not outcome.success:
                assert outcome.error_code in {"INSUFFICIENT_STOCK", "CONFLICT"}

        remaining = await stock_of(product.id)
        assert remaining >= 0
        assert 3 - remaining == len(succeeded)
        assert len(succeeded) <= 3

    async def test_same_cart_checked_out_twice_concurrently(
        self, carts, orders: OrderService, stocked, stock_of, address
    ) -> None:
        """Only one of two simultaneous checkouts of one cart may succeed."""
        await fill_cart(carts, "alice", (stocked["p1"].id, 2))

        outcomes = await asyncio.gather(
            orders.create_order("alice", address, address, "cod"),
            orders.create_order("alice", address, address, "cod"),
            return_exceptions=True,
        )

        succeeded = [o for o in outcomes if not isinstance(o, Exception) and o.success]
        assert len(succeeded) <= 1
        assert await stock_of(stocked["p1"].id) == 5 - 2 * len(succeeded)
