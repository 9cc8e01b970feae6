"""Tests for the cart aggregate service."""

from fulfillment.application import CartService


class TestGetCart:
    """Tests for reading a cart."""

    async def test_missing_cart_is_reported_as_none(self, carts: CartService) -> None:
        result = await carts.get_cart("alice")
        assert result.success
        assert result.cart is None

    async def test_reading_does_not_create_a_cart(self, carts: CartService) -> None:
        """get_cart on a user without a cart is side-effect free."""
        await carts.get_cart("alice")
        await carts.get_cart("alice")
        assert (await carts.get_cart("alice")).cart is None


class TestAddItem:
    """Tests for adding products to the cart."""

    async def test_first_add_creates_cart(self, carts: CartService, stocked) -> None:
        result = await carts.add_item("alice", stocked["p1"].id, 2)

        assert result.success
        assert result.cart.user_id == "alice"
        assert [(i.product_id, i.quantity) for i in result.cart.items] == [(stocked["p1"].id, 2)]
        assert result.cart.subtotal_cents == 2000

    async def test_adding_same_product_accumulates(self, carts: CartService, stocked) -> None:
        await carts.add_item("alice", stocked["p1"].id, 1)
        result = await carts.add_item("alice", stocked["p1"].id, 2)

        assert len(result.cart.items) == 1
        assert result.cart.items[0].quantity == 3

    async def test_unknown_product_is_not_found(self, carts: CartService) -> None:
        result = await carts.add_item("alice", "missing-product", 1)

        assert not result.success
        assert result.error_code == "NOT_FOUND"

    async def test_zero_quantity_is_rejected(self, carts: CartService, stocked) -> None:
        result = await carts.add_item("alice", stocked["p1"].id, 0)

        assert not result.success
        assert result.error_code == "VALIDATION_FAILED"

    async def test_more_than_stock_is_rejected(self, carts: CartService, stocked) -> None:
        result = await carts.add_item("alice", stocked["p2"].id, 2)

        assert not result.success
        assert result.error_code == "INSUFFICIENT_STOCK"
        assert result.details["available"] == 1
        assert (await carts.get_cart("alice")).cart is None

    async def test_carts_are_per_user(self, carts: CartService, stocked) -> None:
        await carts.add_item("alice", stocked["p1"].id, 1)
        await carts.add_item("bob", stocked["p2"].id, 1)

        alice = (await carts.get_cart("alice")).cart
        bob = (await carts.get_cart("bob")).cart
        assert alice.id != bob.id
        assert [i.product_id for i in alice.items] == [stocked["p1"].id]


class TestUpdateAndRemove:
    """Tests for changing cart lines."""

    async def test_update_quantity(self, carts: CartService, stocked) -> None:
        added = await carts.add_item("alice", stocked["p1"].id, 1)
        item_id = added.cart.items[0].id

        result = await carts.update_item(item_id, 4, user_id="alice")

        assert result.success
        assert result.cart.items[0].quantity == 4

    async def test_update_to_zero_is_rejected(self, carts: CartService, stocked) -> None:
        added = await carts.add_item("alice", stocked["p1"].id, 1)

        result = await carts.update_item(added.cart.items[0].id, 0, user_id="alice")

        assert result.error_code == "VALIDATION_FAILED"

    async def test_other_users_item_is_not_found(self, carts: CartService, stocked) -> None:
        added = await carts.add_item("alice", stocked["p1"].id, 1)

        result = await carts.update_item(added.cart.items[0].id, 2, user_id="bob")

        assert result.error_code == "NOT_FOUND"

    async def test_remove_item(self, carts: CartService, stocked) -> None:
        await carts.add_item("alice", stocked["p1"].id, 1)
        added = await carts.add_item("alice", stocked["p2"].id, 1)
        p2_item = next(i for i in added.cart.items if i.product_id == stocked["p2"].id)

        result = await carts.remove_item(p2_item.id, user_id="alice")

        assert [i.product_id for i in result.cart.items] == [stocked["p1"].id]

    async def test_remove_unknown_item_is_not_found(self, carts: CartService) -> None:
        result = await carts.remove_item("missing-item", user_id="alice")
        assert result.error_code == "NOT_FOUND"

    async def test_clear_empties_cart(self, carts: CartService, stocked) -> None:
        await carts.add_item("alice", stocked["p1"].id, 1)
        await carts.add_item("alice", stocked["p2"].id, 1)

        result = await carts.clear("alice")

        assert result.cart.is_empty
        assert result.cart.subtotal_cents == 0


class TestValidate:
    """Tests for stock validation of the cart."""

    async def test_valid_cart(self, carts: CartService, stocked) -> None:
        await carts.add_item("alice", stocked["p1"].id, 2)

        result = await carts.validate("alice")

        assert result.valid
        assert result.errors == []

    async def test_short_line_is_reported(self, carts, inventory, stocked, stock_of) -> None:
        """Stock that drops after adding makes the cart invalid without mutating stock."""
        await carts.add_item("alice", stocked["p2"].id, 1)
        await inventory.update_product(stocked["p2"].id, stock_quantity=0)

        result = await carts.validate("alice")

        assert not result.valid
        assert result.errors == ["Insufficient stock for P2"]
        assert await stock_of(stocked["p2"].id) == 0

    async def test_missing_cart_is_valid(self, carts: CartService) -> None:
        result = await carts.validate("nobody")
        assert result.valid
        assert result.cart is None
