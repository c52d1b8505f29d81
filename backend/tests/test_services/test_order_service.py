"""
Unit tests for OrderService

Runs the order/stock lifecycle against the in-memory repositories.

Author: TM3
Date: 2025-10-17
"""
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.core.errors import (
    ForbiddenError,
    InsufficientStockError,
    InvalidInputError,
    InvalidRelationError,
    NotFoundError,
)
from app.domain.order import OrderCreate, OrderItemCreate, OrderStatus
from app.domain.product import Variant
from app.domain.user import Principal
from app.services.order_service import OrderService


def _order_payload(quantity, variant_id="variant-1", address_id="address-1"):
    return OrderCreate(address_id=address_id, items=[OrderItemCreate(variant_id=variant_id, quantity=quantity)])


def _stock(store, variant_id="variant-1"):
    return store.get("variants", variant_id).stock


class TestCreateOrder:
    """Test order placement and stock decrement"""

    def test_create_order_decrements_stock(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(3))

        assert order.status == OrderStatus.PENDING
        assert order.user_id == "user-1"
        assert order.total_quantity == 3
        assert order.items[0].price == Decimal("10000")
        assert order.subtotal == Decimal("30000")
        assert order.total_amount == Decimal("30000")
        assert order.shipping_cost == Decimal("0")
        assert _stock(store) == 2

    def test_delivery_date_is_seven_days_out(self, context, seed, customer, db, repositories):
        fixed = datetime(2025, 10, 17, 12, 0, tzinfo=timezone.utc)
        service = OrderService(
            db, repositories.orders, repositories.variants, repositories.addresses,
            repositories.users, clock=lambda: fixed
        )

        order = service.create_order(customer, _order_payload(1))

        assert order.delivery_date == fixed + timedelta(days=7)

    def test_order_uses_whole_stock(self, context, store, seed, customer):
        context.orders.create_order(customer, _order_payload(5))
        assert _stock(store) == 0

    def test_insufficient_stock_leaves_nothing_behind(self, context, store, seed, customer):
        with pytest.raises(InsufficientStockError) as exc_info:
            context.orders.create_order(customer, _order_payload(6))

        assert exc_info.value.available == 5
        assert exc_info.value.status_code == 400
        assert "Disponible: 5" in exc_info.value.message
        assert _stock(store) == 5
        assert store.rows("orders") == []

    def test_empty_items_rejected(self, context, seed, customer):
        with pytest.raises(InvalidInputError):
            context.orders.create_order(customer, OrderCreate(address_id="address-1", items=[]))

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_rejected(self, context, store, seed, customer, quantity):
        with pytest.raises(InvalidInputError):
            context.orders.create_order(customer, _order_payload(quantity))
        assert _stock(store) == 5

    def test_unknown_variant(self, context, seed, customer):
        with pytest.raises(NotFoundError):
            context.orders.create_order(customer, _order_payload(1, variant_id="missing"))

    def test_unknown_address(self, context, seed, customer):
        with pytest.raises(NotFoundError):
            context.orders.create_order(customer, _order_payload(1, address_id="missing"))

    def test_address_of_another_user(self, context, store, seed, other_customer):
        with pytest.raises(InvalidRelationError):
            context.orders.create_order(other_customer, _order_payload(1))
        assert _stock(store) == 5

    def test_caller_without_profile(self, context, seed):
        ghost = Principal(auth_id="auth-ghost")
        with pytest.raises(NotFoundError):
            context.orders.create_order(ghost, _order_payload(1))

    def test_second_item_short_rolls_back_first(self, context, store, seed, customer):
        """A failure on any item undoes the order, its items and earlier decrements"""
        store.put("variants", "variant-2", Variant(
            id="variant-2", product_id="product-1", price=Decimal("5000"), stock=1
        ))
        payload = OrderCreate(address_id="address-1", items=[
            OrderItemCreate(variant_id="variant-1", quantity=2),
            OrderItemCreate(variant_id="variant-2", quantity=1),
            OrderItemCreate(variant_id="variant-2", quantity=1),
        ])

        with pytest.raises(InsufficientStockError):
            context.orders.create_order(customer, payload)

        assert _stock(store, "variant-1") == 5
        assert _stock(store, "variant-2") == 1
        assert store.rows("orders") == []
        assert store.rows("order_items") == []

    def test_stock_is_taken_in_variant_id_order(self, context, store, seed, customer, repositories):
        """Whatever order the request lists items in, variant rows are locked in id order"""
        store.put("variants", "variant-2", Variant(
            id="variant-2", product_id="product-1", price=Decimal("5000"), stock=4
        ))
        decremented = []
        original = repositories.variants.decrement_stock

        def spy(variant_id, quantity, conn=None):
            decremented.append(variant_id)
            return original(variant_id, quantity, conn=conn)

        repositories.variants.decrement_stock = spy
        payload = OrderCreate(address_id="address-1", items=[
            OrderItemCreate(variant_id="variant-2", quantity=1),
            OrderItemCreate(variant_id="variant-1", quantity=1),
        ])

        context.orders.create_order(customer, payload)

        assert decremented == ["variant-1", "variant-2"]
        assert _stock(store, "variant-1") == 4
        assert _stock(store, "variant-2") == 3

    def test_stock_taken_meanwhile_rolls_back_earlier_items(self, context, store, seed, customer, repositories):
        store.put("variants", "variant-2", Variant(
            id="variant-2", product_id="product-1", price=Decimal("5000"), stock=1
        ))
        calls = []

        def drain_variant_2():
            calls.append(1)
            if len(calls) == 2:
                variant = store.get("variants", "variant-2")
                store.put("variants", "variant-2", variant.model_copy(update={"stock": 0}))

        repositories.variants.before_decrement = drain_variant_2
        payload = OrderCreate(address_id="address-1", items=[
            OrderItemCreate(variant_id="variant-2", quantity=1),
            OrderItemCreate(variant_id="variant-1", quantity=2),
        ])

        with pytest.raises(InsufficientStockError) as exc_info:
            context.orders.create_order(customer, payload)

        assert exc_info.value.available == 0
        assert _stock(store, "variant-1") == 5
        assert store.rows("orders") == []

    def test_item_price_frozen(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(2))

        variant = store.get("variants", "variant-1")
        store.put("variants", "variant-1", variant.model_copy(update={"price": Decimal("99999")}))

        reloaded = context.orders.get_order_by_id(order.id, customer)
        assert reloaded.items[0].price == Decimal("10000")
        assert reloaded.total_amount == Decimal("20000")
        assert reloaded.items[0].variant.price == Decimal("99999")

    def test_concurrent_orders_cannot_oversell(self, context, store, seed, customer, repositories):
        """Two orders of 3 against stock 5: both pass validation, only one gets the stock"""
        barrier = threading.Barrier(2, timeout=5)
        repositories.variants.before_decrement = barrier.wait

        results = []

        def place():
            try:
                results.append(context.orders.create_order(customer, _order_payload(3)))
            except InsufficientStockError as e:
                results.append(e)

        threads = [threading.Thread(target=place) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        placed = [result for result in results if not isinstance(result, Exception)]
        rejected = [result for result in results if isinstance(result, InsufficientStockError)]

        assert len(placed) == 1
        assert len(rejected) == 1
        assert rejected[0].available == 2
        assert _stock(store) == 2
        assert len(store.rows("orders")) == 1
        assert len(store.rows("order_items")) == 1


class TestOrderStatus:
    """Test status changes and stock restoration"""

    def test_create_cancel_cancel_again(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(3))
        assert _stock(store) == 2

        assert context.orders.cancel_order(order.id, customer) == OrderStatus.CANCELLED
        assert _stock(store) == 5

        context.orders.cancel_order(order.id, customer)
        assert _stock(store) == 5
        assert context.orders.get_order_by_id(order.id, customer).status == OrderStatus.CANCELLED

    def test_admin_cancel_through_status(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(2))

        context.orders.update_order_status(order.id, "processing")
        assert _stock(store) == 3

        context.orders.update_order_status(order.id, "cancelled")
        assert _stock(store) == 5

    def test_other_transitions_leave_stock(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(2))

        for status in ("processing", "shipped", "delivered"):
            context.orders.update_order_status(order.id, status)

        assert _stock(store) == 3

    def test_leaving_cancelled_does_not_take_stock_again(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(2))
        context.orders.update_order_status(order.id, "cancelled")

        context.orders.update_order_status(order.id, "pending")

        assert _stock(store) == 5

    @pytest.mark.parametrize("status", ["archived", "", None, "CANCELLED"])
    def test_invalid_status(self, context, seed, customer, status):
        order = context.orders.create_order(customer, _order_payload(1))
        with pytest.raises(InvalidInputError):
            context.orders.update_order_status(order.id, status)

    def test_unknown_order(self, context, seed):
        with pytest.raises(NotFoundError):
            context.orders.update_order_status(999, "cancelled")

    def test_cancel_skips_deleted_variant(self, context, store, seed, customer):
        order = context.orders.create_order(customer, _order_payload(2))
        store.remove("variants", "variant-1")

        assert context.orders.cancel_order(order.id, customer) == OrderStatus.CANCELLED

    def test_cancel_restores_in_variant_id_order(self, context, store, seed, customer, repositories):
        store.put("variants", "variant-2", Variant(
            id="variant-2", product_id="product-1", price=Decimal("5000"), stock=4
        ))
        order = context.orders.create_order(customer, OrderCreate(address_id="address-1", items=[
            OrderItemCreate(variant_id="variant-2", quantity=2),
            OrderItemCreate(variant_id="variant-1", quantity=1),
        ]))
        restored = []
        original = repositories.variants.increment_stock

        def spy(variant_id, quantity, conn=None):
            restored.append(variant_id)
            return original(variant_id, quantity, conn=conn)

        repositories.variants.increment_stock = spy

        context.orders.cancel_order(order.id, customer)

        assert restored == ["variant-1", "variant-2"]
        assert _stock(store, "variant-1") == 5
        assert _stock(store, "variant-2") == 4

    def test_customer_cannot_cancel_foreign_order(self, context, store, seed, customer, other_customer):
        order = context.orders.create_order(customer, _order_payload(2))

        with pytest.raises(ForbiddenError):
            context.orders.cancel_order(order.id, other_customer)
        assert _stock(store) == 3

    def test_concurrent_cancels_restore_once(self, context, store, seed, customer, admin):
        order = context.orders.create_order(customer, _order_payload(3))

        threads = [
            threading.Thread(target=context.orders.cancel_order, args=(order.id, principal))
            for principal in (customer, admin, customer)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert _stock(store) == 5


class TestOrderQueries:

    def test_owner_and_admin_can_read(self, context, seed, customer, admin):
        order = context.orders.create_order(customer, _order_payload(1))

        assert context.orders.get_order_by_id(order.id, customer).id == order.id
        assert context.orders.get_order_by_id(order.id, admin).id == order.id

    def test_stranger_cannot_read(self, context, seed, customer, other_customer):
        order = context.orders.create_order(customer, _order_payload(1))
        with pytest.raises(ForbiddenError):
            context.orders.get_order_by_id(order.id, other_customer)

    def test_missing_order(self, context, seed, customer):
        with pytest.raises(NotFoundError):
            context.orders.get_order_by_id(42, customer)

    def test_orders_by_user_newest_first(self, context, seed, customer, admin):
        first = context.orders.create_order(customer, _order_payload(1))
        second = context.orders.create_order(customer, _order_payload(1))

        orders = context.orders.get_orders_by_user("auth-customer", customer)
        assert [order.id for order in orders] == [second.id, first.id]
        assert len(context.orders.get_orders_by_user("auth-customer", admin)) == 2
        assert len(context.orders.get_all_orders()) == 2

    def test_orders_by_user_requires_self_or_admin(self, context, seed, other_customer):
        with pytest.raises(ForbiddenError):
            context.orders.get_orders_by_user("auth-customer", other_customer)

    def test_orders_by_unknown_user(self, context, seed, admin):
        with pytest.raises(NotFoundError):
            context.orders.get_orders_by_user("auth-nobody", admin)
