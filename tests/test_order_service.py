"""Tests for checkout and the order lifecycle."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from agrimart.data.models import InventoryLogModel, OrderModel
from agrimart.domain.errors import (
    InsufficientStock,
    InvalidPaymentState,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from agrimart.domain.order_status import OrderStatus
from agrimart.services.cart_service import CartService
from agrimart.services.inventory_service import InventoryService
from agrimart.services.order_service import OrderService
from agrimart.services.payment_service import PaymentService

BUYER = 21
OTHER_BUYER = 22
STAFF = 900


@pytest.fixture
def orders(db, lock_service, profile_client, notifier):
    return OrderService(db, lock_service, profile_client, notifier)


@pytest.fixture
def payments(db, lock_service, profile_client, notifier):
    return PaymentService(db, lock_service, notifier, profile_client)


@pytest.fixture
def place_order(db, orders, address):
    def _place(product, quantity, buyer=BUYER, shipping=None, **kwargs):
        CartService(db).add_item(buyer, product.id, quantity)
        return orders.create_order(buyer, shipping or address, "upi", **kwargs)

    return _place


@pytest.fixture
def paid_order(place_order, payments):
    def _paid(product, quantity):
        order = place_order(product, quantity)
        payments.submit_payment(order["id"], BUYER, reference="UTR123456")
        return payments.confirm_payment(order["id"], STAFF)

    return _paid


def stock(db, product_id):
    product = InventoryService(db).get_stock(product_id)
    return product.stock_total, product.stock_reserved


class TestCreateOrder:
    def test_checkout_reserves_stock_and_empties_cart(self, db, place_order, make_product, notifier):
        product = make_product(stock_total=10)
        order = place_order(product, 5)

        assert order["status"] == "pending_payment"
        assert order["payment_status"] == "pending"
        assert order["payment_method"] == "upi"
        assert stock(db, product.id) == (10, 5)
        assert CartService(db).get_cart(BUYER)["items"] == []
        assert [h["status"] for h in order["status_history"]] == ["pending_payment"]
        assert notifier.events == [("order_placed", order["id"])]

    def test_order_number_assigned_from_id(self, place_order, make_product):
        order = place_order(make_product(), 1)
        assert order["order_number"].startswith("AGR-")
        assert order["order_number"].endswith(f"-{order['id']:05d}")

    def test_lines_are_frozen_snapshots(self, db, place_order, orders, make_product):
        product = make_product(tiers=[(5, None, "90.00", "10.00")])
        order = place_order(product, 5)

        product.name = "Renamed"
        product.unit_price = Decimal("150.00")
        db.commit()

        fresh = orders.get_order(order["id"], BUYER)
        line = fresh["items"][0]
        assert line["product_name"] == "Chlorpyrifos 20% EC (1 L)"
        assert line["unit_price"] == Decimal("90.00")
        assert line["line_total"] == Decimal("531.00")

    def test_intra_state_gst_split(self, place_order, make_product):
        order = place_order(make_product(), 4)
        assert order["tax_breakdown"]["cgst"] == Decimal("36.00")
        assert order["tax_breakdown"]["sgst"] == Decimal("36.00")
        assert order["tax_breakdown"]["igst"] == Decimal("0.00")
        assert order["grand_total"] == Decimal("472.00")

    def test_inter_state_gst_is_igst(self, place_order, make_product, interstate_address):
        order = place_order(make_product(), 4, shipping=interstate_address)
        assert order["tax_breakdown"]["igst"] == Decimal("72.00")
        assert order["tax_breakdown"]["cgst"] == Decimal("0.00")
        assert order["tax_breakdown"]["sgst"] == Decimal("0.00")

    def test_grand_total_rounded_with_round_off(self, db, place_order, make_product):
        first = make_product(name="Mancozeb 75% WP", unit_price="33.33")
        second = make_product(name="Jute twine", unit_price="12.47", gst_rate=12)
        CartService(db).add_item(BUYER, first.id, 3)
        order = place_order(second, 7)

        lines = sum(i["line_total"] for i in order["items"])
        assert lines + order["shipping_charges"] + order["round_off"] == order["grand_total"]
        assert order["grand_total"] == order["grand_total"].to_integral_value()
        assert order["total_gst"] == order["tax_breakdown"]["cgst"] + order["tax_breakdown"]["sgst"]

    def test_billing_defaults_to_shipping(self, place_order, make_product, address):
        order = place_order(make_product(), 1)
        assert order["billing_address"] == order["shipping_address"]
        assert order["shipping_address"]["pincode"] == address["pincode"]

    def test_customer_snapshot_from_profile(self, place_order, make_product, profile_client):
        order = place_order(make_product(), 1, customer_notes="Deliver before 10am")
        assert order["customer_snapshot"]["gstin"] == "27ABCDE1234F1Z5"
        assert order["customer_notes"] == "Deliver before 10am"
        assert profile_client.calls == [BUYER]

    def test_empty_cart(self, orders, address):
        with pytest.raises(ValidationError) as exc:
            orders.create_order(BUYER, address, "upi")
        assert exc.value.field == "cart"

    def test_invalid_pincode(self, db, orders, make_product, address):
        CartService(db).add_item(BUYER, make_product().id, 1)
        with pytest.raises(ValidationError):
            orders.create_order(BUYER, {**address, "pincode": "42200"}, "upi")

    def test_missing_address_field(self, db, orders, make_product, address):
        CartService(db).add_item(BUYER, make_product().id, 1)
        bad = dict(address)
        del bad["city"]
        with pytest.raises(ValidationError):
            orders.create_order(BUYER, bad, "upi")

    def test_unknown_payment_method(self, db, orders, make_product, address):
        CartService(db).add_item(BUYER, make_product().id, 1)
        with pytest.raises(ValidationError):
            orders.create_order(BUYER, address, "cash")

    def test_unknown_buyer_profile(self, db, orders, make_product, address, profile_client):
        profile_client.profiles[BUYER] = None
        CartService(db).add_item(BUYER, make_product().id, 1)
        with pytest.raises(NotFound):
            orders.create_order(BUYER, address, "upi")

    def test_stock_taken_since_cart_was_filled(self, db, orders, make_product, address):
        product = make_product(stock_total=10)
        CartService(db).add_item(BUYER, product.id, 6)
        InventoryService(db).reserve(product.id, 5, order_id=None, actor_id=STAFF)

        with pytest.raises(InsufficientStock):
            orders.create_order(BUYER, address, "upi")
        assert stock(db, product.id) == (10, 5)
        assert len(CartService(db).get_cart(BUYER)["items"]) == 1

    def test_failed_reservation_rolls_back_everything(self, db, orders, make_product, address, monkeypatch):
        first = make_product(name="Urea", stock_total=50)
        second = make_product(name="DAP", stock_total=50)
        cart = CartService(db)
        cart.add_item(BUYER, first.id, 5)
        cart.add_item(BUYER, second.id, 5)

        real_reserve = orders.inventory.reserve

        def reserve(product_id, quantity, order_id, actor_id, commit=True):
            if product_id == second.id:
                raise InsufficientStock(product_id, quantity, 0)
            return real_reserve(product_id, quantity, order_id, actor_id, commit=commit)

        monkeypatch.setattr(orders.inventory, "reserve", reserve)

        with pytest.raises(InsufficientStock):
            orders.create_order(BUYER, address, "upi")

        assert stock(db, first.id) == (50, 0)
        assert db.execute(select(func.count()).select_from(OrderModel)).scalar_one() == 0
        assert db.execute(select(func.count()).select_from(InventoryLogModel)).scalar_one() == 0
        assert len(cart.get_cart(BUYER)["items"]) == 2


class TestTransitions:
    def test_create_cancel_recreate_accept(self, db, place_order, payments, orders, make_product):
        product = make_product(stock_total=10)

        first = place_order(product, 5)
        assert stock(db, product.id) == (10, 5)

        orders.cancel_order(first["id"], BUYER, "Ordered twice")
        assert stock(db, product.id) == (10, 0)

        second = place_order(product, 5)
        payments.submit_payment(second["id"], BUYER, reference="UTR99")
        payments.confirm_payment(second["id"], STAFF)
        accepted = orders.transition_status(second["id"], STAFF, "accepted")

        assert accepted["status"] == "accepted"
        assert accepted["accepted_at"] is not None
        assert stock(db, product.id) == (5, 0)

    def test_full_fulfilment_flow(self, db, paid_order, orders, make_product, notifier):
        product = make_product(stock_total=10)
        order = paid_order(product, 3)

        orders.transition_status(order["id"], STAFF, "accepted", note="Packed")
        orders.transition_status(order["id"], STAFF, "in_transit", note="LR 5531")
        delivered = orders.transition_status(order["id"], STAFF, "delivered")

        assert delivered["delivered_at"] is not None
        assert [h["status"] for h in delivered["status_history"]] == [
            "pending_payment",
            "paid",
            "accepted",
            "in_transit",
            "delivered",
        ]
        assert delivered["status_history"][2]["note"] == "Packed"
        assert ("status_changed", order["id"], "delivered") in notifier.events

    def test_non_adjacent_transition_rejected(self, db, place_order, orders, make_product):
        product = make_product(stock_total=10)
        order = place_order(product, 2)

        with pytest.raises(InvalidTransition) as exc:
            orders.transition_status(order["id"], STAFF, "accepted")
        assert exc.value.current == "pending_payment"
        assert exc.value.target == "accepted"
        assert stock(db, product.id) == (10, 2)

    def test_paid_only_through_payment_confirmation(self, place_order, orders, make_product):
        order = place_order(make_product(), 1)
        with pytest.raises(InvalidTransition):
            orders.transition_status(order["id"], STAFF, "paid")

    def test_unknown_status(self, place_order, orders, make_product):
        order = place_order(make_product(), 1)
        with pytest.raises(ValidationError):
            orders.transition_status(order["id"], STAFF, "shipped")

    def test_delivered_is_terminal(self, paid_order, orders, make_product):
        order = paid_order(make_product(), 1)
        for status in ("accepted", "in_transit", "delivered"):
            orders.transition_status(order["id"], STAFF, status)
        with pytest.raises(InvalidTransition):
            orders.transition_status(order["id"], STAFF, "cancelled")

    def test_in_transit_cannot_be_cancelled(self, paid_order, orders, make_product):
        order = paid_order(make_product(), 1)
        orders.transition_status(order["id"], STAFF, "accepted")
        orders.transition_status(order["id"], STAFF, "in_transit")
        with pytest.raises(InvalidTransition):
            orders.cancel_order(order["id"], STAFF, "Too late", role="admin")

    def test_transition_takes_order_lock(self, place_order, orders, make_product, lock_service):
        order = place_order(make_product(), 1)
        orders.cancel_order(order["id"], BUYER, "Changed my mind")
        assert order["id"] in lock_service.acquired

    def test_concurrent_accept_deducts_once(
        self, db, session_factory, paid_order, orders, make_product, passthrough_lock, profile_client, notifier, monkeypatch
    ):
        product = make_product(stock_total=10)
        order = paid_order(product, 5)

        other = session_factory()
        try:
            late = OrderService(other, passthrough_lock, profile_client, notifier)
            real_update = late.repo.update_order_version

            # the other request wins between the read and the versioned write
            def accept_first(order_id, old_version, new_data):
                orders.transition_status(order_id, STAFF, "accepted")
                return real_update(order_id, old_version, new_data)

            monkeypatch.setattr(late.repo, "update_order_version", accept_first)

            with pytest.raises(InvalidTransition) as exc:
                late.transition_status(order["id"], STAFF + 1, "accepted")
        finally:
            other.close()

        assert exc.value.current == "accepted"
        assert stock(db, product.id) == (5, 0)
        deductions = InventoryService(db).list_entries(product.id, kind="deduct")
        assert len(deductions) == 1

        stored = orders.get_order(order["id"], BUYER)
        assert [h["status"] for h in stored["status_history"]] == ["pending_payment", "paid", "accepted"]

    def test_stale_order_copy_cannot_transition(
        self, db, session_factory, paid_order, orders, make_product, passthrough_lock, profile_client, notifier
    ):
        product = make_product(stock_total=10)
        order = paid_order(product, 5)

        other = session_factory()
        try:
            late = OrderService(other, passthrough_lock, profile_client, notifier)
            stale = late.repo.get_order(order["id"], refresh=True)
            orders.transition_status(order["id"], STAFF, "accepted")

            with pytest.raises(InvalidTransition):
                late.apply_transition(stale, OrderStatus.ACCEPTED, STAFF + 1)
            other.rollback()
        finally:
            other.close()

        assert stock(db, product.id) == (5, 0)

    def test_missing_order(self, orders):
        with pytest.raises(NotFound):
            orders.transition_status(404, STAFF, "accepted")


class TestCancel:
    def test_cancel_paid_order_releases(self, db, paid_order, orders, make_product):
        product = make_product(stock_total=10)
        order = paid_order(product, 4)
        cancelled = orders.cancel_order(order["id"], STAFF, "Out of delivery area", role="employee")

        assert cancelled["status"] == "cancelled"
        assert cancelled["cancelled_by"] == STAFF
        assert cancelled["cancellation_reason"] == "Out of delivery area"
        assert stock(db, product.id) == (10, 0)

    def test_cancel_after_acceptance_leaves_ledger_alone(self, db, paid_order, orders, make_product):
        product = make_product(stock_total=10)
        order = paid_order(product, 4)
        orders.transition_status(order["id"], STAFF, "accepted")
        before = InventoryService(db).list_entries(product.id)

        orders.cancel_order(order["id"], STAFF, "Buyer refused", role="admin")

        assert stock(db, product.id) == (6, 0)
        assert len(InventoryService(db).list_entries(product.id)) == len(before)

    def test_other_buyer_cannot_cancel(self, place_order, orders, make_product):
        order = place_order(make_product(), 1)
        with pytest.raises(Unauthorized):
            orders.cancel_order(order["id"], OTHER_BUYER, "Not mine")

    def test_second_cancel_rejected(self, db, place_order, orders, make_product):
        product = make_product(stock_total=10)
        order = place_order(product, 3)
        orders.cancel_order(order["id"], BUYER, "Changed my mind")
        with pytest.raises(InvalidTransition):
            orders.cancel_order(order["id"], BUYER, "Again")
        assert stock(db, product.id) == (10, 0)


class TestQueries:
    def test_get_order_ownership(self, place_order, orders, make_product):
        order = place_order(make_product(), 1)
        assert orders.get_order(order["id"], BUYER)["id"] == order["id"]
        assert orders.get_order(order["id"], STAFF, role="admin")["id"] == order["id"]
        with pytest.raises(Unauthorized):
            orders.get_order(order["id"], OTHER_BUYER)

    def test_list_buyer_orders(self, place_order, orders, make_product):
        product = make_product(stock_total=100)
        ids = [place_order(product, 1)["id"] for _ in range(3)]
        orders.cancel_order(ids[0], BUYER, "Duplicate")

        page = orders.list_buyer_orders(BUYER, page=1, limit=2)
        assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
        assert len(page["orders"]) == 2

        cancelled = orders.list_buyer_orders(BUYER, status="cancelled")
        assert [o["id"] for o in cancelled["orders"]] == [ids[0]]
        assert orders.list_buyer_orders(OTHER_BUYER)["orders"] == []

    def test_list_rejects_bad_paging(self, orders):
        with pytest.raises(ValidationError):
            orders.list_buyer_orders(BUYER, page=0)
        with pytest.raises(ValidationError):
            orders.list_buyer_orders(BUYER, status="lost")

    def test_invoice_requires_confirmed_payment(self, place_order, orders, make_product):
        order = place_order(make_product(), 1)
        with pytest.raises(InvalidPaymentState):
            orders.get_invoice_data(order["id"])

    def test_invoice_data(self, paid_order, orders, make_product):
        order = paid_order(make_product(), 4)
        invoice = orders.get_invoice_data(order["id"])

        assert invoice["invoice_number"].startswith("AGI-")
        assert invoice["order_number"] == order["order_number"]
        assert invoice["seller"]["state"] == "Maharashtra"
        assert invoice["buyer"]["name"] == "Green Fields Agro Centre"
        assert invoice["items"][0]["taxable_value"] == Decimal("400.00")
        assert invoice["grand_total"] == Decimal("472.00")
