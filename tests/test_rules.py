"""Tests for checkout input validation."""

import pytest

from agrimart.domain.errors import (
    AboveMaximumOrderQuantity,
    BelowMinimumOrderQuantity,
    InsufficientStock,
    ValidationError,
)
from agrimart.domain.rules import customer_snapshot, is_intra_state, validate_address, validate_quantity


class FakeProduct:
    def __init__(self, min_order_qty=1, max_order_qty=None, stock_available=100):
        self.id = 1
        self.min_order_qty = min_order_qty
        self.max_order_qty = max_order_qty
        self.stock_available = stock_available


class TestValidateQuantity:
    def test_moq_checked_before_stock(self):
        with pytest.raises(BelowMinimumOrderQuantity) as exc:
            validate_quantity(FakeProduct(min_order_qty=10, stock_available=0), 5)
        assert exc.value.min_qty == 10

    def test_max_order_qty(self):
        with pytest.raises(AboveMaximumOrderQuantity):
            validate_quantity(FakeProduct(max_order_qty=50), 51)

    def test_stock(self):
        with pytest.raises(InsufficientStock):
            validate_quantity(FakeProduct(stock_available=3), 4)

    def test_within_limits(self):
        validate_quantity(FakeProduct(min_order_qty=5, max_order_qty=10, stock_available=10), 10)


class TestValidateAddress:
    def test_strips_and_keeps_optional_district(self, address):
        cleaned = validate_address({**address, "city": "  Nashik "})
        assert cleaned["city"] == "Nashik"
        assert cleaned["district"] == "Nashik"

    def test_district_optional(self, address):
        del address["district"]
        assert "district" not in validate_address(address)

    def test_blank_required_field(self, address):
        with pytest.raises(ValidationError) as exc:
            validate_address({**address, "phone": " "})
        assert exc.value.field == "shipping_address.phone"

    def test_pincode_six_digits(self, address):
        with pytest.raises(ValidationError):
            validate_address({**address, "pincode": "4220031"}, "billing_address")

    def test_not_a_dict(self):
        with pytest.raises(ValidationError):
            validate_address("Nashik")


def test_intra_state_is_case_insensitive(address):
    assert is_intra_state({**address, "state": " maharashtra"}, "Maharashtra")
    assert not is_intra_state({**address, "state": "Goa"}, "Maharashtra")


def test_customer_snapshot_requires_name():
    with pytest.raises(ValidationError):
        customer_snapshot({"email": "x@example.com"})
    snapshot = customer_snapshot({"name": "Suresh", "gstin": "27AAAAA0000A1Z5", "extra": 1})
    assert snapshot["gstin"] == "27AAAAA0000A1Z5"
    assert "extra" not in snapshot
