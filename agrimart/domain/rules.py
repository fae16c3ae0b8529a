# agrimart/domain/rules.py
"""Validation applied to cart lines and checkout input before anything is written."""
import re

from agrimart.domain.errors import (
    AboveMaximumOrderQuantity,
    BelowMinimumOrderQuantity,
    InsufficientStock,
    ValidationError,
)

ADDRESS_FIELDS = ("name", "phone", "street", "city", "state", "pincode")
OPTIONAL_ADDRESS_FIELDS = ("district",)
PINCODE_RE = re.compile(r"^\d{6}$")


def validate_quantity(product, quantity: int):
    """Check MOQ, max order quantity and available stock for one line."""
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity", "must be greater than 0")

    if quantity < product.min_order_qty:
        raise BelowMinimumOrderQuantity(product.id, quantity, product.min_order_qty, product.max_order_qty)

    if product.max_order_qty is not None and quantity > product.max_order_qty:
        raise AboveMaximumOrderQuantity(product.id, quantity, product.min_order_qty, product.max_order_qty)

    if product.stock_available < quantity:
        raise InsufficientStock(product.id, quantity, product.stock_available)


def validate_address(address, field: str = "shipping_address") -> dict:
    if not isinstance(address, dict):
        raise ValidationError(field, "must be an object")

    cleaned = {}
    for key in ADDRESS_FIELDS:
        value = address.get(key)
        if value is None or not str(value).strip():
            raise ValidationError(f"{field}.{key}", "is required")
        cleaned[key] = str(value).strip()

    if not PINCODE_RE.match(cleaned["pincode"]):
        raise ValidationError(f"{field}.pincode", "must be 6 digits")

    for key in OPTIONAL_ADDRESS_FIELDS:
        if address.get(key):
            cleaned[key] = str(address[key]).strip()
    return cleaned


def customer_snapshot(profile: dict) -> dict:
    if not profile or not profile.get("name"):
        raise ValidationError("buyer_profile", "name is missing")
    return {
        "name": profile["name"],
        "email": profile.get("email"),
        "phone": profile.get("phone"),
        "business_name": profile.get("business_name"),
        "gstin": profile.get("gstin"),
    }


def is_intra_state(address: dict, seller_state: str) -> bool:
    return address.get("state", "").strip().lower() == seller_state.strip().lower()
