# agrimart/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal
from decimal import Decimal
from datetime import datetime


class ItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product ID (must be > 0)")
    quantity: int = Field(..., gt=0, description="Quantity (must be > 0)")


class QuantityIn(BaseModel):
    """Schema for setting a cart line quantity; 0 removes the line."""

    quantity: int = Field(..., ge=0)


class CartItemOut(BaseModel):
    product_id: int
    product_name: str | None = None
    unit: str | None = None
    quantity: int
    unit_price_snapshot: Decimal
    applied_price: Decimal | None = None
    discount_pct: Decimal | None = None
    line_subtotal: Decimal | None = None


class CartOut(BaseModel):
    """Schema for the cart (response)."""

    cart_id: int | None
    buyer_id: int
    version: int
    items: List[CartItemOut]
    item_count: int
    subtotal: Decimal
    estimated_tax: Decimal
    estimated_total: Decimal


class StockIssueOut(BaseModel):
    product_id: int
    requested_quantity: int
    available_stock: int
    reason: str


class CartSummaryOut(CartOut):
    stock_issues: List[StockIssueOut]
    can_checkout: bool


class AddressIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=20)
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    district: str | None = None
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=r"^\d{6}$")


class OrderCreate(BaseModel):
    """Schema for checkout."""

    buyer_id: int = Field(..., gt=0)
    shipping_address: AddressIn
    billing_address: AddressIn | None = None
    payment_method: Literal["upi", "bank_transfer"]
    customer_notes: str | None = Field(None, max_length=500)


class StatusUpdateIn(BaseModel):
    status: str
    note: str | None = Field(None, max_length=500)


class CancelIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class PaymentSubmitIn(BaseModel):
    payment_method: Literal["upi", "bank_transfer"] | None = None
    payment_reference: str | None = Field(None, max_length=100)


class PaymentRejectIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class StockChangeIn(BaseModel):
    """Quantity-based ledger operation (reserve, release, deduct, add, damage)."""

    quantity: int = Field(..., gt=0)
    order_id: int | None = None
    reason: str | None = Field(None, max_length=500)


class AdjustIn(BaseModel):
    delta: int
    reason: str = Field(..., min_length=1, max_length=500)


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    unit: str
    hsn_code: str | None = None
    gst_rate: int
    quantity: int
    unit_price: Decimal
    discount_pct: Decimal
    line_subtotal: Decimal
    line_tax: Decimal
    line_total: Decimal


class TaxBreakdownOut(BaseModel):
    cgst: Decimal
    sgst: Decimal
    igst: Decimal


class StatusHistoryOut(BaseModel):
    status: str
    note: str | None = None
    actor_id: int | None = None
    timestamp: datetime | None = None


class OrderOut(BaseModel):
    """Schema for the order (response)."""

    id: int
    order_number: str | None
    buyer_id: int
    customer_snapshot: dict | None = None
    shipping_address: dict
    billing_address: dict | None = None
    customer_notes: str | None = None
    items: List[OrderItemOut]
    subtotal: Decimal
    total_discount: Decimal
    tax_breakdown: TaxBreakdownOut
    total_gst: Decimal
    shipping_charges: Decimal
    round_off: Decimal
    grand_total: Decimal
    status: str
    payment_status: str
    payment_method: str | None = None
    payment_reference: str | None = None
    payment_submitted_at: datetime | None = None
    payment_confirmed_at: datetime | None = None
    payment_confirmed_by: int | None = None
    invoice_number: str | None = None
    accepted_at: datetime | None = None
    delivered_at: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: int | None = None
    status_history: List[StatusHistoryOut]
    created_at: datetime | None = None


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: PaginationOut


class LedgerEntryOut(BaseModel):
    id: int
    product_id: int
    kind: str
    delta: int
    previous_stock_total: int
    new_stock_total: int
    previous_stock_reserved: int
    new_stock_reserved: int
    order_id: int | None = None
    actor_id: int | None = None
    reason: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ProductStockOut(BaseModel):
    id: int
    name: str
    unit: str
    stock_total: int
    stock_reserved: int
    stock_available: int
    low_stock_threshold: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class PriceOut(BaseModel):
    unit_price: Decimal
    discount_pct: Decimal
    quantity: int
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    gst_rate: int
    tier_label: str
    savings: Decimal

    model_config = ConfigDict(from_attributes=True)
