# agrimart/domain/pricing.py
"""
Bulk-tier pricing engine.

Pure functions only: the same schedule and quantity always give the same
breakdown. Values stay unrounded Decimals until PriceBreakdown.rounded() is
called at the point of persistence.
"""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Tuple

from agrimart.domain.errors import ValidationError
from agrimart.utils.money import money, round_rupee, to_decimal

GST_RATES = (0, 5, 12, 18, 28)
BASE_TIER_LABEL = "base"


@dataclass(frozen=True)
class BulkTier:
    min_qty: int
    max_qty: int | None
    unit_price: Decimal
    discount_pct: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        if self.max_qty is None:
            return f"{self.min_qty}+ units"
        return f"{self.min_qty}-{self.max_qty} units"

    def matches(self, quantity: int) -> bool:
        return quantity >= self.min_qty and (self.max_qty is None or quantity <= self.max_qty)


@dataclass(frozen=True)
class PriceSchedule:
    base_price: Decimal
    gst_rate: int
    tiers: Tuple[BulkTier, ...] = ()


@dataclass(frozen=True)
class PriceBreakdown:
    unit_price: Decimal
    discount_pct: Decimal
    quantity: int
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    gst_rate: int
    tier_label: str
    savings: Decimal

    def rounded(self) -> "PriceBreakdown":
        subtotal = money(self.subtotal)
        tax_amount = money(self.tax_amount)
        #total is rebuilt from the rounded parts so a line always adds up
        return replace(
            self,
            unit_price=money(self.unit_price),
            discount_pct=money(self.discount_pct),
            subtotal=subtotal,
            tax_amount=tax_amount,
            total=subtotal + tax_amount,
            savings=money(self.savings),
        )


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    total_discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_gst: Decimal
    shipping_charges: Decimal
    round_off: Decimal
    grand_total: Decimal


def make_tier(min_qty: int, max_qty: int | None, unit_price, discount_pct=0) -> BulkTier:
    if min_qty is None or min_qty < 1:
        raise ValidationError("min_qty", "must be at least 1")
    if max_qty is not None and max_qty < min_qty:
        raise ValidationError("max_qty", f"must not be lower than min_qty {min_qty}")
    price = to_decimal(unit_price)
    if price < 0:
        raise ValidationError("unit_price", "cannot be negative")
    discount = to_decimal(discount_pct or 0)
    if discount < 0 or discount > 100:
        raise ValidationError("discount_pct", "must be between 0 and 100")
    return BulkTier(min_qty=min_qty, max_qty=max_qty, unit_price=price, discount_pct=discount)


def make_schedule(base_price, gst_rate: int, tiers=()) -> PriceSchedule:
    base = to_decimal(base_price)
    if base < 0:
        raise ValidationError("unit_price", "cannot be negative")
    if gst_rate not in GST_RATES:
        raise ValidationError("gst_rate", f"must be one of {GST_RATES}")
    return PriceSchedule(base_price=base, gst_rate=gst_rate, tiers=tuple(tiers))


def select_tier(schedule: PriceSchedule, quantity: int) -> BulkTier | None:
    # sorted() is stable, tiers with equal min_qty keep their declared order
    for tier in sorted(schedule.tiers, key=lambda t: t.min_qty, reverse=True):
        if tier.matches(quantity):
            return tier
    return None


def price(schedule: PriceSchedule, quantity: int) -> PriceBreakdown:
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity", "must be greater than 0")

    tier = select_tier(schedule, quantity)
    if tier is None:
        unit_price = schedule.base_price
        discount_pct = Decimal("0")
        label = BASE_TIER_LABEL
    else:
        unit_price = tier.unit_price
        discount_pct = tier.discount_pct
        label = tier.label

    subtotal = unit_price * quantity
    tax_amount = subtotal * schedule.gst_rate / Decimal(100)

    return PriceBreakdown(
        unit_price=unit_price,
        discount_pct=discount_pct,
        quantity=quantity,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
        gst_rate=schedule.gst_rate,
        tier_label=label,
        savings=(schedule.base_price - unit_price) * quantity,
    )


def order_totals(lines, intra_state: bool, shipping_charges=Decimal("0")) -> OrderTotals:
    """
    Aggregate priced lines into invoice totals.

    Every figure is summed from the persisted (paise-rounded) lines, so
    subtotal + total_gst == sum(line_total) and
    sum(line_total) + shipping + round_off == grand_total hold exactly.
    The grand total is rounded to whole rupees.
    """
    shipping = money(shipping_charges)
    lines = [line.rounded() for line in lines]
    subtotal = sum((line.subtotal for line in lines), Decimal("0.00"))
    total_gst = sum((line.tax_amount for line in lines), Decimal("0.00"))
    discount = sum((line.savings for line in lines), Decimal("0.00"))
    persisted = subtotal + total_gst

    if intra_state:
        cgst = money(total_gst / 2)
        sgst = total_gst - cgst
        igst = Decimal("0.00")
    else:
        cgst = sgst = Decimal("0.00")
        igst = total_gst

    before_round = persisted + shipping
    grand_total = round_rupee(before_round)

    return OrderTotals(
        subtotal=money(subtotal),
        total_discount=money(discount),
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_gst=total_gst,
        shipping_charges=shipping,
        round_off=money(grand_total - before_round),
        grand_total=money(grand_total),
    )
