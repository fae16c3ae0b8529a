# agrimart/utils/money.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
RUPEE = Decimal("1")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    #go through str so floats keep their printed value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round to paise, used only where a value is persisted or returned."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_rupee(value) -> Decimal:
    return to_decimal(value).quantize(RUPEE, rounding=ROUND_HALF_UP)
