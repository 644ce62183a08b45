"""
Decimal helpers for prices.
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
INFINITY = Decimal("Infinity")


def to_price(value: Any) -> Optional[Decimal]:
    """Parse a price-like value as a number, None when it is not one"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def round2(value: Decimal) -> Decimal:
    """Round half-up to cents"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
