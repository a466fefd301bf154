from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def _round_fixed(value: float, precision: int = 2) -> float:
    """Round with consistent half-up precision using Decimal."""
    if value == 0.0:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP))


def round_amount(value: float) -> float:
    """Round money amounts to 2 decimal places."""
    return _round_fixed(value, 2)


def round_kg(value: float) -> float:
    """Round quantities in kg to 2 decimal places."""
    return _round_fixed(value, 2)


def line_amount(kg: float, unit_price: float) -> float:
    return round_amount(float(kg) * float(unit_price))
