from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP

_QUANTS = {0: Decimal(1), 2: Decimal("0.01")}


def round_half_up(value: float, places: int = 2) -> float:
    """Round exact halves away from zero (3.125 -> 3.13, 96.5 -> 97)."""
    # Decimal(value) keeps the exact binary value, so 1.005 stays 1.00
    quant = _QUANTS.get(places) or Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quant, rounding=ROUND_HALF_UP))


def percent(part: float, whole: float) -> int:
    return int(round_half_up(part / whole * 100, 0)) if whole else 0
