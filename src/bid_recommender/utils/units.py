"""Utility functions for percent/decimal conversions and rounding."""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP

CENT = Decimal('0.01')


def decimal_to_percentage(value: float) -> float:
    """
    Convert decimal fraction (0.05) to whole percentage (5.0).
    """
    return float(value or 0) * 100.0


def format_percentage(value: float, digits: int = 1) -> str:
    """Render a decimal fraction as '12.5%'."""
    return f"{decimal_to_percentage(value):.{digits}f}%"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return int(math.floor(value + 0.5))


def round_to_step(value: float, step: int) -> float:
    """Round to the nearest multiple of step (halves round up)."""
    return float(round_half_up(value / step) * step)


def round_currency(value: float, floor: float = None, cap: float = None) -> float:
    """
    Round a monetary amount to cents without leaving [floor, cap].

    Rounding half up can push a clamped value just outside its bounds, so the
    bound-side value is rounded towards the inside instead.
    """
    amount = Decimal(str(value))
    rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if floor is not None and rounded < Decimal(str(floor)):
        rounded = Decimal(str(floor)).quantize(CENT, rounding=ROUND_CEILING)
    if cap is not None and rounded > Decimal(str(cap)):
        rounded = Decimal(str(cap)).quantize(CENT, rounding=ROUND_FLOOR)
    return float(rounded)
