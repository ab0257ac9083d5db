"""
Currency helpers.

All pricing arithmetic happens in integer minor units (paise). The backend
speaks major units (rupees) as JSON numbers, so conversion happens only at the
API boundary and when formatting for display.
"""
from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Union

MINOR_PER_MAJOR = 100

Number = Union[int, float, str, Decimal]


def _as_decimal(value: Number) -> Decimal:
    # str() first so binary floats like 0.1 don't leak their expansion
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"amount must be finite, got {value!r}")
    return amount


def to_minor(value: Number) -> int:
    """Convert a major-unit amount (e.g. 999.5 rupees) to minor units (99950)."""
    return int((_as_decimal(value) * MINOR_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_major(minor: int) -> Decimal:
    """Convert minor units back to a two-place Decimal in major units."""
    return (Decimal(minor) / MINOR_PER_MAJOR).quantize(Decimal("0.01"))


def to_wire(minor: int) -> float:
    """Major-unit float for JSON payloads."""
    return float(to_major(minor))


def percent_of(minor: int, percent: Number) -> int:
    """Percentage of a minor-unit amount, rounded down to a whole minor unit."""
    raw = Decimal(minor) * _as_decimal(percent) / 100
    return int(raw.quantize(Decimal(1), rounding=ROUND_DOWN))


def format_price(minor: int, symbol: str = "₹") -> str:
    """Format minor units for display: 150000 -> '₹1,500', 99950 -> '₹999.50'."""
    major = to_major(minor)
    if major == major.to_integral_value():
        return f"{symbol}{int(major):,}"
    return f"{symbol}{major:,.2f}"
