"""
Value handling -- Decimal parsing, rounding and domain vocabularies.

Responsibility:
    Convert loosely-typed form and row-store values into Decimals, apply
    the system-wide two-decimal rounding, and define the small closed
    vocabularies (milk type, shift, rate method) shared by every layer.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str()`` so
      ``4.1`` becomes ``Decimal("4.1")`` rather than its binary expansion.
    - ``to_decimal`` is total: it never raises, unparsable input is zero.
      The whole value must be a number: "4.1abc" and "4,1" are zero.
    - Rounding is ROUND_HALF_UP to two places everywhere.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: object) -> Decimal:
    """Parse a loosely-typed numeric value, degrading to zero.

    None, empty strings, booleans, non-numeric text, NaN and infinities
    all yield ``Decimal("0")``.
    """
    result = parse_decimal(value)
    return ZERO if result is None else result


def parse_decimal(value: object) -> Decimal | None:
    """Strict counterpart of ``to_decimal``: None when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        result = Decimal(value.strip())
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def round_money(value: Decimal) -> Decimal:
    """Quantize to two decimal places, half away from zero."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def safe_weighted_average(weighted_sum: Decimal, weight: Decimal) -> Decimal:
    """Weighted average rounded to two places; zero weight reports 0.00."""
    if weight == ZERO:
        return round_money(ZERO)
    return round_money(weighted_sum / weight)


class MilkType(str, Enum):
    """Milk type of a collection; selects formula branch and rate table."""

    COW = "Cow"
    BUFFALO = "Buffalo"

    @classmethod
    def coerce(cls, value: object) -> MilkType:
        """Case-insensitive lookup; anything not buffalo is treated as cow."""
        if isinstance(value, MilkType):
            return value
        text = str(value.value if isinstance(value, Enum) else value or "")
        return cls.BUFFALO if "buffalo" in text.lower() else cls.COW


class Shift(str, Enum):
    """Collection time window."""

    MORNING = "Morning"
    EVENING = "Evening"

    @classmethod
    def parse(cls, value: object) -> Shift | None:
        """Case-insensitive lookup; None for anything unrecognized."""
        if isinstance(value, Shift):
            return value
        if value is None:
            return None
        text = str(value.value if isinstance(value, Enum) else value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class RateMethod(str, Enum):
    """Pricing method; exactly one is active per branch and milk type."""

    CHART = "CHART"
    FAT = "FAT"
    TS = "TS"
    TS_NEW = "TS_NEW"

    @classmethod
    def parse(cls, value: object) -> RateMethod | None:
        """Exact lookup by value; None for unknown methods."""
        if isinstance(value, RateMethod):
            return value
        try:
            return cls(value)
        except ValueError:
            return None
