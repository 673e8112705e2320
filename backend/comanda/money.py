# Overview: Decimal rounding helpers shared by costing, sales and reports.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
MILLI = Decimal("0.001")
UNIT_COST_STEP = Decimal("0.0001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def D(value) -> Decimal:
    """Decimal from a column value, treating None as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Nearest-cent rounding, half-up."""
    return D(value).quantize(CENT, rounding=ROUND_HALF_UP)


def qty(value) -> Decimal:
    return D(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def unit_cost(value) -> Decimal:
    return D(value).quantize(UNIT_COST_STEP, rounding=ROUND_HALF_UP)


def percentage(part, whole) -> Decimal:
    """part / whole * 100, or 0 when whole is zero or missing."""
    whole = D(whole)
    if whole == 0:
        return ZERO.quantize(CENT)
    return money(D(part) / whole * HUNDRED)


def as_float(value):
    if value is None:
        return None
    return float(value)


# Stored profit percentages are Numeric(7, 2).
PERCENT_LIMIT = Decimal("99999.99")


def bounded_percentage(part, whole) -> Decimal:
    """percentage() clamped to the range a stored percentage column holds."""
    return max(-PERCENT_LIMIT, min(PERCENT_LIMIT, percentage(part, whole)))
