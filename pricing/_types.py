"""
Core types for pricing.

Result re-exports, money helpers and the clock.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# Re-export from combinators
from combinators import NoError

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Amount = Decimal | int | float | str
"""Anything accepted where money is expected."""

CENT = Decimal("0.01")
UNIT = Decimal("1")
ZERO = Decimal("0")


def money(value: Amount) -> Decimal:
    """Normalise to Decimal. Floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_cents(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_units(value: Decimal) -> Decimal:
    """Round half-up to a whole currency unit."""
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(value, high))


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]
"""Source of "now" for active-window checks."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes (e.g. from SQLite) are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Re-exports from combinators
    "NoError",
    # Money
    "Amount",
    "CENT",
    "UNIT",
    "ZERO",
    "money",
    "to_cents",
    "to_units",
    "clamp",
    # Clock
    "Clock",
    "utc_now",
    "as_utc",
)
