"""
Utility functions for GroupSplit
"""
from __future__ import annotations
import os
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from exceptions import InvalidLedgerEntryError

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def today_str() -> str:
    """Get today's date as ISO string"""
    return date.today().isoformat()


def parse_date(s: str) -> date:
    """Parse YYYY-MM-DD date string; an ISO "T..." time suffix is ignored"""
    day = s.strip().partition("T")[0]
    return datetime.strptime(day, "%Y-%m-%d").date()


def to_decimal(x: Number) -> Decimal:
    """Convert a user-entered number to Decimal, rejecting NaN and infinities"""
    if isinstance(x, bool):
        raise InvalidLedgerEntryError(f"Not a number: {x!r}")
    try:
        # floats go through str() so 0.1 stays 0.1
        d = Decimal(str(x).strip()) if isinstance(x, (float, str)) else Decimal(x)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidLedgerEntryError(f"Not a number: {x!r}", details={"value": repr(x)})
    if not d.is_finite():
        raise InvalidLedgerEntryError(f"Amount must be finite: {x!r}", details={"value": repr(x)})
    return d


def to_cents(x: Number) -> int:
    """Convert a currency amount to integer cents (half-up at the second decimal)"""
    return int((to_decimal(x) / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_cents(x: Decimal) -> int:
    """Round a fractional cent value to a whole cent"""
    return int(x.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a 2-digit Decimal"""
    return (Decimal(cents) * CENT).quantize(CENT)


def format_amount(cents: int, currency: str = "USD") -> str:
    """Display-only rendering, e.g. -1234 -> '-$12.34'"""
    symbol = {"USD": "$", "EUR": "€", "GBP": "£", "INR": "₹"}.get(currency.upper())
    sign = "-" if cents < 0 else ""
    body = f"{from_cents(abs(cents)):,.2f}"
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{body} {currency.upper()}"


def app_dir() -> str:
    """
    Get application data directory: ~/.groupsplit unless GROUPSPLIT_DATA_DIR is set.
    Creates directory if it doesn't exist.
    """
    path = os.environ.get("GROUPSPLIT_DATA_DIR") or os.path.join(os.path.expanduser("~"), ".groupsplit")
    os.makedirs(path, exist_ok=True)
    return path
