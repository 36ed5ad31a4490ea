"""
Money helpers.

Amounts are stored as integer cents and travel over the wire as
two-decimal strings ("100.00").
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Sale totals are stored in BigInteger columns
MAX_SALE_TOTAL_CENTS = 2 ** 63 - 1

_CENT = Decimal("0.01")


class MoneyError(ValueError):
    """Raised when a value cannot be read as a money amount."""


def parse_cents(value) -> int:
    """
    Parse a decimal amount ("12.50", "12", 12, 12.5) into integer cents.

    Floats go through their string form so 0.1 stays 10 cents. Amounts with
    more than two decimal places are rejected rather than silently rounded.
    """
    if isinstance(value, bool) or value is None:
        raise MoneyError("amount must be a decimal number")
    if isinstance(value, float):
        value = repr(value)
    text = str(value).strip()
    # Reject scientific notation (e.g., "1e3")
    if "e" in text.lower():
        raise MoneyError("amount must be a plain decimal (scientific notation not allowed)")
    try:
        amount = Decimal(text)
    except (InvalidOperation, ValueError):
        raise MoneyError("amount must be a decimal number")
    if not amount.is_finite():
        raise MoneyError("amount must be a finite number")
    if amount != amount.quantize(_CENT, rounding=ROUND_HALF_UP):
        raise MoneyError("amount cannot have more than 2 decimal places")
    return int(amount * 100)


def format_cents(cents: int | None) -> str | None:
    """Render integer cents as a fixed two-decimal string."""
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(_CENT))
