#!/usr/bin/env python3
"""
Currency Parsing and Rounding Utilities

Sale notifications quote amounts as dollar strings ("$1,234.50"). Amounts are
parsed to floats, then rounded half-up to two decimals with an epsilon nudge so
values like 1.005, whose binary representation sits just below the midpoint,
still round up.

Key Principles:
- Round once, at the edge, with round2()
- Derived amounts (fees) are rounded from the raw difference, not re-derived
  from already-rounded operands
- Persisted amounts are integer cents (see Money)
"""

import math
import sys

EPSILON = sys.float_info.epsilon


def round2(value: float) -> float:
    """
    Round to two decimal places, half-up, with epsilon adjustment.

    Args:
        value: Amount to round

    Returns:
        Rounded amount

    Examples:
        round2(1.005) -> 1.01
        round2(100.555 - 90.00) -> 10.56
        round2(12.344) -> 12.34
    """
    return math.floor((value + EPSILON) * 100 + 0.5) / 100


def parse_amount(amount_str: str) -> float:
    """
    Parse a currency string into a float.

    Strips a leading "$", thousands separators and trailing sentence
    punctuation ("Proceeds $90.00." ends a sentence in some templates).

    Args:
        amount_str: String like "$1,234.56", "1234.56" or "90.00."

    Returns:
        Parsed (unrounded) amount

    Raises:
        ValueError: If nothing numeric remains after cleaning
    """
    clean = str(amount_str).strip().lstrip("$").replace(",", "").rstrip(".").strip()
    if not clean:
        raise ValueError(f"Empty currency amount: {amount_str!r}")
    return float(clean)


def amount_to_cents(value: float) -> int:
    """
    Convert a float amount to integer cents using round2().

    Example:
        amount_to_cents(1.005) -> 101
    """
    return int(round(round2(value) * 100))


def cents_to_dollars_str(cents: int) -> str:
    """
    Convert cents to dollar string using pure integer arithmetic.

    Args:
        cents: Amount in cents

    Returns:
        Formatted dollar string

    Example:
        cents_to_dollars_str(4599) -> "45.99"
    """
    is_negative = cents < 0
    abs_cents = abs(int(cents))

    dollars = abs_cents // 100
    remainder = abs_cents % 100

    if is_negative:
        return f"-{dollars}.{remainder:02d}"
    return f"{dollars}.{remainder:02d}"


def format_cents(cents: int) -> str:
    """Format cents as dollar string with $ prefix."""
    return f"${cents_to_dollars_str(cents)}"
