#!/usr/bin/env python3
"""
Money Primitive Type

Immutable currency value wrapper that uses integer cents internally.
Values enter through round2() once and stay exact afterwards.
"""

from dataclasses import dataclass

from .currency import amount_to_cents, cents_to_dollars_str, parse_amount


@dataclass(frozen=True)
class Money:
    """
    Immutable money value in cents (USD).

    Examples:
        >>> sold = Money.from_dollars("$1,234.50")
        >>> sold.to_cents()
        123450
        >>> str(sold)
        '$1234.50'
        >>> sold.to_sheet_value()
        '1234.50'
    """

    cents: int

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        """Create Money from cents."""
        return cls(cents=cents)

    @classmethod
    def from_amount(cls, amount: float) -> "Money":
        """
        Create Money from a float amount, rounding with round2().

        Args:
            amount: Amount in dollars, e.g. 10.555000000000007

        Returns:
            Money object (10.56 -> 1056 cents)
        """
        return cls(cents=amount_to_cents(amount))

    @classmethod
    def from_dollars(cls, dollars: str | int) -> "Money":
        """
        Parse from dollar string like '$123.45' or integer dollars.

        Args:
            dollars: String like "$12.34" or integer like 12

        Returns:
            Money object
        """
        if isinstance(dollars, int):
            return cls(cents=dollars * 100)
        return cls.from_amount(parse_amount(dollars))

    def to_cents(self) -> int:
        """Get value in cents."""
        return self.cents

    def to_float(self) -> float:
        """Get value in dollars as a float."""
        return self.cents / 100

    def to_sheet_value(self) -> str:
        """Get plain two-decimal string for a sheet cell."""
        return cents_to_dollars_str(self.cents)

    def __add__(self, other: "Money") -> "Money":
        """Add two Money objects."""
        return Money(cents=self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        """Subtract two Money objects."""
        return Money(cents=self.cents - other.cents)

    def __lt__(self, other: "Money") -> bool:
        """Less than comparison."""
        return self.cents < other.cents

    def __le__(self, other: "Money") -> bool:
        """Less than or equal comparison."""
        return self.cents <= other.cents

    def __str__(self) -> str:
        """Format as dollar string."""
        return f"${cents_to_dollars_str(self.cents)}"

    def __repr__(self) -> str:
        """Repr format."""
        return f"Money(cents={self.cents})"
