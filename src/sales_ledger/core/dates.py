#!/usr/bin/env python3
"""
FinancialDate Primitive Type

Immutable date wrapper with consistent formatting for sale records and
filenames, plus parsing of the year-less "Listing Ended" timestamps found in
sale notification bodies.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime

# "Mar 5, 2:31 PM PST" -> month, day, hour, minute, meridiem (zone ignored)
LISTING_TIMESTAMP_PATTERN = re.compile(
    r"([A-Za-z]{3})\s+(\d{1,2}),?\s+(\d{1,2}):(\d{2})\s*([AP]M)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FinancialDate:
    """Immutable financial date wrapper with consistent formatting."""

    date: date

    @classmethod
    def from_string(cls, date_str: str, format: str = "%Y-%m-%d") -> "FinancialDate":
        """
        Parse from string in specified format.

        Args:
            date_str: Date string to parse
            format: Date format (default: ISO format "%Y-%m-%d")

        Returns:
            FinancialDate object
        """
        return cls(date=datetime.strptime(date_str, format).date())

    @classmethod
    def from_datetime(cls, value: datetime) -> "FinancialDate":
        """Create from a datetime, keeping its own calendar day."""
        return cls(date=value.date())

    @classmethod
    def today(cls) -> "FinancialDate":
        """Get today's date."""
        return cls(date=date.today())

    def to_iso_string(self) -> str:
        """Format as YYYY-MM-DD."""
        return self.date.isoformat()

    def __str__(self) -> str:
        """String representation."""
        return self.to_iso_string()

    def __lt__(self, other: "FinancialDate") -> bool:
        """Less than comparison."""
        return self.date < other.date

    def __repr__(self) -> str:
        """Repr format."""
        return f"FinancialDate(date={self.date!r})"


def parse_listing_timestamp(timestamp: str, reference: datetime) -> FinancialDate | None:
    """
    Parse a year-less listing timestamp into a calendar date.

    The year comes from the reference (the notification's own timestamp). When
    that would put the sale after the notification, the previous year is used,
    so a "Dec 31" sale announced on Jan 2 lands in the right year.

    Args:
        timestamp: Text like "Mar 5, 2:31 PM PST" or "Mar 5 2:31 PM"
        reference: Timestamp of the message carrying the listing date

    Returns:
        FinancialDate, or None if the text is not a recognizable timestamp
    """
    match = LISTING_TIMESTAMP_PATTERN.search(timestamp)
    if not match:
        return None

    month, day, hour, minute, meridiem = match.groups()
    normalized = f"{month.title()} {day} {hour}:{minute} {meridiem.upper()}"

    for year in (reference.year, reference.year - 1):
        try:
            parsed = datetime.strptime(f"{year} {normalized}", "%Y %b %d %I:%M %p")
        except ValueError:
            # Feb 29 outside a leap year, or an unknown month abbreviation
            continue
        if parsed.date() <= reference.date():
            return FinancialDate(date=parsed.date())

    return None
