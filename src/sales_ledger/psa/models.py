#!/usr/bin/env python3
"""
PSA Sale Data Models

Message, record and document types shared by the parser, the renderer and
the ingestor.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.dates import FinancialDate
from ..core.money import Money

# Column order of the sales sheet. The dedup key is always last.
SALES_SHEET_HEADER = [
    "Certification Number",
    "Sale Date",
    "Item Title",
    "Sold Amount",
    "Fees Paid",
    "Net Proceeds",
    "Message ID",
]
MESSAGE_ID_COLUMN = len(SALES_SHEET_HEADER)


@dataclass(frozen=True)
class InlineAttachment:
    """An inline MIME part referenced from the HTML body by content-id."""

    content_id: str
    content_type: str | None
    data: bytes
    filename: str | None = None


@dataclass
class SaleMessage:
    """One message from the labeled mailbox."""

    message_id: str
    subject: str
    date: datetime
    text_body: str = ""
    html_body: str = ""
    sender: str = ""
    to: str = ""
    cc: str = ""
    attachments: list[InlineAttachment] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SaleRecord:
    """A (possibly partial) sale extracted from one message."""

    source_message_id: str
    item_title: str
    certification_number: str | None = None
    sale_date: FinancialDate | None = None
    sold_amount: Money | None = None
    net_proceeds: Money | None = None
    fees_paid: Money | None = None

    def to_row(self) -> list[str]:
        """Serialize in sales sheet column order; absent values are empty cells."""
        return [
            self.certification_number or "",
            self.sale_date.to_iso_string() if self.sale_date else "",
            self.item_title,
            self.sold_amount.to_sheet_value() if self.sold_amount else "",
            self.fees_paid.to_sheet_value() if self.fees_paid else "",
            self.net_proceeds.to_sheet_value() if self.net_proceeds else "",
            self.source_message_id,
        ]


@dataclass(frozen=True)
class ExtractionResult:
    """A SaleRecord plus the names of the fields the parser could not find."""

    record: SaleRecord
    missing_fields: tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        """True when at least one field was missing."""
        return bool(self.missing_fields)


@dataclass(frozen=True)
class ImageResolution:
    """Outcome for one image reference in a message body."""

    reference: str
    resolved: bool
    reason: str | None = None
    content_type: str | None = None


@dataclass
class InlineResult:
    """HTML after an inlining pass, with one resolution per reference seen."""

    html: str
    resolutions: list[ImageResolution] = field(default_factory=list)

    @property
    def resolved_count(self) -> int:
        """Number of references replaced with data URIs."""
        return sum(1 for r in self.resolutions if r.resolved)

    @property
    def unresolved_count(self) -> int:
        """Number of references left untouched."""
        return sum(1 for r in self.resolutions if not r.resolved)


@dataclass(frozen=True)
class RenderedDocument:
    """A portable PDF snapshot of one message, ready to be written once."""

    message_id: str
    filename: str
    content: bytes
    html: str
    image_resolutions: tuple[ImageResolution, ...] = ()

    @property
    def unresolved_images(self) -> int:
        """Number of image references that stayed external."""
        return sum(1 for r in self.image_resolutions if not r.resolved)


@dataclass
class MessagePage:
    """
    One page from a message source.

    size counts every source slot the page covered, including messages that
    could not be read, so a short page really means the label is exhausted.
    """

    messages: list[SaleMessage]
    size: int

    def __iter__(self):
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def unreadable(self) -> int:
        """Slots in this page whose message could not be fetched."""
        return self.size - len(self.messages)
