#!/usr/bin/env python3
"""
Sample PSA sale notification emails and a fake message source.

Bodies follow the "Payout Incoming" template: certification number, item
title lines, Sale Price, Proceeds and a Listing Ended timestamp.
"""

from datetime import datetime
from email.message import EmailMessage

from sales_ledger.psa.models import InlineAttachment, MessagePage, SaleMessage

FULL_SALE_BODY = """Payout Incoming

Congratulations, your item sold!

PSA CERT 12345678
2018 Panini Prizm Luka Doncic
#280 Silver Prizm PSA 10

Sale Price $1,250.00
Fees $125.50
Proceeds $1,124.50

Listing Ended
Mar 5, 2:31 PM PST
"""

SECOND_SALE_BODY = """Payout Incoming

CGC CERT 4455667788
1999 Pokemon Base Set Charizard Holo CGC 9

Sale Price $100.555
Proceeds $90.00

Listing Ended Mar 4 11:02 AM
"""

MISSING_PROCEEDS_BODY = """Payout Incoming

BGS CERT 0099887766
2003 Topps Chrome LeBron James RC BGS 9.5

Sale Price $845.00

Thanks for selling with us.
"""

NO_FIELDS_BODY = """Your payout is on its way. Details will follow in a separate email."""


def make_message(
    message_id: str,
    body: str = FULL_SALE_BODY,
    subject: str = "Payout Incoming: Your item sold",
    date: datetime | None = None,
    html_body: str | None = None,
    attachments: list[InlineAttachment] | None = None,
    cc: str = "",
) -> SaleMessage:
    """Build a SaleMessage with sensible defaults."""
    return SaleMessage(
        message_id=message_id,
        subject=subject,
        date=date or datetime(2024, 3, 6, 9, 15),
        text_body=body,
        html_body=html_body if html_body is not None else f"<html><body><pre>{body}</pre></body></html>",
        sender="PSA Vault <noreply@psacard.com>",
        to="seller@example.com",
        cc=cc,
        attachments=attachments or [],
    )


def make_raw_email(
    message_id: str,
    body: str = FULL_SALE_BODY,
    subject: str = "Payout Incoming: Your item sold",
    date_header: str = "Wed, 06 Mar 2024 09:15:00 -0800",
    html_body: str | None = None,
    inline_image: tuple[str, bytes] | None = None,
) -> bytes:
    """Build RFC822 bytes for a sale email, optionally with an inline image."""
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "PSA Vault <noreply@psacard.com>"
    msg["To"] = "seller@example.com"
    msg["Date"] = date_header
    msg["Message-ID"] = f"<{message_id}>"
    msg.set_content(body)

    if html_body is not None:
        msg.add_alternative(html_body, subtype="html")
        if inline_image is not None:
            content_id, data = inline_image
            html_part = msg.get_payload()[1]
            html_part.add_related(data, maintype="image", subtype="png", cid=f"<{content_id}>")

    return bytes(msg)


class FakeMessageSource:
    """In-memory MessageSource that records every page request."""

    def __init__(self, messages: list[SaleMessage], labels: tuple[str, ...] = ("PSA Sales",)):
        self.messages = messages
        self.labels = set(labels)
        self.requests: list[tuple[int, int]] = []

    def has_label(self, label: str) -> bool:
        return label in self.labels

    def get_messages(self, label: str, offset: int, page_size: int) -> MessagePage:
        self.requests.append((offset, page_size))
        messages = self.messages[offset : offset + page_size]
        return MessagePage(messages=messages, size=len(messages))


class DroppingMessageSource(FakeMessageSource):
    """Source that cannot read some messages but still counts their slots."""

    def __init__(self, messages: list[SaleMessage], unreadable_ids: set[str]):
        super().__init__(messages)
        self.unreadable_ids = unreadable_ids

    def get_messages(self, label: str, offset: int, page_size: int) -> MessagePage:
        page = super().get_messages(label, offset, page_size)
        readable = [m for m in page.messages if m.message_id not in self.unreadable_ids]
        return MessagePage(messages=readable, size=page.size)


class FailingMessageSource(FakeMessageSource):
    """Source whose connection drops on any page after the first."""

    def get_messages(self, label: str, offset: int, page_size: int) -> MessagePage:
        if offset > 0:
            self.requests.append((offset, page_size))
            raise OSError("connection reset")
        return super().get_messages(label, offset, page_size)
