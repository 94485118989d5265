#!/usr/bin/env python3
"""
PSA Sale Email Parser Module

Pulls structured sale values out of free-form "Payout Incoming" notification
bodies. Every field is matched independently: a missing field becomes a
warning on the result, never an error. Only an unexpected fault while parsing
drops the message.
"""

import logging
import re
from datetime import datetime

from bs4 import BeautifulSoup

from ..core.currency import parse_amount, round2
from ..core.dates import FinancialDate, parse_listing_timestamp
from ..core.errors import ExtractionError
from ..core.money import Money
from .models import ExtractionResult, SaleMessage, SaleRecord

logger = logging.getLogger(__name__)

CERT_PATTERN = re.compile(r"(?:PSA|CGC|BGS) CERT\s*([0-9]+)", re.IGNORECASE)
SALE_PRICE_PATTERN = re.compile(r"Sale Price\s*\$([0-9.,]+)", re.IGNORECASE)
SALE_PRICE_LABEL_PATTERN = re.compile(r"Sale Price", re.IGNORECASE)
PROCEEDS_PATTERN = re.compile(r"Proceeds\s*\$([0-9.,]+)", re.IGNORECASE)
# Tolerates odd line breaks and wording between the label and the timestamp
LISTING_ENDED_PATTERN = re.compile(
    r"(?:Listing\s*)?Ended\s*[\s\S]*?([A-Za-z]{3}\s\d{1,2},?\s\d{1,2}:\d{2}\s[AP]M(?:\s[A-Z]{2,4})?)",
    re.IGNORECASE,
)
WHITESPACE_PATTERN = re.compile(r"\s+")

FIELD_CERTIFICATION = "Certification Number"
FIELD_SALE_PRICE = "Sale Price"
FIELD_PROCEEDS = "Proceeds"
FIELD_LISTING_ENDED = "Listing Ended Date"


def find_certification_number(text: str) -> str | None:
    """Return the first PSA/CGC/BGS certification number in the text, if any."""
    match = CERT_PATTERN.search(text or "")
    return match.group(1) if match else None


def message_plain_text(message: SaleMessage) -> str:
    """
    Plain-text body of a message with carriage returns removed.

    Messages without a text/plain part fall back to the text of the HTML body.
    """
    text = message.text_body
    if not text and message.html_body:
        text = BeautifulSoup(message.html_body, "html.parser").get_text("\n")
    return (text or "").replace("\r", "")


def _parse_field_amount(match: re.Match | None, field_name: str, message_id: str) -> float | None:
    """Amount captured by a field pattern; a malformed value counts as missing."""
    if match is None:
        return None
    try:
        return parse_amount(match.group(1))
    except ValueError:
        logger.debug(f"Unreadable {field_name} {match.group(1)!r} in message {message_id}")
        return None


def extract_title(body: str, cert_match: re.Match | None, subject: str) -> str:
    """
    Recover the item title between the certification number and "Sale Price".

    Falls back to the subject when there is no certification match, no label
    after it, or nothing but whitespace in between.
    """
    if cert_match is None:
        return subject

    label_match = SALE_PRICE_LABEL_PATTERN.search(body, cert_match.end())
    if label_match is None:
        return subject

    title = WHITESPACE_PATTERN.sub(" ", body[cert_match.end() : label_match.start()]).strip()
    return title or subject


def parse_sale(message: SaleMessage) -> ExtractionResult:
    """
    Extract a SaleRecord from one message.

    Args:
        message: Message with plain-text (or HTML) body, subject and timestamp

    Returns:
        ExtractionResult; missing fields are listed, not raised

    Raises:
        ExtractionError: On an unexpected fault while parsing
    """
    try:
        body = message_plain_text(message)
        subject = message.subject or ""
        missing: list[str] = []

        cert_match = CERT_PATTERN.search(body)
        sale_price_match = SALE_PRICE_PATTERN.search(body)
        proceeds_match = PROCEEDS_PATTERN.search(body)
        ended_match = LISTING_ENDED_PATTERN.search(body)

        certification_number = cert_match.group(1) if cert_match else None
        if certification_number is None:
            missing.append(FIELD_CERTIFICATION)

        sold = _parse_field_amount(sale_price_match, FIELD_SALE_PRICE, message.message_id)
        if sold is None:
            missing.append(FIELD_SALE_PRICE)

        net = _parse_field_amount(proceeds_match, FIELD_PROCEEDS, message.message_id)
        if net is None:
            missing.append(FIELD_PROCEEDS)

        reference = message.date or datetime.now()
        sale_date = parse_listing_timestamp(ended_match.group(1), reference) if ended_match else None
        if sale_date is None:
            missing.append(FIELD_LISTING_ENDED)
            sale_date = FinancialDate.from_datetime(message.date) if message.date else None

        fees = Money.from_amount(round2(sold - net)) if sold is not None and net is not None else None

        record = SaleRecord(
            source_message_id=message.message_id,
            item_title=extract_title(body, cert_match, subject),
            certification_number=certification_number,
            sale_date=sale_date,
            sold_amount=Money.from_amount(sold) if sold is not None else None,
            net_proceeds=Money.from_amount(net) if net is not None else None,
            fees_paid=fees,
        )
        return ExtractionResult(record=record, missing_fields=tuple(missing))

    except Exception as e:
        raise ExtractionError(f"Failed to parse message {message.message_id}: {e}") from e


class PsaSaleParser:
    """
    Tolerant parser for PSA/CGC/BGS sale notifications.

    Wraps parse_sale() with the logging the ingestor relies on: partial
    results are logged as warnings, total failures as errors and dropped.
    """

    def parse(self, message: SaleMessage) -> ExtractionResult | None:
        """
        Parse a message, returning None only on a total failure.

        Args:
            message: Message to parse

        Returns:
            ExtractionResult, or None if parsing raised
        """
        try:
            result = parse_sale(message)
        except ExtractionError as e:
            logger.error(str(e))
            return None

        if result.is_partial:
            logger.warning(
                f"Partially processed message {message.message_id}: "
                f"Missing field(s): [{', '.join(result.missing_fields)}]"
            )
        return result
