#!/usr/bin/env python3
"""
Sale Email Fetcher Module

Message sources for the ingestor. A source exposes labeled messages in
newest-first pages:

- ImapMessageSource: a label is an IMAP folder (Gmail exposes labels as
  folders). Read-only.
- EmlDirectorySource: a label is a subdirectory of .eml files, for offline
  runs against exported mail.

Both turn raw RFC822 bytes into SaleMessage objects with decoded headers,
text and HTML bodies, and inline attachments keyed by Content-ID.
"""

import email
import email.header
import email.message
import email.utils
import imaplib
import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

from ..core.config import EmailConfig
from .models import InlineAttachment, MessagePage, SaleMessage

logger = logging.getLogger(__name__)


class MessageSource(Protocol):
    """Paginated, labeled, read-only message source."""

    def has_label(self, label: str) -> bool:
        """True if the label exists."""
        ...

    def get_messages(self, label: str, offset: int, page_size: int) -> MessagePage:
        """Messages under a label, newest first, from offset up to page_size."""
        ...


def decode_header(header: str | None) -> str:
    """Decode email header with proper encoding handling."""
    if not header:
        return ""

    try:
        decoded_parts = []
        for part, encoding in email.header.decode_header(str(header)):
            if isinstance(part, bytes):
                decoded_parts.append(part.decode(encoding or "utf-8", errors="ignore"))
            else:
                decoded_parts.append(str(part))
        return "".join(decoded_parts)

    except Exception as e:
        logger.warning(f"Error decoding header {header}: {e}")
        return str(header)


def _decode_payload(part: email.message.Message) -> str | None:
    payload = part.get_payload(decode=True)
    if not payload or not isinstance(payload, bytes):
        return None
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="ignore")
    except LookupError:
        return payload.decode("utf-8", errors="ignore")


def extract_content(msg: email.message.Message) -> tuple[str, str, list[InlineAttachment]]:
    """
    Extract text body, HTML body and inline attachments from a MIME message.

    Returns:
        (text_body, html_body, inline_attachments)
    """
    text_body = ""
    html_body = ""
    attachments: list[InlineAttachment] = []

    for part in msg.walk():
        if part.is_multipart():
            continue

        content_type = part.get_content_type()
        disposition = str(part.get("Content-Disposition", "")).lower()
        content_id = part.get("Content-ID")

        if content_id and part.get_content_maintype() != "text":
            data = part.get_payload(decode=True)
            if isinstance(data, bytes):
                attachments.append(
                    InlineAttachment(
                        content_id=content_id,
                        content_type=content_type,
                        data=data,
                        filename=part.get_filename(),
                    )
                )
            continue

        # Skip regular attachments
        if "attachment" in disposition:
            continue

        if content_type == "text/html" and not html_body:
            html_body = _decode_payload(part) or ""
        elif content_type == "text/plain" and not text_body:
            text_body = _decode_payload(part) or ""

    return text_body, html_body, attachments


def parse_raw_message(raw_email: bytes, fallback_id: str) -> SaleMessage:
    """
    Parse raw RFC822 bytes into a SaleMessage.

    Args:
        raw_email: Message bytes
        fallback_id: Id used when the message has no Message-ID header

    Returns:
        SaleMessage
    """
    msg = email.message_from_bytes(raw_email)

    message_id = (msg.get("Message-ID") or "").strip().strip("<>").strip() or fallback_id

    try:
        message_date = email.utils.parsedate_to_datetime(msg.get("Date", ""))
    except (TypeError, ValueError):
        message_date = datetime.now()

    text_body, html_body, attachments = extract_content(msg)

    return SaleMessage(
        message_id=message_id,
        subject=decode_header(msg.get("Subject", "")),
        date=message_date,
        text_body=text_body,
        html_body=html_body,
        sender=decode_header(msg.get("From", "")),
        to=decode_header(msg.get("To", "")),
        cc=decode_header(msg.get("Cc", "")),
        attachments=attachments,
        metadata={"size": len(raw_email)},
    )


class ImapMessageSource:
    """
    Reads labeled sale emails from an IMAP server.

    The message list of a label is snapshotted on first access so pages stay
    stable for the rest of the run.
    """

    def __init__(self, config: EmailConfig):
        self.config = config
        self.connection: imaplib.IMAP4_SSL | None = None
        self._uids: dict[str, list[bytes]] = {}

    def connect(self) -> None:
        """
        Connect and log in.

        Raises:
            imaplib.IMAP4.error: If login fails
            OSError: If the server is unreachable
        """
        logger.info(f"Connecting to IMAP server: {self.config.imap_server}:{self.config.imap_port}")
        self.connection = imaplib.IMAP4_SSL(self.config.imap_server, self.config.imap_port)
        self.connection.login(self.config.username or "", self.config.password or "")
        logger.info("Successfully connected to IMAP server")

    def disconnect(self) -> None:
        """Disconnect from IMAP server."""
        if self.connection:
            try:
                self.connection.logout()
                logger.info("Disconnected from IMAP server")
            except Exception as e:
                logger.warning(f"Error during disconnect: {e}")
            finally:
                self.connection = None

    def __enter__(self) -> "ImapMessageSource":
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def _select(self, label: str) -> bool:
        if not self.connection:
            raise RuntimeError("IMAP source is not connected")
        # Labels with spaces must be quoted
        result, _ = self.connection.select(f'"{label}"', readonly=True)
        return result == "OK"

    def has_label(self, label: str) -> bool:
        """True if the label can be selected as a folder."""
        try:
            return self._select(label)
        except imaplib.IMAP4.error as e:
            logger.debug(f"Cannot select folder '{label}': {e}")
            return False

    def _label_uids(self, label: str) -> list[bytes]:
        if label not in self._uids:
            if not self._select(label):
                raise ValueError(f"Label not found: {label}")
            result, data = self.connection.uid("SEARCH", None, "ALL")  # type: ignore[union-attr]
            uids = data[0].split() if result == "OK" and data and data[0] else []
            # Highest UID first: newest messages lead, like the mail UI
            self._uids[label] = list(reversed(uids))
            logger.info(f"Found {len(uids)} message(s) under label '{label}'")
        return self._uids[label]

    def get_messages(self, label: str, offset: int, page_size: int) -> MessagePage:
        """
        Fetch one page of messages under a label.

        A UID that fails to fetch is logged and left out of messages but still
        counts toward the page size.
        """
        page = self._label_uids(label)[offset : offset + page_size]
        self._select(label)

        messages = []
        for uid in page:
            uid_str = uid.decode()
            result, msg_data = self.connection.uid("FETCH", uid_str, "(RFC822)")  # type: ignore[union-attr]
            if result != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                logger.warning(f"Could not fetch message uid {uid_str} under '{label}'")
                continue
            messages.append(parse_raw_message(msg_data[0][1], fallback_id=f"{label}:{uid_str}"))
        return MessagePage(messages=messages, size=len(page))


class EmlDirectorySource:
    """
    Reads labeled sale emails from .eml files on disk.

    Layout: <root>/<label>/*.eml. Messages are ordered newest first by their
    Date header.
    """

    def __init__(self, root: Path):
        self.root = root
        self._messages: dict[str, list[SaleMessage]] = {}

    def has_label(self, label: str) -> bool:
        """True if the label directory exists."""
        return (self.root / label).is_dir()

    def _label_messages(self, label: str) -> list[SaleMessage]:
        if label not in self._messages:
            if not self.has_label(label):
                raise ValueError(f"Label not found: {label}")
            messages = [
                parse_raw_message(path.read_bytes(), fallback_id=f"{label}:{path.stem}")
                for path in sorted((self.root / label).glob("*.eml"))
            ]
            messages.sort(key=lambda m: m.date.timestamp(), reverse=True)
            self._messages[label] = messages
        return self._messages[label]

    def get_messages(self, label: str, offset: int, page_size: int) -> MessagePage:
        """One page of messages under a label."""
        messages = self._label_messages(label)[offset : offset + page_size]
        return MessagePage(messages=messages, size=len(messages))
