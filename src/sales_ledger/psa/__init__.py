"""
PSA Sales Processing Package

Turns labeled PSA/CGC/BGS "Payout Incoming" emails into sale rows and PDF
snapshots, each produced at most once per message.

Key Components:
- parser: tolerant field extraction (partial records are kept)
- images / renderer: self-contained PDF rendering with inlined images
- ledger: record ledger (derived from the sales sheet) and render ledger
  (persisted in a hidden sheet)
- datastore: CSV workbook and folder store
- email_fetcher: IMAP and .eml directory message sources
- ingestor: the run loop tying them together
"""

from .datastore import CsvSheet, CsvWorkbook, FolderStore
from .email_fetcher import EmlDirectorySource, ImapMessageSource, MessageSource, parse_raw_message
from .images import RemoteImageFetcher, inline_cid_images, inline_remote_images
from .ingestor import RunMode, RunSummary, SalesIngestor
from .ledger import RecordLedger, RenderLedger
from .models import (
    SALES_SHEET_HEADER,
    ExtractionResult,
    ImageResolution,
    InlineAttachment,
    InlineResult,
    RenderedDocument,
    SaleMessage,
    SaleRecord,
)
from .parser import PsaSaleParser, parse_sale
from .renderer import SaleEmailRenderer, build_filename

__all__ = [
    "SALES_SHEET_HEADER",
    "CsvSheet",
    "CsvWorkbook",
    "EmlDirectorySource",
    "ExtractionResult",
    "FolderStore",
    "ImageResolution",
    "ImapMessageSource",
    "InlineAttachment",
    "InlineResult",
    "MessageSource",
    "PsaSaleParser",
    "RecordLedger",
    "RemoteImageFetcher",
    "RenderLedger",
    "RenderedDocument",
    "RunMode",
    "RunSummary",
    "SaleEmailRenderer",
    "SaleMessage",
    "SaleRecord",
    "SalesIngestor",
    "build_filename",
    "inline_cid_images",
    "inline_remote_images",
    "parse_raw_message",
    "parse_sale",
]
