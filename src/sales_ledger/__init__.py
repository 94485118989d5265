"""
PSA Sales Ledger

Records marketplace sale notification emails as spreadsheet rows and PDF
snapshots, idempotently across runs.

Domain Packages:
- core: currency, dates, configuration, errors
- psa: parsing, rendering, ledgers, stores and the ingest run
- cli: command-line interface

Example Usage:
    from sales_ledger.core import Config
    from sales_ledger.psa import CsvWorkbook, FolderStore, ImapMessageSource, SalesIngestor
"""

__version__ = "0.1.0"
__author__ = "Karl Davis"

from .core.config import Config, Environment
from .core.money import Money
from .psa.models import SaleRecord

__all__ = [
    "Config",
    "Environment",
    "Money",
    "SaleRecord",
]
