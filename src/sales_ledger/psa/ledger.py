#!/usr/bin/env python3
"""
Dual Ledger Module

Answers "has this action already been performed for this message?" for the
two side effects of a run:

- RecordLedger: derived, read-only projection of the sales sheet's message id
  column. Rows already appended are the ledger; there is nothing to save.
- RenderLedger: explicit id list kept in a hidden ledger sheet, because a
  written PDF leaves no cheap queryable trace. Saved with a full replace, so
  the in-memory set must be the complete superset (loaded + added).

Both are loaded once per run and never cached across runs.
"""

import logging

from .datastore import CsvSheet, CsvWorkbook
from .models import MESSAGE_ID_COLUMN

logger = logging.getLogger(__name__)

LEDGER_HEADER = "messageId"


def _clean_ids(values: list) -> set[str]:
    """Trimmed, non-blank ids."""
    return {str(v).strip() for v in values if str(v or "").strip()}


class RecordLedger:
    """Message ids already present as rows in the sales sheet."""

    def __init__(self, existing_ids: frozenset[str]):
        self.existing_ids = existing_ids
        self.added: set[str] = set()

    @classmethod
    def load(cls, sheet: CsvSheet, column: int = MESSAGE_ID_COLUMN) -> "RecordLedger":
        """
        Scan the dedup column of the sales sheet, skipping the header row.

        Args:
            sheet: Sales sheet
            column: 1-based column holding the message id

        Returns:
            RecordLedger over the ids found
        """
        existing = frozenset(_clean_ids(sheet.read_column(column, start_row=2)))
        logger.info(f"Record ledger: {len(existing)} message id(s) already in '{sheet.name}'")
        return cls(existing)

    def contains(self, message_id: str) -> bool:
        """True if a row for this message exists or was appended this run."""
        return message_id in self.existing_ids or message_id in self.added

    def mark(self, message_id: str) -> None:
        """Remember a row appended during this run."""
        self.added.add(message_id)

    def __len__(self) -> int:
        return len(self.existing_ids | self.added)


class RenderLedger:
    """Message ids whose PDF has been written, persisted in a hidden sheet."""

    def __init__(self, sheet: CsvSheet, loaded_ids: set[str]):
        self.sheet = sheet
        self.loaded_ids = frozenset(loaded_ids)
        self.ids: set[str] = set(loaded_ids)

    @classmethod
    def load(cls, workbook: CsvWorkbook, sheet_name: str) -> "RenderLedger":
        """
        Open the ledger sheet, creating it with its header row if missing.

        Args:
            workbook: Workbook holding the ledger sheet
            sheet_name: Ledger sheet name (e.g. "ProcessedPDFs")

        Returns:
            RenderLedger with the persisted ids loaded
        """
        sheet = workbook.get_sheet(sheet_name)
        if sheet is None:
            sheet = workbook.insert_sheet(sheet_name, header=[LEDGER_HEADER], hidden=True)

        loaded = _clean_ids(sheet.read_column(1, start_row=2))
        logger.info(f"Render ledger: {len(loaded)} message id(s) already rendered")
        return cls(sheet, loaded)

    @property
    def added(self) -> set[str]:
        """Ids marked during this run."""
        return self.ids - self.loaded_ids

    def contains(self, message_id: str) -> bool:
        """True if this message's PDF has been written."""
        return message_id in self.ids

    def mark(self, message_id: str) -> None:
        """Record a successful write. Call only after the file exists."""
        self.ids.add(message_id)

    def save(self) -> None:
        """Overwrite the ledger sheet with the header and the full id set."""
        rows = [[LEDGER_HEADER]] + [[message_id] for message_id in sorted(self.ids)]
        self.sheet.overwrite(rows)
        logger.info(f"Render ledger saved: {len(self.ids)} id(s), {len(self.added)} new")

    def __len__(self) -> int:
        return len(self.ids)
