#!/usr/bin/env python3
"""
PSA Sales Ingestor

Drives one run: pages through the labeled mailbox, decides per message
whether the record action (append a sale row) and the render action (write a
PDF) are still needed, performs them independently, and persists the render
ledger at the end.

Per run:
    FETCH_PAGE -> for each message (CHECK -> MAYBE_RECORD -> MAYBE_RENDER)
               -> next page | STOP

Only configuration faults escape run(). Every per-message fault is logged,
counted in the RunSummary and isolated from the other action and from the
remaining messages.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..core.config import Config
from ..core.errors import ConfigurationError
from .datastore import CsvSheet, CsvWorkbook, FolderStore
from .email_fetcher import MessageSource
from .images import RemoteImageFetcher
from .ledger import RecordLedger, RenderLedger
from .models import SaleMessage
from .parser import PsaSaleParser
from .renderer import SaleEmailRenderer

logger = logging.getLogger(__name__)


class RunMode(Enum):
    """Which actions a run performs."""

    ALL = "all"
    RECORD = "record"
    RENDER = "render"

    @property
    def records(self) -> bool:
        return self in (RunMode.ALL, RunMode.RECORD)

    @property
    def renders(self) -> bool:
        return self in (RunMode.ALL, RunMode.RENDER)


@dataclass
class RunSummary:
    """Counts reported to the operator at the end of a run."""

    mode: RunMode
    scanned: int = 0
    skipped: int = 0
    recorded: int = 0
    partial: int = 0
    rendered: int = 0
    record_failures: int = 0
    render_failures: int = 0
    unreadable: int = 0
    unresolved_images: int = 0
    pages: int = 0
    errors: list[str] = field(default_factory=list)
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def processing_time(self) -> float | None:
        """Run duration in seconds."""
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def summary_text(self) -> str:
        """One-line summary for the operator notification."""
        parts = [f"Scanned {self.scanned}", f"skipped {self.skipped}"]
        if self.mode.records:
            parts.append(f"recorded {self.recorded} new sale(s) ({self.partial} partial)")
        if self.mode.renders:
            parts.append(f"rendered {self.rendered} PDF(s)")
        failures = self.record_failures + self.render_failures
        if failures:
            parts.append(f"{failures} failure(s)")
        if self.unreadable:
            parts.append(f"{self.unreadable} unreadable message(s)")
        return ", ".join(parts) + "."


class SalesIngestor:
    """
    Records and renders labeled sale emails, at most once each.

    Collaborators are injected; the ingestor itself holds no state between
    runs beyond what the sales sheet and the ledger sheet persist.
    """

    def __init__(
        self,
        config: Config,
        source: MessageSource,
        workbook: CsvWorkbook,
        folders: FolderStore,
        renderer: SaleEmailRenderer | None = None,
        parser: PsaSaleParser | None = None,
    ):
        self.config = config
        self.source = source
        self.workbook = workbook
        self.folders = folders
        self.renderer = renderer or SaleEmailRenderer(RemoteImageFetcher(timeout=config.sales.image_timeout))
        self.parser = parser or PsaSaleParser()

    def _check_configuration(self, mode: RunMode) -> CsvSheet | None:
        """Fail fast on a missing label or sales sheet."""
        sales = self.config.sales

        sheet = None
        if mode.records:
            sheet = self.workbook.get_sheet(sales.sheet_name)
            if sheet is None:
                raise ConfigurationError(f'Missing sheet named "{sales.sheet_name}"')

        if not self.source.has_label(sales.label_name):
            raise ConfigurationError(f'Label "{sales.label_name}" not found')

        return sheet

    def run(self, mode: RunMode = RunMode.ALL) -> RunSummary:
        """
        Execute one capped pass over the labeled mailbox.

        Args:
            mode: Which actions to perform

        Returns:
            RunSummary with per-action counts

        Raises:
            ConfigurationError: Before any processing, if label, sheet or
                folder path is unusable
            Exception: Whatever the message source raises while paging; the
                render ledger is saved first
        """
        sales = self.config.sales
        summary = RunSummary(mode=mode, start_time=datetime.now())

        sheet = self._check_configuration(mode)
        record_ledger = RecordLedger.load(sheet) if sheet is not None else None
        render_ledger = None
        folder = None
        if mode.renders:
            folder = self.folders.resolve_folder(sales.folder_path)
            render_ledger = RenderLedger.load(self.workbook, sales.ledger_sheet_name)

        logger.info(f"Starting {mode.value} run over label '{sales.label_name}' (cap {sales.max_per_run} per action)")

        offset = 0
        try:
            while not self._caps_reached(mode, summary):
                page = self.source.get_messages(sales.label_name, offset, sales.page_size)
                summary.pages += 1
                summary.unreadable += page.unreadable

                for message in page:
                    if self._caps_reached(mode, summary):
                        break
                    summary.scanned += 1

                    needs_record = record_ledger is not None and not record_ledger.contains(message.message_id)
                    needs_render = render_ledger is not None and not render_ledger.contains(message.message_id)
                    if not needs_record and not needs_render:
                        summary.skipped += 1
                        continue

                    if sheet is not None and record_ledger is not None and needs_record:
                        if summary.recorded < sales.max_per_run:
                            self._record(message, sheet, record_ledger, summary)
                    if folder is not None and render_ledger is not None and needs_render:
                        if summary.rendered < sales.max_per_run:
                            self._render(message, folder, render_ledger, summary)

                if page.size < sales.page_size:
                    break
                offset += sales.page_size
        finally:
            # PDFs already written must be in the ledger even if paging aborted
            if render_ledger is not None:
                render_ledger.save()

        summary.end_time = datetime.now()
        self.workbook.notify(summary.summary_text())
        return summary

    def _caps_reached(self, mode: RunMode, summary: RunSummary) -> bool:
        """True once every active action has hit the per-run cap."""
        cap = self.config.sales.max_per_run
        record_done = not mode.records or summary.recorded >= cap
        render_done = not mode.renders or summary.rendered >= cap
        return record_done and render_done

    def _record(self, message: SaleMessage, sheet: CsvSheet, ledger: RecordLedger, summary: RunSummary) -> None:
        """Parse a message and append its sale row."""
        try:
            result = self.parser.parse(message)
            if result is None:
                summary.record_failures += 1
                summary.errors.append(f"record {message.message_id}: unparseable")
                return

            sheet.append_row(result.record.to_row())
            ledger.mark(message.message_id)
            summary.recorded += 1
            if result.is_partial:
                summary.partial += 1

        except Exception as e:
            logger.error(f"Failed to record message {message.message_id}: {e}")
            summary.record_failures += 1
            summary.errors.append(f"record {message.message_id}: {e}")

    def _render(self, message: SaleMessage, folder: Path, ledger: RenderLedger, summary: RunSummary) -> None:
        """Render a message to PDF, write it, then mark it rendered."""
        try:
            document = self.renderer.render(message)
            path = self.folders.write_file(folder, document.filename, document.content)
            ledger.mark(message.message_id)
            summary.rendered += 1
            summary.unresolved_images += document.unresolved_images
            logger.debug(f"Wrote {path}")

        except Exception as e:
            logger.warning(f"Failed on message {message.message_id}: {e}")
            summary.render_failures += 1
            summary.errors.append(f"render {message.message_id}: {e}")
