#!/usr/bin/env python3
"""
Sales DataStore Implementations

Local stand-ins for the spreadsheet and the drive the pipeline writes to:

- CsvWorkbook: a directory of CSV sheets (one file per sheet). Supports
  column reads, row appends and full-content overwrites. Hidden sheets are
  stored with a leading dot.
- FolderStore: slash-delimited folder paths under a root directory, with
  atomic, non-clobbering file writes.

Neither store offers transactional isolation; the ingestor is the only writer
during a run.
"""

import csv
import logging
import os
import tempfile
from io import StringIO
from pathlib import Path

import pandas as pd
from pandas.errors import EmptyDataError

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write to a temp file in the same directory, then replace the target."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=path.suffix)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class CsvSheet:
    """
    One sheet of a CsvWorkbook.

    Rows and columns are 1-based, like a spreadsheet. All cells are strings.
    """

    def __init__(self, name: str, path: Path, hidden: bool = False):
        self.name = name
        self.path = path
        self.hidden = hidden

    def _frame(self) -> pd.DataFrame:
        """Load the whole sheet as a string DataFrame (no header inference)."""
        if not self.path.exists():
            return pd.DataFrame()
        try:
            return pd.read_csv(self.path, header=None, dtype=str, keep_default_na=False).fillna("")
        except EmptyDataError:
            return pd.DataFrame()

    def last_row(self) -> int:
        """Index of the last non-empty row (0 when the sheet is empty)."""
        return len(self._frame())

    def get_values(self) -> list[list[str]]:
        """All rows, header included."""
        return self._frame().values.tolist()

    def read_column(self, column: int, start_row: int = 2) -> list[str]:
        """
        Read one column from start_row to the last row.

        Args:
            column: 1-based column index
            start_row: 1-based first row (2 skips the header)

        Returns:
            Cell values; rows shorter than the column yield ""
        """
        frame = self._frame()
        if frame.empty or column > frame.shape[1]:
            return [""] * max(0, len(frame) - (start_row - 1))
        return frame.iloc[start_row - 1 :, column - 1].tolist()

    def _ends_with_newline(self) -> bool:
        """True if the file is empty or its last byte ends a line."""
        if not self.path.exists() or self.path.stat().st_size == 0:
            return True
        with open(self.path, "rb") as f:
            f.seek(-1, os.SEEK_END)
            return f.read(1) in (b"\n", b"\r")

    def append_row(self, values: list[str]) -> None:
        """Append one row after the last row, terminating a hand-edited last line first."""
        needs_newline = not self._ends_with_newline()
        with open(self.path, "a", encoding="utf-8", newline="") as f:
            if needs_newline:
                f.write("\r\n")
            csv.writer(f).writerow(values)

    def overwrite(self, rows: list[list[str]]) -> None:
        """Replace the full sheet contents in one atomic write."""
        buffer = StringIO()
        writer = csv.writer(buffer)
        writer.writerows(rows)
        _atomic_write_bytes(self.path, buffer.getvalue().encode("utf-8"))

    def __repr__(self) -> str:
        return f"CsvSheet(name={self.name!r}, path={self.path!r})"


class CsvWorkbook:
    """
    Tabular store backed by a directory of CSV files.

    Sheet "PSA Sales" lives in "PSA Sales.csv"; a hidden sheet "ProcessedPDFs"
    lives in ".ProcessedPDFs.csv".
    """

    def __init__(self, workbook_dir: Path):
        """
        Initialize workbook.

        Args:
            workbook_dir: Directory holding the sheet files (data/workbook)
        """
        self.workbook_dir = workbook_dir
        self.notifications: list[str] = []

    def _sheet_path(self, name: str, hidden: bool) -> Path:
        return self.workbook_dir / (f".{name}.csv" if hidden else f"{name}.csv")

    def exists(self) -> bool:
        """Check if the workbook directory exists."""
        return self.workbook_dir.exists()

    def get_sheet(self, name: str) -> CsvSheet | None:
        """Return the named sheet (visible or hidden), or None if missing."""
        for hidden in (False, True):
            path = self._sheet_path(name, hidden)
            if path.exists():
                return CsvSheet(name, path, hidden=hidden)
        return None

    def insert_sheet(self, name: str, header: list[str] | None = None, hidden: bool = False) -> CsvSheet:
        """
        Create a sheet, optionally writing a header row.

        Raises:
            ValueError: If a sheet with that name already exists
        """
        if self.get_sheet(name) is not None:
            raise ValueError(f"Sheet already exists: {name}")

        self.workbook_dir.mkdir(parents=True, exist_ok=True)
        sheet = CsvSheet(name, self._sheet_path(name, hidden), hidden=hidden)
        sheet.overwrite([header] if header else [])
        logger.info(f"Created {'hidden ' if hidden else ''}sheet '{name}' at {sheet.path}")
        return sheet

    def sheet_names(self) -> list[str]:
        """Names of all sheets, hidden ones included."""
        if not self.exists():
            return []
        return sorted(p.stem.lstrip(".") for p in self.workbook_dir.glob("*.csv") if not p.name.startswith(".tmp-"))

    def notify(self, message: str) -> None:
        """Show a transient operator-facing message."""
        logger.info(message)
        self.notifications.append(message)

    def summary_text(self) -> str:
        """Get human-readable summary."""
        names = self.sheet_names()
        if not names:
            return f"No workbook at {self.workbook_dir}"
        return f"Workbook: {len(names)} sheet(s) ({', '.join(names)})"


class FolderStore:
    """
    Hierarchical file store rooted at a local directory.

    Files are never overwritten: a name collision gets a " (2)", " (3)", ...
    suffix before the extension.
    """

    def __init__(self, root: Path):
        self.root = root

    def resolve_folder(self, folder_path: str) -> Path:
        """
        Resolve a slash-delimited path under the root, creating missing folders.

        Raises:
            ConfigurationError: If the path has no segments
        """
        parts = [p.strip() for p in (folder_path or "").split("/") if p.strip()]
        if not parts:
            raise ConfigurationError("Folder path is empty")

        folder = self.root.joinpath(*parts)
        folder.mkdir(parents=True, exist_ok=True)
        return folder

    def write_file(self, folder: Path, filename: str, content: bytes) -> Path:
        """
        Write a named binary file into a folder.

        Returns:
            Path of the written file (may carry a collision suffix)
        """
        target = folder / filename
        counter = 2
        while target.exists():
            target = folder / f"{Path(filename).stem} ({counter}){Path(filename).suffix}"
            counter += 1

        _atomic_write_bytes(target, content)
        return target
