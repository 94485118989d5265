"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from sales_ledger.core.config import Config, Environment, SalesConfig
from sales_ledger.psa.datastore import CsvWorkbook, FolderStore
from sales_ledger.psa.models import SALES_SHEET_HEADER
from tests.fixtures.psa_samples import FULL_SALE_BODY, make_message


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def test_config(temp_dir) -> Config:
    """Config pointing at a temporary data directory, small pages."""
    return Config(
        environment=Environment.TEST,
        data_dir=temp_dir,
        workbook_dir=temp_dir / "workbook",
        drive_dir=temp_dir / "drive",
        sales=SalesConfig(max_per_run=250, page_size=2),
    )


@pytest.fixture
def workbook(test_config) -> CsvWorkbook:
    """Workbook with an empty sales sheet (header row only)."""
    book = CsvWorkbook(test_config.workbook_dir)
    book.insert_sheet(test_config.sales.sheet_name, header=SALES_SHEET_HEADER)
    return book


@pytest.fixture
def folders(test_config) -> FolderStore:
    """Folder store rooted in the temporary drive directory."""
    return FolderStore(test_config.drive_dir)


@pytest.fixture
def sample_message():
    """A fully populated sale message."""
    return make_message("msg-001", body=FULL_SALE_BODY, date=datetime(2024, 3, 6, 9, 15))


def fake_pdf(document_html: str) -> bytes:
    """Stand-in HTML -> PDF converter."""
    return b"%PDF-1.4\n" + document_html.encode("utf-8")


@pytest.fixture
def converter():
    """Fake PDF converter that embeds the HTML for assertions."""
    return fake_pdf


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Set up test environment variables."""
    # Ensure tests don't use real data or credentials
    monkeypatch.setenv("SALES_ENV", "test")
    monkeypatch.setenv("SALES_DATA_DIR", str(tmp_path / "sales_data"))
    monkeypatch.delenv("EMAIL_USERNAME", raising=False)
    monkeypatch.setenv("EMAIL_PASSWORD", "test-password")


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for complete workflows")
    config.addinivalue_line("markers", "e2e: End-to-end CLI tests")
    config.addinivalue_line("markers", "currency: Tests for currency handling and precision")
    config.addinivalue_line("markers", "psa: Tests for PSA sale email processing")
    config.addinivalue_line("markers", "render: Tests for PDF rendering and image inlining")
    config.addinivalue_line("markers", "ledger: Tests for idempotency ledgers")
