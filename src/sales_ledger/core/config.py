#!/usr/bin/env python3
"""
Configuration Management for PSA Sales Ledger

Handles environment-based configuration with secure defaults and validation.
The resulting Config is an immutable value object built once per process and
passed explicitly into the ingestor; nothing reads settings from globals.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


@dataclass(frozen=True)
class EmailConfig:
    """IMAP settings for the message source."""

    imap_server: str = "imap.gmail.com"
    imap_port: int = 993
    username: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class SalesConfig:
    """Deployment-time settings for one ingest/export run."""

    label_name: str = "PSA Sales"
    sheet_name: str = "PSA Sales"
    ledger_sheet_name: str = "ProcessedPDFs"
    folder_path: str = "Sales/PSA/Extracted PDFs"
    max_per_run: int = 250
    page_size: int = 50
    image_timeout: float = 30.0


@dataclass(frozen=True)
class Config:
    """
    Main configuration class for the sales ledger.

    Loads configuration from environment variables with secure defaults
    and validation for each environment type.
    """

    environment: Environment

    # Core directories
    data_dir: Path
    workbook_dir: Path
    drive_dir: Path

    # Component configurations
    email: EmailConfig = field(default_factory=EmailConfig)
    sales: SalesConfig = field(default_factory=SalesConfig)

    # Application settings
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_environment(cls) -> "Config":
        """Create configuration from environment variables (and a .env file)."""
        load_dotenv()

        env = Environment(os.getenv("SALES_ENV", "development"))

        if env == Environment.TEST:
            default_test_dir = Path(tempfile.gettempdir()) / "test_sales_ledger"
            data_dir = Path(os.getenv("SALES_DATA_DIR", str(default_test_dir)))
        else:
            data_dir = Path(os.getenv("SALES_DATA_DIR", "./data")).expanduser().resolve()

        email = EmailConfig(
            imap_server=os.getenv("EMAIL_IMAP_SERVER", "imap.gmail.com"),
            imap_port=int(os.getenv("EMAIL_IMAP_PORT", "993")),
            username=os.getenv("EMAIL_USERNAME"),
            password=os.getenv("EMAIL_PASSWORD"),
        )

        sales = SalesConfig(
            label_name=os.getenv("SALES_LABEL_NAME", "PSA Sales"),
            sheet_name=os.getenv("SALES_SHEET_NAME", "PSA Sales"),
            ledger_sheet_name=os.getenv("SALES_LEDGER_SHEET", "ProcessedPDFs"),
            folder_path=os.getenv("SALES_FOLDER_PATH", "Sales/PSA/Extracted PDFs"),
            max_per_run=int(os.getenv("SALES_MAX_PER_RUN", "250")),
            page_size=int(os.getenv("SALES_PAGE_SIZE", "50")),
            image_timeout=float(os.getenv("SALES_IMAGE_TIMEOUT", "30")),
        )

        return cls(
            environment=env,
            data_dir=data_dir,
            workbook_dir=data_dir / "workbook",
            drive_dir=data_dir / "drive",
            email=email,
            sales=sales,
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def with_overrides(self, data_dir: Path | None = None, max_per_run: int | None = None) -> "Config":
        """Return a copy with CLI overrides applied."""
        config = self
        if data_dir is not None:
            config = replace(config, data_dir=data_dir, workbook_dir=data_dir / "workbook", drive_dir=data_dir / "drive")
        if max_per_run is not None:
            config = replace(config, sales=replace(config.sales, max_per_run=max_per_run))
        return config

    def validate(self) -> list:
        """Validate configuration and return list of errors."""
        errors = []

        for name, value in [
            ("SALES_LABEL_NAME", self.sales.label_name),
            ("SALES_SHEET_NAME", self.sales.sheet_name),
            ("SALES_LEDGER_SHEET", self.sales.ledger_sheet_name),
            ("SALES_FOLDER_PATH", self.sales.folder_path),
        ]:
            if not value or not value.strip():
                errors.append(f"{name} must not be empty")

        if self.sales.max_per_run <= 0:
            errors.append("SALES_MAX_PER_RUN must be positive")
        if self.sales.page_size <= 0:
            errors.append("SALES_PAGE_SIZE must be positive")
        if self.sales.image_timeout <= 0:
            errors.append("SALES_IMAGE_TIMEOUT must be positive")

        if self.email.imap_port <= 0 or self.email.imap_port > 65535:
            errors.append("Email IMAP port must be 1-65535")
        if self.email.username and not self.email.password:
            errors.append("EMAIL_PASSWORD is required when EMAIL_USERNAME is provided")

        return errors

    def validate_or_raise(self) -> "Config":
        """Raise ConfigurationError when validate() reports anything."""
        errors = self.validate()
        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")
        return self

    def setup_logging(self) -> None:
        """Configure logging based on configuration."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.environment == Environment.DEVELOPMENT:
            format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_str = "%(asctime)s - %(levelname)s - %(message)s"

        logging.basicConfig(level=level, format=format_str, datefmt="%Y-%m-%d %H:%M:%S")

        # Reduce noise from external libraries in production
        if self.environment == Environment.PRODUCTION:
            logging.getLogger("urllib3").setLevel(logging.WARNING)
            logging.getLogger("requests").setLevel(logging.WARNING)
            logging.getLogger("xhtml2pdf").setLevel(logging.WARNING)

    def get_sensitive_fields(self) -> list:
        """Get list of field names that contain sensitive data."""
        return [
            "email.password",
        ]

    def to_dict(self, include_sensitive: bool = False) -> dict[str, Any]:
        """Convert configuration to dictionary, optionally excluding sensitive data."""
        result: dict[str, Any] = {}

        for field_name, field_value in self.__dict__.items():
            if hasattr(field_value, "__dataclass_fields__"):
                nested_dict: dict[str, Any] = {}
                for nested_name, nested_value in field_value.__dict__.items():
                    full_field_name = f"{field_name}.{nested_name}"
                    if not include_sensitive and full_field_name in self.get_sensitive_fields():
                        nested_dict[nested_name] = "***REDACTED***"
                    else:
                        nested_dict[nested_name] = nested_value
                result[field_name] = nested_dict
            elif isinstance(field_value, Path):
                result[field_name] = str(field_value)
            elif isinstance(field_value, Enum):
                result[field_name] = field_value.value
            else:
                result[field_name] = field_value

        return result
