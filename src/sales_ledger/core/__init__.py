"""
Core Utilities Package

Shared primitives used by the PSA sales pipeline.

This package provides:
- Currency parsing and epsilon-adjusted rounding
- Money and FinancialDate value types
- Configuration management for environment-specific settings
- The error taxonomy shared by the ingestor and the CLI
"""

from .config import Config, EmailConfig, Environment, SalesConfig
from .currency import cents_to_dollars_str, format_cents, parse_amount, round2
from .dates import FinancialDate, parse_listing_timestamp
from .errors import ConfigurationError, ExtractionError, RenderError
from .money import Money

__all__ = [
    # Configuration
    "Config",
    "ConfigurationError",
    "EmailConfig",
    "Environment",
    "ExtractionError",
    "FinancialDate",
    "Money",
    "RenderError",
    "SalesConfig",
    # Currency utilities
    "cents_to_dollars_str",
    "format_cents",
    "parse_amount",
    "parse_listing_timestamp",
    "round2",
]
