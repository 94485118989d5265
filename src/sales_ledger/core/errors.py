#!/usr/bin/env python3
"""
Error Taxonomy

Only configuration faults abort a run. Extraction and render faults are
contained per message by the ingestor and reported through the run summary.
"""


class ConfigurationError(ValueError):
    """Missing label, missing sheet, empty folder path or invalid settings."""


class ExtractionError(Exception):
    """Unexpected fault while parsing a message body."""


class RenderError(Exception):
    """PDF conversion or file write failed for one message."""
