#!/usr/bin/env python3
"""
Sales CLI - Ingest and Export Commands

`run` records and renders, `ingest` only records, `export` only renders.
All three share one capped pass over the labeled mailbox.
"""

import imaplib
from contextlib import nullcontext
from pathlib import Path

import click

from ..core.config import Config
from ..core.errors import ConfigurationError
from ..psa import (
    SALES_SHEET_HEADER,
    CsvWorkbook,
    EmlDirectorySource,
    FolderStore,
    ImapMessageSource,
    RunMode,
    SalesIngestor,
)

run_options = [
    click.option("--max-per-run", type=click.IntRange(min=1), help="Override the per-action cap"),
    click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), help="Override data directory"),
    click.option(
        "--eml-dir",
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help="Read <eml-dir>/<label>/*.eml instead of IMAP",
    ),
]


def with_run_options(func):
    for option in reversed(run_options):
        func = option(func)
    return func


def _execute(ctx: click.Context, mode: RunMode, max_per_run: int | None, data_dir: Path | None, eml_dir: Path | None) -> None:
    config: Config = ctx.obj["config"].with_overrides(data_dir=data_dir, max_per_run=max_per_run)
    verbose = ctx.obj.get("verbose", False)

    if verbose:
        click.echo(f"Mode: {mode.value}")
        click.echo(f"Label: {config.sales.label_name}")
        click.echo(f"Workbook: {config.workbook_dir}")
        click.echo(f"Output folder: {config.drive_dir / config.sales.folder_path}")
        click.echo()

    workbook = CsvWorkbook(config.workbook_dir)
    folders = FolderStore(config.drive_dir)

    if eml_dir is not None:
        source = EmlDirectorySource(eml_dir)
        session = nullcontext(source)
    else:
        source = ImapMessageSource(config.email)
        session = source

    try:
        with session:
            summary = SalesIngestor(config, source, workbook, folders).run(mode)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    except (OSError, imaplib.IMAP4.error) as e:
        raise click.ClickException(f"Cannot reach message source: {e}") from e

    click.echo(f"✅ {summary.summary_text()}")
    if mode.renders and summary.unresolved_images:
        click.echo(f"   {summary.unresolved_images} image(s) left external")
    if verbose:
        for error in summary.errors:
            click.echo(f"   ⚠️  {error}")


@click.command()
@with_run_options
@click.pass_context
def run(ctx: click.Context, max_per_run: int | None, data_dir: Path | None, eml_dir: Path | None) -> None:
    """
    Record new sales and export their PDFs.

    Examples:
      sales-ledger run
      sales-ledger run --max-per-run 20 --eml-dir ./exported-mail
    """
    _execute(ctx, RunMode.ALL, max_per_run, data_dir, eml_dir)


@click.command()
@with_run_options
@click.pass_context
def ingest(ctx: click.Context, max_per_run: int | None, data_dir: Path | None, eml_dir: Path | None) -> None:
    """Append one sales sheet row per new sale email."""
    _execute(ctx, RunMode.RECORD, max_per_run, data_dir, eml_dir)


@click.command()
@with_run_options
@click.pass_context
def export(ctx: click.Context, max_per_run: int | None, data_dir: Path | None, eml_dir: Path | None) -> None:
    """Write one PDF per sale email not yet exported."""
    _execute(ctx, RunMode.RENDER, max_per_run, data_dir, eml_dir)


@click.command()
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), help="Override data directory")
@click.pass_context
def init(ctx: click.Context, data_dir: Path | None) -> None:
    """Create the sales sheet with its header row."""
    config: Config = ctx.obj["config"].with_overrides(data_dir=data_dir)
    workbook = CsvWorkbook(config.workbook_dir)

    if workbook.get_sheet(config.sales.sheet_name) is not None:
        click.echo(f"Sheet '{config.sales.sheet_name}' already exists in {config.workbook_dir}")
        return

    sheet = workbook.insert_sheet(config.sales.sheet_name, header=SALES_SHEET_HEADER)
    click.echo(f"✅ Created sheet '{sheet.name}' at {sheet.path}")
