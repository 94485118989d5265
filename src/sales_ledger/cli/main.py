#!/usr/bin/env python3
"""
Main CLI Entry Point for PSA Sales Ledger

Provides the command-line interface for recording and exporting sale emails.
"""

import logging
import os

import click

from ..core.config import Config
from ..core.errors import ConfigurationError


@click.group()
@click.option(
    "--config-env",
    type=click.Choice(["development", "test", "production"]),
    help="Override environment configuration",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_env: str | None, verbose: bool, debug: bool) -> None:
    """
    PSA Sales Ledger

    Records labeled sale notification emails as spreadsheet rows and PDF
    snapshots, never twice for the same message.
    """
    ctx.ensure_object(dict)

    if config_env:
        os.environ["SALES_ENV"] = config_env
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"

    try:
        config = Config.from_environment().validate_or_raise()
    except (ConfigurationError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    config.setup_logging()
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("sales_ledger").setLevel(logging.DEBUG)

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["config"] = config

    if verbose:
        click.echo(f"Environment: {config.environment.value}")
        click.echo(f"Data directory: {config.data_dir}")


@main.command()
def version() -> None:
    """Show version information."""
    from sales_ledger import __author__, __version__

    click.echo(f"PSA Sales Ledger v{__version__}")
    click.echo(f"Author: {__author__}")


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration."""
    config_obj: Config = ctx.obj["config"]
    settings = config_obj.to_dict()

    click.echo("Current Configuration:")
    click.echo(f"  Environment: {settings['environment']}")
    click.echo(f"  Data Directory: {settings['data_dir']}")
    click.echo(f"  Workbook Directory: {settings['workbook_dir']}")
    click.echo(f"  Drive Directory: {settings['drive_dir']}")
    for name, value in settings["sales"].items():
        click.echo(f"  sales.{name}: {value}")
    for name, value in settings["email"].items():
        click.echo(f"  email.{name}: {value}")
    click.echo(f"  Log Level: {settings['log_level']}")


from .sales import export, ingest, init, run  # noqa: E402

main.add_command(run)
main.add_command(ingest)
main.add_command(export)
main.add_command(init)


if __name__ == "__main__":
    main()
