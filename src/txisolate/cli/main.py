"""Main CLI entry point for txisolate."""

import logging
import sys
from typing import Optional

import click

from txisolate.cli.collect import collect
from txisolate.cli.config import config


def configure_cli_logging(debug: bool = False) -> None:
    """Configure logging for the CLI from the ``logging`` config section."""
    from txisolate.core.config.logconfig_utils import configure_logging

    configure_logging()
    if debug:
        logging.getLogger("txisolate").setLevel(logging.DEBUG)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    r"""Transactional test isolation toolkit.

    \b
    Examples:
      txisolate collect tests --exclude config
      txisolate config show --section collection
      txisolate config set db.sqlalchemy_database_uri sqlite:///store.db
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    configure_cli_logging(debug=debug)


cli.add_command(collect)
cli.add_command(config)


@cli.command()
def version() -> None:
    """Show version information."""
    from txisolate import __version__

    click.echo(f"txisolate {__version__}")


def main(args: Optional[list] = None) -> None:
    """Main entry point for the CLI."""
    try:
        cli(args)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
