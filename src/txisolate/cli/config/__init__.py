"""Config command group for txisolate CLI."""

import click

from txisolate.cli.config.set import set_config
from txisolate.cli.config.show import show


@click.group()
def config() -> None:
    r"""Configuration management.

    \b
    Examples:
      txisolate config show
      txisolate config set collection.norecursedirs "build dist config"
    """


config.add_command(show)
config.add_command(set_config, name="set")
