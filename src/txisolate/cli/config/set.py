"""Config set command."""

import os
from typing import Optional

import click
import yaml


def update_config_value(key: str, value: str, config_file: Optional[str] = None) -> str:
    """Update a configuration value using dot notation.

    Args:
        key: Dot-notated key (e.g., 'db.sqlalchemy_database_uri')
        value: New value, parsed as YAML so "false" and "5" keep their types
        config_file: Optional path of the file to write

    Returns:
        Success message indicating what was updated

    Raises:
        ValueError: If the key doesn't exist in the current configuration
    """
    from txisolate.core.configuration import TxIsolateConfig

    if config_file and os.path.exists(config_file):
        config = TxIsolateConfig(filepath=config_file)
    else:
        config = TxIsolateConfig()
    current = config.as_dict()

    section, _, name = key.partition(".")
    if not name:
        raise ValueError(
            f"Key '{key}' must be in dot notation format (e.g., 'section.key'). "
            f"Valid sections are: {list(current.keys())}"
        )
    if section not in current:
        raise ValueError(
            f"Section '{section}' not found in configuration. "
            f"Available sections: {list(current.keys())}"
        )
    if name not in (current[section] or {}):
        raise ValueError(
            f"Key '{name}' not found in '{section}'. "
            f"Available keys: {list((current[section] or {}).keys())}"
        )

    old_value = current[section][name]
    new_value = yaml.safe_load(value) if value != "" else ""
    config.set(section, name, new_value)
    written = config.write(config_file or "")

    return f"Successfully updated '{key}' from '{old_value}' to '{new_value}' in {written}"


@click.command("set")
@click.argument("key", type=str)
@click.argument("value", type=str)
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file to update (defaults to ~/.txisolate.yaml).",
)
def set_config(key: str, value: str, config_file: Optional[str]) -> None:
    r"""Update a configuration value.

    \b
    Arguments:
      KEY    Configuration key in dot notation (e.g., 'db.echo')
      VALUE  New value to set

    \b
    Examples:
      txisolate config set db.echo true
      txisolate config set collection.norecursedirs "build dist" --config-file ./tx.yaml
    """
    try:
        click.echo(update_config_value(key=key, value=value, config_file=config_file))
    except ValueError as e:
        raise click.ClickException(str(e))
