"""Collect command: list the tests an exclusion list lets through."""

import json
from typing import Tuple

import click

from txisolate.core.exceptions import CollectionError


@click.command()
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False),
    default=".",
)
@click.option(
    "-e",
    "--exclude",
    "excludes",
    multiple=True,
    help="Extra directory basename pattern to skip at any depth (repeatable).",
)
@click.option(
    "-t",
    "--testpath",
    "testpaths",
    multiple=True,
    help="Only walk this path, relative to ROOT (repeatable).",
)
@click.option(
    "-o",
    "--output",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--strict",
    is_flag=True,
    help="Exit non-zero when an excluded directory contains test files.",
)
def collect(
    root: str,
    excludes: Tuple[str, ...],
    testpaths: Tuple[str, ...],
    output: str,
    strict: bool,
) -> None:
    r"""Collect tests under ROOT without running them.

    Directories whose name matches the exclusion list are skipped wherever
    they appear, including test directories nested under ones that are
    walked. Excluded directories holding test files are reported.

    \b
    Examples:
      # What would run with 'config' excluded?
      txisolate collect . --exclude config

      # Walk only the listed paths
      txisolate collect . -t tests/unit -t tests/config

      # Machine readable
      txisolate collect . -o json
    """
    from txisolate.collection.collector import collector_from_config

    collector = collector_from_config(
        root,
        extra_exclusions=list(excludes),
        testpaths=list(testpaths) if testpaths else None,
    )
    try:
        report = collector.collect()
    except CollectionError as e:
        raise click.ClickException(str(e))

    if output == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        for nodeid in report.nodeids:
            click.echo(nodeid)
        click.echo(
            f"\n{len(report.items)} tests in {len(report.files)} files, "
            f"{len(report.excluded_dirs)} directories excluded",
            err=True,
        )
        for directory in report.shadowed_dirs:
            click.echo(
                f"warning: excluded directory contains tests: {directory.as_posix()}",
                err=True,
            )

    if strict and report.shadowed_dirs:
        raise click.ClickException(
            f"{len(report.shadowed_dirs)} excluded directories contain tests"
        )
