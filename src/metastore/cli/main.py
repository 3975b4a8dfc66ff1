"""Metastore CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from metastore.cli.common import console, load_cfg_or_exit
from metastore.cli.errors import err_config
from metastore.cli.init import init_cmd
from metastore.cli.records import (
    catalog_cmd,
    delete_cmd,
    get_cmd,
    list_cmd,
    patch_cmd,
    post_cmd,
    publish_cmd,
    put_cmd,
    resources_cmd,
    revisions_cmd,
    schemas_cmd,
)
from metastore.cli.resource import resource_app

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _installed_version() -> str:
    try:
        return importlib.metadata.version("metastore")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"metastore {_installed_version()}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route metastore logging through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app = typer.Typer(
    name="metastore",
    help=(
        "Metastore — versioned metadata catalog.\n\n"
        "  metastore post/put/patch  Write a draft revision.\n"
        "  metastore publish         Make the latest revision public."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Log level (default: from config)."),
    ] = None,
) -> None:
    """Metastore — versioned metadata catalog."""
    if log_level is not None:
        level = log_level.upper()
        if level not in _LOG_LEVELS:
            console.print(err_config(f"Invalid log level '{log_level}'. Use one of: {', '.join(_LOG_LEVELS)}"))
            raise typer.Exit(1)
    else:
        level = load_cfg_or_exit().logging.level
    configure_logging(level)


app.command("init")(init_cmd)
app.command("schemas")(schemas_cmd)
app.command("list")(list_cmd)
app.command("get")(get_cmd)
app.command("resources")(resources_cmd)
app.command("post")(post_cmd)
app.command("put")(put_cmd)
app.command("patch")(patch_cmd)
app.command("publish")(publish_cmd)
app.command("delete")(delete_cmd)
app.command("catalog")(catalog_cmd)
app.command("revisions")(revisions_cmd)
app.add_typer(resource_app, name="resource")


@app.command("version")
def version_cmd() -> None:
    """Show the installed metastore version."""
    typer.echo(f"metastore {_installed_version()}")


if __name__ == "__main__":
    app()
