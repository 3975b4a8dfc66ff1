"""Helpers shared by metastore CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from metastore.api import ApiResponse
from metastore.bootstrap import Metastore, open_metastore
from metastore.cli.errors import err_config, err_no_db, err_no_payload, err_payload_file, err_request_failed
from metastore.config import ConfigError, MetastoreConfig, load_config

console = Console()


def load_cfg_or_exit() -> MetastoreConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


@contextmanager
def metastore_or_exit(db: Path | None) -> Iterator[Metastore]:
    """Yield a Metastore for *db* (or the configured path); exit 1 if missing."""
    cfg = load_cfg_or_exit()
    db_path = db if db is not None else Path(cfg.database.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    with open_metastore(db_path, cfg) as metastore:
        yield metastore


def read_payload(file: Path | None, data: str | None) -> str:
    if data is not None:
        return data
    if file is None:
        console.print(err_no_payload())
        raise typer.Exit(1)
    if not file.is_file():
        console.print(err_payload_file(str(file)))
        raise typer.Exit(1)
    return file.read_text(encoding="utf-8")


def print_response(response: ApiResponse) -> None:
    """Print the JSON body, or an actionable error and exit 1."""
    if not response.ok:
        console.print(err_request_failed(response.status, response.body.get("message", "")))
        raise typer.Exit(1)
    console.print_json(response.to_json())
