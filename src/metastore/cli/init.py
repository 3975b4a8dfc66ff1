"""metastore init — create the record database and project config.

Creates:
  .metastore.db     — empty record store with schema
  metastore.yaml    — project config (database, api, logging sections)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from metastore.cli.common import console
from metastore.config import MetastoreConfig, write_project_config
from metastore.db.connection import Database
from metastore.db.schema import initialize

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Initialize a metastore project: database plus metastore.yaml."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    cfg = MetastoreConfig()
    db_path = project_dir / cfg.database.path

    if db_path.exists():
        console.print(f"[yellow]⚠[/]  {db_path} already exists.")
        if not yes and not typer.confirm("Re-initialize? Existing data is preserved.", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    conn = Database(db_path).connect()
    try:
        initialize(conn)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {cfg.database.path}")

    if not (project_dir / "metastore.yaml").exists():
        write_project_config(project_dir, cfg)
        console.print("  [green]✓[/] metastore.yaml")

    console.print(f"\n[bold green]✓ Metastore initialized in {project_dir}.[/]")
    console.print("\nNext steps:")
    console.print("  1. metastore post dataset --file dataset.json   (create a draft)")
    console.print("  2. metastore publish dataset <identifier>       (make it public)")
    console.print("  3. metastore catalog                            (show the catalog)")
