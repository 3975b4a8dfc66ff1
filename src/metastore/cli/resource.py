"""metastore resource CLI commands — resource mapper registrations.

Commands:
  metastore resource register <file-path>                  — register a source resource
  metastore resource add-version <identifier> <file-path>  — register a newer source version
  metastore resource add-perspective <identifier> <name> <file-path>
  metastore resource show <identifier>                     — latest (or --version) registration
  metastore resource remove <identifier> --version <v>
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from metastore.cli.common import console, metastore_or_exit
from metastore.cli.errors import err_request_failed, err_resource_not_found
from metastore.db.models import DEFAULT_SOURCE_PERSPECTIVE, Resource
from metastore.exceptions import MetastoreException

resource_app = typer.Typer(
    name="resource",
    help="Manage file-backed resources (register, version, remove).",
    add_completion=False,
)

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Path to .metastore.db (default: from config).")]
PerspectiveOption = Annotated[str, typer.Option("--perspective", "-p", help="Resource perspective.")]


def _show(resource: Resource) -> None:
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    for key, value in resource.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


def _fail(exc: MetastoreException) -> None:
    console.print(err_request_failed(exc.http_code, str(exc)))
    raise typer.Exit(1) from exc


@resource_app.command("register")
def register_cmd(
    file_path: Annotated[str, typer.Argument(help="File path or URL of the resource.")],
    mime_type: Annotated[str, typer.Option("--mime-type", "-m", help="MIME type.")] = "text/plain",
    version: Annotated[Optional[str], typer.Option("--version", help="Version (default: now).")] = None,
    db: DbOption = None,
) -> None:
    """Register a new source resource."""
    kwargs = {"version": version} if version else {}
    with metastore_or_exit(db) as ms:
        try:
            resource = Resource(file_path=file_path, mime_type=mime_type, **kwargs)
            ms.resource_mapper.register(resource)
        except MetastoreException as exc:
            _fail(exc)
    console.print(f"[green]✓[/] Registered: {resource.identifier} (version {resource.version})")


@resource_app.command("add-version")
def add_version_cmd(
    identifier: Annotated[str, typer.Argument(help="Resource identifier.")],
    file_path: Annotated[str, typer.Argument(help="File path of the new version.")],
    version: Annotated[Optional[str], typer.Option("--version", help="Version (default: next).")] = None,
    db: DbOption = None,
) -> None:
    """Register a newer version of a source resource."""
    with metastore_or_exit(db) as ms:
        current = ms.resource_mapper.get(identifier)
        if current is None:
            console.print(err_resource_not_found(identifier, DEFAULT_SOURCE_PERSPECTIVE, None))
            raise typer.Exit(1)
        try:
            new = current.create_new_version(file_path=file_path, version=version)
            ms.resource_mapper.register_new_version(new)
        except MetastoreException as exc:
            _fail(exc)
    console.print(f"[green]✓[/] Registered version {new.version} of {identifier}")


@resource_app.command("add-perspective")
def add_perspective_cmd(
    identifier: Annotated[str, typer.Argument(help="Resource identifier.")],
    perspective: Annotated[str, typer.Argument(help="Perspective name, e.g. local_file.")],
    file_path: Annotated[str, typer.Argument(help="File path of the derived resource.")],
    version: Annotated[Optional[str], typer.Option("--version", help="Source version (default: latest).")] = None,
    db: DbOption = None,
) -> None:
    """Register a derived perspective of a source resource version."""
    with metastore_or_exit(db) as ms:
        source = ms.resource_mapper.get(identifier, DEFAULT_SOURCE_PERSPECTIVE, version)
        if source is None:
            console.print(err_resource_not_found(identifier, DEFAULT_SOURCE_PERSPECTIVE, version))
            raise typer.Exit(1)
        derived = source.create_new_perspective(perspective, file_path)
        try:
            ms.resource_mapper.register_new_perspective(derived)
        except MetastoreException as exc:
            _fail(exc)
    console.print(f"[green]✓[/] Registered perspective '{perspective}' of {identifier} (version {derived.version})")


@resource_app.command("show")
def show_cmd(
    identifier: Annotated[str, typer.Argument(help="Resource identifier.")],
    perspective: PerspectiveOption = DEFAULT_SOURCE_PERSPECTIVE,
    version: Annotated[Optional[str], typer.Option("--version", help="Exact version (default: latest).")] = None,
    db: DbOption = None,
) -> None:
    """Show the latest registration of a resource, or an exact version."""
    with metastore_or_exit(db) as ms:
        resource = ms.resource_mapper.get(identifier, perspective, version)
    if resource is None:
        console.print(err_resource_not_found(identifier, perspective, version))
        raise typer.Exit(1)
    _show(resource)


@resource_app.command("remove")
def remove_cmd(
    identifier: Annotated[str, typer.Argument(help="Resource identifier.")],
    version: Annotated[str, typer.Option("--version", help="Version to remove.")],
    perspective: PerspectiveOption = DEFAULT_SOURCE_PERSPECTIVE,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Remove one resource registration."""
    with metastore_or_exit(db) as ms:
        resource = ms.resource_mapper.get(identifier, perspective, version)
        if resource is None:
            console.print(err_resource_not_found(identifier, perspective, version))
            raise typer.Exit(0)
        if not yes and not typer.confirm(f"Remove {identifier} ({perspective}, version {version})?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        try:
            ms.resource_mapper.remove(resource)
        except MetastoreException as exc:
            _fail(exc)
    console.print(f"[green]✓[/] Removed: {identifier} ({perspective}, version {version})")
