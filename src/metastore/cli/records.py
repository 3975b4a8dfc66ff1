"""Metastore record commands: read, write, publish and delete records.

Usage:
  metastore list dataset --show-reference-ids
  metastore post dataset --file dataset.json
  metastore patch dataset <id> --data '{"title": "New title"}'
  metastore publish dataset <id>
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from metastore.cli.common import console, metastore_or_exit, print_response, read_payload
from metastore.cli.errors import warn_unpublished
from metastore.references import metadata_hash

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Path to .metastore.db (default: from config).")]
SchemaArg = Annotated[str, typer.Argument(help="Schema id, e.g. dataset.")]
IdentifierArg = Annotated[str, typer.Argument(help="Record identifier.")]
FileOption = Annotated[Optional[Path], typer.Option("--file", "-f", help="JSON payload file.")]
DataOption = Annotated[Optional[str], typer.Option("--data", "-d", help="Inline JSON payload.")]
RefsOption = Annotated[
    bool,
    typer.Option("--show-reference-ids", help="Show dereferenced values instead of stripping references."),
]


def _params(show_reference_ids: bool) -> dict[str, str]:
    return {"show-reference-ids": "1"} if show_reference_ids else {}


def schemas_cmd(
    schema_id: Annotated[Optional[str], typer.Argument(help="Show a single schema.")] = None,
    db: DbOption = None,
) -> None:
    """List schemas, or show one schema."""
    with metastore_or_exit(db) as ms:
        if schema_id is None:
            print_response(ms.api.get_schemas())
        else:
            print_response(ms.api.get_schema(schema_id))


def list_cmd(
    schema_id: SchemaArg,
    start: Annotated[Optional[int], typer.Option("--start", help="Offset of the first record.")] = None,
    length: Annotated[Optional[int], typer.Option("--length", help="Number of records.")] = None,
    show_reference_ids: RefsOption = False,
    db: DbOption = None,
) -> None:
    """List published records of a schema."""
    params = _params(show_reference_ids)
    if start is not None:
        params["start"] = str(start)
    if length is not None:
        params["length"] = str(length)
    with metastore_or_exit(db) as ms:
        print_response(ms.api.get_all(schema_id, params))


def get_cmd(
    schema_id: SchemaArg,
    identifier: IdentifierArg,
    show_reference_ids: RefsOption = False,
    db: DbOption = None,
) -> None:
    """Show the published revision of a record."""
    with metastore_or_exit(db) as ms:
        print_response(ms.api.get(schema_id, identifier, _params(show_reference_ids)))


def resources_cmd(schema_id: SchemaArg, identifier: IdentifierArg, db: DbOption = None) -> None:
    """Show the distributions of the latest revision of a record."""
    with metastore_or_exit(db) as ms:
        print_response(ms.api.get_resources(schema_id, identifier))


def post_cmd(schema_id: SchemaArg, file: FileOption = None, data: DataOption = None, db: DbOption = None) -> None:
    """Create a record (saved as a draft)."""
    body = read_payload(file, data)
    with metastore_or_exit(db) as ms:
        response = ms.api.post(schema_id, body)
        print_response(response)
        console.print(warn_unpublished(schema_id, response.body["identifier"]))


def put_cmd(
    schema_id: SchemaArg,
    identifier: IdentifierArg,
    file: FileOption = None,
    data: DataOption = None,
    db: DbOption = None,
) -> None:
    """Replace a record with a new revision, or create it."""
    body = read_payload(file, data)
    with metastore_or_exit(db) as ms:
        print_response(ms.api.put(schema_id, identifier, body))
        console.print(warn_unpublished(schema_id, identifier))


def patch_cmd(
    schema_id: SchemaArg,
    identifier: IdentifierArg,
    file: FileOption = None,
    data: DataOption = None,
    db: DbOption = None,
) -> None:
    """Apply a JSON Merge Patch as a new revision."""
    body = read_payload(file, data)
    with metastore_or_exit(db) as ms:
        print_response(ms.api.patch(schema_id, identifier, body))
        console.print(warn_unpublished(schema_id, identifier))


def publish_cmd(schema_id: SchemaArg, identifier: IdentifierArg, db: DbOption = None) -> None:
    """Publish the latest revision of a record."""
    with metastore_or_exit(db) as ms:
        print_response(ms.api.publish(schema_id, identifier))


def delete_cmd(
    schema_id: SchemaArg,
    identifier: IdentifierArg,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Delete a record and all of its revisions."""
    with metastore_or_exit(db) as ms:
        if not yes and not typer.confirm(f"Delete {schema_id}/{identifier} and all revisions?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        print_response(ms.api.delete(schema_id, identifier))


def catalog_cmd(db: DbOption = None) -> None:
    """Show the catalog with every published dataset."""
    with metastore_or_exit(db) as ms:
        print_response(ms.api.get_catalog())


def revisions_cmd(schema_id: SchemaArg, identifier: IdentifierArg, db: DbOption = None) -> None:
    """List the revisions of a record and which one is published."""
    with metastore_or_exit(db) as ms:
        storage = ms.service.storage(schema_id)
        revisions = storage.list_revisions(identifier)
        if not revisions:
            console.print(f"[yellow]No revisions:[/] {schema_id}/{identifier} does not exist.")
            raise typer.Exit(1)

        table = Table(title=f"{schema_id}/{identifier}", show_header=True, header_style="bold")
        table.add_column("Revision", justify="right")
        table.add_column("Created")
        table.add_column("Published")
        table.add_column("Hash")
        for rev in revisions:
            table.add_row(
                str(rev.revision),
                rev.created_at or "",
                "[green]✓[/]" if rev.published else "",
                metadata_hash(ms.service.valid_metadata_factory.get(rev.body, None)),
            )
        console.print(table)
