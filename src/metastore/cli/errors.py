"""Metastore rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from metastore.cli.errors import err_no_db
    console.print(err_no_db(".metastore.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_db(db_path: str = ".metastore.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  metastore init"
    )


def err_config(message: str) -> str:
    """Config file or environment contains an invalid value."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(message)}\n"
        "  Fix metastore.yaml or unset the METASTORE_* variable and re-run."
    )


def err_no_payload() -> str:
    """Neither --file nor --data given for a write command."""
    return (
        "[red]Error:[/] No JSON payload given.\n"
        "  Use:  --file record.json  or  --data '{\"title\": \"...\"}'"
    )


def err_payload_file(path: str) -> str:
    """--file points at a missing file."""
    return (
        f"[red]Error:[/] Payload file not found: '{escape(path)}'\n"
        "  Use a path to an existing JSON file."
    )


def err_request_failed(status: int, message: str) -> str:
    """A metastore operation was rejected; hint by status class."""
    hints = {
        400: "Fix the JSON payload (see message above) and retry.",
        404: "Run:  metastore list <schema>  to see published records.",
        409: "Use a different identifier, or change the record before updating.",
    }
    hint = hints.get(status, "Re-run with --log-level DEBUG for details.")
    return (
        f"[red]Error ({status}):[/] {escape(message)}\n"
        f"  {hint}"
    )


def err_resource_not_found(identifier: str, perspective: str, version: str | None) -> str:
    """No resource registration matches."""
    at = f" version {version}" if version else ""
    return (
        f"[yellow]Resource not found:[/] {escape(identifier)} ({escape(perspective)}{at}).\n"
        "  Run:  metastore resource show <identifier>  to see the latest registration."
    )


def warn_unpublished(schema_id: str, identifier: str) -> str:
    """Shown after writes: the change is not visible until published."""
    return (
        "[yellow]⚠[/] New revision saved as draft.\n"
        f"  Run:  metastore publish {escape(schema_id)} {escape(identifier)}  to make it public."
    )
