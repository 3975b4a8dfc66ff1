"""Per-schema revisioned record storage.

Every write appends a revision; nothing is updated in place except the
published pointer, which only moves on publish(). Bodies are stored as JSON
text and returned as raw strings so callers decide how to validate them.
"""

from __future__ import annotations

import sqlite3
import uuid

from metastore.db.models import RecordRevision
from metastore.document import ValidatedDocument
from metastore.exceptions import MissingObjectException


class RecordStorage:
    """Data access for the records of one schema.

    Wraps an open sqlite3.Connection owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection, schema_id: str) -> None:
        self._conn = conn
        self.schema_id = schema_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def exists(self, identifier: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM metastore_items WHERE schema_id = ? AND identifier = ?",
            (self.schema_id, identifier),
        ).fetchone()
        return row is not None

    def retrieve(self, identifier: str) -> str:
        """Return the body of the latest revision of *identifier*.

        Raises:
            MissingObjectException: No record exists for *identifier*.
        """
        row = self._conn.execute(
            """
            SELECT body FROM metastore_revisions
            WHERE schema_id = ? AND identifier = ?
            ORDER BY revision DESC LIMIT 1
            """,
            (self.schema_id, identifier),
        ).fetchone()
        if row is None:
            raise MissingObjectException(f"Error retrieving metadata: {self.schema_id} {identifier} not found.")
        return row["body"]

    def retrieve_published(self, identifier: str) -> str:
        """Return the body of the published revision of *identifier*.

        Raises:
            MissingObjectException: The record does not exist or has never
                been published.
        """
        row = self._conn.execute(
            """
            SELECT r.body FROM metastore_items i
            JOIN metastore_revisions r
              ON r.schema_id = i.schema_id
             AND r.identifier = i.identifier
             AND r.revision = i.published_revision
            WHERE i.schema_id = ? AND i.identifier = ?
            """,
            (self.schema_id, identifier),
        ).fetchone()
        if row is None:
            raise MissingObjectException(
                f"Error retrieving published dataset: {self.schema_id} {identifier} not found."
            )
        return row["body"]

    def retrieve_all(self) -> list[str]:
        """Return the published bodies of every record, oldest record first."""
        return self._published_bodies(None, 0)

    def retrieve_range(self, start: int, length: int) -> list[str]:
        """Return up to *length* published bodies starting at offset *start*."""
        return self._published_bodies(length, start)

    def count(self) -> int:
        """Return the number of published records."""
        return self._conn.execute(
            """
            SELECT COUNT(*) FROM metastore_items
            WHERE schema_id = ? AND published_revision IS NOT NULL
            """,
            (self.schema_id,),
        ).fetchone()[0]

    def list_identifiers(self) -> list[str]:
        """Return the identifier of every record, drafts included, oldest first."""
        rows = self._conn.execute(
            "SELECT identifier FROM metastore_items WHERE schema_id = ? ORDER BY rowid",
            (self.schema_id,),
        ).fetchall()
        return [r["identifier"] for r in rows]

    def list_revisions(self, identifier: str) -> list[RecordRevision]:
        """Return every revision of *identifier*, oldest first."""
        rows = self._conn.execute(
            """
            SELECT r.schema_id, r.identifier, r.revision, r.body, r.created_at,
                   r.revision = i.published_revision AS published
            FROM metastore_revisions r
            JOIN metastore_items i
              ON i.schema_id = r.schema_id AND i.identifier = r.identifier
            WHERE r.schema_id = ? AND r.identifier = ?
            ORDER BY r.revision
            """,
            (self.schema_id, identifier),
        ).fetchall()
        return [_row_to_revision(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store(self, document: ValidatedDocument, identifier: str | None = None) -> str:
        """Append *document* as the newest revision and return its identifier.

        Without *identifier* the document's own ``identifier`` is used, or a
        uuid4 is generated. Object documents always carry their identifier.
        """
        root = document.get("$")
        if identifier is None:
            embedded = root.get("identifier") if isinstance(root, dict) else None
            identifier = str(embedded) if embedded else str(uuid.uuid4())
        if isinstance(root, dict) and not root.get("identifier"):
            document.set("$.identifier", identifier)

        with self._conn:
            self._conn.execute(
                "INSERT OR IGNORE INTO metastore_items (schema_id, identifier) VALUES (?, ?)",
                (self.schema_id, identifier),
            )
            latest = self._conn.execute(
                "SELECT MAX(revision) FROM metastore_revisions WHERE schema_id = ? AND identifier = ?",
                (self.schema_id, identifier),
            ).fetchone()[0]
            self._conn.execute(
                """
                INSERT INTO metastore_revisions (schema_id, identifier, revision, body)
                VALUES (?, ?, ?, ?)
                """,
                (self.schema_id, identifier, (latest or 0) + 1, str(document)),
            )
        return identifier

    def publish(self, identifier: str) -> bool:
        """Point the published revision at the latest revision.

        Returns:
            True if the pointer moved, False if the latest revision was
            already published.

        Raises:
            MissingObjectException: No record exists for *identifier*.
        """
        row = self._conn.execute(
            """
            SELECT i.published_revision, MAX(r.revision) AS latest
            FROM metastore_items i
            JOIN metastore_revisions r
              ON r.schema_id = i.schema_id AND r.identifier = i.identifier
            WHERE i.schema_id = ? AND i.identifier = ?
            GROUP BY i.schema_id, i.identifier
            """,
            (self.schema_id, identifier),
        ).fetchone()
        if row is None:
            raise MissingObjectException(f"Error publishing dataset: {identifier} not found.")
        if row["published_revision"] == row["latest"]:
            return False
        self._conn.execute(
            "UPDATE metastore_items SET published_revision = ? WHERE schema_id = ? AND identifier = ?",
            (row["latest"], self.schema_id, identifier),
        )
        self._conn.commit()
        return True

    def remove(self, identifier: str) -> None:
        """Delete every revision of *identifier*. Missing records are ignored."""
        self._conn.execute(
            "DELETE FROM metastore_items WHERE schema_id = ? AND identifier = ?",
            (self.schema_id, identifier),
        )
        self._conn.commit()

    def _published_bodies(self, limit: int | None, offset: int) -> list[str]:
        rows = self._conn.execute(
            """
            SELECT r.body FROM metastore_items i
            JOIN metastore_revisions r
              ON r.schema_id = i.schema_id
             AND r.identifier = i.identifier
             AND r.revision = i.published_revision
            WHERE i.schema_id = ?
            ORDER BY i.rowid
            LIMIT ? OFFSET ?
            """,
            (self.schema_id, -1 if limit is None else limit, offset),
        ).fetchall()
        return [r["body"] for r in rows]


class DataFactory:
    """Hands out RecordStorage instances bound to one connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get_instance(self, schema_id: str) -> RecordStorage:
        return RecordStorage(self._conn, schema_id)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_revision(row: sqlite3.Row) -> RecordRevision:
    return RecordRevision(
        schema_id=row["schema_id"],
        identifier=row["identifier"],
        revision=row["revision"],
        body=row["body"],
        created_at=row["created_at"],
        published=bool(row["published"]),
    )
