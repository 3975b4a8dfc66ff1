"""Keyed table contract and its SQLite implementation.

The resource mapper only talks to a table through this contract: store a row,
retrieve or remove it by id, and run equality-filtered queries with a
projection, sort order and limit.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class Query:
    """Equality-filtered, sorted, limited query against a keyed table."""

    properties: list[str] = field(default_factory=list)
    conditions: list[tuple[str, Any]] = field(default_factory=list)
    sorts: list[tuple[str, str]] = field(default_factory=list)
    limit: int | None = None

    def condition_by_is_equal_to(self, name: str, value: Any) -> Query:
        self.conditions.append((name, value))
        return self

    def sort_by_ascending(self, name: str) -> Query:
        self.sorts.append((name, "ASC"))
        return self

    def sort_by_descending(self, name: str) -> Query:
        self.sorts.append((name, "DESC"))
        return self

    def limit_to(self, limit: int) -> Query:
        self.limit = limit
        return self


class KeyedTable(Protocol):
    """Contract consumed by the metastore core."""

    def store(self, row: dict[str, Any]) -> int: ...

    def retrieve(self, row_id: int) -> dict[str, Any] | None: ...

    def retrieve_all(self) -> list[dict[str, Any]]: ...

    def remove(self, row_id: int) -> None: ...

    def query(self, query: Query) -> list[dict[str, Any]]: ...


class DatabaseTable:
    """KeyedTable over one SQLite table with an INTEGER ``id`` primary key.

    Column names are checked against the declared column set before they are
    interpolated into SQL. Writes commit immediately unless they run inside
    ``transaction()``.
    """

    def __init__(self, conn: sqlite3.Connection, table: str, columns: tuple[str, ...]) -> None:
        self._conn = conn
        self._table = table
        self._columns = frozenset(columns) | {"id"}
        self._in_transaction = False

    @property
    def table_name(self) -> str:
        return self._table

    def store(self, row: dict[str, Any]) -> int:
        """Insert *row* and return its new id."""
        names = [self._column(n) for n in row]
        placeholders = ", ".join("?" * len(names))
        cur = self._conn.execute(
            f"INSERT INTO {self._table} ({', '.join(names)}) VALUES ({placeholders})",  # noqa: S608
            tuple(row.values()),
        )
        self._commit()
        return cur.lastrowid

    def retrieve(self, row_id: int) -> dict[str, Any] | None:
        row = self._conn.execute(
            f"SELECT * FROM {self._table} WHERE id = ?", (row_id,)  # noqa: S608
        ).fetchone()
        return dict(row) if row else None

    def retrieve_all(self) -> list[dict[str, Any]]:
        rows = self._conn.execute(f"SELECT * FROM {self._table} ORDER BY id").fetchall()  # noqa: S608
        return [dict(r) for r in rows]

    def remove(self, row_id: int) -> None:
        self._conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (row_id,))  # noqa: S608
        self._commit()

    def query(self, query: Query) -> list[dict[str, Any]]:
        """Run *query* and return matching rows as dicts (possibly empty)."""
        projection = ", ".join(self._column(p) for p in query.properties) or "*"
        sql = f"SELECT {projection} FROM {self._table}"  # noqa: S608
        params: list[Any] = []
        if query.conditions:
            sql += " WHERE " + " AND ".join(f"{self._column(n)} = ?" for n, _ in query.conditions)
            params.extend(v for _, v in query.conditions)
        if query.sorts:
            sql += " ORDER BY " + ", ".join(f"{self._column(n)} {d}" for n, d in query.sorts)
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)
        return [dict(r) for r in self._conn.execute(sql, params).fetchall()]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed reads and writes under one write lock.

        Nested use joins the outer transaction.
        """
        if self._in_transaction:
            yield
            return
        if self._conn.in_transaction:
            self._conn.commit()
        self._conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            self._in_transaction = False

    def _commit(self) -> None:
        if not self._in_transaction:
            self._conn.commit()

    def _column(self, name: str) -> str:
        if name not in self._columns:
            raise ValueError(f"Unknown column '{name}' for table '{self._table}'")
        return name
