"""Schema lookup by id.

Schemas are JSON files named ``<schema_id>.json``. A configured directory
takes precedence over the collection bundled with the package.
"""

from __future__ import annotations

from pathlib import Path

from metastore.exceptions import MissingObjectException

BUNDLED_SCHEMA_DIR: Path = Path(__file__).parent / "schemas"


class SchemaRetriever:
    def __init__(self, directory: Path | str | None = None) -> None:
        self._dirs: list[Path] = []
        if directory is not None:
            self._dirs.append(Path(directory))
        self._dirs.append(BUNDLED_SCHEMA_DIR)

    def get_all_ids(self) -> list[str]:
        """Return every known schema id, sorted."""
        ids: set[str] = set()
        for d in self._dirs:
            if d.is_dir():
                ids.update(p.stem for p in d.glob("*.json"))
        return sorted(ids)

    def retrieve(self, schema_id: str) -> str:
        """Return the raw JSON text of *schema_id*.

        Raises:
            MissingObjectException: No schema file exists for *schema_id*.
        """
        if "/" in schema_id or "\\" in schema_id or schema_id.startswith("."):
            raise MissingObjectException(f"Schema {schema_id} not found.")
        for d in self._dirs:
            path = d / f"{schema_id}.json"
            if path.is_file():
                return path.read_text(encoding="utf-8")
        raise MissingObjectException(f"Schema {schema_id} not found.")
