"""DuckDB row source for formlens.

submissions usually come out of the form backend as csv or json exports, or
sit in a parquet dump / duckdb file next to the warehouse. duckdb reads all of
those with type inference for free, so the engine only ever sees Row objects.
"""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import duckdb

from formlens.engine.values import is_missing, to_datetime
from formlens.models.row import Row

logger = logging.getLogger(__name__)

# columns that map onto row metadata instead of submission values
ID_COLUMN = "id"
SUBMITTED_AT_COLUMN = "submitted_at"
REF_ID_COLUMNS = ("ref_id", "submission_ref_id")


class DuckDBRowSource:
    """Load form submissions through DuckDB.

    thin wrapper that handles connection management and the column -> Row
    mapping. keeps the duckdb-specific bits out of the engine.
    """

    def __init__(self, database_path: str | None = None) -> None:
        """Initialize the row source.

        Args:
            database_path: Path to DuckDB file, or None for in-memory.
        """
        self.database_path = database_path
        self._conn: duckdb.DuckDBPyConnection | None = None  # lazy init

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection."""
        if self._conn is None:
            self._conn = duckdb.connect(self.database_path or ":memory:")
        return self._conn

    def load_csv(self, form_id: str, path: str | Path) -> list[Row]:
        """Read a CSV export. duckdb sniffs delimiter, header and types."""
        return self._load(form_id, self.conn.read_csv(str(Path(path))), path)

    def load_parquet(self, form_id: str, path: str | Path) -> list[Row]:
        return self._load(form_id, self.conn.read_parquet(str(Path(path))), path)

    def load_json(self, form_id: str, path: str | Path) -> list[Row]:
        """Read a JSON array or newline-delimited JSON export.

        nested objects (currency, address, ...) come back as dicts, which is
        exactly what the value coercion expects.
        """
        return self._load(form_id, self.conn.read_json(str(Path(path))), path)

    def load_table(self, form_id: str, table_name: str) -> list[Row]:
        """Read an existing table of the connected database."""
        return self._load(form_id, self.conn.table(table_name), table_name)

    def load_path(self, form_id: str, path: str | Path) -> list[Row]:
        """Pick the reader from the file suffix."""
        suffix = Path(path).suffix.lower()
        if suffix in (".csv", ".tsv"):
            return self.load_csv(form_id, path)
        if suffix in (".parquet", ".pq"):
            return self.load_parquet(form_id, path)
        if suffix in (".json", ".jsonl", ".ndjson"):
            return self.load_json(form_id, path)
        raise ValueError(f"Unsupported data file '{path}': expected csv, parquet or json")

    def _load(self, form_id: str, relation: duckdb.DuckDBPyRelation, origin: Any) -> list[Row]:
        columns = list(relation.columns)
        rows = self.to_rows(form_id, columns, relation.fetchall())
        logger.info("loaded %d rows for form %s from %s", len(rows), form_id, origin)
        return rows

    @staticmethod
    def to_rows(
        form_id: str, columns: Sequence[str], records: Sequence[Sequence[Any]]
    ) -> list[Row]:
        """Map result tuples onto Rows.

        rows without an id column get `<form>-<n>` (1-based) so joins and
        drilldowns still have something stable to point at.
        """
        rows = []
        for number, record in enumerate(records, start=1):
            values = dict(zip(columns, record))
            row_id = values.pop(ID_COLUMN, None)
            submitted_at = values.pop(SUBMITTED_AT_COLUMN, None)
            ref_id = None
            for column in REF_ID_COLUMNS:
                candidate = values.pop(column, None)
                if ref_id is None and not is_missing(candidate):
                    ref_id = str(candidate)
            rows.append(
                Row(
                    id=f"{form_id}-{number}" if is_missing(row_id) else str(row_id),
                    source_form_id=form_id,
                    values=values,
                    submitted_at=to_datetime(submitted_at),
                    ref_id=ref_id,
                )
            )
        return rows

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "DuckDBRowSource":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
