"""Database access: a thin wrapper around an SQLAlchemy engine with CSV bulk loading."""

from __future__ import annotations

import csv
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

_COPY_CHUNK_SIZE = 64 * 1024


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier, doubling any embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def build_copy_query(table_name: str, columns: Sequence[str]) -> str:
    """Build a PostgreSQL ``COPY ... FROM STDIN`` statement for a CSV with a header row."""
    quoted = ", ".join(quote_identifier(col) for col in columns)
    return f"COPY {table_name} ({quoted}) FROM STDIN WITH (FORMAT csv, HEADER true)"


def connect(dsn: str) -> Database:
    """Open a database from a connection URL and check that it answers."""
    try:
        engine = create_engine(dsn)
    except (ArgumentError, ValueError) as exc:
        raise ValueError(f"invalid database URL {dsn!r}: {exc}") from exc
    except ImportError as exc:
        raise ValueError(f"no driver available for {dsn!r}: {exc}") from exc

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        raise ConnectionError(f"db ping: {exc}") from exc

    return Database(engine)


class Database:
    """A database connection pool with query helpers and CSV bulk loading."""

    def __init__(self, engine: Engine) -> None:
        self._engine: Engine | None = engine

    @property
    def closed(self) -> bool:
        return self._engine is None

    def close(self) -> None:
        """Release all pooled connections. Closing twice is harmless."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("database is closed")
        return self._engine

    def execute(self, query: str, params: Mapping[str, Any] | None = None) -> int:
        """Run a statement in its own transaction and return the affected row count."""
        engine = self._require_engine()
        with engine.begin() as conn:
            result = conn.execute(text(query), dict(params or {}))
            return result.rowcount

    def query_one(
        self, query: str, params: Mapping[str, Any] | None = None
    ) -> tuple[Any, ...] | None:
        """Run a statement in its own transaction and return its first row, or None."""
        engine = self._require_engine()
        with engine.begin() as conn:
            row = conn.execute(text(query), dict(params or {})).first()
            return tuple(row) if row is not None else None

    def copy_from_csv_file(
        self, table: str, columns: Sequence[str], file_path: str
    ) -> int:
        """Bulk-load a CSV file (with a header row) into ``table`` and return the row count.

        Uses ``COPY FROM STDIN`` when the driver supports it and falls back to
        batched inserts otherwise.
        """
        engine = self._require_engine()
        columns = list(columns)
        with open(file_path, newline="", encoding="utf-8") as handle:
            with engine.begin() as conn:
                cursor = conn.connection.cursor()
                try:
                    if hasattr(cursor, "copy_expert"):
                        cursor.copy_expert(build_copy_query(table, columns), handle)
                        return cursor.rowcount
                    if hasattr(cursor, "copy"):
                        with cursor.copy(build_copy_query(table, columns)) as copy:
                            while chunk := handle.read(_COPY_CHUNK_SIZE):
                                copy.write(chunk)
                        return cursor.rowcount
                finally:
                    cursor.close()
                return _insert_csv_rows(conn, table, columns, handle)

    def copy_from(self, table: str, columns: Sequence[str], file_path: str) -> int:
        """Bulk-load a CSV file into ``table``; see :meth:`copy_from_csv_file`."""
        return self.copy_from_csv_file(table, columns, file_path)


def _insert_csv_rows(conn: Any, table: str, columns: list[str], handle: Any) -> int:
    reader = csv.reader(handle)
    next(reader, None)
    names = [f"c{i}" for i in range(len(columns))]
    statement = text(
        f"INSERT INTO {table} ({', '.join(quote_identifier(c) for c in columns)}) "
        f"VALUES ({', '.join(':' + n for n in names)})"
    )
    batch = []
    for line_no, row in enumerate(reader, start=2):
        if len(row) != len(columns):
            raise ValueError(
                f"line {line_no}: expected {len(columns)} fields, got {len(row)}"
            )
        batch.append(dict(zip(names, row)))
    if batch:
        conn.execute(statement, batch)
    return len(batch)