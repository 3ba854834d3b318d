"""Loading the tables of a static GTFS feed into the database."""

from __future__ import annotations

import csv
import hashlib
import os
import shutil
import tempfile
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TextIO

from gtfs_services.archive import unzip_to_temp_dir
from gtfs_services.db import connect

_HASH_CHUNK_SIZE = 64 * 1024


class _Store(Protocol):
    def execute(self, query: str, params: Mapping[str, Any] | None = None) -> int: ...

    def query_one(
        self, query: str, params: Mapping[str, Any] | None = None
    ) -> tuple[Any, ...] | None: ...

    def copy_from(self, table: str, columns: Sequence[str], file_path: str) -> int: ...


@dataclass
class Ingestor:
    """Writes the rows of one feed version, tagging each with its ``feed_id``."""

    feed_id: int
    db: _Store

    def load_generic(self, file_path: str, table_name: str) -> None:
        """Insert the rows of a CSV file into ``table_name`` one statement at a time."""
        print(f"Loading {table_name} from {file_path}")
        for row in read_csv_as_map_rows(file_path):
            row["feed_id"] = str(self.feed_id)
            query, params = build_insert_query(table_name, row)
            self.db.execute(query, params)

    def load_generic_copy(self, file_path: str, table_name: str) -> None:
        """Bulk-load a CSV file into ``table_name`` with a ``feed_id`` column added."""
        print(f"Loading {table_name} from {file_path}")
        temp_path = create_temp_csv_with_feed_id(file_path, self.feed_id)
        try:
            columns = read_csv_column_names(temp_path)
            self.db.copy_from(table_name, columns, temp_path)
        finally:
            os.remove(temp_path)


@dataclass(frozen=True)
class FileTableEntry:
    """Where one GTFS file goes and how it is loaded; no loader means it is skipped."""

    file_name: str
    table_name: str
    required: bool
    loader: Callable[[Ingestor, str], None] | None


def _insert_into(table: str) -> Callable[[Ingestor, str], None]:
    return lambda ingestor, path: ingestor.load_generic(path, table)


def _copy_into(table: str) -> Callable[[Ingestor, str], None]:
    return lambda ingestor, path: ingestor.load_generic_copy(path, table)


FILE_TABLE_MAPPING: tuple[FileTableEntry, ...] = (
    FileTableEntry("agency.txt", "agency", True, _insert_into("agency")),
    FileTableEntry("routes.txt", "routes", True, _insert_into("routes")),
    FileTableEntry("trips.txt", "trips", True, _copy_into("trips")),
    FileTableEntry("stops.txt", "stops", True, _copy_into("stops")),
    FileTableEntry("stop_times.txt", "stop_times", True, _copy_into("stop_times")),
    FileTableEntry("calendar.txt", "calendar", True, _insert_into("calendar")),
    FileTableEntry(
        "calendar_dates.txt", "calendar_dates", True, _insert_into("calendar_dates")
    ),
    FileTableEntry("shapes.txt", "shapes", False, None),
    FileTableEntry("transfers.txt", "transfers", False, None),
)


def _records(handle: TextIO, file_path: str) -> Iterator[list[str]]:
    try:
        for row in csv.reader(handle):
            if row:
                yield row
    except csv.Error as exc:
        raise ValueError(f"{file_path}: malformed CSV: {exc}") from exc


def read_csv_column_names(file_path: str) -> list[str]:
    """Return the header row of a CSV file."""
    with open(file_path, newline="", encoding="utf-8-sig") as handle:
        headers = next(_records(handle, file_path), None)
    if headers is None:
        raise ValueError(f"{file_path}: empty CSV file")
    return headers


def read_csv_as_map_rows(file_path: str) -> list[dict[str, str]]:
    """Read a CSV file into one dict per data row, keyed by the header names."""
    with open(file_path, newline="", encoding="utf-8-sig") as handle:
        records = _records(handle, file_path)
        headers = next(records, None)
        if headers is None:
            raise ValueError(f"{file_path}: empty CSV file")
        rows = []
        for row in records:
            if len(row) != len(headers):
                raise ValueError("Row has different number of fields than headers")
            rows.append(dict(zip(headers, row)))
    return rows


def build_insert_query(
    table_name: str, record: Mapping[str, str]
) -> tuple[str, dict[str, str]]:
    """Build an INSERT statement with numbered bind parameters for ``record``."""
    params = {f"p{i}": value for i, value in enumerate(record.values(), start=1)}
    columns = ", ".join(record)
    placeholders = ", ".join(f":{name}" for name in params)
    return f"INSERT INTO {table_name} ({columns}) VALUES ({placeholders})", params


def create_temp_csv_with_feed_id(file_path: str, feed_id: int) -> str:
    """Copy a CSV file to a temporary file with a trailing ``feed_id`` column."""
    rows = read_csv_as_map_rows(file_path)
    if not rows:
        raise ValueError("CSV file has no data rows")
    headers = read_csv_column_names(file_path) + ["feed_id"]

    fd, temp_path = tempfile.mkstemp(prefix="gtfs-ingest-", suffix=".csv")
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            writer.writerow(headers)
            for row in rows:
                row["feed_id"] = str(feed_id)
                writer.writerow([row.get(header, "") for header in headers])
    except BaseException:
        os.remove(temp_path)
        raise
    return temp_path


def validate_gtfs_directory(dir_path: str) -> None:
    """Raise FileNotFoundError if a required GTFS file is absent from ``dir_path``."""
    for entry in FILE_TABLE_MAPPING:
        if entry.required and not os.path.exists(os.path.join(dir_path, entry.file_name)):
            raise FileNotFoundError(f"Required file {entry.file_name} is missing")


def file_sha256(path: str) -> str:
    """Return the hex SHA-256 digest of a file's contents."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        while chunk := handle.read(_HASH_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def start_feed_ingest(db: _Store, url_path: str, zip_path: str) -> int:
    """Record a new feed version for ``zip_path`` and return its ``feed_id``."""
    row = db.query_one(
        "INSERT INTO feed_version (imported_at, source_url, source_sha256) "
        "VALUES (NOW(), :source_url, :source_sha256) "
        "RETURNING feed_id",
        {"source_url": url_path, "source_sha256": file_sha256(zip_path)},
    )
    if row is None:
        raise RuntimeError("failed to scan feed_id: no row returned")
    return int(row[0])


def feed_exists_for_hash(db: _Store, zip_path: str) -> bool:
    """Tell whether a feed version with the same archive hash was already imported."""
    hash_hex = file_sha256(zip_path)
    print(f"hashHex: {hash_hex}")
    row = db.query_one(
        "SELECT feed_id FROM feed_version WHERE source_sha256 = :source_sha256",
        {"source_sha256": hash_hex},
    )
    return row is not None and row[0] not in (None, 0)


def load_gtfs_from_zip(url_path: str, zip_path: str, dsn: str) -> None:
    """Extract a GTFS archive and load every table into the database at ``dsn``.

    An archive whose hash is already recorded is reported and left alone.
    """
    extract_dir = unzip_to_temp_dir(zip_path)
    try:
        validate_gtfs_directory(extract_dir)
        with connect(dsn) as db:
            if feed_exists_for_hash(db, zip_path):
                print(f"GTFS data for {zip_path} has already been ingested.")
                return

            ingestor = Ingestor(feed_id=start_feed_ingest(db, url_path, zip_path), db=db)
            for entry in FILE_TABLE_MAPPING:
                if entry.loader is None:
                    continue
                entry.loader(ingestor, os.path.join(extract_dir, entry.file_name))
    finally:
        shutil.rmtree(extract_dir, ignore_errors=True)