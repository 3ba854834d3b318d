"""Command-line entry point for static GTFS ingest."""

from __future__ import annotations

import contextlib
import os
import shutil
import sys
from typing import TextIO

from gtfs_services.archive import download_to_temp_file, unzip_to_temp_dir
from gtfs_services.loader import (
    FILE_TABLE_MAPPING,
    load_gtfs_from_zip,
    read_csv_as_map_rows,
    validate_gtfs_directory,
)
from gtfs_services.static_config import Config, _UsageShown, parse_args


def _dry_run(zip_path: str) -> None:
    extract_dir = unzip_to_temp_dir(zip_path)
    try:
        validate_gtfs_directory(extract_dir)
        for entry in FILE_TABLE_MAPPING:
            if entry.loader is None:
                continue
            path = os.path.join(extract_dir, entry.file_name)
            count = len(read_csv_as_map_rows(path))
            print(f"Would load {count} rows into {entry.table_name} from {entry.file_name}")
    finally:
        shutil.rmtree(extract_dir, ignore_errors=True)


def run(cfg: Config) -> int:
    """Fetch or open the configured archive, ingest it and return an exit status."""
    zip_path = download_to_temp_file(cfg.url) if cfg.url else cfg.zip_path

    if cfg.dry_run:
        _dry_run(zip_path)
    else:
        load_gtfs_from_zip(cfg.url, zip_path, cfg.database_connection)
    return 0


def main(
    argv: list[str] | None = None,
    program_name: str | None = None,
    out: TextIO | None = None,
    err_out: TextIO | None = None,
) -> int:
    """Parse arguments, run the ingest and return the process exit status."""
    argv = sys.argv[1:] if argv is None else argv
    program_name = program_name or os.path.basename(sys.argv[0]) or "gtfs-ingest"
    out = out if out is not None else sys.stdout
    err_out = err_out if err_out is not None else sys.stderr

    try:
        cfg = parse_args(program_name, argv, err_out)
    except _UsageShown:
        return 0
    except ValueError as exc:
        err_out.write(f"Error: {exc}\n")
        return -1

    with contextlib.redirect_stdout(out):
        return run(cfg)


if __name__ == "__main__":
    sys.exit(main())