"""Fetching and unpacking GTFS zip archives."""

from __future__ import annotations

import os
import shutil
import tempfile
import urllib.error
import urllib.request
import zipfile

GTFS_REQUIRED_FILES = (
    "agency.txt",
    "routes.txt",
    "trips.txt",
    "stops.txt",
    "stop_times.txt",
    "calendar.txt",
    "calendar_dates.txt",
)


def unzip_to_temp_dir(zip_path: str) -> str:
    """Extract the recognised GTFS files of ``zip_path`` into a new temporary directory.

    Files that are not required GTFS files are reported and skipped. A
    directory entry in the archive is an error.
    """
    directory = tempfile.mkdtemp(prefix="gtfs-ingest-")
    try:
        with zipfile.ZipFile(zip_path) as archive:
            for info in archive.infolist():
                if info.is_dir():
                    raise ValueError(f"unexpected directory in archive: {info.filename}")
                if info.filename not in GTFS_REQUIRED_FILES:
                    print(f"Unrecognized file {info.filename} - ignore for now")
                    continue

                dst_path = os.path.join(directory, os.path.basename(info.filename))
                with archive.open(info) as src, open(dst_path, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    os.chmod(dst_path, mode)
    except BaseException:
        shutil.rmtree(directory, ignore_errors=True)
        raise

    print(f"Extracted {zip_path} -> {directory}")
    return directory


def download_to_temp_file(url: str) -> str:
    """Download ``url`` into a new temporary ``.zip`` file and return its path."""
    fd, tmp_path = tempfile.mkstemp(prefix="gtfs-ingest-", suffix=".zip")
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            try:
                response = urllib.request.urlopen(url)
            except urllib.error.HTTPError as exc:
                exc.close()
                raise ConnectionError(f"HTTP Error: status code {exc.code}") from exc
            except (urllib.error.URLError, ValueError) as exc:
                raise ConnectionError(f"Failed to download {url}: {exc}") from exc

            with response:
                status = getattr(response, "status", None)
                if status != 200:
                    raise ConnectionError(f"HTTP Error: status code {status}")
                try:
                    shutil.copyfileobj(response, tmp_file)
                except OSError as exc:
                    raise OSError(
                        f"Failed to write downloaded file to temp location: {exc}"
                    ) from exc
    except BaseException:
        os.remove(tmp_path)
        raise

    print(f"Downloaded {url} -> {tmp_path}")
    return tmp_path