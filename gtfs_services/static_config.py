"""Command-line and TOML configuration for static GTFS ingest."""

from __future__ import annotations

import argparse
import tomllib
from dataclasses import dataclass
from typing import Any, TextIO

from gtfs_services.common import GIT_COMMIT, VERSION


class _UsageShown(Exception):
    """Parsing stopped after printing information; the program should exit cleanly."""


class VersionRequested(_UsageShown):
    """Raised after the version banner has been printed."""


class _ArgumentError(ValueError):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _ArgumentError(message)


_OPTIONS = (
    ("database", "string", "Path to target database"),
    (
        "dry-run",
        None,
        "If specified, shows what would be ingested without performing any DB writes",
    ),
    ("toml", "string", "Ignore all other args and read from this config file instead"),
    ("url", "string", "Path to GTFS URL for online ingest"),
    ("version", None, "Prints CLI version"),
    ("zip", "string", "Path to zip file for offline ingest"),
)


@dataclass
class ConfigFile:
    """Contents of a TOML configuration file."""

    default_url: str = ""
    default_database: str = ""


@dataclass
class Config:
    """Effective configuration for a static ingest run.

    Input comes from exactly one of ``zip_path`` or ``url``; output goes to
    exactly one of ``dry_run`` or ``database_connection``.
    """

    version: bool = False
    toml_config_path: str = ""
    zip_path: str = ""
    url: str = ""
    dry_run: bool = False
    database_connection: str = ""

    def validate(self) -> None:
        """Raise ValueError if the configuration cannot be used."""
        if bool(self.zip_path) == bool(self.url):
            raise ValueError("Exactly one of -zip or -url must be specified.")
        if bool(self.database_connection) == self.dry_run:
            raise ValueError("Exactly one of -dry-run or -database may be specified")


def load_config_from_toml(path: str) -> ConfigFile:
    """Read ``default_url`` and ``default_database`` from a TOML file."""
    with open(path, "rb") as handle:
        data: dict[str, Any] = tomllib.load(handle)

    values = {}
    for key in ("default_url", "default_database"):
        value = data.get(key, "")
        if not isinstance(value, str):
            raise ValueError(f"{key!r} must be a string")
        values[key] = value
    return ConfigFile(**values)


def _print_usage(program_name: str, err_out: TextIO) -> None:
    err_out.write(f"Usage: {program_name} [options]\n\n")
    err_out.write("Options\n")
    for name, kind, text in _OPTIONS:
        header = f"  -{name} {kind}" if kind else f"  -{name}"
        err_out.write(f"{header}\n    \t{text}\n")


def _build_parser(program_name: str) -> _Parser:
    parser = _Parser(prog=program_name, add_help=False, allow_abbrev=False)
    parser.add_argument("-h", "-help", "--help", dest="help", action="store_true")
    parser.add_argument("-version", "--version", dest="version", action="store_true")
    parser.add_argument("-toml", "--toml", dest="toml", default="")
    parser.add_argument("-zip", "--zip", dest="zip", default="")
    parser.add_argument("-url", "--url", dest="url", default="")
    parser.add_argument("-dry-run", "--dry-run", dest="dry_run", action="store_true")
    parser.add_argument("-database", "--database", dest="database", default="")
    parser.add_argument("rest", nargs="*")
    return parser


def parse_args(program_name: str, args: list[str], err_out: TextIO) -> Config:
    """Parse command-line flags and any TOML file they name into a validated Config."""
    try:
        ns = _build_parser(program_name).parse_args(args)
    except _ArgumentError as exc:
        err_out.write(f"{exc}\n")
        _print_usage(program_name, err_out)
        raise ValueError(str(exc)) from None

    if ns.help:
        _print_usage(program_name, err_out)
        raise _UsageShown()

    if ns.version:
        err_out.write(f"{program_name}: version {VERSION} ({GIT_COMMIT})\n")
        raise VersionRequested()

    cfg = Config(
        version=False,
        toml_config_path=ns.toml,
        zip_path=ns.zip,
        url=ns.url,
        dry_run=ns.dry_run,
        database_connection=ns.database,
    )

    if cfg.toml_config_path:
        try:
            file_cfg = load_config_from_toml(cfg.toml_config_path)
        except (OSError, ValueError) as exc:
            raise ValueError(f"load_config_from_toml: {exc}") from exc
        cfg.url = file_cfg.default_url
        cfg.database_connection = file_cfg.default_database

    cfg.validate()
    return cfg