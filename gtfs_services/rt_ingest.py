"""Command-line entry point and configuration for GTFS-realtime ingest."""

from __future__ import annotations

import argparse
import os
import sys
import tomllib
from dataclasses import dataclass, field
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
    ("version", None, "Prints CLI version"),
    ("toml", "string", "Configuration file"),
)


@dataclass
class ConfigFile:
    """Contents of a TOML configuration file."""

    urls: list[str] = field(default_factory=list)
    database: str = ""


@dataclass
class Config:
    """Effective configuration for a realtime ingest run."""

    version: bool = False
    toml_config_path: str = ""
    urls: list[str] = field(default_factory=list)
    database_connection: str = ""

    def validate(self) -> None:
        """Raise ValueError if the configuration cannot be used."""
        if not self.urls:
            raise ValueError("Need at least one URL to parse real-time feed")
        if not self.database_connection:
            raise ValueError("Missing required argument: database")


def load_config_from_toml(path: str) -> ConfigFile:
    """Read ``urls`` and ``database`` from a TOML file; unknown keys are ignored."""
    with open(path, "rb") as handle:
        data: dict[str, Any] = tomllib.load(handle)

    urls = data.get("urls", [])
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise ValueError("'urls' must be an array of strings")
    database = data.get("database", "")
    if not isinstance(database, str):
        raise ValueError("'database' must be a string")
    return ConfigFile(urls=list(urls), database=database)


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

    cfg = Config(version=ns.version, toml_config_path=ns.toml)

    if cfg.version:
        err_out.write(f"{program_name}: version {VERSION} ({GIT_COMMIT})\n")
        raise VersionRequested()

    if cfg.toml_config_path:
        try:
            file_cfg = load_config_from_toml(cfg.toml_config_path)
        except (OSError, ValueError) as exc:
            raise ValueError(f"load_config_from_toml: {exc}") from exc
        cfg.urls = file_cfg.urls
        cfg.database_connection = file_cfg.database

    cfg.validate()
    return cfg


def run(cfg: Config, out: TextIO | None = None) -> int:
    """Run the realtime ingest with ``cfg`` and return an exit status."""
    out = out if out is not None else sys.stdout
    out.write(f"Running GTFS-RT ingest with config: {cfg}\n")
    return 0


def main(
    argv: list[str] | None = None,
    program_name: str | None = None,
    out: TextIO | None = None,
    err_out: TextIO | None = None,
) -> int:
    """Parse arguments, run the ingest and return the process exit status."""
    argv = sys.argv[1:] if argv is None else argv
    program_name = program_name or os.path.basename(sys.argv[0]) or "gtfs-rt-ingest"
    out = out if out is not None else sys.stdout
    err_out = err_out if err_out is not None else sys.stderr

    try:
        cfg = parse_args(program_name, argv, err_out)
    except _UsageShown:
        return 0
    except ValueError as exc:
        err_out.write(f"Error: {exc}\n")
        return -1

    return run(cfg, out)


if __name__ == "__main__":
    sys.exit(main())