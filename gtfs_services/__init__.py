"""Load static GTFS feeds into a database and configure GTFS-realtime ingest."""

__version__ = "0.1.0"