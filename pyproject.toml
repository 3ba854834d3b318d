[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gtfs-services"
version = "0.1.0"
description = "Load static GTFS transit feeds into a PostgreSQL database, with a configuration front end for GTFS-realtime ingest"
requires-python = ">=3.11"
dependencies = [
    "sqlalchemy",
]
keywords = ["gtfs", "transit", "postgresql", "ingest", "gtfs-realtime"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
gtfs-ingest = "gtfs_services.static_ingest:main"
gtfs-rt-ingest = "gtfs_services.rt_ingest:main"

[tool.hatch.build.targets.wheel]
packages = ["gtfs_services"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
