"""Build metadata shared by the command-line tools."""

VERSION = "unknown"
GIT_COMMIT = "unknown"