"""Error taxonomy shared by the store, config layer and CLI.

Everything raised on purpose derives from PostboardError so the CLI can
report it with a single except clause; driver exceptions are chained.
"""
from __future__ import annotations


class PostboardError(Exception):
    """Base class for all postboard failures."""


class ConfigError(PostboardError):
    """Config file unreadable, unwritable or malformed."""


class DatabaseConnectionError(PostboardError):
    """Database unreachable, or DSN names an unsupported engine."""


class SchemaError(PostboardError):
    """Creating the backing table failed."""


class StorageError(PostboardError):
    """A read or write against the table failed."""


class NotFoundError(StorageError):
    def __init__(self, key: str):
        super().__init__(f"key not found: {key}")
        self.key = key


class ValidationError(PostboardError, ValueError):
    """Rejected input (empty/oversized key, non-bytes value)."""
