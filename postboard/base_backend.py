"""Backend abstraction layer.

Defines the minimal interface the Store needs from a database engine, plus
DSN dispatch. Only the dialect details that actually differ between engines
(placeholder, blob type, prefix predicate) are abstracted; everything else is
plain DB-API.
"""
from __future__ import annotations
from typing import Protocol, Any, Dict, Tuple, Type

from .errors import DatabaseConnectionError

SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")
PG_SCHEMES = ("postgres", "postgresql")

class ConnectionLike(Protocol):  # pragma: no cover - structural typing helper
    def cursor(self, *args, **kwargs): ...
    def commit(self): ...
    def rollback(self): ...
    def close(self): ...

class Backend(Protocol):
    name: str
    placeholder: str
    blob_type: str
    Error: Type[Exception]

    def connect(self) -> ConnectionLike:
        """Return a fresh DB-API connection. Driver errors propagate."""
        ...

    def prefix_predicate(self, column: str, prefix: str) -> Tuple[str, str]:
        """Return (sql_fragment, bound_param) matching keys starting with prefix."""
        ...

    def health_check(self) -> Dict[str, Any]:
        """Return {"ok": bool, ...}; must not raise."""
        ...


def describe_dsn(dsn: str) -> str:
    """DSN with credentials dropped, safe for logs and error messages."""
    if "://" not in dsn:
        return dsn if dsn.lower().endswith(SQLITE_SUFFIXES) else "<libpq dsn>"
    scheme, rest = dsn.split("://", 1)
    if "@" in rest:
        rest = rest.split("@", 1)[1]
    return f"{scheme}://{rest}"


def sqlite_path_from_dsn(dsn: str) -> str:
    """Map sqlite:///rel.db, sqlite:////abs.db, sqlite://:memory: or a bare *.db path to a path."""
    if not dsn.startswith("sqlite://"):
        return dsn
    rest = dsn[len("sqlite://"):]
    if rest in (":memory:", "/:memory:"):
        return ":memory:"
    if not rest.startswith("/") or len(rest) < 2:
        raise DatabaseConnectionError(
            f"malformed sqlite DSN {dsn!r}: expected sqlite:///path or sqlite://:memory:")
    return rest[1:]


def backend_from_dsn(dsn: str) -> Backend:
    """Pick a backend implementation from the DSN scheme."""
    dsn = (dsn or "").strip()
    if not dsn:
        raise DatabaseConnectionError("empty DSN; run `pb config` or set POSTBOARD_DSN")
    if "://" in dsn:
        scheme = dsn.split("://", 1)[0].lower()
    elif dsn.lower().endswith(SQLITE_SUFFIXES):
        scheme = "sqlite"
    elif "=" in dsn:
        scheme = "postgresql"  # libpq keyword/value string, e.g. "host=db dbname=pb"
    else:
        scheme = ""
    if scheme == "sqlite":
        from .sqlite_backend import SQLiteBackend
        try:
            return SQLiteBackend(sqlite_path_from_dsn(dsn))
        except ValueError as e:
            raise DatabaseConnectionError(str(e)) from e
    if scheme in PG_SCHEMES:
        try:
            from .pg_backend import PostgresBackend
        except ImportError as e:
            raise DatabaseConnectionError(f"PostgreSQL driver unavailable: {e}") from e
        return PostgresBackend(dsn)
    raise DatabaseConnectionError(
        f"unsupported DSN scheme {scheme or '<none>'!r}; use sqlite:///path.db or postgresql://...")
