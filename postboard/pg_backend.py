"""PostgreSQL backend.

Connection parameters come straight from the DSN (URL or libpq keyword
string). Environment:

    POSTBOARD_PG_CONNECT_TIMEOUT   seconds passed as connect_timeout (unset = wait forever)
"""

from __future__ import annotations

import os
from typing import Any, Dict, Tuple

import psycopg2

from .logging_util import debug, warn


def like_escape(text: str) -> str:
    """Escape LIKE metacharacters so they match literally (ESCAPE '\\')."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresBackend:
    name = "postgresql"
    placeholder = "%s"
    blob_type = "BYTEA"
    Error = psycopg2.Error

    def __init__(self, dsn: str):
        self.dsn = dsn

    def _connect_kwargs(self) -> Dict[str, Any]:
        raw = os.environ.get("POSTBOARD_PG_CONNECT_TIMEOUT")
        if raw is None:
            return {}
        try:
            return {"connect_timeout": int(raw)}
        except ValueError:
            warn("invalid_env_int", key="POSTBOARD_PG_CONNECT_TIMEOUT", value=raw, default=None)
            return {}

    def connect(self):
        conn = psycopg2.connect(self.dsn, **self._connect_kwargs())
        debug("pg_connected", server_version=conn.server_version)
        return conn

    def prefix_predicate(self, column: str, prefix: str) -> Tuple[str, str]:
        return f"{column} LIKE %s ESCAPE '\\'", like_escape(prefix) + "%"

    def health_check(self) -> Dict[str, Any]:
        try:
            conn = self.connect()
        except psycopg2.Error as exc:
            return {"ok": False, "error": str(exc).strip()}
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT current_database(), current_user, current_setting('server_version');")
                database, user, server_version = cur.fetchone()
            return {
                "ok": True,
                "backend": self.name,
                "database": database,
                "user": user,
                "server_version": server_version,
            }
        except psycopg2.Error as exc:
            return {"ok": False, "error": str(exc).strip()}
        finally:
            conn.close()
