"""Key-value store over a single relational table.

One connection per Store, opened at construction and held until close().
Every operation runs in its own transaction (``with conn:``), so a write is
durable when the call returns and a failed write is rolled back.

Table layout::

    postboard_kvs (
        k          VARCHAR(255) PRIMARY KEY,
        v          BLOB / BYTEA,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP   -- first insert only
    )
"""
from __future__ import annotations
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from . import TABLE_NAME
from .base_backend import Backend, backend_from_dsn, describe_dsn
from .errors import (DatabaseConnectionError, NotFoundError, SchemaError,
                     StorageError, ValidationError)
from .logging_util import debug

MAX_KEY_LENGTH = 255
MAX_PREFIX_RESULTS = 1000  # hard cap on list_by_prefix, not configurable

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Record:
    key: str
    value: bytes
    created_at: Optional[datetime]


def _check_key(key) -> str:
    if not isinstance(key, str):
        raise ValidationError(f"key must be a string, got {type(key).__name__}")
    if not key:
        raise ValidationError("key is empty")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"key longer than {MAX_KEY_LENGTH} characters ({len(key)})")
    if "\x00" in key:
        raise ValidationError("key contains a NUL character")
    _check_encodable(key, "key")
    return key


def _check_encodable(text: str, what: str) -> None:
    # Undecodable argv bytes arrive as lone surrogates; drivers reject them outright.
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(f"{what} is not valid UTF-8 text: {text!r}") from e


def _as_datetime(raw) -> Optional[datetime]:
    # sqlite3 hands back TIMESTAMP columns as text; psycopg2 as datetime
    if raw is None or isinstance(raw, datetime):
        return raw
    return datetime.fromisoformat(str(raw))


class Store:
    def __init__(self, backend: Backend):
        self.backend = backend
        try:
            self._conn = backend.connect()
        except (backend.Error, OSError, ValueError) as e:
            raise DatabaseConnectionError(f"cannot connect to {backend.name} database: {e}") from e
        debug("store_opened", backend=backend.name)
        p = backend.placeholder
        self._sql_create = (
            f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
            f" k VARCHAR({MAX_KEY_LENGTH}) NOT NULL,"
            f" v {backend.blob_type} NOT NULL,"
            " created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,"
            " PRIMARY KEY (k))"
        )
        # created_at is left alone on conflict: it records the first insert.
        self._sql_upsert = (
            f"INSERT INTO {TABLE_NAME} (k, v) VALUES ({p}, {p}) "
            "ON CONFLICT (k) DO UPDATE SET v = excluded.v"
        )
        self._sql_get = f"SELECT k, v, created_at FROM {TABLE_NAME} WHERE k = {p}"
        self._sql_delete = f"DELETE FROM {TABLE_NAME} WHERE k = {p}"

    @classmethod
    def open(cls, dsn: str) -> "Store":
        debug("store_open_requested", dsn=describe_dsn(dsn))
        return cls(backend_from_dsn(dsn))

    # --- lifecycle ---------------------------------------------------------------
    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        finally:
            self._conn = None

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def connection(self):
        if self._conn is None:
            raise StorageError("store is closed")
        return self._conn

    # --- operations --------------------------------------------------------------
    def ensure_schema(self) -> None:
        """Create the backing table if it does not exist yet."""
        conn = self.connection
        try:
            with conn, closing(conn.cursor()) as cur:
                cur.execute(self._sql_create)
        except self.backend.Error as e:
            raise SchemaError(f"cannot create table {TABLE_NAME}: {e}") from e
        debug("schema_ensured", table=TABLE_NAME)

    def put(self, key: str, value: BytesLike) -> None:
        """Insert or overwrite the value stored under key."""
        _check_key(key)
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise ValidationError(f"value must be bytes, got {type(value).__name__}")
        data = bytes(value)
        conn = self.connection
        try:
            with conn, closing(conn.cursor()) as cur:
                cur.execute(self._sql_upsert, (key, data))
        except self.backend.Error as e:
            raise StorageError(f"put {key!r} failed: {e}") from e
        debug("kv_put", key=key, size=len(data))

    def get_record(self, key: str) -> Record:
        _check_key(key)
        conn = self.connection
        try:
            with conn, closing(conn.cursor()) as cur:
                cur.execute(self._sql_get, (key,))
                row = cur.fetchone()
        except self.backend.Error as e:
            raise StorageError(f"get {key!r} failed: {e}") from e
        if row is None:
            raise NotFoundError(key)
        return Record(key=row[0], value=bytes(row[1]), created_at=_as_datetime(row[2]))

    def get(self, key: str) -> bytes:
        """Exact-match lookup; NotFoundError distinguishes 'missing' from b''."""
        return self.get_record(key).value

    def list_by_prefix(self, prefix: str) -> List[str]:
        """Keys starting with prefix, sorted, at most MAX_PREFIX_RESULTS of them.

        Wildcard characters inside prefix match literally. The empty prefix
        matches every key.
        """
        if not isinstance(prefix, str):
            raise ValidationError(f"prefix must be a string, got {type(prefix).__name__}")
        if "\x00" in prefix:
            raise ValidationError("prefix contains a NUL character")
        _check_encodable(prefix, "prefix")
        predicate, param = self.backend.prefix_predicate("k", prefix)
        sql = (f"SELECT k FROM {TABLE_NAME} WHERE {predicate} "
               f"ORDER BY k LIMIT {MAX_PREFIX_RESULTS}")
        conn = self.connection
        try:
            with conn, closing(conn.cursor()) as cur:
                cur.execute(sql, (param,))
                keys = [row[0] for row in cur.fetchall()]
        except self.backend.Error as e:
            raise StorageError(f"listing prefix {prefix!r} failed: {e}") from e
        debug("prefix_listed", prefix=prefix, count=len(keys))
        return keys

    def delete(self, key: str) -> bool:
        """Remove key; returns False when nothing was stored under it."""
        _check_key(key)
        conn = self.connection
        try:
            with conn, closing(conn.cursor()) as cur:
                cur.execute(self._sql_delete, (key,))
                deleted = cur.rowcount > 0
        except self.backend.Error as e:
            raise StorageError(f"delete {key!r} failed: {e}") from e
        debug("kv_deleted", key=key, deleted=deleted)
        return deleted
