"""SQLite backend implementation.

    - Environment driven tuning with clamping + sanity logging
    - WAL journal for file databases; in-memory databases skip it
    - Health check helper + optional integrity_check (POSTBOARD_SQLITE_VERIFY=1)
    - Clearer error message for directory path misuse
    - Prefix matching via GLOB, which (unlike LIKE) is case-sensitive
"""
from __future__ import annotations
import sqlite3, os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from .logging_util import warn, debug

MAX_CACHE_KIB = 512 * 1024        # 512 MiB upper clamp
MIN_CACHE_KIB = 16                # SQLite minimum practical
DEFAULT_CACHE_KIB = 8 * 1024      # 8 MiB; one-shot CLI processes stay small
MAX_BUSY_TIMEOUT_MS = 600_000
DEFAULT_BUSY_TIMEOUT_MS = 30_000

_GLOB_ESCAPES = {"*": "[*]", "?": "[?]", "[": "[[]"}

def glob_escape(text: str) -> str:
    return "".join(_GLOB_ESCAPES.get(ch, ch) for ch in text)

@dataclass
class SQLiteConfig:
    cache_kib: int = DEFAULT_CACHE_KIB
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    verify_on_connect: bool = False

    @classmethod
    def from_env(cls) -> "SQLiteConfig":
        def _int(name: str, default: int) -> int:
            raw = os.environ.get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                warn("invalid_env_int", key=name, value=raw, default=default)
                return default
        cache_kib = _int("POSTBOARD_SQLITE_CACHE_KIB", DEFAULT_CACHE_KIB)
        busy_ms = _int("POSTBOARD_SQLITE_BUSY_TIMEOUT_MS", DEFAULT_BUSY_TIMEOUT_MS)
        verify = os.environ.get("POSTBOARD_SQLITE_VERIFY", "0") == "1"
        # Clamp
        adjusted = {}
        if cache_kib < MIN_CACHE_KIB or cache_kib > MAX_CACHE_KIB:
            adjusted["cache_kib"] = cache_kib
            cache_kib = min(MAX_CACHE_KIB, max(MIN_CACHE_KIB, cache_kib))
        if busy_ms < 0 or busy_ms > MAX_BUSY_TIMEOUT_MS:
            adjusted["busy_timeout_ms"] = busy_ms
            busy_ms = min(MAX_BUSY_TIMEOUT_MS, max(0, busy_ms))
        if adjusted:
            warn("backend_config_clamped", original=adjusted,
                 clamped={"cache_kib": cache_kib, "busy_timeout_ms": busy_ms})
        return cls(cache_kib=cache_kib, busy_timeout_ms=busy_ms, verify_on_connect=verify)

class SQLiteBackend:
    """SQLite backend.

    Responsibilities:
      - Provide writable connections with tuned pragmas
      - Supply the SQLite dialect bits the Store needs
      - Health check utility
    """
    name = "sqlite"
    placeholder = "?"
    blob_type = "BLOB"
    Error = sqlite3.Error

    def __init__(self, path: str, config: Optional[SQLiteConfig] = None):
        if os.path.isdir(path):  # directory misuse
            raise ValueError(f"Path points to a directory, expected file: {path}")
        self.path = path
        self.config = config or SQLiteConfig.from_env()

    @property
    def in_memory(self) -> bool:
        return self.path == ":memory:"

    # --- Public API -----------------------------------------------------------------
    def connect(self) -> sqlite3.Connection:
        """Return a configured sqlite3.Connection, creating parent dirs as needed."""
        if not self.in_memory:
            parent = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(parent, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        self._apply_pragmas(conn)
        if self.config.verify_on_connect:
            res = conn.execute("PRAGMA integrity_check").fetchone()[0]
            if res != "ok":
                warn("integrity_check_failed", path=self.path, result=res)
        debug("sqlite_connected", path=self.path)
        return conn

    def prefix_predicate(self, column: str, prefix: str) -> Tuple[str, str]:
        return f"{column} GLOB ?", glob_escape(prefix) + "*"

    def health_check(self) -> Dict[str, Any]:
        """Return current core pragma values and basic status."""
        if not self.in_memory and not os.path.exists(self.path):
            return {"ok": False, "path": self.path, "error": f"Database not found: {self.path}"}
        try:
            conn = self.connect()
        except (sqlite3.Error, OSError) as e:
            return {"ok": False, "path": self.path, "error": str(e)}
        try:
            rows = {
                "journal_mode": conn.execute("PRAGMA journal_mode").fetchone()[0],
                "synchronous": conn.execute("PRAGMA synchronous").fetchone()[0],
                "cache_size": conn.execute("PRAGMA cache_size").fetchone()[0],
                "busy_timeout": conn.execute("PRAGMA busy_timeout").fetchone()[0],
                "sqlite_version": sqlite3.sqlite_version,
            }
            return {"ok": True, "backend": self.name, "path": self.path, **rows}
        except sqlite3.Error as e:
            return {"ok": False, "path": self.path, "error": str(e)}
        finally:
            conn.close()

    # --- Internal -------------------------------------------------------------------
    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        pragmas = [
            (f"busy_timeout={self.config.busy_timeout_ms}", "busy_timeout"),
            (f"cache_size=-{self.config.cache_kib}", "cache_size"),  # negative => KiB
            ("synchronous=NORMAL", "synchronous"),
            ("trusted_schema=OFF", "trusted_schema"),
        ]
        for p, tag in pragmas:
            try:
                conn.execute(f"PRAGMA {p}")
            except sqlite3.Error as e:
                warn("pragma_failed", pragma=p, tag=tag, path=self.path, error=str(e))
        if self.in_memory:
            return
        try:
            jm = conn.execute("PRAGMA journal_mode=WAL").fetchone()[0]
            if jm.lower() != "wal":
                warn("journal_mode_unexpected", got=jm, path=self.path)
        except sqlite3.Error as e:
            warn("pragma_failed", pragma="journal_mode=WAL", path=self.path, error=str(e))
