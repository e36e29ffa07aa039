"""Event logging for pb: one JSON object per line on stderr.

Emits JSON lines to stderr so stdout stays reserved for command output
(values may be binary). Threshold comes from LOG_LEVEL, re-read per event.
"""
from __future__ import annotations
import os, sys, json, time, threading

_lock = threading.Lock()
DEFAULT_LEVEL = "INFO"
LEVEL_ORDER = ["DEBUG","INFO","WARN","ERROR"]

def current_level() -> str:
    level = os.environ.get("LOG_LEVEL", DEFAULT_LEVEL).upper()
    return "WARN" if level == "WARNING" else level

def _should(level: str) -> bool:
    try:
        return LEVEL_ORDER.index(level) >= LEVEL_ORDER.index(current_level())
    except ValueError:
        return True

def log(level: str, event: str, **fields):
    level = level.upper()
    if not _should(level):
        return
    record = {
        "ts": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        "level": level,
        "event": event,
    }
    record.update(fields)
    line = json.dumps(record, separators=(',',':'), default=str)
    with _lock:
        sys.stderr.write(line + "\n")
        sys.stderr.flush()

def debug(event: str, **fields): log("DEBUG", event, **fields)
def info(event: str, **fields): log("INFO", event, **fields)
def warn(event: str, **fields): log("WARN", event, **fields)
def error(event: str, **fields): log("ERROR", event, **fields)
