"""pb: postboard command-line client.

Usage:
  pb set key value
  echo val | pb set key
  pb get key
  pb get 'key*'          # key=value per match
  pb get -k 'key*'       # matching keys only
  pb del key
  pb config              # (re)enter the database connection string
  pb health              # backend status as JSON

Exit codes: 0 ok, 1 command failed, 2 usage error.
"""
from __future__ import annotations
import argparse, json, os, sys

from . import PACKAGE_VERSION, SCHEMA_VERSION
from .base_backend import backend_from_dsn
from .config import config_path, prompt_for_dsn, resolve_dsn, save_config
from .errors import NotFoundError, PostboardError, ValidationError
from .logging_util import debug
from .store import Store

WILDCARD = "*"


def _write_line(data: bytes) -> None:
    # Values are opaque bytes: bypass the text layer so they survive untouched.
    sys.stdout.flush()
    out = sys.stdout.buffer
    out.write(data + b"\n")
    out.flush()


def _resolve_dsn() -> str:
    # Prompt answers and piped values share one binary stream, so neither
    # side loses lines to the other's read-ahead.
    return resolve_dsn(config_path(), sys.stdin.buffer, sys.stdout)


def _open_store() -> Store:
    store = Store.open(_resolve_dsn())
    try:
        store.ensure_schema()
    except PostboardError:
        store.close()
        raise
    return store


def cmd_config(args) -> int:
    config = prompt_for_dsn(sys.stdin.buffer, sys.stdout)
    save_config(config, config_path())
    return 0


def cmd_set(args) -> int:
    if not args.key:
        raise ValidationError("key is empty")
    # DSN first: on first run the prompt owns the first stdin line.
    with _open_store() as store:
        if args.value is None:
            value = sys.stdin.buffer.readline().rstrip(b"\r\n")
        else:
            value = os.fsencode(args.value)
        store.put(args.key, value)
    return 0


def cmd_get(args) -> int:
    key = args.key
    if not key:
        raise ValidationError("key is empty")
    with _open_store() as store:
        if not key.endswith(WILDCARD):
            _write_line(store.get(key))
            return 0
        for match in store.list_by_prefix(key[:-1]):
            if args.keys_only:
                _write_line(match.encode("utf-8"))
            else:
                _write_line(match.encode("utf-8") + b"=" + store.get(match))
    return 0


def cmd_del(args) -> int:
    if not args.key:
        raise ValidationError("key is empty")
    _write_line(b"Deleting configuration " + os.fsencode(args.key) + b"...")
    with _open_store() as store:
        if not store.delete(args.key):
            raise NotFoundError(args.key)
    return 0


def cmd_health(args) -> int:
    report = backend_from_dsn(_resolve_dsn()).health_check()
    report.update({"package_version": PACKAGE_VERSION, "schema_version": SCHEMA_VERSION})
    print(json.dumps(report, indent=2, default=str))
    return 0 if report.get("ok") else 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="pb", description="postboard: manage configuration values in a shared database")
    ap.add_argument("--version", action="version", version=f"%(prog)s {PACKAGE_VERSION}")
    sub = ap.add_subparsers(dest="cmd", required=True, metavar="command")

    p = sub.add_parser("config", help="Set up the database connection string")
    p.set_defaults(func=cmd_config)

    p = sub.add_parser("set", help="Set a configuration value")
    p.add_argument("key", help="The key of the configuration")
    p.add_argument("value", nargs="?", help="The value; read from stdin (one line) when omitted")
    p.set_defaults(func=cmd_set)

    p = sub.add_parser("get", help="Get a configuration value")
    p.add_argument("key", help="Exact key, or a prefix ending in '*'")
    p.add_argument("-k", "--keys-only", action="store_true", help="Only print keys")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("del", help="Delete a configuration value")
    p.add_argument("key", help="The key to delete")
    p.set_defaults(func=cmd_del)

    p = sub.add_parser("health", help="Print backend health as JSON")
    p.set_defaults(func=cmd_health)
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    debug("command_start", command=args.cmd)
    try:
        return args.func(args)
    except PostboardError as e:
        debug("command_failed", command=args.cmd, error_type=type(e).__name__, error=str(e))
        print(f"pb: error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
