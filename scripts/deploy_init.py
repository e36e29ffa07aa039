#!/usr/bin/env python3
"""Idempotent deployment initializer.

Creates the postboard_kvs table for the given DSN (or $POSTBOARD_DSN). Safe to
run multiple times; an existing table is left untouched.

Usage:
  python scripts/deploy_init.py sqlite:///data/postboard.db
  python scripts/deploy_init.py postgresql://user:pw@host/db
"""
from __future__ import annotations
import os, sys

from postboard.base_backend import describe_dsn
from postboard.errors import PostboardError
from postboard.store import Store

def main():
    dsn = sys.argv[1] if len(sys.argv) > 1 else os.environ.get('POSTBOARD_DSN', '')
    if not dsn:
        print('Usage: deploy_init.py <dsn>  (or set POSTBOARD_DSN)', file=sys.stderr)
        return 2
    try:
        with Store.open(dsn) as store:
            store.ensure_schema()
    except PostboardError as e:
        print(f"init failed: {e}", file=sys.stderr)
        return 1
    print(f"initialized: {describe_dsn(dsn)}")
    return 0

if __name__ == '__main__':
    raise SystemExit(main())
