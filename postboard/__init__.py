"""postboard package initialization.

Single source of truth for schema + package versions so that code, tests, and
scripts can import without duplicating literals.
"""

SCHEMA_VERSION = "1"
PACKAGE_VERSION = "0.1.0"  # Keep in sync with pyproject version.
TABLE_NAME = "postboard_kvs"

__all__ = ["SCHEMA_VERSION", "PACKAGE_VERSION", "TABLE_NAME"]
