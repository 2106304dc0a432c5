"""Sanity check for local dev Python environment."""

from __future__ import annotations

import importlib
import os
import sys

REQUIRED = ["fastapi", "uvicorn", "yaml", "click", "sqlalchemy", "jsonschema", "referencing"]


def main() -> int:
    print("Python executable:", sys.executable)
    failed = False
    for module in REQUIRED:
        try:
            importlib.import_module(module)
        except ImportError as exc:  # pragma: no cover - dev-only script
            print(f"FAILED: {module} import error:", repr(exc))
            failed = True
        else:
            print(f"OK: {module} is installed")

    # The PostgreSQL driver is only needed when DATABASE_URL points at PostgreSQL
    if os.environ.get("DATABASE_URL", "").startswith("postgresql"):
        try:
            importlib.import_module("psycopg")
        except ImportError as exc:  # pragma: no cover - dev-only script
            print("FAILED: psycopg import error:", repr(exc))
            failed = True
        else:
            print("OK: psycopg is installed")

    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
