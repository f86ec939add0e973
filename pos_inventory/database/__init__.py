# pos_inventory/database/__init__.py
from __future__ import annotations

from pathlib import Path
import sqlite3

from ..config import DB_PATH
from ..constants import SCHEMA_VERSION
from ..utils.loggers import get_logger
from . import schema as schema_module
from .seeders.default_data import seed as seed_default_data
from .tx import immediate_tx
from .versioning import stamp_version

_log = get_logger("pos_inventory")


def configure_connection(conn: sqlite3.Connection) -> sqlite3.Connection:
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def get_connection(db_path: Path | str | None = None, *, seed: bool = True) -> sqlite3.Connection:
    """
    Returns a sqlite3.Connection with:
      - WAL mode
      - foreign_keys ON
      - row_factory = sqlite3.Row (so rows behave like dicts and tuples)
    Ensures schema, version stamp and seed data are applied idempotently.
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    # Always apply the schema (idempotent: uses CREATE IF NOT EXISTS / DROP TRIGGER IF EXISTS)
    schema_module.init_schema(path)

    conn = configure_connection(sqlite3.connect(path))
    conn.execute("PRAGMA journal_mode = WAL;")

    if stamp_version(conn, SCHEMA_VERSION):
        _log.info("Schema version set to %s", SCHEMA_VERSION)

    if seed:
        seed_default_data(conn)

    conn.commit()
    _log.info("Opened database %s (schema %s)", path, SCHEMA_VERSION)
    return conn


__all__ = [
    "configure_connection",
    "get_connection",
    "immediate_tx",
]
