from __future__ import annotations

from pathlib import Path

from pos_inventory.config import resolve_db_path
from pos_inventory.constants import SCHEMA_VERSION
from pos_inventory.database import get_connection
from pos_inventory.database.repositories import InventoryRepo
from pos_inventory.database.versioning import get_current_version, stamp_version


def test_get_connection_seeds_once(tmp_path):
    path = tmp_path / "pos.db"
    conn = get_connection(path)
    try:
        assert conn.execute("SELECT COUNT(*) FROM variants").fetchone()[0] == 6
        assert get_current_version(conn) == SCHEMA_VERSION
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    finally:
        conn.close()

    conn = get_connection(path)
    try:
        assert conn.execute("SELECT COUNT(*) FROM variants").fetchone()[0] == 6
        assert conn.execute("SELECT COUNT(*) FROM restocks").fetchone()[0] == 6
    finally:
        conn.close()


def test_seed_stock_matches_restock_log(tmp_path):
    conn = get_connection(tmp_path / "pos.db")
    try:
        inventory = InventoryRepo(conn)
        for row in conn.execute("SELECT id, CAST(on_hand AS REAL) AS on_hand FROM variants"):
            total = conn.execute(
                "SELECT SUM(CAST(qty_base AS REAL)) FROM restocks WHERE variant_id=?", (row["id"],)
            ).fetchone()[0]
            assert total == row["on_hand"]
            assert inventory.weighted_average_cost(row["id"]) > 0
    finally:
        conn.close()


def test_get_connection_without_seed(tmp_path):
    conn = get_connection(tmp_path / "empty.db", seed=False)
    try:
        assert conn.execute("SELECT COUNT(*) FROM products").fetchone()[0] == 0
    finally:
        conn.close()


def test_db_path_env_override(monkeypatch, tmp_path):
    target = tmp_path / "elsewhere.db"
    monkeypatch.setenv("POS_DB_PATH", str(target))
    assert resolve_db_path() == target
    monkeypatch.delenv("POS_DB_PATH")
    assert resolve_db_path().name == "pos.db"
    assert isinstance(resolve_db_path(), Path)


def test_stamp_version_reports_changes(conn):
    assert get_current_version(conn) is None
    assert stamp_version(conn, "1.0.0") is True
    assert stamp_version(conn, "1.0.0") is False
    assert stamp_version(conn, "1.1.0") is True
    assert get_current_version(conn) == "1.1.0"


def test_log_level_from_environment(monkeypatch):
    import logging

    from pos_inventory.utils.loggers import get_logger

    monkeypatch.setenv("POS_LOG_LEVEL", "warning")
    assert get_logger("pos_inventory.test_env").level == logging.WARNING
    monkeypatch.setenv("POS_LOG_LEVEL", "nonsense")
    assert get_logger("pos_inventory.test_env").level == logging.INFO
    assert get_logger("pos_inventory.test_env", level=logging.DEBUG).level == logging.DEBUG
    assert len(get_logger("pos_inventory.test_env").handlers) == 1


def test_old_invoice_lines_get_dimensions_backfilled(conn, catalog, invoices):
    from pos_inventory.database.schema import ITEM_DIMENSION_COLUMNS, apply_schema

    inv = invoices.create_invoice([{"variant_id": catalog.glass, "qty": 1}])
    for col in ITEM_DIMENSION_COLUMNS:
        conn.execute(f"ALTER TABLE invoice_items DROP COLUMN {col}")
    conn.commit()

    apply_schema(conn)
    apply_schema(conn)

    cols = {r[1] for r in conn.execute("PRAGMA table_info(invoice_items)").fetchall()}
    assert set(ITEM_DIMENSION_COLUMNS) <= cols
    item = invoices.get_invoice(inv["id"])["items"][0]
    assert (item["width_in"], item["height_in"]) == (24, 36)
    assert item["rod_length_ft"] is None
