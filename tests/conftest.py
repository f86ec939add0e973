# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - every test gets its own in-memory SQLite database (schema applied)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - `catalog` seeds one variant per product type (plus a Glass variant
#   without an alternate price) and returns their ids
# - pytest-qt owns QApplication (use the qapp fixture in model tests)
# ---------------------------------------------------------------------

from __future__ import annotations

import os
import sqlite3
from types import SimpleNamespace

import pytest

# Headless runs: let Qt start without a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from pos_inventory.database import configure_connection
from pos_inventory.database.schema import apply_schema
from pos_inventory.database.repositories import (
    DuesRepo,
    InventoryRepo,
    InvoicesRepo,
    ProductsRepo,
    ReportingRepo,
    ReturnsRepo,
)


@pytest.fixture
def conn():
    con = configure_connection(sqlite3.connect(":memory:"))
    apply_schema(con)
    yield con
    con.close()


@pytest.fixture
def catalog(conn):
    """
    GL-5MM-24x36   Glass 24x36 (6 sqft/sheet), 1800/sheet, 22/sqft, cost 1500, 10 sheets
    GL-4MM-12x12   Glass 12x12, 300/sheet, no sqft price, 5 sheets
    AL-21-BLACK    Thai Aluminum 21 ft bar, 1250/bar, 68/ft, cost 1000, 5 bars
    SS-1.2MM       SS Pipe (20 ft), 2100/pipe, 120/ft, cost 1800, 9 pipes
    ACC-SILICONE   Others, 220/piece, cost 180, 25 pieces
    """
    repo = ProductsRepo(conn)
    glass = repo.create("Clear Glass", "Glass", "Glass")
    thai = repo.create("Thai Aluminum Channel", "ThaiAluminum", "Thai")
    pipe = repo.create("SS Pipe Round", "SSPipe", "SS")
    other = repo.create("Silicone Tube", "Others", "Accessory")
    return SimpleNamespace(
        glass_product=glass,
        other_product=other,
        glass=repo.create_variant(
            glass, sku="GL-5MM-24x36", size_label="24x36", thickness_mm=5,
            width_in=24, height_in=36, price_base=1800, price_alt=22,
            cost_price=1500, low_stock_threshold=5, opening_stock=10,
        ),
        glass_no_alt=repo.create_variant(
            glass, sku="GL-4MM-12x12", size_label="12x12", thickness_mm=4,
            width_in=12, height_in=12, price_base=300, cost_price=200, opening_stock=5,
        ),
        thai=repo.create_variant(
            thai, sku="AL-21-BLACK", size_label="1 inch", color="Black",
            rod_length_ft=21, price_base=1250, price_alt=68, cost_price=1000,
            low_stock_threshold=5, opening_stock=5,
        ),
        pipe=repo.create_variant(
            pipe, sku="SS-1.2MM", thickness_mm=1.2, price_base=2100, price_alt=120,
            cost_price=1800, low_stock_threshold=4, opening_stock=9,
        ),
        others=repo.create_variant(
            other, sku="ACC-SILICONE", size_label="Clear 300ml", price_base=220,
            price_alt=50, cost_price=180, low_stock_threshold=10, opening_stock=25,
        ),
    )


@pytest.fixture
def inventory(conn):
    return InventoryRepo(conn)


@pytest.fixture
def invoices(conn):
    return InvoicesRepo(conn)


@pytest.fixture
def returns(conn):
    return ReturnsRepo(conn)


@pytest.fixture
def dues(conn):
    return DuesRepo(conn)


@pytest.fixture
def reporting(conn):
    return ReportingRepo(conn)


@pytest.fixture
def products(conn):
    return ProductsRepo(conn)
