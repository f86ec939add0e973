from pathlib import Path
import logging
import sqlite3
import sys

_log = logging.getLogger(__name__)

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CATALOGUE ======================== */

CREATE TABLE IF NOT EXISTS products (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    name      TEXT NOT NULL,
    type      TEXT NOT NULL CHECK (type IN ('Glass','Thai Aluminum','SS Pipe','Others')),
    category  TEXT,
    active    INTEGER NOT NULL DEFAULT 1 CHECK (active IN (0,1)),
    created_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);

CREATE TABLE IF NOT EXISTS variants (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id          INTEGER NOT NULL REFERENCES products(id),
    sku                 TEXT UNIQUE,
    size_label          TEXT,
    thickness_mm        REAL,
    width_in            REAL,
    height_in           REAL,
    color               TEXT,
    rod_length_ft       REAL,
    pipe_length_ft      REAL,
    price_base          NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(price_base AS REAL) >= 0),
    price_alt           NUMERIC CHECK (price_alt IS NULL OR CAST(price_alt AS REAL) >= 0),
    cost_price          NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(cost_price AS REAL) >= 0),
    /* may go negative through a correcting restock; sales are guarded in code */
    on_hand             REAL NOT NULL DEFAULT 0,
    low_stock_threshold REAL NOT NULL DEFAULT 0,
    group_name          TEXT NOT NULL DEFAULT 'Default',
    active              INTEGER NOT NULL DEFAULT 1 CHECK (active IN (0,1)),
    created_at          TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);
CREATE INDEX IF NOT EXISTS idx_variants_product ON variants(product_id);

/* ======================== PARTIES ======================== */

CREATE TABLE IF NOT EXISTS customers (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT,
    phone      TEXT UNIQUE,
    address    TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);

/* ======================== SALES ======================== */

CREATE TABLE IF NOT EXISTS invoices (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_no    TEXT NOT NULL UNIQUE,
    customer_id   INTEGER REFERENCES customers(id),
    subtotal      NUMERIC NOT NULL DEFAULT 0,
    discount_bdt  NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_bdt AS REAL) >= 0),
    grand_total   NUMERIC NOT NULL DEFAULT 0,
    paid_amount   NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(paid_amount AS REAL) >= 0),
    status        TEXT NOT NULL DEFAULT 'UNPAID' CHECK (status IN ('PAID','PARTIAL','UNPAID')),
    remark        TEXT,
    shop_name     TEXT,
    shop_address  TEXT,
    shop_phone    TEXT,
    created_at    TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_invoices_created ON invoices(created_at);
CREATE INDEX IF NOT EXISTS idx_invoices_customer ON invoices(customer_id);

/* product/variant fields are value copies taken at sale time */
CREATE TABLE IF NOT EXISTS invoice_items (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id    INTEGER NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
    variant_id    INTEGER NOT NULL REFERENCES variants(id),
    sku           TEXT,
    product_name  TEXT NOT NULL,
    product_type  TEXT NOT NULL,
    variant_label TEXT NOT NULL DEFAULT '',
    uom           TEXT NOT NULL,
    qty           REAL NOT NULL CHECK (qty > 0),
    base_qty      REAL NOT NULL CHECK (base_qty > 0),
    unit_price    NUMERIC NOT NULL DEFAULT 0,
    line_total    NUMERIC NOT NULL DEFAULT 0,
    cost_at_sale  NUMERIC NOT NULL DEFAULT 0,
    width_in      REAL,
    height_in     REAL,
    rod_length_ft REAL,
    pipe_length_ft REAL
);
CREATE INDEX IF NOT EXISTS idx_invoice_items_invoice ON invoice_items(invoice_id);
CREATE INDEX IF NOT EXISTS idx_invoice_items_variant ON invoice_items(variant_id);

/* ======================== RETURNS ======================== */

CREATE TABLE IF NOT EXISTS returns (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    return_no       TEXT NOT NULL UNIQUE,
    invoice_id      INTEGER NOT NULL REFERENCES invoices(id),
    subtotal_refund NUMERIC NOT NULL DEFAULT 0,
    note            TEXT,
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_returns_invoice ON returns(invoice_id);
CREATE INDEX IF NOT EXISTS idx_returns_created ON returns(created_at);

/* effective_rate is per entered unit; refund_override keeps the line amount typed by the operator */
CREATE TABLE IF NOT EXISTS return_items (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    return_id       INTEGER NOT NULL REFERENCES returns(id) ON DELETE CASCADE,
    invoice_item_id INTEGER NOT NULL REFERENCES invoice_items(id),
    variant_id      INTEGER NOT NULL REFERENCES variants(id),
    product_name    TEXT,
    variant_label   TEXT,
    uom             TEXT NOT NULL,
    qty             REAL NOT NULL CHECK (qty > 0),
    base_qty        REAL NOT NULL CHECK (base_qty > 0),
    list_rate       NUMERIC,
    effective_rate  NUMERIC NOT NULL DEFAULT 0,
    refund_override NUMERIC CHECK (refund_override IS NULL OR CAST(refund_override AS REAL) >= 0),
    refund_amount   NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(refund_amount AS REAL) >= 0),
    note            TEXT
);
CREATE INDEX IF NOT EXISTS idx_return_items_return ON return_items(return_id);
CREATE INDEX IF NOT EXISTS idx_return_items_invoice_item ON return_items(invoice_item_id);

/* Σ returned base_qty of an invoice line never exceeds what was sold */
DROP TRIGGER IF EXISTS trg_return_items_not_exceed_sold;
CREATE TRIGGER trg_return_items_not_exceed_sold
BEFORE INSERT ON return_items
FOR EACH ROW
BEGIN
  SELECT CASE
    WHEN (
      COALESCE((SELECT SUM(CAST(ri.base_qty AS REAL))
                FROM return_items ri
                WHERE ri.invoice_item_id = NEW.invoice_item_id), 0.0)
      + CAST(NEW.base_qty AS REAL)
      - COALESCE((SELECT CAST(ii.base_qty AS REAL)
                  FROM invoice_items ii
                  WHERE ii.id = NEW.invoice_item_id), 0.0)
    ) > 1e-9
    THEN RAISE(ABORT, 'Return exceeds sold quantity')
    ELSE 1
  END;
END;

DROP TRIGGER IF EXISTS trg_return_items_no_update;
CREATE TRIGGER trg_return_items_no_update
BEFORE UPDATE OF base_qty, invoice_item_id ON return_items
FOR EACH ROW
BEGIN
  SELECT RAISE(ABORT, 'Return lines are immutable');
END;

/* ======================== DUES ======================== */

CREATE TABLE IF NOT EXISTS due_payments (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id  INTEGER NOT NULL REFERENCES invoices(id),
    amount      NUMERIC NOT NULL,
    receipt_no  TEXT NOT NULL UNIQUE,
    note        TEXT,
    created_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_due_payments_invoice ON due_payments(invoice_id);

/* due = subtotal - discount - refunds - paid, checked at insert time only */
DROP TRIGGER IF EXISTS trg_due_payments_not_exceed_due;
CREATE TRIGGER trg_due_payments_not_exceed_due
BEFORE INSERT ON due_payments
FOR EACH ROW
BEGIN
  SELECT CASE
    WHEN CAST(NEW.amount AS REAL) <= 0
      THEN RAISE(ABORT, 'Payment must be positive')
    ELSE 1
  END;

  SELECT CASE
    WHEN (
      COALESCE((SELECT CAST(subtotal AS REAL) - CAST(discount_bdt AS REAL) - CAST(paid_amount AS REAL)
                FROM invoices WHERE id = NEW.invoice_id), 0.0)
      - COALESCE((SELECT SUM(CAST(r.subtotal_refund AS REAL))
                  FROM returns r WHERE r.invoice_id = NEW.invoice_id), 0.0)
      - CAST(NEW.amount AS REAL)
    ) < -0.005
    THEN RAISE(ABORT, 'Payment exceeds remaining due')
    ELSE 1
  END;
END;

/* ======================== STOCK ======================== */

CREATE TABLE IF NOT EXISTS restocks (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    variant_id    INTEGER NOT NULL REFERENCES variants(id),
    qty_base      REAL NOT NULL,
    cost_per_unit NUMERIC NOT NULL DEFAULT 0,
    note          TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);
CREATE INDEX IF NOT EXISTS idx_restocks_variant ON restocks(variant_id);

/* ======================== NUMBERING ======================== */

/* one row per (document kind, business day); last_seq is bumped atomically */
CREATE TABLE IF NOT EXISTS doc_sequences (
    kind     TEXT NOT NULL,
    day      TEXT NOT NULL,
    last_seq INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (kind, day)
);
"""


ITEM_DIMENSION_COLUMNS = ("width_in", "height_in", "rod_length_ft", "pipe_length_ft")


def _ensure_item_dimensions(conn: sqlite3.Connection) -> None:
    """
    Migration for databases created before invoice lines carried the sold
    variant's dimensions: adds the columns and backfills them from the
    variant as it is now. No-op when the columns exist.
    """
    cols = {row[1] for row in conn.execute("PRAGMA table_info(invoice_items);").fetchall()}
    missing = [c for c in ITEM_DIMENSION_COLUMNS if c not in cols]
    if not missing:
        return
    for col in missing:
        conn.execute(f"ALTER TABLE invoice_items ADD COLUMN {col} REAL;")
        conn.execute(
            f"UPDATE invoice_items SET {col} = "
            f"(SELECT v.{col} FROM variants v WHERE v.id = invoice_items.variant_id);"
        )
    conn.commit()
    _log.info("Backfilled invoice line dimensions: %s", ", ".join(missing))


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the idempotent schema on an open connection (used by tests too)."""
    conn.executescript(SQL)
    _ensure_item_dimensions(conn)


def init_schema(db_path: Path | str = "pos.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()
    finally:
        conn.close()
    _log.info("Schema applied to %s", db_path)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[1] / "data" / "pos.db"
    init_schema(target)
