# pos_inventory/database/repositories/products_repo.py
from __future__ import annotations

from dataclasses import dataclass
import logging
import sqlite3
from typing import Any, Optional

from ...constants import DEFAULT_PIPE_LENGTH_FT, TYPE_GLASS, TYPE_OTHERS, TYPE_SS_PIPE, TYPE_THAI_ALUMINUM
from ...errors import NotFoundError, ValidationError
from ...utils.helpers import quantize_qty, round_money
from ...utils.uom import normalize_product_type
from ...utils.validators import non_empty, try_parse_float
from ..tx import immediate_tx

_log = logging.getLogger(__name__)


@dataclass
class Product:
    id: int | None
    name: str
    type: str
    category: str | None
    active: int


# Columns callers may set on a variant (id/product_id/on_hand are managed here)
VARIANT_FIELDS = (
    "sku",
    "size_label",
    "thickness_mm",
    "width_in",
    "height_in",
    "color",
    "rod_length_ft",
    "pipe_length_ft",
    "price_base",
    "price_alt",
    "cost_price",
    "low_stock_threshold",
    "group_name",
)
_NUMERIC_FIELDS = {
    "thickness_mm", "width_in", "height_in", "rod_length_ft", "pipe_length_ft",
    "price_base", "price_alt", "cost_price", "low_stock_threshold",
}
_MONEY_FIELDS = {"price_base", "price_alt", "cost_price"}

VARIANT_SELECT = """
    SELECT v.*, p.name AS product_name, p.type AS product_type, p.category AS category,
           p.active AS product_active
    FROM variants v
    JOIN products p ON p.id = v.product_id
"""


def variant_label(variant) -> str:
    """Printable label frozen onto documents: size label, else color, else ''."""
    for key in ("size_label", "color"):
        try:
            val = variant[key]
        except (KeyError, IndexError):
            val = None
        if val:
            return str(val)
    return ""


def resolve_group_name(product_type: str, thickness_mm: Any, group_name: Any) -> str:
    if product_type in (TYPE_GLASS, TYPE_SS_PIPE) and thickness_mm is not None:
        return f"{float(thickness_mm):g}mm"
    if product_type == TYPE_THAI_ALUMINUM:
        return str(group_name).strip() if non_empty(group_name) else "Default"
    return "Default"


class ProductsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---------------------------- Products ----------------------------

    def list_products(self, active_only: bool = True) -> list[Product]:
        sql = "SELECT id, name, type, category, active FROM products"
        if active_only:
            sql += " WHERE active = 1"
        rows = self.conn.execute(sql + " ORDER BY id DESC").fetchall()
        return [Product(**r) for r in rows]

    def get(self, product_id: int) -> Product | None:
        r = self.conn.execute(
            "SELECT id, name, type, category, active FROM products WHERE id=?",
            (product_id,),
        ).fetchone()
        return Product(**r) if r else None

    def create(self, name: str, product_type: str, category: str | None = None) -> int:
        if not non_empty(name):
            raise ValidationError("Product name cannot be empty.")
        ptype = normalize_product_type(product_type)
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                "INSERT INTO products(name, type, category) VALUES (?, ?, ?)",
                (name.strip(), ptype, (category or "").strip() or None),
            )
            return int(cur.lastrowid)

    def update(self, product_id: int, name: str, category: str | None = None) -> None:
        """
        Name/category only. The type is fixed once created since it decides
        how existing stock is counted.
        """
        if not non_empty(name):
            raise ValidationError("Product name cannot be empty.")
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                "UPDATE products SET name=?, category=? WHERE id=?",
                (name.strip(), (category or "").strip() or None, product_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Product {product_id} not found.")

    def set_active(self, product_id: int, active: bool) -> None:
        """
        Soft delete / restore. Deactivating a product deactivates its variants;
        restoring only restores the product.
        """
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                "UPDATE products SET active=? WHERE id=?", (1 if active else 0, product_id)
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Product {product_id} not found.")
            if not active:
                self.conn.execute("UPDATE variants SET active=0 WHERE product_id=?", (product_id,))

    # ---------------------------- Variants ----------------------------

    def _clean_variant_fields(self, product_type: str, fields: dict) -> dict:
        out: dict[str, Any] = {}
        for key, raw in fields.items():
            if key not in VARIANT_FIELDS:
                raise ValidationError(f"Unknown variant field: {key}")
            if key in _NUMERIC_FIELDS:
                if raw is None or (isinstance(raw, str) and raw.strip() == ""):
                    out[key] = None
                    continue
                ok, val = try_parse_float(raw)
                if not ok or val < 0:
                    raise ValidationError(f"{key} must be a non-negative number.")
                out[key] = round_money(val) if key in _MONEY_FIELDS else val
            else:
                out[key] = (str(raw).strip() or None) if raw is not None else None
        if product_type == TYPE_OTHERS and "price_alt" in out:
            out["price_alt"] = None
        for key in ("price_base", "cost_price", "low_stock_threshold"):
            if key in out and out[key] is None:
                out[key] = 0.0
        return out

    def create_variant(self, product_id: int, *, opening_stock: float = 0.0, **fields) -> int:
        """
        Insert a variant. SS Pipe defaults to a 20 ft pipe; Others never get an
        alternate price. Non-zero opening stock is logged as a restock row.
        """
        product = self.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found.")
        ptype = normalize_product_type(product.type)

        fields.setdefault("price_alt", None)
        clean = self._clean_variant_fields(ptype, fields)
        if ptype == TYPE_SS_PIPE and not clean.get("pipe_length_ft"):
            clean["pipe_length_ft"] = DEFAULT_PIPE_LENGTH_FT
        clean["group_name"] = resolve_group_name(ptype, clean.get("thickness_mm"), clean.get("group_name"))

        ok, opening = try_parse_float(opening_stock if opening_stock is not None else 0)
        if not ok or opening < 0:
            raise ValidationError("Opening stock must be a non-negative number.")
        opening = quantize_qty(opening)

        cols = list(clean)
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                f"INSERT INTO variants(product_id, on_hand, {', '.join(cols)}) "
                f"VALUES (?, ?, {', '.join('?' for _ in cols)})",
                (product_id, opening, *(clean[c] for c in cols)),
            )
            variant_id = int(cur.lastrowid)
            if opening:
                self.conn.execute(
                    "INSERT INTO restocks(variant_id, qty_base, cost_per_unit, note) "
                    "VALUES (?, ?, ?, 'Opening stock')",
                    (variant_id, opening, clean.get("cost_price") or 0.0),
                )
        _log.info("Variant %s created under product %s (opening %g)", variant_id, product_id, opening)
        return variant_id

    def update_variant(self, variant_id: int, **fields) -> None:
        """
        Edit catalogue fields. Stock is not editable here (use a restock), and
        past invoices keep their own snapshot of price, cost and dimensions.
        """
        current = self.get_variant(variant_id)
        if current is None:
            raise NotFoundError(f"Variant {variant_id} not found.")
        if not fields:
            return
        ptype = normalize_product_type(current["product_type"])
        clean = self._clean_variant_fields(ptype, fields)
        if "thickness_mm" in clean or "group_name" in clean:
            clean["group_name"] = resolve_group_name(
                ptype,
                clean.get("thickness_mm", current["thickness_mm"]),
                clean.get("group_name", current["group_name"]),
            )
        if ptype == TYPE_OTHERS:
            clean["price_alt"] = None
        if ptype == TYPE_SS_PIPE and "pipe_length_ft" in clean and not clean["pipe_length_ft"]:
            clean["pipe_length_ft"] = DEFAULT_PIPE_LENGTH_FT
        assignments = ", ".join(f"{c}=?" for c in clean)
        with immediate_tx(self.conn):
            self.conn.execute(
                f"UPDATE variants SET {assignments} WHERE id=?",
                (*clean.values(), variant_id),
            )

    def set_variant_active(self, variant_id: int, active: bool) -> None:
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                "UPDATE variants SET active=? WHERE id=?", (1 if active else 0, variant_id)
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Variant {variant_id} not found.")

    def get_variant(self, variant_id: int) -> Optional[dict]:
        r = self.conn.execute(VARIANT_SELECT + " WHERE v.id=?", (variant_id,)).fetchone()
        return dict(r) if r else None

    def list_variants(self, product_id: int, active_only: bool = True) -> list[dict]:
        sql = VARIANT_SELECT + " WHERE v.product_id=?"
        if active_only:
            sql += " AND v.active=1"
        rows = self.conn.execute(sql + " ORDER BY v.group_name, v.id", (product_id,)).fetchall()
        return [dict(r) for r in rows]

    def search(self, q: str, limit: int = 50) -> list[dict]:
        """
        Active variants whose product name, size label, color, SKU or
        thickness matches `q` (LIKE).
        """
        term = (q or "").strip()
        if not term:
            return []
        pattern = f"%{term}%"
        rows = self.conn.execute(
            VARIANT_SELECT
            + """
            WHERE v.active = 1 AND p.active = 1 AND (
                p.name LIKE ? OR COALESCE(v.size_label,'') LIKE ? OR COALESCE(v.color,'') LIKE ?
                OR COALESCE(v.sku,'') LIKE ? OR CAST(COALESCE(v.thickness_mm,'') AS TEXT) LIKE ?
            )
            ORDER BY p.name, v.id
            LIMIT ?
            """,
            (pattern, pattern, pattern, pattern, pattern, int(limit)),
        ).fetchall()
        return [dict(r) for r in rows]
