# pos_inventory/database/repositories/inventory_repo.py
from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from ...constants import QTY_EPSILON
from ...errors import InsufficientStockError, NotFoundError, ValidationError
from ...utils.helpers import quantize_qty, round_money
from ...utils.validators import try_parse_float
from ..tx import immediate_tx
from .products_repo import VARIANT_SELECT

_log = logging.getLogger(__name__)


class InventoryRepo:
    """
    The stock ledger. `variants.on_hand` (base units) only moves through:

      • decrement_for_sale  – conditional atomic decrement, never below zero
      • increment_stock     – signed atomic increment (returns, restocks)

    Both run inside the caller's transaction so the stock change commits or
    rolls back together with the row that justifies it (invoice item, return
    item, restock). record_restock is the only method that opens its own
    transaction.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---------------------------- reads ----------------------------

    def on_hand(self, variant_id: int) -> float:
        row = self.conn.execute(
            "SELECT CAST(on_hand AS REAL) AS on_hand FROM variants WHERE id=?",
            (variant_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Variant {variant_id} not found.")
        return float(row["on_hand"])

    def list_restocks(
        self,
        product_id: Optional[int] = None,
        variant_id: Optional[int] = None,
        limit: int = 200,
    ) -> list[dict]:
        where, params = [], []
        if product_id is not None:
            where.append("v.product_id = ?")
            params.append(product_id)
        if variant_id is not None:
            where.append("r.variant_id = ?")
            params.append(variant_id)
        sql = """
            SELECT r.id, r.variant_id, CAST(r.qty_base AS REAL) AS qty_base,
                   CAST(r.cost_per_unit AS REAL) AS cost_per_unit, r.note, r.created_at,
                   v.sku, v.size_label, v.color, p.name AS product_name, p.type AS product_type
            FROM restocks r
            JOIN variants v ON v.id = r.variant_id
            JOIN products p ON p.id = v.product_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY r.id DESC LIMIT ?"
        params.append(int(limit))
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    def weighted_average_cost(self, variant_id: int) -> float:
        """Σ(qty × cost) / Σqty over the variant's restock rows; 0 when Σqty <= 0."""
        row = self.conn.execute(
            """
            SELECT COALESCE(SUM(CAST(qty_base AS REAL)), 0.0) AS qty,
                   COALESCE(SUM(CAST(qty_base AS REAL) * CAST(cost_per_unit AS REAL)), 0.0) AS cost
            FROM restocks WHERE variant_id = ?
            """,
            (variant_id,),
        ).fetchone()
        qty, cost = float(row["qty"]), float(row["cost"])
        return cost / qty if qty > 0 else 0.0

    def low_stock(self, limit: Optional[int] = None) -> list[dict]:
        """Active variants with on_hand <= low_stock_threshold, emptiest first."""
        sql = (
            VARIANT_SELECT
            + " WHERE v.active = 1 AND p.active = 1"
            + " AND CAST(v.on_hand AS REAL) <= CAST(v.low_stock_threshold AS REAL)"
            + " ORDER BY CAST(v.on_hand AS REAL) ASC, v.id"
        )
        params: list = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]

    # ---------------------------- movements ----------------------------

    def decrement_for_sale(self, variant_id: int, base_qty: float, sku: Optional[str] = None) -> None:
        """
        on_hand -= base_qty, only if enough stock is on hand. The check and
        the write are one UPDATE so two sales cannot both pass the check.
        """
        q = quantize_qty(base_qty)
        if not q > 0:
            raise ValidationError("Sale quantity must be greater than zero.")
        cur = self.conn.execute(
            """
            UPDATE variants
               SET on_hand = ROUND(CAST(on_hand AS REAL) - ?, 3)
             WHERE id = ? AND CAST(on_hand AS REAL) >= ? - ?
            """,
            (q, variant_id, q, QTY_EPSILON),
        )
        if cur.rowcount == 1:
            return
        row = self.conn.execute(
            "SELECT sku, CAST(on_hand AS REAL) AS on_hand FROM variants WHERE id=?",
            (variant_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Variant {variant_id} not found.")
        raise InsufficientStockError(
            sku or row["sku"] or f"variant #{variant_id}",
            requested=q,
            available=float(row["on_hand"]),
        )

    def increment_stock(self, variant_id: int, base_qty_signed: float) -> None:
        """on_hand += delta; no upper bound, negative deltas allowed for corrections."""
        delta = quantize_qty(base_qty_signed)
        cur = self.conn.execute(
            "UPDATE variants SET on_hand = ROUND(CAST(on_hand AS REAL) + ?, 3) WHERE id = ?",
            (delta, variant_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Variant {variant_id} not found.")

    def record_restock(
        self,
        variant_id: int,
        qty_base,
        cost_per_unit=None,
        note: Optional[str] = None,
    ) -> dict:
        """
        Post a signed stock movement (supplier delivery, correction) and its
        audit row in one transaction. Returns the refreshed variant.
        """
        ok, qty = try_parse_float(qty_base)
        if not ok:
            raise ValidationError("qty_base must be a number.")
        qty = quantize_qty(qty)
        if qty == 0:
            raise ValidationError("qty_base must not be zero.")
        ok, cost = try_parse_float(cost_per_unit)
        cost = round_money(cost) if ok else 0.0
        if cost < 0:
            raise ValidationError("cost_per_unit cannot be negative.")

        with immediate_tx(self.conn):
            if self.conn.execute("SELECT 1 FROM variants WHERE id=?", (variant_id,)).fetchone() is None:
                raise NotFoundError(f"Variant {variant_id} not found.")
            self.conn.execute(
                "INSERT INTO restocks(variant_id, qty_base, cost_per_unit, note) VALUES (?, ?, ?, ?)",
                (variant_id, qty, cost, (note or "").strip() or None),
            )
            self.increment_stock(variant_id, qty)
            row = self.conn.execute(VARIANT_SELECT + " WHERE v.id=?", (variant_id,)).fetchone()
        _log.info("Restock posted: variant %s %+g @ %.2f", variant_id, qty, cost)
        return dict(row)
