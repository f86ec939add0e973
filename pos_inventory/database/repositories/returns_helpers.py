from __future__ import annotations

from typing import Dict
import sqlite3

from ...utils.helpers import quantize_qty


def get_returnable_quantities(conn: sqlite3.Connection, invoice_id: int) -> Dict[int, Dict[str, float]]:
    """
    Compute remaining returnable base quantity per invoice item.

    Returns a dict mapping item_id -> {"sold", "returned", "remaining"}, all in
    base units; `returned` sums every prior return of the line and
    `remaining` is clamped to >= 0.0.
    """
    sql = """
    SELECT
      ii.id AS item_id,
      CAST(ii.base_qty AS REAL) AS sold_qty,
      COALESCE((
        SELECT SUM(CAST(ri.base_qty AS REAL))
        FROM return_items ri
        WHERE ri.invoice_item_id = ii.id
      ), 0.0) AS returned_so_far
    FROM invoice_items ii
    WHERE ii.invoice_id = ?
    ORDER BY ii.id
    """
    out: Dict[int, Dict[str, float]] = {}
    for r in conn.execute(sql, (invoice_id,)).fetchall():
        sold_qty = float(r["sold_qty"])
        returned_so_far = quantize_qty(r["returned_so_far"])
        out[int(r["item_id"])] = {
            "sold": sold_qty,
            "returned": returned_so_far,
            "remaining": max(0.0, round(sold_qty - returned_so_far, 3)),
        }
    return out
