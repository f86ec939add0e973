# pos_inventory/database/repositories/returns_repo.py
from __future__ import annotations

from dataclasses import dataclass
import logging
import sqlite3
from typing import Any, Mapping, Optional, Sequence

from ...constants import PREFIX_RETURN, QTY_EPSILON
from ...errors import NotFoundError, OverReturnError, ValidationError
from ...utils.helpers import quantize_qty, round_money, stamp_for
from ...utils.uom import (
    base_unit_for_type,
    ensure_whole_base_qty,
    normalize_product_type,
    normalize_uom,
    price_for_uom,
    to_base_qty,
    units_for_type,
)
from ...utils.validators import try_parse_float
from ..tx import immediate_tx
from .doc_numbers import next_doc_no
from .inventory_repo import InventoryRepo
from .invoice_totals import date_filters, derive_status
from .invoices_repo import InvoicesRepo
from .returns_helpers import get_returnable_quantities

_log = logging.getLogger(__name__)


@dataclass
class PreparedReturnLine:
    invoice_item_id: int
    variant_id: int
    product_name: str | None
    variant_label: str | None
    uom: str
    qty: float
    base_qty: float
    list_rate: float
    effective_rate: float
    refund_override: float | None
    refund_amount: float
    note: str | None


# invoice line with the dimensions it was sold with, plus the variant's current prices
_ITEM_WITH_VARIANT_SQL = """
    SELECT ii.id, ii.invoice_id, ii.variant_id, ii.sku, ii.product_name, ii.product_type,
           ii.variant_label, ii.uom,
           CAST(ii.qty AS REAL)          AS qty,
           CAST(ii.base_qty AS REAL)     AS base_qty,
           CAST(ii.unit_price AS REAL)   AS unit_price,
           CAST(ii.line_total AS REAL)   AS line_total,
           CAST(ii.cost_at_sale AS REAL) AS cost_at_sale,
           ii.width_in, ii.height_in, ii.rod_length_ft, ii.pipe_length_ft,
           v.size_label, v.color, v.thickness_mm,
           CAST(v.price_base AS REAL) AS price_base,
           CAST(v.price_alt AS REAL)  AS price_alt
    FROM invoice_items ii
    JOIN variants v ON v.id = ii.variant_id
    WHERE ii.invoice_id = ?
    ORDER BY ii.id
"""

RETURN_SELECT = """
    SELECT r.id, r.return_no, r.invoice_id,
           CAST(r.subtotal_refund AS REAL) AS subtotal_refund,
           r.note, r.created_at,
           i.invoice_no, c.name AS customer_name, c.phone AS customer_phone
    FROM returns r
    JOIN invoices i ON i.id = r.invoice_id
    LEFT JOIN customers c ON c.id = i.customer_id
"""

RETURN_ITEM_SELECT = """
    SELECT ri.id, ri.return_id, ri.invoice_item_id, ri.variant_id, ri.product_name,
           ri.variant_label, ri.uom,
           CAST(ri.qty AS REAL)             AS qty,
           CAST(ri.base_qty AS REAL)        AS base_qty,
           CAST(ri.list_rate AS REAL)       AS list_rate,
           CAST(ri.effective_rate AS REAL)  AS effective_rate,
           CAST(ri.refund_override AS REAL) AS refund_override,
           CAST(ri.refund_amount AS REAL)   AS refund_amount,
           ri.note,
           ii.uom AS sale_uom, ii.product_type
    FROM return_items ri
    JOIN invoice_items ii ON ii.id = ri.invoice_item_id
"""


class ReturnsRepo:
    """
    Partial returns against an invoice.

    Quantities may be entered in either unit of the product type, independent
    of the unit the line was sold in; they are converted to base units with the
    sold variant's dimensions and checked against what is still returnable.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # --------------------------- preparation ---------------------------

    def _items_with_balance(self, invoice_id: int) -> dict[int, dict]:
        balances = get_returnable_quantities(self.conn, invoice_id)
        items: dict[int, dict] = {}
        for r in self.conn.execute(_ITEM_WITH_VARIANT_SQL, (invoice_id,)).fetchall():
            d = dict(r)
            units = units_for_type(d["product_type"])
            bal = balances.get(d["id"], {"returned": 0.0, "remaining": d["base_qty"]})
            d["base_unit"] = units.base
            d["alt_unit"] = units.alt
            d["already_returned_base_qty"] = bal["returned"]
            d["remaining_base_qty"] = bal["remaining"]
            d["variant_price_base"] = d.pop("price_base")
            d["variant_price_alt"] = d.pop("price_alt")
            items[d["id"]] = d
        return items

    def prepare_return(self, invoice_id: int) -> dict:
        """
        The invoice plus, per line, what was sold, what has already come back
        across all earlier returns, and what may still be returned (base units).
        """
        invoice = InvoicesRepo(self.conn).get_header(invoice_id)
        items = list(self._items_with_balance(invoice_id).values())
        return {"invoice": invoice, "items": items}

    # --------------------------- creation ---------------------------

    @staticmethod
    def _variant_view(item: Mapping[str, Any]) -> dict:
        # price/dimension mapping in the shape the uom helpers read
        return {
            "sku": item["sku"],
            "id": item["variant_id"],
            "width_in": item["width_in"],
            "height_in": item["height_in"],
            "rod_length_ft": item["rod_length_ft"],
            "pipe_length_ft": item["pipe_length_ft"],
            "price_base": item["variant_price_base"],
            "price_alt": item["variant_price_alt"],
        }

    def _prepare_line(
        self,
        idx: int,
        line: Mapping[str, Any],
        items: Mapping[int, dict],
        batch: dict[int, float],
    ) -> PreparedReturnLine:
        raw_id = line.get("invoice_item_id")
        ok, item_id = try_parse_float(raw_id)
        if not ok:
            raise ValidationError(f"Line {idx}: invoice_item_id is required.")
        item = items.get(int(item_id))
        if item is None:
            raise NotFoundError(f"Line {idx}: invoice item {raw_id} is not part of this invoice.")

        ptype = normalize_product_type(item["product_type"])
        base_unit = base_unit_for_type(ptype)
        uom = normalize_uom(line.get("uom", "base"), ptype)

        ok, qty = try_parse_float(line.get("qty"))
        if not ok or qty <= 0:
            raise ValidationError(f"Line {idx}: quantity must be greater than zero.")
        ensure_whole_base_qty(uom, base_unit, qty)

        variant = self._variant_view(item)
        list_rate = round_money(price_for_uom(variant, ptype, uom))
        base_qty = to_base_qty(variant, ptype, uom, qty)
        if base_qty <= 0:
            raise ValidationError(f"Line {idx}: {qty:g} {uom} converts to zero {base_unit}.")

        remaining = item["remaining_base_qty"] - batch.get(item["id"], 0.0)
        if base_qty > remaining + QTY_EPSILON:
            raise OverReturnError(
                f"Line {idx}: returning {base_qty:g} {base_unit} of {item['product_name']} "
                f"exceeds the remaining {max(0.0, round(remaining, 3)):g} {base_unit}."
            )
        batch[item["id"]] = batch.get(item["id"], 0.0) + base_qty

        override = line.get("refund_override")
        if override is not None and override != "":
            ok, override_v = try_parse_float(override)
            if not ok or override_v < 0:
                raise ValidationError(f"Line {idx}: refund override must be a non-negative amount.")
            refund_override = round_money(override_v)
            refund_amount = refund_override
            effective_rate = round_money(refund_override / qty)
        else:
            refund_override = None
            effective_rate = list_rate
            refund_amount = round_money(list_rate * qty)

        note = line.get("note")
        return PreparedReturnLine(
            invoice_item_id=int(item["id"]),
            variant_id=int(item["variant_id"]),
            product_name=item["product_name"],
            variant_label=item["variant_label"],
            uom=uom,
            qty=quantize_qty(qty),
            base_qty=base_qty,
            list_rate=list_rate,
            effective_rate=effective_rate,
            refund_override=refund_override,
            refund_amount=refund_amount,
            note=(str(note).strip() or None) if note is not None else None,
        )

    def create_return(
        self,
        invoice_id: int,
        lines: Sequence[Mapping[str, Any]],
        note: Optional[str] = None,
        new_discount: Any = None,
        *,
        return_date: Optional[str] = None,
    ) -> dict:
        """
        Record a return against one invoice.

        Each line: `invoice_item_id`, `qty`, optional `uom`, optional
        `refund_override` (amount for the whole line) and `note`. Stock comes
        back in base units. When `new_discount` is given the invoice discount
        is replaced (floored at 0) and the stored grand total recomputed; the
        refund itself is never folded into grand_total.
        """
        if not lines:
            raise ValidationError("Return needs at least one line item.")
        discount_override = None
        if new_discount is not None and new_discount != "":
            ok, discount_override = try_parse_float(new_discount)
            if not ok:
                raise ValidationError("New discount must be a number.")
            discount_override = max(0.0, round_money(discount_override))
        try:
            created_at, day = stamp_for(return_date)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        inventory = InventoryRepo(self.conn)
        with immediate_tx(self.conn):
            invoice = InvoicesRepo(self.conn).get_header(invoice_id)
            items = self._items_with_balance(invoice_id)

            batch: dict[int, float] = {}
            prepared = [self._prepare_line(i, ln, items, batch) for i, ln in enumerate(lines, start=1)]
            subtotal_refund = round_money(sum(p.refund_amount for p in prepared))

            return_no = next_doc_no(self.conn, PREFIX_RETURN, day)
            cur = self.conn.execute(
                "INSERT INTO returns(return_no, invoice_id, subtotal_refund, note, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (return_no, invoice_id, subtotal_refund, (note or "").strip() or None, created_at),
            )
            return_id = int(cur.lastrowid)

            for p in prepared:
                self.conn.execute(
                    """
                    INSERT INTO return_items(
                        return_id, invoice_item_id, variant_id, product_name, variant_label,
                        uom, qty, base_qty, list_rate, effective_rate, refund_override,
                        refund_amount, note
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        return_id, p.invoice_item_id, p.variant_id, p.product_name,
                        p.variant_label, p.uom, p.qty, p.base_qty, p.list_rate,
                        p.effective_rate, p.refund_override, p.refund_amount, p.note,
                    ),
                )
                inventory.increment_stock(p.variant_id, p.base_qty)

            discount = invoice["discount_bdt"] if discount_override is None else discount_override
            grand_total = round_money(invoice["subtotal"] - discount)
            prev_remark = (invoice["remark"] or "").strip()
            remark = f"{prev_remark} | Return {return_no}" if prev_remark else f"Return {return_no}"
            self.conn.execute(
                "UPDATE invoices SET discount_bdt=?, grand_total=?, status=?, remark=? WHERE id=?",
                (
                    discount,
                    grand_total,
                    derive_status(
                        invoice["paid_amount"],
                        round_money(grand_total - invoice["refund_total"] - subtotal_refund),
                    ),
                    remark,
                    invoice_id,
                ),
            )

        _log.info(
            "Return %s recorded against %s: %d line(s), refund %.2f",
            return_no, invoice["invoice_no"], len(prepared), subtotal_refund,
        )
        return self.get_return(return_id)

    # --------------------------- queries ---------------------------

    def get_return(self, return_id: int) -> dict:
        head = self.conn.execute(RETURN_SELECT + " WHERE r.id=?", (return_id,)).fetchone()
        if head is None:
            raise NotFoundError(f"Return {return_id} not found.")
        out = dict(head)
        out["items"] = [
            dict(r)
            for r in self.conn.execute(
                RETURN_ITEM_SELECT + " WHERE ri.return_id=? ORDER BY ri.id", (return_id,)
            ).fetchall()
        ]
        return out

    def items_for_invoice(self, invoice_id: int) -> list[dict]:
        """Every returned line of an invoice, across all of its returns."""
        rows = self.conn.execute(
            RETURN_ITEM_SELECT
            + " JOIN returns r ON r.id = ri.return_id WHERE r.invoice_id=? ORDER BY ri.id",
            (invoice_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def list_returns(
        self,
        q: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        invoice_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        """Newest first; `q` matches return no, invoice no, customer name or phone."""
        where, params = date_filters("r.created_at", date_from, date_to)
        if invoice_id is not None:
            where.append("r.invoice_id = ?")
            params.append(invoice_id)
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            where.append(
                "(r.return_no LIKE ? OR i.invoice_no LIKE ? "
                "OR COALESCE(c.name,'') LIKE ? OR COALESCE(c.phone,'') LIKE ?)"
            )
            params += [pattern] * 4
        sql = RETURN_SELECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY r.created_at DESC, r.id DESC"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [int(limit), int(offset)]
        return [dict(r) for r in self.conn.execute(sql, params).fetchall()]
