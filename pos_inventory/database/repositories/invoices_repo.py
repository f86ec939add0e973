# pos_inventory/database/repositories/invoices_repo.py
from __future__ import annotations

from dataclasses import dataclass
import logging
import sqlite3
from typing import Any, Mapping, Optional, Sequence

from ...constants import PAYMENT_EPSILON, PREFIX_INVOICE, QTY_EPSILON
from ...errors import InsufficientStockError, NotFoundError, ValidationError
from ...utils.helpers import quantize_qty, round_money, stamp_for
from ...utils.uom import (
    base_unit_for_type,
    convert,
    ensure_whole_base_qty,
    normalize_product_type,
    normalize_uom,
    price_for_uom,
    to_base_qty,
)
from ...utils.validators import try_parse_float
from ..tx import immediate_tx
from .customers_repo import CustomersRepo
from .doc_numbers import next_doc_no
from .inventory_repo import InventoryRepo
from .invoice_totals import REFUND_TOTAL_SQL, compute_due, date_filters, derive_status
from .products_repo import VARIANT_SELECT, variant_label

_log = logging.getLogger(__name__)


@dataclass
class PreparedLine:
    """One sale line after lookup, unit normalization and conversion."""
    variant_id: int
    sku: str | None
    product_name: str
    product_type: str
    variant_label: str
    uom: str
    qty: float
    base_qty: float
    unit_price: float
    line_total: float
    cost_at_sale: float
    width_in: float | None = None
    height_in: float | None = None
    rod_length_ft: float | None = None
    pipe_length_ft: float | None = None


INVOICE_SELECT = f"""
    SELECT i.id, i.invoice_no, i.customer_id,
           CAST(i.subtotal AS REAL)     AS subtotal,
           CAST(i.discount_bdt AS REAL) AS discount_bdt,
           CAST(i.grand_total AS REAL)  AS grand_total,
           CAST(i.paid_amount AS REAL)  AS paid_amount,
           i.status, i.remark, i.shop_name, i.shop_address, i.shop_phone, i.created_at,
           c.name AS customer_name, c.phone AS customer_phone, c.address AS customer_address,
           {REFUND_TOTAL_SQL} AS refund_total
    FROM invoices i
    LEFT JOIN customers c ON c.id = i.customer_id
"""

ITEM_SELECT = """
    SELECT ii.id, ii.invoice_id, ii.variant_id, ii.sku, ii.product_name, ii.product_type,
           ii.variant_label, ii.uom,
           CAST(ii.qty AS REAL)          AS qty,
           CAST(ii.base_qty AS REAL)     AS base_qty,
           CAST(ii.unit_price AS REAL)   AS unit_price,
           CAST(ii.line_total AS REAL)   AS line_total,
           CAST(ii.cost_at_sale AS REAL) AS cost_at_sale,
           ii.width_in, ii.height_in, ii.rod_length_ft, ii.pipe_length_ft
    FROM invoice_items ii
"""


def with_due(row: Mapping[str, Any]) -> dict:
    d = dict(row)
    revised, due = compute_due(d["subtotal"], d["discount_bdt"], d["refund_total"], d["paid_amount"])
    d["refund_total"] = round_money(d["refund_total"])
    d["revised_grand_total"] = revised
    d["due"] = due
    return d


class InvoicesRepo:
    """
    Sale transactions. create_invoice is all-or-nothing: customer upsert,
    numbering, header, items and stock decrements share one transaction.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # --------------------------- validation ---------------------------

    @staticmethod
    def _amount(value: Any, label: str) -> float:
        ok, val = try_parse_float(0 if value is None or value == "" else value)
        if not ok:
            raise ValidationError(f"{label} must be a number.")
        if val < 0:
            raise ValidationError(f"{label} cannot be negative.")
        return round_money(val)

    def _prepare_line(self, idx: int, line: Mapping[str, Any]) -> PreparedLine:
        variant_id = line.get("variant_id")
        if variant_id is None:
            raise ValidationError(f"Line {idx}: variant_id is required.")
        variant = self.conn.execute(VARIANT_SELECT + " WHERE v.id=?", (variant_id,)).fetchone()
        if variant is None:
            raise NotFoundError(f"Variant {variant_id} not found.")
        if not variant["active"]:
            raise ValidationError(f"Line {idx}: variant {variant['sku'] or variant_id} is inactive.")

        ptype = normalize_product_type(variant["product_type"])
        uom = normalize_uom(line.get("uom", "base"), ptype)

        ok, qty = try_parse_float(line.get("qty"))
        if not ok or qty <= 0:
            raise ValidationError(f"Line {idx}: quantity must be greater than zero.")
        ensure_whole_base_qty(uom, base_unit_for_type(ptype), qty)

        list_price = price_for_uom(variant, ptype, uom)
        base_qty = to_base_qty(variant, ptype, uom, qty)
        if base_qty <= 0:
            raise ValidationError(
                f"Line {idx}: {qty:g} {uom} is less than 0.001 {base_unit_for_type(ptype)} "
                "(check the variant's dimensions)."
            )

        # cost per transacted unit, so cost_at_sale × qty is the line cost in either unit
        unit_cost = round_money((variant["cost_price"] or 0) * convert(variant, ptype, uom, "base", 1))

        unit_price = list_price
        if line.get("unit_price") is not None:
            unit_price = self._amount(line["unit_price"], f"Line {idx}: unit price")
        if line.get("line_total") is not None:
            line_total = self._amount(line["line_total"], f"Line {idx}: line total")
        else:
            line_total = round_money(unit_price * qty)

        return PreparedLine(
            variant_id=int(variant["id"]),
            sku=variant["sku"],
            product_name=variant["product_name"],
            product_type=ptype,
            variant_label=variant_label(variant),
            uom=uom,
            qty=quantize_qty(qty),
            base_qty=base_qty,
            unit_price=unit_price,
            line_total=line_total,
            cost_at_sale=unit_cost,
            width_in=variant["width_in"],
            height_in=variant["height_in"],
            rod_length_ft=variant["rod_length_ft"],
            pipe_length_ft=variant["pipe_length_ft"],
        )

    def _check_stock(self, prepared: Sequence[PreparedLine]) -> None:
        """Σ base_qty per variant across all lines against on_hand, before any write."""
        need: dict[int, float] = {}
        sku: dict[int, str | None] = {}
        for p in prepared:
            need[p.variant_id] = need.get(p.variant_id, 0.0) + p.base_qty
            sku[p.variant_id] = p.sku
        for variant_id, qty in need.items():
            available = InventoryRepo(self.conn).on_hand(variant_id)
            if qty > available + QTY_EPSILON:
                raise InsufficientStockError(
                    sku[variant_id] or f"variant #{variant_id}",
                    requested=round(qty, 3),
                    available=available,
                )

    # --------------------------- mutations ---------------------------

    def create_invoice(
        self,
        lines: Sequence[Mapping[str, Any]],
        customer: Optional[Mapping[str, Any]] = None,
        discount: Any = 0,
        paid_amount: Any = 0,
        *,
        invoice_date: Optional[str] = None,
        invoice_no: Optional[str] = None,
        remark: Optional[str] = None,
        shop: Optional[Mapping[str, Any]] = None,
    ) -> dict:
        """
        Create a sale.

        Each line is a mapping with `variant_id`, `qty` and optionally `uom`
        ('base', 'alt' or a unit name), `unit_price` and `line_total`. A
        supplied line total is trusted as-is (negotiated price); otherwise it
        is unit_price × qty rounded to cents.

        Raises ValidationError, NotFoundError, ConfigurationError,
        InsufficientStockError or DuplicateKeyError; nothing is written when
        any of them is raised.
        """
        if not lines:
            raise ValidationError("Invoice needs at least one line item.")
        discount_v = self._amount(discount, "Discount")
        paid_v = self._amount(paid_amount, "Paid amount")
        try:
            created_at, day = stamp_for(invoice_date)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        shop = shop or {}

        inventory = InventoryRepo(self.conn)
        with immediate_tx(self.conn):
            prepared = [self._prepare_line(i, ln) for i, ln in enumerate(lines, start=1)]
            self._check_stock(prepared)

            subtotal = round_money(sum(p.line_total for p in prepared))
            grand_total = round_money(subtotal - discount_v)
            if paid_v > max(grand_total, 0.0) + PAYMENT_EPSILON:
                raise ValidationError(
                    f"Paid amount {paid_v:.2f} exceeds the grand total {grand_total:.2f}."
                )
            status = derive_status(paid_v, grand_total)

            customer_id = CustomersRepo(self.conn).resolve(customer)
            number = (invoice_no or "").strip() or next_doc_no(self.conn, PREFIX_INVOICE, day)

            cur = self.conn.execute(
                """
                INSERT INTO invoices(
                    invoice_no, customer_id, subtotal, discount_bdt, grand_total,
                    paid_amount, status, remark, shop_name, shop_address, shop_phone, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    number, customer_id, subtotal, discount_v, grand_total, paid_v, status,
                    (remark or "").strip() or None,
                    shop.get("name"), shop.get("address"), shop.get("phone"),
                    created_at,
                ),
            )
            invoice_id = int(cur.lastrowid)

            for p in prepared:
                self.conn.execute(
                    """
                    INSERT INTO invoice_items(
                        invoice_id, variant_id, sku, product_name, product_type, variant_label,
                        uom, qty, base_qty, unit_price, line_total, cost_at_sale,
                        width_in, height_in, rod_length_ft, pipe_length_ft
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        invoice_id, p.variant_id, p.sku, p.product_name, p.product_type,
                        p.variant_label, p.uom, p.qty, p.base_qty, p.unit_price,
                        p.line_total, p.cost_at_sale,
                        p.width_in, p.height_in, p.rod_length_ft, p.pipe_length_ft,
                    ),
                )
                inventory.decrement_for_sale(p.variant_id, p.base_qty, p.sku)

        _log.info(
            "Invoice %s created: %d line(s), grand %.2f, paid %.2f (%s)",
            number, len(prepared), grand_total, paid_v, status,
        )
        return self.get_invoice(invoice_id)

    # --------------------------- queries ---------------------------

    def get_header(self, invoice_id: int) -> dict:
        row = self.conn.execute(INVOICE_SELECT + " WHERE i.id=?", (invoice_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Invoice {invoice_id} not found.")
        return with_due(row)

    def get_items(self, invoice_id: int) -> list[dict]:
        rows = self.conn.execute(
            ITEM_SELECT + " WHERE ii.invoice_id=? ORDER BY ii.id", (invoice_id,)
        ).fetchall()
        return [dict(r) for r in rows]

    def get_invoice(self, invoice_id: int) -> dict:
        """Header + customer + items, with refund_total, revised_grand_total and due."""
        inv = self.get_header(invoice_id)
        inv["items"] = self.get_items(invoice_id)
        return inv

    def get_by_number(self, invoice_no: str) -> dict:
        row = self.conn.execute(
            "SELECT id FROM invoices WHERE invoice_no=?", ((invoice_no or "").strip(),)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Invoice {invoice_no} not found.")
        return self.get_invoice(int(row["id"]))

    def list_invoices(
        self,
        q: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        """Newest first; `q` matches invoice number, customer name or phone."""
        where, params = date_filters("i.created_at", date_from, date_to)
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            where.append("(i.invoice_no LIKE ? OR COALESCE(c.name,'') LIKE ? OR COALESCE(c.phone,'') LIKE ?)")
            params += [pattern, pattern, pattern]
        sql = INVOICE_SELECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY i.created_at DESC, i.id DESC"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [int(limit), int(offset)]
        return [with_due(r) for r in self.conn.execute(sql, params).fetchall()]
