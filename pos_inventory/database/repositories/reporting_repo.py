# pos_inventory/database/repositories/reporting_repo.py
from __future__ import annotations

from collections import OrderedDict
import sqlite3
from typing import Any, Iterable, Mapping, Optional, Sequence

from ...constants import WALK_IN_CUSTOMER
from ...utils.helpers import quantize_qty, round_money
from ...utils.uom import convert
from .invoice_totals import date_filters
from .invoices_repo import ITEM_SELECT, InvoicesRepo

# SQLite's default limit on host parameters is 999 on older builds
_IN_CHUNK = 500


# ---------------------------------------------------------------------------
# Pure profit arithmetic
# ---------------------------------------------------------------------------

def line_gross_profit(line_total: float, cost_at_sale: float, qty: float) -> float:
    """line_total - cost_at_sale × qty (cost is per sold unit)."""
    return round_money(float(line_total) - float(cost_at_sale) * float(qty))


def apportion_discount(line_totals: Sequence[float], discount: float) -> list[float]:
    """
    Split an invoice discount across lines by revenue share
    (line_total / subtotal × discount). Shares are rounded to cents and the
    largest line absorbs the rounding remainder, so they always sum to the
    discount exactly. With no revenue to weigh by, the discount is split
    evenly and the last line takes the remainder.
    """
    n = len(line_totals)
    subtotal = sum(float(x) for x in line_totals)
    if n == 0 or not discount:
        return [0.0] * n
    if subtotal <= 0:
        shares = [round_money(float(discount) / n)] * n
        shares[-1] = round_money(float(discount) - sum(shares[:-1]))
        return shares
    shares = [round_money(float(lt) / subtotal * float(discount)) for lt in line_totals]
    biggest = max(range(n), key=lambda i: float(line_totals[i]))
    shares[biggest] = round_money(shares[biggest] + float(discount) - sum(shares))
    return shares


def returned_qty_in_sale_uom(
    variant: Mapping[str, Any],
    product_type: str,
    return_uom: str,
    return_qty: float,
    sale_uom: str,
) -> float:
    """The returned quantity restated in the unit the line was sold in."""
    if return_uom == sale_uom:
        return float(return_qty)
    return convert(variant, product_type, return_uom, sale_uom, return_qty)


def return_impact(refund_amount: float, cost_at_sale: float, qty_in_sale_uom: float) -> float:
    """Refund handed back minus the cost basis that came back into stock."""
    return round_money(float(refund_amount) - float(cost_at_sale) * float(qty_in_sale_uom))


def _chunks(ids: Sequence[int]) -> Iterable[Sequence[int]]:
    for i in range(0, len(ids), _IN_CHUNK):
        yield ids[i:i + _IN_CHUNK]


class ReportingRepo:
    """
    Read-only profit and sales figures.

    Date handling:
      • Profit reports filter invoices by invoice date; the returns impact of
        a listed invoice counts every return made against it, whenever it
        happened.
      • Sales summaries count refunds by the date of the return, so a window
        shows the money that actually went back out in that window.
      • Callers pass ISO 'YYYY-MM-DD' bounds, both inclusive.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ------------------------------------------------------------------
    # loaders
    # ------------------------------------------------------------------

    def _items_by_invoice(self, invoice_ids: Sequence[int]) -> dict[int, list[dict]]:
        out: dict[int, list[dict]] = {i: [] for i in invoice_ids}
        for chunk in _chunks(list(invoice_ids)):
            marks = ",".join("?" for _ in chunk)
            for r in self.conn.execute(
                ITEM_SELECT + f" WHERE ii.invoice_id IN ({marks}) ORDER BY ii.id", tuple(chunk)
            ).fetchall():
                out[int(r["invoice_id"])].append(dict(r))
        return out

    def _impacts_by_invoice(self, invoice_ids: Sequence[int]) -> dict[int, list[dict]]:
        """Every return line of the given invoices with its profit impact."""
        out: dict[int, list[dict]] = {i: [] for i in invoice_ids}
        for chunk in _chunks(list(invoice_ids)):
            marks = ",".join("?" for _ in chunk)
            rows = self.conn.execute(
                f"""
                SELECT r.invoice_id, r.return_no, r.created_at,
                       ri.id, ri.invoice_item_id, ri.uom,
                       CAST(ri.qty AS REAL)           AS qty,
                       CAST(ri.base_qty AS REAL)      AS base_qty,
                       CAST(ri.refund_amount AS REAL) AS refund_amount,
                       ii.uom AS sale_uom, ii.product_type, ii.product_name,
                       CAST(ii.cost_at_sale AS REAL)  AS cost_at_sale,
                       ii.width_in, ii.height_in, ii.rod_length_ft, ii.pipe_length_ft
                FROM return_items ri
                JOIN returns r        ON r.id = ri.return_id
                JOIN invoice_items ii ON ii.id = ri.invoice_item_id
                WHERE r.invoice_id IN ({marks})
                ORDER BY ri.id
                """,
                tuple(chunk),
            ).fetchall()
            for r in rows:
                d = dict(r)
                qty_sale = returned_qty_in_sale_uom(d, d["product_type"], d["uom"], d["qty"], d["sale_uom"])
                d["qty_in_sale_uom"] = quantize_qty(qty_sale)
                d["impact"] = return_impact(d["refund_amount"], d["cost_at_sale"], qty_sale)
                out[int(d["invoice_id"])].append(d)
        return out

    @staticmethod
    def _invoice_profit(invoice: Mapping[str, Any], items: Sequence[dict], impacts: Sequence[dict]) -> dict:
        shares = apportion_discount([it["line_total"] for it in items], invoice["discount_bdt"])
        lines = []
        for it, share in zip(items, shares):
            gross = line_gross_profit(it["line_total"], it["cost_at_sale"], it["qty"])
            lines.append({
                **it,
                "line_gross_profit": gross,
                "share_discount": share,
                "line_net_profit": round_money(gross - share),
            })
        gross_profit = round_money(sum(ln["line_gross_profit"] for ln in lines))
        returns_impact = round_money(sum(x["impact"] for x in impacts))
        net_profit = round_money(sum(ln["line_net_profit"] for ln in lines) - returns_impact)
        return {
            "lines": lines,
            "gross_profit": gross_profit,
            "discount": round_money(invoice["discount_bdt"]),
            "refund_total": round_money(invoice["refund_total"]),
            "returns_impact": returns_impact,
            "net_profit": net_profit,
        }

    # ------------------------------------------------------------------
    # profit
    # ------------------------------------------------------------------

    def profit_detail(self, invoice_id: int) -> dict:
        """Per-line gross, discount share and net, plus the invoice's return impacts."""
        invoice = InvoicesRepo(self.conn).get_header(invoice_id)
        items = self._items_by_invoice([invoice_id])[invoice_id]
        impacts = self._impacts_by_invoice([invoice_id])[invoice_id]
        out = self._invoice_profit(invoice, items, impacts)
        out["invoice"] = invoice
        out["returns"] = impacts
        return out

    def profit_list(
        self,
        q: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> dict:
        """One row per invoice in the window plus a summary of the totals."""
        invoices = InvoicesRepo(self.conn).list_invoices(q=q, date_from=date_from, date_to=date_to)
        ids = [int(inv["id"]) for inv in invoices]
        items = self._items_by_invoice(ids)
        impacts = self._impacts_by_invoice(ids)

        rows = []
        for inv in invoices:
            p = self._invoice_profit(inv, items[inv["id"]], impacts[inv["id"]])
            rows.append({
                "id": inv["id"],
                "invoice_no": inv["invoice_no"],
                "created_at": inv["created_at"],
                "customer_name": inv["customer_name"] or WALK_IN_CUSTOMER,
                "subtotal": inv["subtotal"],
                "grand_total": inv["grand_total"],
                "gross_profit": p["gross_profit"],
                "discount": p["discount"],
                "refund_total": p["refund_total"],
                "returns_impact": p["returns_impact"],
                "net_profit": p["net_profit"],
            })
        summary = {
            "invoices": len(rows),
            "total_gross_profit": round_money(sum(r["gross_profit"] for r in rows)),
            "total_discount": round_money(sum(r["discount"] for r in rows)),
            "total_refund": round_money(sum(r["refund_total"] for r in rows)),
            "total_returns_impact": round_money(sum(r["returns_impact"] for r in rows)),
            "total_net_profit": round_money(sum(r["net_profit"] for r in rows)),
        }
        return {"rows": rows, "summary": summary}

    # ------------------------------------------------------------------
    # sales
    # ------------------------------------------------------------------

    def _refunds_between(self, date_from: Optional[str], date_to: Optional[str]) -> float:
        where, params = date_filters("r.created_at", date_from, date_to)
        sql = "SELECT COALESCE(SUM(CAST(r.subtotal_refund AS REAL)), 0.0) AS refunds FROM returns r"
        if where:
            sql += " WHERE " + " AND ".join(where)
        return round_money(self.conn.execute(sql, params).fetchone()["refunds"])

    def sales_summary(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> dict:
        where, params = date_filters("i.created_at", date_from, date_to)
        sql = """
            SELECT COUNT(*) AS invoices_count,
                   COALESCE(SUM(CAST(i.grand_total AS REAL)), 0.0)  AS revenue,
                   COALESCE(SUM(CAST(i.discount_bdt AS REAL)), 0.0) AS discount,
                   COALESCE(SUM(CAST(i.paid_amount AS REAL)), 0.0)  AS paid
            FROM invoices i
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        row = self.conn.execute(sql, params).fetchone()

        count = int(row["invoices_count"])
        revenue = round_money(row["revenue"])
        paid = round_money(row["paid"])
        refunds = self._refunds_between(date_from, date_to)
        net_revenue = round_money(revenue - refunds)
        return {
            "date_from": date_from,
            "date_to": date_to,
            "invoices_count": count,
            "revenue": revenue,
            "refunds": refunds,
            "net_revenue": net_revenue,
            "discount": round_money(row["discount"]),
            "paid": paid,
            "due": max(0.0, round_money(net_revenue - paid)),
            "avg_order_value": round_money(revenue / count) if count else 0.0,
        }

    def sales_daily(self, date_from: Optional[str] = None, date_to: Optional[str] = None) -> list[dict]:
        """Per calendar day; refunds land on the day of the return."""
        where, params = date_filters("i.created_at", date_from, date_to)
        sql = """
            SELECT substr(i.created_at, 1, 10) AS day,
                   COUNT(*) AS invoices_count,
                   COALESCE(SUM(CAST(i.grand_total AS REAL)), 0.0)  AS revenue,
                   COALESCE(SUM(CAST(i.discount_bdt AS REAL)), 0.0) AS discount,
                   COALESCE(SUM(CAST(i.paid_amount AS REAL)), 0.0)  AS paid
            FROM invoices i
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " GROUP BY day"

        days: dict[str, dict] = {}
        for r in self.conn.execute(sql, params).fetchall():
            days[r["day"]] = {
                "day": r["day"],
                "invoices_count": int(r["invoices_count"]),
                "revenue": round_money(r["revenue"]),
                "discount": round_money(r["discount"]),
                "paid": round_money(r["paid"]),
                "refunds": 0.0,
            }

        rwhere, rparams = date_filters("r.created_at", date_from, date_to)
        rsql = """
            SELECT substr(r.created_at, 1, 10) AS day,
                   COALESCE(SUM(CAST(r.subtotal_refund AS REAL)), 0.0) AS refunds
            FROM returns r
        """
        if rwhere:
            rsql += " WHERE " + " AND ".join(rwhere)
        rsql += " GROUP BY day"
        for r in self.conn.execute(rsql, rparams).fetchall():
            d = days.setdefault(r["day"], {
                "day": r["day"], "invoices_count": 0, "revenue": 0.0,
                "discount": 0.0, "paid": 0.0, "refunds": 0.0,
            })
            d["refunds"] = round_money(r["refunds"])

        out = []
        for day in sorted(days):
            d = days[day]
            d["net_revenue"] = round_money(d["revenue"] - d["refunds"])
            out.append(d)
        return out

    def sales_by_product(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        q: Optional[str] = None,
    ) -> list[dict]:
        """
        Per variant sold in the window: base units sold and returned, revenue,
        refunds against those lines, and gross profit. Highest revenue first.
        """
        where, params = date_filters("i.created_at", date_from, date_to)
        if q and q.strip():
            pattern = f"%{q.strip()}%"
            where.append("(ii.product_name LIKE ? OR ii.variant_label LIKE ? OR COALESCE(ii.sku,'') LIKE ?)")
            params += [pattern, pattern, pattern]
        sql = """
            SELECT ii.variant_id,
                   MAX(ii.sku)           AS sku,
                   MAX(ii.product_name)  AS product_name,
                   MAX(ii.product_type)  AS product_type,
                   MAX(ii.variant_label) AS variant_label,
                   COUNT(DISTINCT ii.invoice_id) AS invoices_count,
                   COALESCE(SUM(CAST(ii.base_qty AS REAL)), 0.0)   AS base_qty_sold,
                   COALESCE(SUM(CAST(ii.line_total AS REAL)), 0.0) AS revenue,
                   COALESCE(SUM(CAST(ii.line_total AS REAL)
                                - CAST(ii.cost_at_sale AS REAL) * CAST(ii.qty AS REAL)), 0.0) AS gross_profit,
                   COALESCE(SUM((SELECT SUM(CAST(ri.base_qty AS REAL)) FROM return_items ri
                                 WHERE ri.invoice_item_id = ii.id)), 0.0) AS base_qty_returned,
                   COALESCE(SUM((SELECT SUM(CAST(ri.refund_amount AS REAL)) FROM return_items ri
                                 WHERE ri.invoice_item_id = ii.id)), 0.0) AS refunds
            FROM invoice_items ii
            JOIN invoices i ON i.id = ii.invoice_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " GROUP BY ii.variant_id ORDER BY revenue DESC, ii.variant_id"

        out = []
        for r in self.conn.execute(sql, params).fetchall():
            d = dict(r)
            for key in ("revenue", "gross_profit", "refunds"):
                d[key] = round_money(d[key])
            d["base_qty_sold"] = quantize_qty(d["base_qty_sold"])
            d["base_qty_returned"] = quantize_qty(d["base_qty_returned"])
            d["net_revenue"] = round_money(d["revenue"] - d["refunds"])
            out.append(d)
        return out

    def sales_by_customer(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        q: Optional[str] = None,
    ) -> list[dict]:
        """Per customer (walk-in sales grouped together): revenue, refunds, paid and due."""
        invoices = InvoicesRepo(self.conn).list_invoices(q=q, date_from=date_from, date_to=date_to)
        groups: "OrderedDict[Any, dict]" = OrderedDict()
        for inv in invoices:
            key = inv["customer_id"]
            g = groups.get(key)
            if g is None:
                g = groups[key] = {
                    "customer_id": key,
                    "customer_name": inv["customer_name"] or WALK_IN_CUSTOMER,
                    "customer_phone": inv["customer_phone"] or "",
                    "invoices_count": 0,
                    "revenue": 0.0,
                    "refunds": 0.0,
                    "paid": 0.0,
                    "due": 0.0,
                }
            g["invoices_count"] += 1
            g["revenue"] += inv["grand_total"]
            g["refunds"] += inv["refund_total"]
            g["paid"] += inv["paid_amount"]
            g["due"] += inv["due"]

        out = []
        for g in groups.values():
            for key in ("revenue", "refunds", "paid", "due"):
                g[key] = round_money(g[key])
            g["net_revenue"] = round_money(g["revenue"] - g["refunds"])
            out.append(g)
        out.sort(key=lambda g: (-g["net_revenue"], g["customer_name"]))
        return out
