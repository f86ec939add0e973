# pos_inventory/modules/reporting/model.py
from __future__ import annotations

from ...utils.helpers import fmt_money, fmt_qty
from ..table_model import RowsTableModel


# ------------------------------ A) Profit per invoice ------------------------------

class ProfitTableModel(RowsTableModel):
    """Rows of ReportingRepo.profit_list()['rows']."""

    HEADERS = ("Invoice", "Date", "Customer", "Gross", "Discount", "Refund", "Return Impact", "Net Profit")
    NUMERIC_COLUMNS = (3, 4, 5, 6, 7)
    _MONEY = {3: "gross_profit", 4: "discount", 5: "refund_total", 6: "returns_impact", 7: "net_profit"}

    def display(self, row, column):
        if column == 0:
            return row.get("invoice_no", "")
        if column == 1:
            return str(row.get("created_at", ""))[:10]
        if column == 2:
            return row.get("customer_name", "")
        return fmt_money(row.get(self._MONEY[column]))

    def totals(self) -> dict:
        """Column sums for a footer row."""
        return {key: round(sum(float(r.get(key) or 0) for r in self._rows), 2) for key in self._MONEY.values()}


# ------------------------------ B) Profit per line ------------------------------

class ProfitLinesModel(RowsTableModel):
    """Lines of ReportingRepo.profit_detail()."""

    HEADERS = ("Product", "Qty", "Unit", "Line Total", "Cost/Unit", "Gross", "Discount Share", "Net")
    NUMERIC_COLUMNS = (1, 3, 4, 5, 6, 7)
    _MONEY = {3: "line_total", 4: "cost_at_sale", 5: "line_gross_profit", 6: "share_discount", 7: "line_net_profit"}

    def display(self, row, column):
        if column == 0:
            return f"{row.get('product_name', '')} {row.get('variant_label') or ''}".strip()
        if column == 1:
            return fmt_qty(row.get("qty"))
        if column == 2:
            return row.get("uom", "")
        return fmt_money(row.get(self._MONEY[column]))


# ------------------------------ C) Daily sales ------------------------------

class SalesDailyModel(RowsTableModel):
    """ReportingRepo.sales_daily(); refunds sit on the day they were paid out."""

    HEADERS = ("Day", "Invoices", "Revenue", "Refunds", "Net Revenue", "Paid")
    NUMERIC_COLUMNS = (1, 2, 3, 4, 5)
    _MONEY = {2: "revenue", 3: "refunds", 4: "net_revenue", 5: "paid"}

    def display(self, row, column):
        if column == 0:
            return row.get("day", "")
        if column == 1:
            return str(row.get("invoices_count", 0))
        return fmt_money(row.get(self._MONEY[column]))
