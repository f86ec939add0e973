# pos_inventory/modules/sales/model.py
from ...constants import WALK_IN_CUSTOMER
from ...utils.helpers import fmt_money, fmt_qty
from ..table_model import RowsTableModel


class InvoicesTableModel(RowsTableModel):
    HEADERS = ["Invoice", "Date", "Customer", "Total", "Refund", "Paid", "Due", "Status"]
    NUMERIC_COLUMNS = (3, 4, 5, 6)

    def display(self, r, column):
        return [
            r["invoice_no"],
            str(r["created_at"])[:10],
            r["customer_name"] or WALK_IN_CUSTOMER,
            fmt_money(r["grand_total"]),
            fmt_money(r["refund_total"]),
            fmt_money(r["paid_amount"]),
            fmt_money(r["due"]),
            r["status"],
        ][column]


class InvoiceItemsModel(RowsTableModel):
    HEADERS = ["#", "Product", "Variant", "Qty", "Unit", "Unit Price", "Line Total"]
    NUMERIC_COLUMNS = (3, 5, 6)

    def display(self, r, column):
        return [None, r["product_name"], r["variant_label"], fmt_qty(r["qty"]),
                r["uom"], fmt_money(r["unit_price"]), fmt_money(r["line_total"])][column]
