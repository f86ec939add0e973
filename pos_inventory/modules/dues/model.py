# pos_inventory/modules/dues/model.py
from ...constants import WALK_IN_CUSTOMER
from ...utils.helpers import fmt_money
from ..table_model import RowsTableModel


class DuesTableModel(RowsTableModel):
    """Open invoices from DuesRepo.list_dues(), largest due first."""

    HEADERS = ["Invoice", "Date", "Customer", "Phone", "Revised Total", "Paid", "Due"]
    NUMERIC_COLUMNS = (4, 5, 6)

    def display(self, r, column):
        return [
            r["invoice_no"],
            str(r["created_at"])[:10],
            r["customer_name"] or WALK_IN_CUSTOMER,
            r["customer_phone"] or "",
            fmt_money(r["revised_grand_total"]),
            fmt_money(r["paid_amount"]),
            fmt_money(r["due"]),
        ][column]

    def total_due(self) -> float:
        return sum(float(r["due"]) for r in self._rows)


class PaymentsModel(RowsTableModel):
    HEADERS = ["Receipt", "Date", "Amount", "Note"]
    NUMERIC_COLUMNS = (2,)

    def display(self, r, column):
        return [r["receipt_no"], str(r["created_at"])[:10], fmt_money(r["amount"]), r["note"] or ""][column]
