# pos_inventory/modules/returns/model.py
from PySide6.QtCore import Qt
from PySide6.QtGui import QColor

from ...utils.helpers import fmt_money, fmt_qty
from ..table_model import RowsTableModel


def _exhausted(r) -> bool:
    return float(r["remaining_base_qty"]) <= 0


class ReturnableItemsModel(RowsTableModel):
    """
    Lines of an invoice as returned by ReturnsRepo.prepare_return(), with the
    base-unit balances. Fully returned lines are greyed out and cannot be picked.
    """
    HEADERS = ["#", "Product", "Variant", "Sold", "Unit", "Returned", "Remaining", "Base Unit"]
    NUMERIC_COLUMNS = (3, 5, 6)

    def display(self, r, column):
        return [
            None,
            r["product_name"],
            r["variant_label"],
            fmt_qty(r["qty"]),
            r["uom"],
            fmt_qty(r["already_returned_base_qty"]),
            fmt_qty(r["remaining_base_qty"]),
            r["base_unit"],
        ][column]

    def data(self, idx, role=Qt.DisplayRole):
        if idx.isValid() and role == Qt.ForegroundRole:
            return QColor(Qt.gray) if _exhausted(self._rows[idx.row()]) else None
        return super().data(idx, role)

    def flags(self, idx):
        if not idx.isValid() or _exhausted(self._rows[idx.row()]):
            return Qt.NoItemFlags
        return Qt.ItemIsEnabled | Qt.ItemIsSelectable


class ReturnItemsModel(RowsTableModel):
    HEADERS = ["#", "Product", "Qty", "Unit", "Rate", "Refund", "Override"]
    NUMERIC_COLUMNS = (2, 4, 5)

    def display(self, r, column):
        return [
            None,
            r["product_name"],
            fmt_qty(r["qty"]),
            r["uom"],
            fmt_money(r["effective_rate"]),
            fmt_money(r["refund_amount"]),
            "Yes" if r["refund_override"] is not None else "",
        ][column]
