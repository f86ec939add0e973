# pos_inventory/modules/inventory/model.py
from __future__ import annotations

from ...utils.helpers import fmt_money, fmt_qty
from ...utils.uom import base_unit_for_type
from ..table_model import RowsTableModel


class LowStockTableModel(RowsTableModel):
    """
    Variants at or below their low-stock threshold (InventoryRepo.low_stock()).
    Stock is shown in the product type's base unit.
    """

    HEADERS = ("SKU", "Product", "Variant", "On Hand", "Threshold", "Unit")
    NUMERIC_COLUMNS = (3, 4)

    def display(self, r, column):
        return [
            r.get("sku") or "",
            r.get("product_name") or "",
            r.get("size_label") or r.get("color") or "",
            fmt_qty(r.get("on_hand")),
            fmt_qty(r.get("low_stock_threshold")),
            base_unit_for_type(r.get("product_type")),
        ][column]


class RestocksTableModel(RowsTableModel):
    """Restock log (InventoryRepo.list_restocks()); negative quantities are corrections."""

    HEADERS = ("ID", "Date", "Product", "SKU", "Qty", "Cost/Unit", "Note")
    NUMERIC_COLUMNS = (4, 5)

    def display(self, r, column):
        return [
            r.get("id"),
            str(r.get("created_at") or "")[:10],
            r.get("product_name") or "",
            r.get("sku") or "",
            f"{float(r.get('qty_base') or 0):+g}",
            fmt_money(r.get("cost_per_unit")),
            r.get("note") or "",
        ][column]
