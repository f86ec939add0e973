# pos_inventory/modules/table_model.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from PySide6.QtCore import QAbstractTableModel, QModelIndex, Qt

RIGHT = Qt.AlignRight | Qt.AlignVCenter
LEFT = Qt.AlignLeft | Qt.AlignVCenter


class RowsTableModel(QAbstractTableModel):
    """
    Read-only table over a list of dict rows.

    Subclasses set HEADERS and implement `display(row, column)`; columns
    listed in NUMERIC_COLUMNS are right aligned. A "#" column shows the row
    number and never reaches `display`.
    """

    HEADERS: Sequence[str] = ()
    NUMERIC_COLUMNS: Sequence[int] = ()

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, parent=None) -> None:
        super().__init__(parent)
        self._rows: List[Dict[str, Any]] = list(rows or [])

    def set_rows(self, rows: Optional[List[Dict[str, Any]]]) -> None:
        self.beginResetModel()
        self._rows = list(rows or [])
        self.endResetModel()

    replace = set_rows

    def at(self, row: int) -> Dict[str, Any]:
        return self._rows[row]

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self.HEADERS)

    def headerData(self, section, orientation, role=Qt.DisplayRole):  # type: ignore[override]
        if role != Qt.DisplayRole:
            return None
        if orientation == Qt.Horizontal:
            return self.HEADERS[section] if section < len(self.HEADERS) else None
        return str(section + 1)

    def data(self, index: QModelIndex, role=Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        if role in (Qt.DisplayRole, Qt.EditRole):
            if self.HEADERS[index.column()] == "#":
                return index.row() + 1
            return self.display(self._rows[index.row()], index.column())
        if role == Qt.TextAlignmentRole:
            return RIGHT if index.column() in self.NUMERIC_COLUMNS else LEFT
        return None

    def display(self, row: Dict[str, Any], column: int) -> Any:
        raise NotImplementedError
