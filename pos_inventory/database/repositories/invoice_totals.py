# pos_inventory/database/repositories/invoice_totals.py
"""Money rules shared by the invoice, return, due and report queries."""
from __future__ import annotations

from typing import Optional, Tuple

from ...constants import STATUS_PAID, STATUS_PARTIAL, STATUS_UNPAID
from ...utils.helpers import round_money

# refunds per invoice, joined as a scalar subquery on alias `i`
REFUND_TOTAL_SQL = (
    "COALESCE((SELECT SUM(CAST(r.subtotal_refund AS REAL)) "
    "FROM returns r WHERE r.invoice_id = i.id), 0.0)"
)


def derive_status(paid: float, grand_total: float) -> str:
    """PAID if paid >= grand, PARTIAL if 0 < paid < grand, else UNPAID."""
    if paid >= grand_total:
        return STATUS_PAID
    if paid > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID


def compute_due(subtotal: float, discount: float, refund_total: float, paid: float) -> Tuple[float, float]:
    """
    Returns (effective_grand, due):

        effective_grand = subtotal - discount - refund_total
        due             = max(0, round2(effective_grand - paid))
    """
    effective_grand = round_money(float(subtotal) - float(discount) - float(refund_total))
    due = max(0.0, round_money(effective_grand - float(paid)))
    return effective_grand, due


def date_filters(column: str, date_from: Optional[str], date_to: Optional[str]) -> Tuple[list, list]:
    """WHERE fragments for an inclusive YYYY-MM-DD range on a timestamp column."""
    where, params = [], []
    if date_from:
        where.append(f"substr({column}, 1, 10) >= ?")
        params.append(str(date_from)[:10])
    if date_to:
        where.append(f"substr({column}, 1, 10) <= ?")
        params.append(str(date_to)[:10])
    return where, params
