# pos_inventory/database/repositories/dues_repo.py
from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from ...constants import DUE_EPSILON, PAYMENT_EPSILON, PREFIX_RECEIPT, WALK_IN_CUSTOMER
from ...errors import ValidationError
from ...utils.helpers import round_money, stamp_for
from ...utils.validators import try_parse_float
from ..tx import immediate_tx
from .doc_numbers import next_doc_no
from .invoice_totals import compute_due, derive_status
from .invoices_repo import INVOICE_SELECT, InvoicesRepo, with_due

_log = logging.getLogger(__name__)


class DuesRepo:
    """
    Installments against an invoice's outstanding balance.

        due = max(0, subtotal - discount - Σ refunds - paid_amount)

    paid_amount holds what was paid at the counter plus every installment.
    A payment is validated against the due at the moment it is taken; a later
    refund that pushes payments above the new effective grand total is not
    re-validated, and the due simply reads 0.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---------------------------- queries ----------------------------

    def payments(self, invoice_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT id, invoice_id, CAST(amount AS REAL) AS amount, receipt_no, note, created_at
            FROM due_payments
            WHERE invoice_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (invoice_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_due_detail(self, invoice_id: int) -> dict:
        invoice = InvoicesRepo(self.conn).get_header(invoice_id)
        payments = self.payments(invoice_id)
        installments = round_money(sum(p["amount"] for p in payments))
        effective_grand, due = compute_due(
            invoice["subtotal"], invoice["discount_bdt"], invoice["refund_total"], invoice["paid_amount"]
        )
        customer = {
            "id": invoice["customer_id"],
            "name": invoice["customer_name"] or WALK_IN_CUSTOMER,
            "phone": invoice["customer_phone"] or "",
            "address": invoice["customer_address"] or "",
        }
        return {
            "invoice": invoice,
            "computed": {
                "refund_total": invoice["refund_total"],
                "grand_total": effective_grand,
                "due": due,
                "paid_at_sale": round_money(invoice["paid_amount"] - installments),
                "paid_installments": installments,
            },
            "payments": payments,
            "customer": customer,
            "remaining": due,
        }

    def list_dues(
        self,
        q: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[dict]:
        """Invoices (by invoice date) that still have something to collect, oldest first."""
        rows = InvoicesRepo(self.conn).list_invoices(q=q, date_from=date_from, date_to=date_to)
        dues = [r for r in rows if r["due"] > DUE_EPSILON]
        dues.sort(key=lambda r: (r["created_at"], r["id"]))
        return dues

    # ---------------------------- mutations ----------------------------

    def add_payment(
        self,
        invoice_id: int,
        amount: Any,
        note: Optional[str] = None,
        *,
        payment_date: Optional[str] = None,
    ) -> dict:
        """
        Take an installment. Rejects amount <= 0 and anything above the current
        due. Returns {receipt, invoice, remaining_after}.
        """
        ok, amt = try_parse_float(amount)
        if not ok:
            raise ValidationError("Amount must be a number.")
        amt = round_money(amt)
        if amt <= 0:
            raise ValidationError("Amount must be greater than zero.")
        try:
            created_at, day = stamp_for(payment_date)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        with immediate_tx(self.conn):
            invoice = InvoicesRepo(self.conn).get_header(invoice_id)
            effective_grand, due = compute_due(
                invoice["subtotal"], invoice["discount_bdt"], invoice["refund_total"], invoice["paid_amount"]
            )
            if amt > due + PAYMENT_EPSILON:
                raise ValidationError(f"Amount {amt:.2f} exceeds the remaining due {due:.2f}.")

            receipt_no = next_doc_no(self.conn, PREFIX_RECEIPT, day)
            cur = self.conn.execute(
                "INSERT INTO due_payments(invoice_id, amount, receipt_no, note, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (invoice_id, amt, receipt_no, (note or "").strip() or None, created_at),
            )
            payment_id = int(cur.lastrowid)

            new_paid = round_money(invoice["paid_amount"] + amt)
            self.conn.execute(
                """
                UPDATE invoices
                   SET paid_amount = ROUND(CAST(paid_amount AS REAL) + ?, 2),
                       status = ?
                 WHERE id = ?
                """,
                (amt, derive_status(new_paid, effective_grand), invoice_id),
            )
            receipt = dict(
                self.conn.execute(
                    "SELECT id, invoice_id, CAST(amount AS REAL) AS amount, receipt_no, note, created_at "
                    "FROM due_payments WHERE id=?",
                    (payment_id,),
                ).fetchone()
            )
            refreshed = with_due(
                self.conn.execute(INVOICE_SELECT + " WHERE i.id=?", (invoice_id,)).fetchone()
            )

        _log.info(
            "Payment %s on %s: %.2f, remaining %.2f",
            receipt_no, invoice["invoice_no"], amt, refreshed["due"],
        )
        return {"receipt": receipt, "invoice": refreshed, "remaining_after": refreshed["due"]}
