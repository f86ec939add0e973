from __future__ import annotations
from dataclasses import dataclass, asdict
import sqlite3
from typing import Any, Mapping

from ...errors import NotFoundError, ValidationError
from ..tx import immediate_tx


@dataclass
class Customer:
    id: int | None
    name: str | None
    phone: str | None
    address: str | None

    def as_dict(self) -> dict:
        return asdict(self)


class CustomersRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: Any) -> str | None:
        if s is None:
            return None
        s = str(s).strip()
        return s or None

    # ---- Queries ----------------------------------------------------------

    def get(self, customer_id: int) -> Customer | None:
        r = self.conn.execute(
            "SELECT id, name, phone, address FROM customers WHERE id=?",
            (customer_id,),
        ).fetchone()
        return Customer(**r) if r else None

    def get_by_phone(self, phone: str) -> Customer | None:
        phone_n = self._normalize_text(phone)
        if phone_n is None:
            return None
        r = self.conn.execute(
            "SELECT id, name, phone, address FROM customers WHERE phone=?",
            (phone_n,),
        ).fetchone()
        return Customer(**r) if r else None

    def search(self, term: str = "", limit: int = 50) -> list[Customer]:
        """
        Matches name, phone or address with LIKE; newest first.
        """
        pattern = f"%{(term or '').strip()}%"
        rows = self.conn.execute(
            "SELECT id, name, phone, address "
            "FROM customers "
            "WHERE COALESCE(name,'') LIKE ? OR COALESCE(phone,'') LIKE ? OR COALESCE(address,'') LIKE ? "
            "ORDER BY id DESC LIMIT ?",
            (pattern, pattern, pattern, int(limit)),
        ).fetchall()
        return [Customer(**r) for r in rows]

    # ---- Mutations --------------------------------------------------------

    def upsert_by_phone(self, phone: str, name: str | None = None, address: str | None = None) -> int:
        """
        Phone is the natural key. An existing customer's name/address are
        refreshed only when new values are supplied. Runs in the caller's
        transaction.
        """
        phone_n = self._normalize_text(phone)
        if phone_n is None:
            raise ValidationError("Phone cannot be empty.")
        self.conn.execute(
            """
            INSERT INTO customers(name, phone, address) VALUES (?, ?, ?)
            ON CONFLICT(phone) DO UPDATE SET
              name    = COALESCE(excluded.name, customers.name),
              address = COALESCE(excluded.address, customers.address)
            """,
            (self._normalize_text(name), phone_n, self._normalize_text(address)),
        )
        row = self.conn.execute("SELECT id FROM customers WHERE phone=?", (phone_n,)).fetchone()
        return int(row["id"])

    def resolve(self, customer: Mapping[str, Any] | None) -> int | None:
        """
        Customer id for a sale:
          - phone given        -> upsert by phone
          - name/address only  -> plain insert
          - nothing            -> None (walk-in)
        """
        if not customer:
            return None
        name = self._normalize_text(customer.get("name"))
        phone = self._normalize_text(customer.get("phone"))
        address = self._normalize_text(customer.get("address"))
        if phone:
            return self.upsert_by_phone(phone, name, address)
        if name or address:
            cur = self.conn.execute(
                "INSERT INTO customers(name, phone, address) VALUES (?, NULL, ?)",
                (name, address),
            )
            return int(cur.lastrowid)
        return None

    def create(self, name: str | None, phone: str | None, address: str | None = None) -> int:
        if self._normalize_text(name) is None and self._normalize_text(phone) is None:
            raise ValidationError("Name or phone is required.")
        with immediate_tx(self.conn):
            return self.resolve({"name": name, "phone": phone, "address": address})

    def update(self, customer_id: int, name: str | None, phone: str | None, address: str | None) -> None:
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                "UPDATE customers SET name=?, phone=?, address=? WHERE id=?",
                (
                    self._normalize_text(name),
                    self._normalize_text(phone),
                    self._normalize_text(address),
                    customer_id,
                ),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Customer {customer_id} not found.")
