from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...errors import ValidationError


@dataclass
class Customer:
    customer_id: int | None
    name: str
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    gstin: str | None = None
    outstanding_balance: float = 0.0
    advance_balance: float = 0.0


_COLS = (
    "customer_id, name, phone, city, state, gstin, "
    "CAST(outstanding_balance AS REAL) AS outstanding_balance, "
    "CAST(advance_balance AS REAL) AS advance_balance"
)


class CustomersRepo:
    """
    Customer master rows. Balance columns are written only by LedgerRepo;
    this repo never touches them.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        s = s.strip()
        return s or None

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if value is None or value.strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")

    # ---- Queries ----------------------------------------------------------

    def get(self, customer_id: int) -> Customer | None:
        row = self.conn.execute(
            f"SELECT {_COLS} FROM customers WHERE customer_id = ? AND is_deleted = 0",
            (customer_id,),
        ).fetchone()
        return Customer(**row) if row else None

    def list_customers(self) -> list[Customer]:
        rows = self.conn.execute(
            f"SELECT {_COLS} FROM customers WHERE is_deleted = 0 ORDER BY customer_id DESC"
        ).fetchall()
        return [Customer(**r) for r in rows]

    def search(self, term: str) -> list[Customer]:
        """LIKE match on name and phone."""
        pattern = f"%{term.strip()}%"
        rows = self.conn.execute(
            f"SELECT {_COLS} FROM customers "
            "WHERE is_deleted = 0 AND (name LIKE ? OR phone LIKE ?) "
            "ORDER BY customer_id DESC",
            (pattern, pattern),
        ).fetchall()
        return [Customer(**r) for r in rows]

    def with_dues(self) -> list[Customer]:
        rows = self.conn.execute(
            f"SELECT {_COLS} FROM customers "
            "WHERE is_deleted = 0 AND CAST(outstanding_balance AS REAL) > 0 "
            "ORDER BY CAST(outstanding_balance AS REAL) DESC"
        ).fetchall()
        return [Customer(**r) for r in rows]

    # ---- Mutations --------------------------------------------------------

    def create(
        self,
        name: str,
        phone: str | None = None,
        *,
        city: str | None = None,
        state: str | None = None,
        gstin: str | None = None,
    ) -> int:
        name = self._normalize_text(name)
        self._ensure_non_empty(name, "Customer name")
        cur = self.conn.execute(
            "INSERT INTO customers(name, phone, city, state, gstin) VALUES (?, ?, ?, ?, ?)",
            (
                name,
                self._normalize_text(phone),
                self._normalize_text(city),
                self._normalize_text(state),
                self._normalize_text(gstin),
            ),
        )
        return int(cur.lastrowid)

    def update(
        self,
        customer_id: int,
        *,
        name: str,
        phone: str | None = None,
        city: str | None = None,
        state: str | None = None,
        gstin: str | None = None,
    ) -> None:
        name = self._normalize_text(name)
        self._ensure_non_empty(name, "Customer name")
        self.conn.execute(
            "UPDATE customers SET name=?, phone=?, city=?, state=?, gstin=? WHERE customer_id=?",
            (
                name,
                self._normalize_text(phone),
                self._normalize_text(city),
                self._normalize_text(state),
                self._normalize_text(gstin),
                customer_id,
            ),
        )

    def soft_delete(self, customer_id: int) -> None:
        """Hide a customer; ledger history stays intact."""
        self.conn.execute("UPDATE customers SET is_deleted = 1 WHERE customer_id = ?", (customer_id,))
