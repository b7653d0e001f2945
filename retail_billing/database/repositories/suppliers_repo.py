from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...errors import ValidationError


@dataclass
class Supplier:
    supplier_id: int | None
    name: str
    phone: str | None = None
    state: str | None = None
    gstin: str | None = None
    outstanding_balance: float = 0.0
    advance_balance: float = 0.0


_COLS = (
    "supplier_id, name, phone, state, gstin, "
    "CAST(outstanding_balance AS REAL) AS outstanding_balance, "
    "CAST(advance_balance AS REAL) AS advance_balance"
)


class SuppliersRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, supplier_id: int) -> Supplier | None:
        row = self.conn.execute(
            f"SELECT {_COLS} FROM suppliers WHERE supplier_id = ?", (supplier_id,)
        ).fetchone()
        return Supplier(**row) if row else None

    def list_suppliers(self) -> list[Supplier]:
        rows = self.conn.execute(f"SELECT {_COLS} FROM suppliers ORDER BY name").fetchall()
        return [Supplier(**r) for r in rows]

    def search(self, term: str) -> list[Supplier]:
        pattern = f"%{term.strip()}%"
        rows = self.conn.execute(
            f"SELECT {_COLS} FROM suppliers WHERE name LIKE ? OR phone LIKE ? OR gstin LIKE ? ORDER BY name",
            (pattern, pattern, pattern),
        ).fetchall()
        return [Supplier(**r) for r in rows]

    def create(
        self,
        name: str,
        phone: str | None = None,
        *,
        state: str | None = None,
        gstin: str | None = None,
    ) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Supplier name cannot be empty.")
        cur = self.conn.execute(
            "INSERT INTO suppliers(name, phone, state, gstin) VALUES (?, ?, ?, ?)",
            (name, (phone or "").strip() or None, (state or "").strip() or None, (gstin or "").strip() or None),
        )
        return int(cur.lastrowid)
