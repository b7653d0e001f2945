from __future__ import annotations

"""
Stock adjustment engine.

Every change to skus.quantity / skus.length_metres goes through this repo and
appends one immutable inventory_logs row (previous value, new value, change
type, reference invoice, actor, notes).

Deductions are a single guarded UPDATE (... WHERE stock >= amount) so the
availability check and the write are the same statement; there is no stale
read to race against. Per-unit SKUs move `quantity` (whole units), per-length
SKUs move `length_metres`; the other column is never touched.

All methods run inside `transaction(conn)`; when the caller already holds a
transaction (invoice completion, cancellation, returns) they join it.
"""

from dataclasses import dataclass
import logging
import math
import sqlite3
from typing import Optional

from ...constants import QTY_EPS, STOCK_CHANGE_TYPES
from ...errors import InsufficientStock, ValidationError
from ...utils.validators import is_whole_number
from .. import transaction

_log = logging.getLogger(__name__)

_LENGTH_PLACES = 6


@dataclass(frozen=True)
class StockChange:
    sku_id: int
    price_type: str
    previous: float
    new: float
    log_id: int


@dataclass
class StockLog:
    log_id: int
    sku_id: int
    previous_quantity: Optional[int]
    new_quantity: Optional[int]
    previous_length: Optional[float]
    new_length: Optional[float]
    change_type: str
    reference_id: Optional[int]
    changed_by: Optional[str]
    notes: Optional[str]
    created_at: str


class StockRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def _sku_row(self, sku_id: int) -> sqlite3.Row:
        row = self.conn.execute(
            "SELECT sku_id, name, price_type, quantity, CAST(length_metres AS REAL) AS length_metres "
            "FROM skus WHERE sku_id = ?",
            (sku_id,),
        ).fetchone()
        if row is None:
            raise ValidationError(f"Unknown SKU: {sku_id!r}")
        return row

    @staticmethod
    def _level(row: sqlite3.Row) -> float:
        if row["price_type"] == "per_length":
            return float(row["length_metres"] or 0.0)
        return float(row["quantity"] or 0)

    def available(self, sku_id: int) -> float:
        """Current stock in the SKU's own unit (pieces or metres)."""
        return self._level(self._sku_row(sku_id))

    def list_logs(self, sku_id: int | None = None, limit: int = 200) -> list[StockLog]:
        sql = (
            "SELECT log_id, sku_id, previous_quantity, new_quantity, "
            "CAST(previous_length AS REAL) AS previous_length, CAST(new_length AS REAL) AS new_length, "
            "change_type, reference_id, changed_by, notes, created_at "
            "FROM inventory_logs "
        )
        params: tuple = ()
        if sku_id is not None:
            sql += "WHERE sku_id = ? "
            params = (sku_id,)
        sql += "ORDER BY log_id LIMIT ?"
        rows = self.conn.execute(sql, params + (int(limit),)).fetchall()
        return [StockLog(**r) for r in rows]

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _check_amount(row: sqlite3.Row, amount, *, allow_zero: bool = False) -> float:
        try:
            a = float(amount)
        except (TypeError, ValueError):
            raise ValidationError(f"{row['name']}: stock amount is not a number.")
        if not math.isfinite(a) or a < 0 or (a == 0 and not allow_zero):
            raise ValidationError(f"{row['name']}: stock amount must be positive.")
        if row["price_type"] == "per_unit" and not is_whole_number(a):
            raise ValidationError(f"{row['name']}: quantity must be a whole number.")
        return a

    def _append_log(
        self,
        row: sqlite3.Row,
        previous: float,
        new: float,
        *,
        change_type: str,
        reference_id: int | None,
        actor: str | None,
        notes: str | None,
    ) -> int:
        if change_type not in STOCK_CHANGE_TYPES:
            raise ValidationError(f"Unknown stock change type: {change_type!r}")
        if row["price_type"] == "per_length":
            values = (None, None, previous, new)
        else:
            values = (int(previous), int(new), None, None)
        cur = self.conn.execute(
            """
            INSERT INTO inventory_logs(
                sku_id, previous_quantity, new_quantity, previous_length, new_length,
                change_type, reference_id, changed_by, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (row["sku_id"], *values, change_type, reference_id, actor, notes),
        )
        return int(cur.lastrowid)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def deduct(
        self,
        sku_id: int,
        amount,
        *,
        change_type: str = "sale_deduction",
        reference_id: int | None = None,
        actor: str | None = None,
        notes: str | None = None,
    ) -> StockChange:
        """
        Remove `amount` from stock, or raise InsufficientStock with the
        available vs required figures. Nothing is written on failure.
        """
        with transaction(self.conn):
            row = self._sku_row(sku_id)
            a = self._check_amount(row, amount)
            if row["price_type"] == "per_length":
                cur = self.conn.execute(
                    f"""
                    UPDATE skus
                       SET length_metres = MAX(0, ROUND(CAST(length_metres AS REAL) - ?, {_LENGTH_PLACES}))
                     WHERE sku_id = ? AND CAST(length_metres AS REAL) + ? >= ?
                    """,
                    (a, sku_id, QTY_EPS, a),
                )
            else:
                cur = self.conn.execute(
                    "UPDATE skus SET quantity = quantity - ? WHERE sku_id = ? AND quantity >= ?",
                    (int(a), sku_id, int(a)),
                )
            if cur.rowcount != 1:
                available = self._level(row)
                _log.warning("insufficient stock sku=%s available=%s required=%s", sku_id, available, a)
                raise InsufficientStock(sku_id, available, a, sku_name=row["name"])

            new = self._level(self._sku_row(sku_id))
            previous = self._level(row)
            log_id = self._append_log(
                row, previous, new,
                change_type=change_type, reference_id=reference_id, actor=actor, notes=notes,
            )
        return StockChange(sku_id, row["price_type"], previous, new, log_id)

    def restore(
        self,
        sku_id: int,
        amount,
        *,
        change_type: str = "cancellation_restore",
        reference_id: int | None = None,
        actor: str | None = None,
        notes: str | None = None,
    ) -> StockChange:
        """Put `amount` back (cancellation, return restock, purchase receipt)."""
        with transaction(self.conn):
            row = self._sku_row(sku_id)
            a = self._check_amount(row, amount)
            if row["price_type"] == "per_length":
                self.conn.execute(
                    f"UPDATE skus SET length_metres = ROUND(CAST(length_metres AS REAL) + ?, {_LENGTH_PLACES}) "
                    "WHERE sku_id = ?",
                    (a, sku_id),
                )
            else:
                self.conn.execute("UPDATE skus SET quantity = quantity + ? WHERE sku_id = ?", (int(a), sku_id))
            new = self._level(self._sku_row(sku_id))
            previous = self._level(row)
            log_id = self._append_log(
                row, previous, new,
                change_type=change_type, reference_id=reference_id, actor=actor, notes=notes,
            )
        return StockChange(sku_id, row["price_type"], previous, new, log_id)

    def _set_level(self, sku_id: int, value, *, change_type: str, actor: str | None, notes: str | None) -> StockChange:
        with transaction(self.conn):
            row = self._sku_row(sku_id)
            v = self._check_amount(row, value, allow_zero=True)
            if row["price_type"] == "per_length":
                self.conn.execute(
                    "UPDATE skus SET length_metres = ? WHERE sku_id = ?",
                    (round(v, _LENGTH_PLACES), sku_id),
                )
            else:
                self.conn.execute("UPDATE skus SET quantity = ? WHERE sku_id = ?", (int(v), sku_id))
            previous = self._level(row)
            new = self._level(self._sku_row(sku_id))
            log_id = self._append_log(
                row, previous, new,
                change_type=change_type, reference_id=None, actor=actor, notes=notes,
            )
        _log.info("stock %s sku=%s %s -> %s", change_type, sku_id, previous, new)
        return StockChange(sku_id, row["price_type"], previous, new, log_id)

    def set_stock(self, sku_id: int, value, *, actor: str | None = None, notes: str | None = None) -> StockChange:
        """Manual stock edit (counted on the shelf)."""
        return self._set_level(sku_id, value, change_type="manual_update", actor=actor, notes=notes)

    def set_opening_stock(
        self, sku_id: int, value, *, actor: str | None = None, notes: str | None = None
    ) -> StockChange:
        return self._set_level(sku_id, value, change_type="opening_stock", actor=actor, notes=notes)
