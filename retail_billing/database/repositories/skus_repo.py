from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...constants import PRICE_TYPES
from ...errors import ValidationError
from ...modules.billing.gst import clamp_gst_rate


@dataclass
class SKU:
    sku_id: int | None
    sku_code: str
    name: str
    price_type: str               # 'per_unit' | 'per_length'
    fixed_price: float | None = None
    rate: float | None = None     # per metre
    cost_price: float | None = None
    gst_rate: float = 0.0
    hsn_code: str | None = None
    barcode: str | None = None
    quantity: int = 0
    length_metres: float = 0.0
    low_stock_threshold: float = 0.0

    @property
    def stock(self) -> float:
        return float(self.length_metres) if self.price_type == "per_length" else float(self.quantity)


_COLS = (
    "sku_id, sku_code, name, price_type, "
    "CAST(fixed_price AS REAL) AS fixed_price, CAST(rate AS REAL) AS rate, "
    "CAST(cost_price AS REAL) AS cost_price, CAST(gst_rate AS REAL) AS gst_rate, "
    "hsn_code, barcode, quantity, CAST(length_metres AS REAL) AS length_metres, "
    "CAST(low_stock_threshold AS REAL) AS low_stock_threshold"
)


class SkusRepo:
    """Keyed lookups and master data for SKUs. Stock columns belong to StockRepo."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, sku_id: int) -> SKU | None:
        row = self.conn.execute(f"SELECT {_COLS} FROM skus WHERE sku_id = ?", (sku_id,)).fetchone()
        return SKU(**row) if row else None

    def get_by_code(self, sku_code: str) -> SKU | None:
        row = self.conn.execute(
            f"SELECT {_COLS} FROM skus WHERE sku_code = ?", (sku_code.strip(),)
        ).fetchone()
        return SKU(**row) if row else None

    def get_by_barcode(self, barcode: str) -> SKU | None:
        row = self.conn.execute(
            f"SELECT {_COLS} FROM skus WHERE barcode = ?", (barcode.strip(),)
        ).fetchone()
        return SKU(**row) if row else None

    def search(self, term: str, limit: int = 50) -> list[SKU]:
        pattern = f"%{term.strip()}%"
        rows = self.conn.execute(
            f"SELECT {_COLS} FROM skus "
            "WHERE sku_code LIKE ? OR name LIKE ? OR barcode LIKE ? "
            "ORDER BY name LIMIT ?",
            (pattern, pattern, pattern, limit),
        ).fetchall()
        return [SKU(**r) for r in rows]

    def low_stock(self) -> list[SKU]:
        rows = self.conn.execute(
            f"SELECT {_COLS} FROM skus "
            "WHERE (price_type = 'per_unit' AND quantity <= low_stock_threshold) "
            "   OR (price_type = 'per_length' AND CAST(length_metres AS REAL) <= CAST(low_stock_threshold AS REAL)) "
            "ORDER BY name"
        ).fetchall()
        return [SKU(**r) for r in rows]

    def create(
        self,
        *,
        sku_code: str,
        name: str,
        price_type: str,
        fixed_price: float | None = None,
        rate: float | None = None,
        cost_price: float | None = None,
        gst_rate: float = 0.0,
        hsn_code: str | None = None,
        barcode: str | None = None,
        low_stock_threshold: float = 0.0,
    ) -> int:
        """
        Insert a SKU with zero stock. Opening stock goes through
        StockRepo.set_opening_stock so it is logged.
        """
        if not (sku_code or "").strip() or not (name or "").strip():
            raise ValidationError("SKU code and name are required.")
        if price_type not in PRICE_TYPES:
            raise ValidationError(f"Unknown price type {price_type!r}.")
        price = rate if price_type == "per_length" else fixed_price
        if price is None or float(price) <= 0:
            label = "Rate per metre" if price_type == "per_length" else "Price"
            raise ValidationError(f"{label} must be greater than zero.")
        try:
            cur = self.conn.execute(
                """
                INSERT INTO skus(sku_code, name, price_type, fixed_price, rate, cost_price,
                                 gst_rate, hsn_code, barcode, low_stock_threshold)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sku_code.strip(),
                    name.strip(),
                    price_type,
                    fixed_price if price_type == "per_unit" else None,
                    rate if price_type == "per_length" else None,
                    cost_price,
                    clamp_gst_rate(gst_rate),
                    hsn_code,
                    barcode,
                    low_stock_threshold,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"SKU code or barcode already exists: {sku_code}") from e
        return int(cur.lastrowid)
