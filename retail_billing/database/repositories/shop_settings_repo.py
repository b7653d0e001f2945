from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...config import SHOP_STATE


@dataclass
class ShopSettings:
    shop_name: str
    state: str | None = None
    gstin: str | None = None
    address: str | None = None
    phone: str | None = None


class ShopSettingsRepo:
    """Single-row shop profile; the state decides intra vs inter-state GST."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self) -> ShopSettings:
        row = self.conn.execute(
            "SELECT shop_name, state, gstin, address, phone FROM shop_settings WHERE shop_id = 1"
        ).fetchone()
        if row is None:
            return ShopSettings(shop_name="", state=SHOP_STATE)
        s = ShopSettings(**row)
        if not (s.state or "").strip():
            s.state = SHOP_STATE
        return s

    def update(
        self,
        *,
        shop_name: str,
        state: str | None = None,
        gstin: str | None = None,
        address: str | None = None,
        phone: str | None = None,
    ) -> None:
        self.conn.execute(
            """
            INSERT INTO shop_settings(shop_id, shop_name, state, gstin, address, phone)
            VALUES (1, ?, ?, ?, ?, ?)
            ON CONFLICT(shop_id) DO UPDATE SET
                shop_name = excluded.shop_name,
                state     = excluded.state,
                gstin     = excluded.gstin,
                address   = excluded.address,
                phone     = excluded.phone
            """,
            (shop_name, state, gstin, address, phone),
        )
