# retail_billing/modules/inventory/service.py
from __future__ import annotations

import sqlite3
from typing import Callable, Optional

from ...database.repositories.skus_repo import SKU, SkusRepo
from ...database.repositories.stock_repo import StockLog, StockRepo
from ..results import StockResult, require, run_action


class StockService:
    """Manual and opening stock edits, gated by the stock_edit permission."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        can: Optional[Callable[[str], bool]] = None,
        user: Optional[str] = None,
    ):
        self.conn = conn
        self.can = can
        self.user = user
        self.stock = StockRepo(conn)
        self.skus = SkusRepo(conn)

    def set_stock(self, sku_id: int, value, notes: Optional[str] = None) -> StockResult:
        def _do() -> StockResult:
            require(self.can, "stock_edit")
            ch = self.stock.set_stock(sku_id, value, actor=self.user, notes=notes)
            return StockResult(success=True, id=ch.log_id, message="Stock updated.", previous=ch.previous, new=ch.new)

        return run_action(StockResult, "set_stock", _do)

    def set_opening_stock(self, sku_id: int, value, notes: Optional[str] = None) -> StockResult:
        def _do() -> StockResult:
            require(self.can, "stock_edit")
            ch = self.stock.set_opening_stock(sku_id, value, actor=self.user, notes=notes)
            return StockResult(
                success=True, id=ch.log_id, message="Opening stock set.", previous=ch.previous, new=ch.new
            )

        return run_action(StockResult, "set_opening_stock", _do)

    def history(self, sku_id: int) -> list[StockLog]:
        return self.stock.list_logs(sku_id)

    def low_stock(self) -> list[SKU]:
        return self.skus.low_stock()
