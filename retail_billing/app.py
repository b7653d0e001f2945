# retail_billing/app.py
"""
Wiring for a running shop: one connection, one set of services per user.

    app = BillingApp.open()                       # data/retail_billing.db
    svc = app.for_user("cashier-1", can=perms.__contains__)
    session = svc.billing.new_session()
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import sqlite3
from typing import Callable, Optional

from .constants import APP_NAME
from .database import get_connection
from .modules.billing.service import BillingService
from .modules.inventory.service import StockService
from .modules.ledger.service import LedgerService
from .modules.returns.service import ReturnService
from .utils.loggers import get_logger


@dataclass
class UserServices:
    billing: BillingService
    returns: ReturnService
    ledger: LedgerService
    stock: StockService


class BillingApp:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.log = get_logger("retail_billing")

    @classmethod
    def open(cls, db_path: Path | str | None = None) -> "BillingApp":
        app = cls(get_connection(db_path))
        app.log.info("%s started (db=%s)", APP_NAME, db_path or "default")
        return app

    def for_user(self, user: Optional[str] = None, *, can: Optional[Callable[[str], bool]] = None) -> UserServices:
        return UserServices(
            billing=BillingService(self.conn, can=can, user=user),
            returns=ReturnService(self.conn, can=can, user=user),
            ledger=LedgerService(self.conn, can=can, user=user),
            stock=StockService(self.conn, can=can, user=user),
        )

    def close(self) -> None:
        self.conn.close()
