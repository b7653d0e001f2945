# retail_billing/modules/returns/service.py
from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Iterable, Optional

from ...database.repositories.returns_repo import ReturnableItem, ReturnRequest, ReturnsRepo
from ..results import ReturnResult, require, run_action

_log = logging.getLogger(__name__)


class ReturnService:
    """
    Returns against completed sales.

    A positive to_advance on the result means the customer now holds credit;
    the caller offers to refund it (LedgerService.refund_advance) or keep it.
    """

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
        self.repo = ReturnsRepo(conn)

    def list_returnable(self, invoice_id: int) -> list[ReturnableItem]:
        return self.repo.get_returnable_items(invoice_id)

    def submit_return(
        self,
        invoice_id: int,
        items: Iterable[ReturnRequest | dict],
        notes: Optional[str] = None,
    ) -> ReturnResult:
        items = list(items)

        def _do() -> ReturnResult:
            require(self.can, "sales_bill")
            out = self.repo.process_return(invoice_id, items, notes, actor=self.user)
            return ReturnResult(
                success=True,
                id=out.return_invoice_id,
                message=f"Return {out.return_invoice_number} recorded.",
                return_invoice_number=out.return_invoice_number,
                return_amount=out.return_amount,
                applied_to_due=out.applied_to_due,
                to_advance=out.to_advance,
                refund_due=out.refund_due,
            )

        return run_action(ReturnResult, "submit_return", _do)
