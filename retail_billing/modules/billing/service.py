# retail_billing/modules/billing/service.py
from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Optional

from ...database import transaction
from ...database.repositories.invoices_repo import Invoice, InvoicesRepo
from ...database.repositories.ledger_repo import LedgerRepo
from ...database.repositories.shop_settings_repo import ShopSettingsRepo
from ...database.repositories.stock_repo import StockRepo
from ..payments.allocation import PaymentSplit, auto_split
from ..results import CancelResult, CompleteResult, DraftResult, require, run_action
from .session import BillingSession

_log = logging.getLogger(__name__)

_PERMISSION_BY_TYPE = {"sale": "sales_bill", "purchase": "purchase_bill"}


class BillingService:
    """
    Sales and purchase billing for one user session.

    `can` is the capability check of the signed-in user; None allows
    everything. Expected failures come back as results, never as exceptions;
    an unknown invoice id raises InvoiceNotFound.
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
        self.stock = StockRepo(conn)
        self.ledger = LedgerRepo(conn)
        self.invoices = InvoicesRepo(conn, stock=self.stock, ledger=self.ledger)
        self.settings = ShopSettingsRepo(conn)

    # ------------------------------------------------------------------
    def new_session(self, invoice_type: str = "sale") -> BillingSession:
        return BillingSession(invoice_type, shop_state=self.settings.get().state, user=self.user)

    def get_invoice(self, invoice_id: int) -> Invoice:
        return self.invoices.get(invoice_id)

    def suggest_split(
        self,
        invoice_id: int,
        *,
        cash: float = 0.0,
        upi: float = 0.0,
        card: float = 0.0,
    ) -> PaymentSplit:
        """Checkout default: party advance auto-applied, remainder as credit."""
        inv = self.invoices.get(invoice_id, with_items=False)
        party = inv.party
        advance = self.ledger.get_balances(*party).advance if party else 0.0
        return auto_split(
            inv.total_amount, cash=cash, upi=upi, card=card,
            advance_available=advance, has_party=party is not None,
        )

    # ------------------------------------------------------------------
    def create_draft(self, session: BillingSession) -> DraftResult:
        def _do() -> DraftResult:
            require(self.can, _PERMISSION_BY_TYPE[session.invoice_type])
            inv = self.invoices.create_draft(session.build_draft())
            return DraftResult(
                success=True,
                id=inv.invoice_id,
                message=f"Draft {inv.invoice_number} saved.",
                invoice_number=inv.invoice_number,
                total_amount=inv.total_amount,
            )

        return run_action(DraftResult, "create_draft", _do)

    def complete(self, invoice_id: int, split: PaymentSplit, confirm_overpay: bool = False) -> CompleteResult:
        def _do() -> CompleteResult:
            inv = self.invoices.get(invoice_id, with_items=False)
            require(self.can, _PERMISSION_BY_TYPE.get(inv.invoice_type, "sales_bill"))
            out = self.invoices.complete_invoice(
                invoice_id, split, confirm_overpay=confirm_overpay, actor=self.user
            )
            return self._complete_result(out)

        return run_action(CompleteResult, "complete", _do)

    def cancel(self, invoice_id: int) -> CancelResult:
        def _do() -> CancelResult:
            inv = self.invoices.get(invoice_id, with_items=False)
            require(self.can, _PERMISSION_BY_TYPE.get(inv.invoice_type, "sales_bill"))
            out = self.invoices.cancel_invoice(invoice_id, actor=self.user)
            return CancelResult(
                success=True,
                id=out.invoice_id,
                message=f"{out.invoice_number} cancelled and stock restored.",
                invoice_number=out.invoice_number,
                refund_due=out.refund_due,
                reversed_to_ledger=out.reversed_to_ledger,
            )

        return run_action(CancelResult, "cancel", _do)

    def quick_bill(self, session: BillingSession, split: PaymentSplit, confirm_overpay: bool = False) -> CompleteResult:
        """
        Create and complete in one transaction; a failed completion leaves no
        draft behind. The session is reset only on success.
        """
        def _do() -> CompleteResult:
            require(self.can, _PERMISSION_BY_TYPE[session.invoice_type])
            draft = session.build_draft()
            with transaction(self.conn):
                inv = self.invoices.create_draft(draft)
                out = self.invoices.complete_invoice(
                    inv.invoice_id, split, confirm_overpay=confirm_overpay, actor=self.user
                )
            session.reset()
            return self._complete_result(out)

        return run_action(CompleteResult, "quick_bill", _do)

    # ------------------------------------------------------------------
    @staticmethod
    def _complete_result(out) -> CompleteResult:
        return CompleteResult(
            success=True,
            id=out.invoice_id,
            message=f"{out.invoice_number} completed.",
            invoice_number=out.invoice_number,
            total_amount=out.total_amount,
            amount_paid=out.amount_paid,
            advance_used=out.advance_used,
            pending=out.pending,
            overpay=out.overpay,
            advance_created=out.advance_created,
        )
