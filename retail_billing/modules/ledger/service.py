# retail_billing/modules/ledger/service.py
from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Optional

from ...database import transaction
from ...database.repositories.ledger_repo import LedgerRepo
from ...database.repositories.payments_repo import PaymentsRepo
from ...utils.helpers import fmt_money
from ..results import BalanceCheckResult, PaymentResult, require, run_action
from .reconciliation import BalanceDrift, LedgerRow, replay

_log = logging.getLogger(__name__)

_PERMISSION_BY_PARTY = {"customer": "receive_payment", "supplier": "pay_supplier"}


class LedgerService:
    """Party statements, standalone payments/refunds and balance checks."""

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
        self.ledger = LedgerRepo(conn)
        self.payments = PaymentsRepo(conn, ledger=self.ledger)

    # ---- statements ----
    def get_entries(self, party: str, party_id: int) -> list[LedgerRow]:
        """Entries in posting order, balances re-derived by replaying the fold."""
        return replay(self.ledger.list_entries(party, party_id))

    # ---- money ----
    def record_payment(
        self,
        party: str,
        party_id: int,
        amount: float,
        method: str = "cash",
        notes: Optional[str] = None,
    ) -> PaymentResult:
        def _do() -> PaymentResult:
            require(self.can, _PERMISSION_BY_PARTY.get(party, "receive_payment"))
            out = self.payments.record_payment(party, party_id, amount, method, notes, actor=self.user)
            _log.info("payment %s#%s %.2f via %s", party, party_id, out.amount, method)
            return PaymentResult(
                success=True,
                id=out.payment_id,
                message=f"Payment of {fmt_money(out.amount)} recorded.",
                amount=out.amount,
                applied_to_due=out.applied_to_due,
                to_advance=out.to_advance,
                outstanding_balance=out.balances.due,
                advance_balance=out.balances.advance,
            )

        return run_action(PaymentResult, "record_payment", _do)

    def refund_advance(
        self,
        party: str,
        party_id: int,
        amount: float,
        method: str = "cash",
        notes: Optional[str] = None,
    ) -> PaymentResult:
        def _do() -> PaymentResult:
            require(self.can, _PERMISSION_BY_PARTY.get(party, "receive_payment"))
            out = self.payments.refund_advance(party, party_id, amount, method, notes, actor=self.user)
            _log.info("advance refund %s#%s %.2f via %s", party, party_id, out.amount, method)
            return PaymentResult(
                success=True,
                id=out.payment_id,
                message=f"Advance of {fmt_money(out.amount)} refunded.",
                amount=out.amount,
                outstanding_balance=out.balances.due,
                advance_balance=out.balances.advance,
            )

        return run_action(PaymentResult, "refund_advance", _do)

    # ---- reconciliation ----
    def _drifts(self, party: str, party_id: Optional[int]) -> list[BalanceDrift]:
        ids = [party_id] if party_id is not None else self.ledger.party_ids(party)
        return [
            BalanceDrift(
                party_id=pid,
                cached=self.ledger.get_balances(party, pid),
                derived=self.ledger.derive_balances(party, pid),
            )
            for pid in ids
        ]

    def verify_balances(self, party: str = "customer", party_id: Optional[int] = None) -> BalanceCheckResult:
        """Compare cached party balances with a full replay. Read-only."""
        def _do() -> BalanceCheckResult:
            drifts = [d for d in self._drifts(party, party_id) if d.has_drift]
            for d in drifts:
                _log.warning(
                    "balance drift %s#%s cached=%s derived=%s", party, d.party_id, d.cached, d.derived
                )
            return BalanceCheckResult(
                success=not drifts,
                message="Balances match the ledger." if not drifts else f"{len(drifts)} balance(s) drifted.",
                error_code=None if not drifts else "balance_drift",
                drifts=drifts,
            )

        return run_action(BalanceCheckResult, "verify_balances", _do)

    def rebuild_balances(self, party: str = "customer", party_id: Optional[int] = None) -> BalanceCheckResult:
        """Rewrite cached balances from the ledger; reports what was fixed."""
        def _do() -> BalanceCheckResult:
            with transaction(self.conn):
                drifts = [d for d in self._drifts(party, party_id) if d.has_drift]
                for d in drifts:
                    self.ledger.rewrite_cache(party, d.party_id)
            if drifts:
                _log.info("rebuilt %d %s balance(s)", len(drifts), party)
            return BalanceCheckResult(
                success=True,
                message=f"{len(drifts)} balance(s) rebuilt.",
                drifts=drifts,
            )

        return run_action(BalanceCheckResult, "rebuild_balances", _do)
