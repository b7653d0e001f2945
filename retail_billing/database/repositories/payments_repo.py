from __future__ import annotations
from dataclasses import dataclass
import math
import sqlite3
from typing import Optional

from ...constants import MONEY_EPS, PAYMENT_METHODS
from ...errors import ValidationError
from ...modules.ledger.reconciliation import Balances
from ...utils.helpers import round_money
from .. import transaction
from .ledger_repo import LedgerRepo, party_tables


@dataclass
class PartyPayment:
    payment_id: int
    party_id: int
    amount: float            # +receipt / -refund
    payment_method: str
    kind: str                # 'receipt' | 'refund'
    notes: Optional[str]
    created_by: Optional[str]
    payment_date: str


@dataclass(frozen=True)
class PaymentOutcome:
    payment_id: int
    amount: float
    applied_to_due: float
    to_advance: float
    balances: Balances


class PaymentsRepo:
    """
    Standalone money movements outside a bill: a receipt from (or payout to)
    a party, and a refund of held advance. Each writes a payments row and the
    matching ledger entry in one transaction.
    """

    def __init__(self, conn: sqlite3.Connection, ledger: LedgerRepo | None = None):
        self.conn = conn
        self.ledger = ledger or LedgerRepo(conn)

    @staticmethod
    def _check(amount, method: str) -> float:
        try:
            a = float(amount)
        except (TypeError, ValueError):
            raise ValidationError("Amount is not a number.")
        if not math.isfinite(a) or a <= 0:
            raise ValidationError("Amount must be greater than zero.")
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of {', '.join(PAYMENT_METHODS)}.")
        return round_money(a)

    def _insert(self, party: str, party_id: int, amount: float, method: str, kind: str,
                notes: Optional[str], actor: Optional[str]) -> int:
        t = party_tables(party)
        cur = self.conn.execute(
            f"INSERT INTO {t.payments_table}({t.id_column}, amount, payment_method, kind, notes, created_by) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (party_id, amount, method, kind, notes, actor),
        )
        return int(cur.lastrowid)

    def record_payment(
        self,
        party: str,
        party_id: int,
        amount,
        method: str = "cash",
        notes: Optional[str] = None,
        *,
        actor: Optional[str] = None,
    ) -> PaymentOutcome:
        """Receipt clears due first; the rest becomes advance."""
        a = self._check(amount, method)
        with transaction(self.conn):
            before = self.ledger.get_balances(party, party_id)
            payment_id = self._insert(party, party_id, a, method, "receipt", notes, actor)
            row = self.ledger.append(
                party, party_id, "payment",
                credit=a, reference_id=None, reference_label=f"PAY-{payment_id}", notes=notes, actor=actor,
            )
        applied = round_money(min(a, before.due))
        return PaymentOutcome(
            payment_id=payment_id,
            amount=a,
            applied_to_due=applied,
            to_advance=round_money(a - applied),
            balances=Balances(row.running_balance, row.advance_balance),
        )

    def refund_advance(
        self,
        party: str,
        party_id: int,
        amount,
        method: str = "cash",
        notes: Optional[str] = None,
        *,
        actor: Optional[str] = None,
    ) -> PaymentOutcome:
        """Pay held advance back out. Cannot exceed the current advance."""
        a = self._check(amount, method)
        with transaction(self.conn):
            before = self.ledger.get_balances(party, party_id)
            if a > before.advance + MONEY_EPS:
                raise ValidationError(
                    f"Refund {a:.2f} exceeds available advance {before.advance:.2f}.",
                    context={"advance_balance": before.advance, "requested": a},
                )
            a = min(a, before.advance)
            payment_id = self._insert(party, party_id, -a, method, "refund", notes, actor)
            row = self.ledger.append(
                party, party_id, "advance_refund",
                debit=a, reference_label=f"REF-{payment_id}", notes=notes, actor=actor,
            )
        return PaymentOutcome(
            payment_id=payment_id,
            amount=a,
            applied_to_due=0.0,
            to_advance=-a,
            balances=Balances(row.running_balance, row.advance_balance),
        )

    def list_payments(self, party: str, party_id: int) -> list[PartyPayment]:
        t = party_tables(party)
        rows = self.conn.execute(
            f"SELECT payment_id, {t.id_column} AS party_id, CAST(amount AS REAL) AS amount, payment_method, "
            f"kind, notes, created_by, payment_date FROM {t.payments_table} "
            f"WHERE {t.id_column} = ? ORDER BY payment_id",
            (party_id,),
        ).fetchall()
        return [PartyPayment(**r) for r in rows]
