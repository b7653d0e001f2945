"""
ledger/reconciliation.py

Running due/advance balances for one party, folded over its ledger entries
in chronological (entry_id) order, starting from due = advance = 0.

    sale / purchase      debit   due += debit
    payment / return     credit  applied = min(credit, due); due -= applied;
                                 advance += credit - applied
    advance_applied      credit  used = min(credit, advance); advance -= used;
                                 due -= min(due, used)
    advance_refund       debit   advance -= min(debit, advance)
    adjustment           debit side like a sale, credit side like a payment

Both balances are clamped at 0 after every entry. The balance columns on
customers/suppliers and the snapshot columns on each ledger row are caches
of this fold; replay() is the source of truth.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from ...constants import LEDGER_ENTRY_TYPES
from ...utils.helpers import money_equal, round_money
from ..payments.calculations import clamp_non_negative, split_credit_against_due

__all__ = [
    "Balances",
    "LedgerRow",
    "apply_entry",
    "replay",
    "fold",
    "BalanceDrift",
]


@dataclass(frozen=True)
class Balances:
    due: float = 0.0
    advance: float = 0.0


@dataclass(frozen=True)
class LedgerRow:
    entry_type: str
    debit_amount: float = 0.0
    credit_amount: float = 0.0
    running_balance: float = 0.0
    advance_balance: float = 0.0
    entry_id: Optional[int] = None
    party_id: Optional[int] = None
    reference_id: Optional[int] = None
    reference_label: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class BalanceDrift:
    party_id: int
    cached: Balances
    derived: Balances

    @property
    def has_drift(self) -> bool:
        return not (
            money_equal(self.cached.due, self.derived.due)
            and money_equal(self.cached.advance, self.derived.advance)
        )


def _credit(due: float, advance: float, amount: float):
    applied, to_advance = split_credit_against_due(amount, due)
    return due - applied, advance + to_advance


def apply_entry(balances: Balances, entry_type: str, debit: float = 0.0, credit: float = 0.0) -> Balances:
    """Fold one entry onto `balances`; result is rounded and clamped."""
    if entry_type not in LEDGER_ENTRY_TYPES:
        raise ValueError(f"Unknown ledger entry type: {entry_type!r}")

    due = balances.due
    advance = balances.advance
    debit = clamp_non_negative(float(debit or 0.0))
    credit = clamp_non_negative(float(credit or 0.0))

    if entry_type in ("sale", "purchase"):
        due += debit
    elif entry_type in ("payment", "return"):
        due, advance = _credit(due, advance, credit)
    elif entry_type == "advance_applied":
        used = min(credit, clamp_non_negative(advance))
        advance -= used
        due -= min(clamp_non_negative(due), used)
    elif entry_type == "advance_refund":
        advance -= min(debit, clamp_non_negative(advance))
    else:  # adjustment
        due += debit
        due, advance = _credit(due, advance, credit)

    return Balances(
        due=round_money(clamp_non_negative(due)),
        advance=round_money(clamp_non_negative(advance)),
    )


def replay(entries: Iterable[LedgerRow]) -> List[LedgerRow]:
    """Recompute running_balance / advance_balance for every entry."""
    out: List[LedgerRow] = []
    bal = Balances()
    for e in entries:
        bal = apply_entry(bal, e.entry_type, e.debit_amount, e.credit_amount)
        out.append(replace(e, running_balance=bal.due, advance_balance=bal.advance))
    return out


def fold(entries: Iterable[LedgerRow]) -> Balances:
    bal = Balances()
    for e in entries:
        bal = apply_entry(bal, e.entry_type, e.debit_amount, e.credit_amount)
    return bal
