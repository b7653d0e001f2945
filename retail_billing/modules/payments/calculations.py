"""
payments/calculations.py

Pure helpers shared by the payment allocator, the return engine and the
ledger fold. Mirrors the balance rules applied by the ledger repository:
credits clear the due first and only the excess becomes advance.

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs in the caller.
"""
from __future__ import annotations

from typing import Tuple

__all__ = [
    "clamp_non_negative",
    "remaining_due",
    "max_credit_applicable",
    "split_credit_against_due",
    "status_from_paid",
]


# -----------------------------
# Core utilities
# -----------------------------

def clamp_non_negative(x: float) -> float:
    """Return x if x > 0, else 0.0.

    Due and advance balances never go below zero.
    """
    return x if x > 0.0 else 0.0


def remaining_due(total_amount: float, paid_amount: float, advance_applied: float) -> float:
    """
    remaining = total - paid - advance_applied, clamped at >= 0.
    No rounding inside.
    """
    return clamp_non_negative(total_amount - paid_amount - advance_applied)


# -----------------------------
# Credit helpers (customer/supplier symmetric)
# -----------------------------

def max_credit_applicable(remaining_due_or_payable: float, credit_balance: float) -> float:
    """
    The maximum advance you can apply right now.
    = min(remaining_due_or_payable (clamped at 0), credit_balance (clamped at 0))
    """
    a = clamp_non_negative(remaining_due_or_payable)
    b = clamp_non_negative(credit_balance)
    return a if a < b else b


def split_credit_against_due(credit_amount: float, due: float) -> Tuple[float, float]:
    """
    Given a credit (payment or return value) and the party's current due,
    return (applied_to_due, to_advance).

    applied_to_due = min(credit, due); to_advance = credit - applied_to_due.
    """
    credit = clamp_non_negative(credit_amount)
    applied = max_credit_applicable(due, credit)
    return applied, credit - applied


# -----------------------------
# Common status helper
# -----------------------------

def status_from_paid(total: float, paid: float) -> str:
    """
    Threshold helper for status badges:
      - 'paid'    if paid >= total
      - 'partial' if 0 < paid < total
      - 'unpaid'  if paid == 0
    """
    if paid >= total:
        return "paid"
    if paid > 0:
        return "partial"
    return "unpaid"
