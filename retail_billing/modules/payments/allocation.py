"""
payments/allocation.py

Validates how a bill total is covered by cash / UPI / card / advance / credit.

    money_total = cash + upi + card + advance_used
    alloc_total = money_total + credit

Checks run in this order, first failure wins:
  1. any negative or non-finite component      -> ValidationError
  2. advance or credit without a party         -> CustomerRequired
  3. alloc_total < total_due - 0.01            -> Underpayment
  4. alloc_total > total_due + 0.01, unconfirmed -> OverpayNotConfirmed
  5. confirmed overpay without a party         -> CustomerRequired
"""
from __future__ import annotations

from dataclasses import dataclass
import math

from ...constants import MONEY_EPS
from ...errors import CustomerRequired, OverpayNotConfirmed, Underpayment, ValidationError
from ...utils.helpers import round_money
from .calculations import clamp_non_negative, max_credit_applicable, remaining_due

__all__ = [
    "PaymentSplit",
    "Allocation",
    "allocate_payment",
    "auto_split",
]


@dataclass(frozen=True)
class PaymentSplit:
    cash: float = 0.0
    upi: float = 0.0
    card: float = 0.0
    advance_used: float = 0.0
    credit: float = 0.0

    @property
    def paid_now(self) -> float:
        """Money actually handed over at the counter."""
        return self.cash + self.upi + self.card

    @property
    def money_total(self) -> float:
        return self.paid_now + self.advance_used

    @property
    def alloc_total(self) -> float:
        return self.money_total + self.credit

    def components(self):
        return {
            "cash": self.cash,
            "upi": self.upi,
            "card": self.card,
            "advance_used": self.advance_used,
            "credit": self.credit,
        }


@dataclass(frozen=True)
class Allocation:
    total_due: float
    split: PaymentSplit
    money_total: float
    alloc_total: float
    overpay: float        # money beyond the total; becomes advance for the party
    pending: float        # total not covered by money; becomes due for the party

    @property
    def amount_paid(self) -> float:
        return self.split.paid_now

    @property
    def credit_applied(self) -> float:
        """Credit actually left on account; never more than what money did not cover."""
        return round_money(min(clamp_non_negative(self.split.credit), self.pending))


def allocate_payment(
    total_due: float,
    split: PaymentSplit,
    *,
    has_party: bool,
    confirm_overpay: bool = False,
) -> Allocation:
    for name, value in split.components().items():
        try:
            v = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} amount is not a number.")
        if not math.isfinite(v) or v < 0:
            raise ValidationError(f"{name} amount cannot be negative.")

    if (split.advance_used > 0 or split.credit > 0) and not has_party:
        raise CustomerRequired("Select a customer to use advance or credit.")

    total = clamp_non_negative(float(total_due))
    alloc_total = split.alloc_total
    if alloc_total < total - MONEY_EPS:
        raise Underpayment(
            f"Payment {alloc_total:.2f} does not cover total {total:.2f}.",
            context={"total_due": total, "alloc_total": alloc_total, "short_by": total - alloc_total},
        )

    if alloc_total > total + MONEY_EPS:
        if not confirm_overpay:
            raise OverpayNotConfirmed(
                f"Payment {alloc_total:.2f} exceeds total {total:.2f}; confirm to keep the extra as advance.",
                context={"total_due": total, "alloc_total": alloc_total, "overpay": alloc_total - total},
            )
        if not has_party:
            raise CustomerRequired("Select a customer to hold the extra amount as advance.")

    money_total = split.money_total
    return Allocation(
        total_due=total,
        split=split,
        money_total=money_total,
        alloc_total=alloc_total,
        overpay=round_money(clamp_non_negative(money_total - total)),
        pending=round_money(remaining_due(total, split.paid_now, split.advance_used)),
    )


def auto_split(
    total_due: float,
    *,
    cash: float = 0.0,
    upi: float = 0.0,
    card: float = 0.0,
    advance_available: float = 0.0,
    has_party: bool,
) -> PaymentSplit:
    """
    Checkout default: apply the party's advance to whatever cash/UPI/card
    leave open, then book the rest as credit. Walk-ins get neither, so an
    uncovered walk-in total still fails allocation as Underpayment.
    """
    total = clamp_non_negative(float(total_due))
    remaining = clamp_non_negative(total - (cash + upi + card))
    if not has_party:
        return PaymentSplit(cash=cash, upi=upi, card=card)

    advance_used = round_money(max_credit_applicable(remaining, advance_available))
    credit = round_money(clamp_non_negative(remaining - advance_used))
    return PaymentSplit(cash=cash, upi=upi, card=card, advance_used=advance_used, credit=credit)
