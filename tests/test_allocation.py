# tests/test_allocation.py
import pytest

from retail_billing.errors import CustomerRequired, OverpayNotConfirmed, Underpayment, ValidationError
from retail_billing.modules.payments.allocation import PaymentSplit, allocate_payment, auto_split
from retail_billing.modules.payments.calculations import (
    max_credit_applicable,
    remaining_due,
    split_credit_against_due,
    status_from_paid,
)


# -------------------------
# allocate_payment
# -------------------------

def test_mixed_tender_with_credit_leaves_pending():
    a = allocate_payment(1000, PaymentSplit(cash=500, upi=200, credit=300), has_party=True)
    assert a.amount_paid == 700
    assert a.money_total == 700
    assert a.alloc_total == 1000
    assert a.pending == 300
    assert a.overpay == 0


def test_advance_counts_as_money_but_not_as_paid_now():
    a = allocate_payment(1000, PaymentSplit(cash=400, advance_used=100, credit=500), has_party=True)
    assert a.amount_paid == 400
    assert a.money_total == 500
    assert a.pending == 500


def test_exact_cash_for_walk_in():
    a = allocate_payment(236, PaymentSplit(cash=136, card=100), has_party=False)
    assert a.pending == 0 and a.overpay == 0


def test_sub_cent_difference_is_tolerated():
    a = allocate_payment(1000, PaymentSplit(cash=999.995), has_party=False)
    assert a.pending == pytest.approx(0.0, abs=0.01)
    allocate_payment(1000, PaymentSplit(cash=1000.005), has_party=False)


@pytest.mark.parametrize(
    "split",
    [
        PaymentSplit(cash=-1),
        PaymentSplit(upi=-0.5, credit=100),
        PaymentSplit(cash=float("nan")),
        PaymentSplit(card=float("inf")),
    ],
)
def test_negative_or_non_finite_component_is_invalid(split):
    with pytest.raises(ValidationError):
        allocate_payment(100, split, has_party=False)


def test_credit_without_party_needs_customer():
    with pytest.raises(CustomerRequired):
        allocate_payment(1000, PaymentSplit(cash=700, credit=300), has_party=False)


def test_advance_without_party_needs_customer():
    with pytest.raises(CustomerRequired):
        allocate_payment(1000, PaymentSplit(cash=900, advance_used=100), has_party=False)


def test_customer_check_runs_before_underpayment():
    with pytest.raises(CustomerRequired):
        allocate_payment(1000, PaymentSplit(cash=100, credit=100), has_party=False)


def test_short_payment_is_underpayment():
    with pytest.raises(Underpayment) as ei:
        allocate_payment(1000, PaymentSplit(cash=600, credit=300), has_party=True)
    assert ei.value.context["short_by"] == pytest.approx(100.0)
    assert ei.value.code == "underpayment"


def test_overpay_needs_confirmation():
    with pytest.raises(OverpayNotConfirmed) as ei:
        allocate_payment(1000, PaymentSplit(cash=1200), has_party=True)
    assert ei.value.context["overpay"] == pytest.approx(200.0)


def test_confirmed_overpay_for_walk_in_needs_customer():
    with pytest.raises(CustomerRequired):
        allocate_payment(1000, PaymentSplit(cash=1200), has_party=False, confirm_overpay=True)


def test_confirmed_overpay_with_party():
    a = allocate_payment(1000, PaymentSplit(cash=1200), has_party=True, confirm_overpay=True)
    assert a.overpay == 200
    assert a.pending == 0


@pytest.mark.parametrize(
    "split, credit_applied",
    [
        (PaymentSplit(cash=1200, credit=50), 0.0),
        (PaymentSplit(cash=400, credit=700), 600.0),
        (PaymentSplit(cash=400, credit=600), 600.0),
    ],
)
def test_credit_applied_never_exceeds_pending(split, credit_applied):
    a = allocate_payment(1000, split, has_party=True, confirm_overpay=True)
    assert a.credit_applied == credit_applied
    assert a.credit_applied == pytest.approx(a.pending)


def test_negative_total_counts_as_zero():
    a = allocate_payment(-50, PaymentSplit(), has_party=False)
    assert a.total_due == 0
    assert a.pending == 0


# -------------------------
# auto_split
# -------------------------

def test_auto_split_applies_advance_then_credit():
    s = auto_split(1000, cash=300, advance_available=200, has_party=True)
    assert s == PaymentSplit(cash=300, advance_used=200, credit=500)
    allocate_payment(1000, s, has_party=True)


def test_auto_split_uses_only_as_much_advance_as_needed():
    s = auto_split(1000, cash=900, advance_available=500, has_party=True)
    assert s.advance_used == 100
    assert s.credit == 0


def test_auto_split_for_walk_in_adds_nothing():
    s = auto_split(1000, cash=300, advance_available=200, has_party=False)
    assert s == PaymentSplit(cash=300)
    with pytest.raises(Underpayment):
        allocate_payment(1000, s, has_party=False)


def test_auto_split_with_full_cash():
    s = auto_split(500, cash=200, upi=300, advance_available=50, has_party=True)
    assert s.advance_used == 0 and s.credit == 0


# -------------------------
# calculations
# -------------------------

def test_split_credit_against_due():
    assert split_credit_against_due(350, 200) == (200, 150)
    assert split_credit_against_due(100, 250) == (100, 0)
    assert split_credit_against_due(100, 0) == (0, 100)
    assert split_credit_against_due(-5, 100) == (0, 0)


def test_max_credit_and_remaining_due():
    assert max_credit_applicable(300, 500) == 300
    assert max_credit_applicable(-10, 500) == 0
    assert remaining_due(1000, 600, 100) == 300
    assert remaining_due(1000, 1200, 0) == 0


@pytest.mark.parametrize("total, paid, expected", [(100, 100, "paid"), (100, 40, "partial"), (100, 0, "unpaid")])
def test_status_from_paid(total, paid, expected):
    assert status_from_paid(total, paid) == expected
