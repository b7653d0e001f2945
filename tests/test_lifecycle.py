# tests/test_lifecycle.py
import pytest

from retail_billing.errors import StateConflict
from retail_billing.modules.billing.lifecycle import (
    ACTION_CANCEL,
    ACTION_COMPLETE,
    ACTION_RETURN,
    CANCELLED,
    COMPLETED,
    DRAFT,
    assert_transition,
    can_transition,
    next_status,
)


def test_draft_completes_and_completed_cancels():
    assert next_status(DRAFT, ACTION_COMPLETE) == COMPLETED
    assert next_status(COMPLETED, ACTION_CANCEL) == CANCELLED


@pytest.mark.parametrize(
    "status, action",
    [
        (DRAFT, ACTION_CANCEL),
        (COMPLETED, ACTION_COMPLETE),
        (CANCELLED, ACTION_COMPLETE),
        (CANCELLED, ACTION_CANCEL),
    ],
)
def test_other_moves_conflict(status, action):
    assert can_transition(status, action) is False
    with pytest.raises(StateConflict):
        next_status(status, action)


def test_unknown_status_conflicts():
    with pytest.raises(StateConflict):
        next_status("void", ACTION_CANCEL)


@pytest.mark.parametrize("invoice_type", ["sale", "purchase"])
def test_sales_and_purchases_follow_the_same_path(invoice_type):
    assert assert_transition(invoice_type, DRAFT, ACTION_COMPLETE) == COMPLETED
    assert assert_transition(invoice_type, COMPLETED, ACTION_CANCEL) == CANCELLED


def test_return_invoices_cannot_be_completed_or_cancelled():
    with pytest.raises(StateConflict):
        assert_transition("return", DRAFT, ACTION_COMPLETE)
    with pytest.raises(StateConflict):
        assert_transition("return", COMPLETED, ACTION_CANCEL)


def test_returns_hang_off_completed_sales_only():
    assert assert_transition("sale", COMPLETED, ACTION_RETURN) == COMPLETED
    for status in (DRAFT, CANCELLED):
        with pytest.raises(StateConflict):
            assert_transition("sale", status, ACTION_RETURN)
    with pytest.raises(StateConflict):
        assert_transition("purchase", COMPLETED, ACTION_RETURN)
