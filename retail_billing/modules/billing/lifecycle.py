"""
billing/lifecycle.py

Invoice status transitions.

    draft ──complete──> completed ──cancel──> cancelled

Return invoices are born 'completed'. Every other move is a StateConflict.
Repositories call assert_transition() inside their write transaction, after
re-reading the row, so the check sees the committed status.
"""
from __future__ import annotations

from typing import Dict, FrozenSet

from ...constants import INVOICE_STATUSES
from ...errors import StateConflict

DRAFT = "draft"
COMPLETED = "completed"
CANCELLED = "cancelled"

ACTION_COMPLETE = "complete"
ACTION_CANCEL = "cancel"
ACTION_RETURN = "return"

_TRANSITIONS: Dict[str, Dict[str, str]] = {
    DRAFT: {ACTION_COMPLETE: COMPLETED},
    COMPLETED: {ACTION_CANCEL: CANCELLED},
    CANCELLED: {},
}

# invoice types each action applies to
_ACTION_TYPES: Dict[str, FrozenSet[str]] = {
    ACTION_COMPLETE: frozenset({"sale", "purchase"}),
    ACTION_CANCEL: frozenset({"sale", "purchase"}),
    ACTION_RETURN: frozenset({"sale"}),
}


def next_status(status: str, action: str) -> str:
    """Target status for `action`, or StateConflict."""
    if status not in INVOICE_STATUSES:
        raise StateConflict(f"Unknown invoice status {status!r}.")
    target = _TRANSITIONS[status].get(action)
    if target is None:
        raise StateConflict(
            f"Cannot {action} an invoice that is {status}.",
            context={"status": status, "action": action},
        )
    return target


def can_transition(status: str, action: str) -> bool:
    return action in _TRANSITIONS.get(status, {})


def assert_transition(invoice_type: str, status: str, action: str) -> str:
    """Validate type and status for `action`; returns the new status."""
    allowed = _ACTION_TYPES.get(action, frozenset())
    if invoice_type not in allowed:
        raise StateConflict(
            f"Cannot {action} a {invoice_type} invoice.",
            context={"invoice_type": invoice_type, "action": action},
        )
    if action == ACTION_RETURN:
        # returns hang off a completed sale without changing its status
        if status != COMPLETED:
            raise StateConflict(
                f"Only completed sales can be returned (invoice is {status}).",
                context={"status": status, "action": action},
            )
        return status
    return next_status(status, action)
