"""
Result objects returned by the services.

Services never raise for expected failures: a BillingError raised anywhere
below them is turned into a result with success=False, the error code, a
user-facing message and the error context. InvoiceNotFound is not caught.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from ..constants import PERMISSIONS
from ..errors import BillingError, PermissionDenied

_log = logging.getLogger(__name__)

R = TypeVar("R", bound="ActionResult")


@dataclass
class ActionResult:
    success: bool
    id: Optional[int] = None            # created/affected row id (if any)
    message: Optional[str] = None       # user-facing message
    error_code: Optional[str] = None
    retryable: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(cls: Type[R], err: BillingError) -> R:
        return cls(
            success=False,
            message=err.message,
            error_code=err.code,
            retryable=err.retryable,
            context=dict(err.context),
        )


@dataclass
class DraftResult(ActionResult):
    invoice_number: Optional[str] = None
    total_amount: float = 0.0


@dataclass
class CompleteResult(ActionResult):
    invoice_number: Optional[str] = None
    total_amount: float = 0.0
    amount_paid: float = 0.0
    advance_used: float = 0.0
    pending: float = 0.0
    overpay: float = 0.0
    advance_created: float = 0.0


@dataclass
class CancelResult(ActionResult):
    invoice_number: Optional[str] = None
    refund_due: float = 0.0
    reversed_to_ledger: float = 0.0


@dataclass
class ReturnResult(ActionResult):
    return_invoice_number: Optional[str] = None
    return_amount: float = 0.0
    applied_to_due: float = 0.0
    to_advance: float = 0.0
    refund_due: float = 0.0


@dataclass
class PaymentResult(ActionResult):
    amount: float = 0.0
    applied_to_due: float = 0.0
    to_advance: float = 0.0
    outstanding_balance: float = 0.0
    advance_balance: float = 0.0


@dataclass
class StockResult(ActionResult):
    previous: float = 0.0
    new: float = 0.0


@dataclass
class BalanceCheckResult(ActionResult):
    drifts: List[Any] = field(default_factory=list)


def run_action(result_cls: Type[R], op: str, fn: Callable[[], R]) -> R:
    """
    Call `fn`; map BillingError to a failed `result_cls`.
    Backend faults are logged at ERROR, rejections at WARNING.
    """
    try:
        return fn()
    except BillingError as e:
        if e.retryable:
            _log.error("%s failed (%s): %s", op, e.code, e.message, exc_info=True)
        else:
            _log.warning("%s rejected (%s): %s", op, e.code, e.message)
        return result_cls.from_error(e)


def require(can: Optional[Callable[[str], bool]], permission: str) -> None:
    """Raise PermissionDenied unless the capability check allows `permission`."""
    if permission not in PERMISSIONS:
        raise ValueError(f"Unknown permission: {permission}")
    if can is not None and not can(permission):
        raise PermissionDenied(
            f"You do not have permission to {permission.replace('_', ' ')}.",
            context={"permission": permission},
        )
