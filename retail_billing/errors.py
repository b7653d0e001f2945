# retail_billing/errors.py
"""
Domain errors for the billing core.

Repositories and pure helpers raise these; services catch BillingError at the
boundary and turn it into a result object (see modules/results.py). Only
InvoiceNotFound is allowed to escape a service: asking for an invoice id that
does not exist is a caller bug, not a user-facing condition.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base class for expected, user-facing failures."""

    code = "billing_error"
    retryable = False

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class ValidationError(BillingError):
    """Malformed input caught before anything is written."""

    code = "validation_error"


class InsufficientStock(BillingError):
    """Stock re-checked at write time is lower than required."""

    code = "insufficient_stock"

    def __init__(self, sku_id: int, available: float, required: float, *, sku_name: str | None = None):
        label = sku_name or f"SKU {sku_id}"
        super().__init__(
            f"{label}: available {available:g}, required {required:g}",
            context={"sku_id": sku_id, "available": available, "required": required},
        )
        self.sku_id = sku_id
        self.available = available
        self.required = required


class Underpayment(BillingError):
    code = "underpayment"


class OverpayNotConfirmed(BillingError):
    code = "overpay_not_confirmed"


class CustomerRequired(BillingError):
    """Credit, advance or overpayment used without a selected party."""

    code = "customer_required"


class StateConflict(BillingError):
    """Invalid lifecycle transition or a return beyond the remainder."""

    code = "state_conflict"


class PermissionDenied(BillingError):
    code = "permission_denied"


class BackendUnavailable(BillingError):
    """Transient storage failure; retry the whole operation."""

    code = "backend_unavailable"
    retryable = True

    def __init__(self, message: str, *, original: BaseException | None = None):
        super().__init__(message)
        self.original = original


class InvoiceNotFound(LookupError):
    """Raised for unknown invoice ids; services let it propagate."""

    def __init__(self, invoice_id: int):
        super().__init__(f"Invoice not found: {invoice_id!r}")
        self.invoice_id = invoice_id
