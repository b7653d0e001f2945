"""
Billing package: GST math, cart, lifecycle, session and the billing service.

Exports are resolved lazily so the repositories can import the pure modules
(gst, cart, session, lifecycle) without pulling the service in.
"""

__all__ = ["BillingSession", "BillingService", "Cart", "calculate_totals"]


def __getattr__(name):
    if name == "BillingService":
        from .service import BillingService
        return BillingService
    if name == "BillingSession":
        from .session import BillingSession
        return BillingSession
    if name in ("Cart", "calculate_totals"):
        from . import cart
        return getattr(cart, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
