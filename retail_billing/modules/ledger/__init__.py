__all__ = ["LedgerService", "replay", "fold"]


def __getattr__(name):
    if name == "LedgerService":
        from .service import LedgerService
        return LedgerService
    if name in ("replay", "fold"):
        from . import reconciliation
        return getattr(reconciliation, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
