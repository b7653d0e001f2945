__all__ = ["ReturnService"]


def __getattr__(name):
    if name == "ReturnService":
        from .service import ReturnService
        return ReturnService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
