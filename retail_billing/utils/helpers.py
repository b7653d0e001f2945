# retail_billing/utils/helpers.py
from datetime import datetime
import logging
import math
from typing import Union, Optional

from ..constants import MONEY_EPS, MONEY_PLACES

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def now_str() -> str:
    """Timestamp used for ledger/log rows (ISO seconds, local time)."""
    return datetime.now().isoformat(timespec="seconds")


def round_money(v: float) -> float:
    """Round to 2 places for storage. -0.0 is normalized to 0.0."""
    r = round(float(v), MONEY_PLACES)
    return r + 0.0


def money_equal(a: float, b: float, eps: float = MONEY_EPS) -> bool:
    """Equality within the sub-cent tolerance used across the billing core."""
    return abs(float(a) - float(b)) <= eps + 1e-12


def finite_or_zero(v) -> float:
    """float(v) when finite, else 0.0. None and junk count as 0."""
    try:
        x = float(v)
    except (TypeError, ValueError):
        return 0.0
    return x if math.isfinite(x) else 0.0


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"
