# retail_billing/utils/validators.py
import math

# ---- Quantity / length parsing ----

def try_parse_float(x):
    """
    Parse a quantity, length or amount typed at the counter.

    Returns (ok, value). NaN and infinities count as a failed parse, so
    callers never store a non-finite number.
    """
    try:
        v = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(v):
        return False, None
    return True, v


def is_whole_number(x) -> bool:
    """True for 3, 3.0 and "3"; per-unit SKUs are sold and returned in whole units."""
    ok, val = try_parse_float(x)
    return ok and val.is_integer()
