"""
billing/gst.py

Pure GST helpers for tax-inclusive pricing.

Every line price in this system already contains GST. The taxable value is
derived by dividing the rate out of the gross; the tax is then split into
CGST + SGST (intra-state) or IGST (inter-state).

Do not import repos or open DB connections here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ...constants import GST_RATE_MAX, GST_RATE_MIN
from ...utils.helpers import finite_or_zero

__all__ = [
    "InclusiveLine",
    "GstSplit",
    "normalize_state",
    "is_inter_state",
    "clamp_gst_rate",
    "calc_inclusive_line",
    "split_gst",
    "allocate_proportional_discount",
]


@dataclass(frozen=True)
class InclusiveLine:
    gross_amount: float
    taxable_value: float
    gst_amount: float


@dataclass(frozen=True)
class GstSplit:
    cgst: float
    sgst: float
    igst: float

    @property
    def total(self) -> float:
        return self.cgst + self.sgst + self.igst


# -----------------------------
# Place of supply
# -----------------------------

def normalize_state(value: Optional[str]) -> Optional[str]:
    """Trim and upper-case a state name; blank -> None."""
    v = (value or "").strip()
    return v.upper() if v else None


def is_inter_state(shop_state: Optional[str], party_state: Optional[str]) -> bool:
    """
    True only when both states are known and differ.

    An unknown state on either side is billed intra-state (CGST + SGST).
    """
    a = normalize_state(shop_state)
    b = normalize_state(party_state)
    if a is None or b is None:
        return False
    return a != b


# -----------------------------
# Inclusive line math
# -----------------------------

def clamp_gst_rate(rate) -> float:
    """Clamp to [0, 100]; NaN/inf/junk -> 0."""
    return max(GST_RATE_MIN, min(GST_RATE_MAX, finite_or_zero(rate)))


def calc_inclusive_line(gross_amount, gst_rate) -> InclusiveLine:
    """
    taxable = gross / (1 + rate/100); gst = gross - taxable.

    Negative or non-finite gross is treated as 0. No rounding here; callers
    round when persisting.
    """
    gross = max(0.0, finite_or_zero(gross_amount))

    rate = clamp_gst_rate(gst_rate)
    if rate <= 0:
        return InclusiveLine(gross, gross, 0.0)

    taxable = gross / (1 + rate / 100.0)
    return InclusiveLine(gross, taxable, gross - taxable)


def split_gst(inter_state: bool, gst_amount) -> GstSplit:
    amt = finite_or_zero(gst_amount)
    if amt <= 0:
        return GstSplit(0.0, 0.0, 0.0)
    if inter_state:
        return GstSplit(0.0, 0.0, amt)
    half = amt / 2
    return GstSplit(half, half, 0.0)


# -----------------------------
# Bill discount
# -----------------------------

def allocate_proportional_discount(line_gross_amounts: Iterable[float], bill_discount) -> List[float]:
    """
    Spread a bill-level discount over lines in proportion to their gross.

    Negative line grosses count as 0. When the discount or the gross total is
    not positive every allocation is 0. Floating drift is pushed onto the last
    non-zero allocation so the allocations sum to the discount exactly.

    A discount larger than the gross total is still allocated proportionally;
    consumers clamp the discounted line gross at 0.
    """
    lines = [max(0.0, finite_or_zero(g)) for g in line_gross_amounts]
    discount = max(0.0, finite_or_zero(bill_discount))

    total = sum(lines)
    if discount <= 0 or total <= 0:
        return [0.0 for _ in lines]

    allocations = [(g / total) * discount for g in lines]

    diff = discount - sum(allocations)
    if abs(diff) > 1e-9:
        for i in range(len(allocations) - 1, -1, -1):
            if allocations[i] > 0:
                allocations[i] += diff
                break
    return allocations
