"""
billing/purchase_pricing.py

Pure helpers for supplier bills: per-line supplier discounts, the MRP
derived from a retail margin, and the bill round-off.

Do not import repos or open DB connections here.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from ...constants import LINE_DISCOUNT_TYPES, ROUND_OFF_LIMIT
from ...errors import ValidationError
from ...utils.helpers import round_money

__all__ = [
    "check_line_discount",
    "calculate_line_discount",
    "calculate_line_total",
    "calculate_mrp",
    "apply_margin_if_enabled",
    "suggest_round_off",
    "check_round_off",
]


# -----------------------------
# Line discount
# -----------------------------

def check_line_discount(discount_type: Optional[str], discount_value: Any) -> tuple[Optional[str], float]:
    """
    Normalise a (type, value) pair. A blank type or a zero value means no
    discount and comes back as (None, 0.0).
    """
    if not discount_type:
        return None, 0.0
    if discount_type not in LINE_DISCOUNT_TYPES:
        raise ValidationError(f"Unknown line discount type {discount_type!r}.")
    try:
        v = float(discount_value or 0.0)
    except (TypeError, ValueError):
        raise ValidationError("Line discount is not a number.")
    if not math.isfinite(v) or v < 0:
        raise ValidationError("Line discount cannot be negative.")
    if discount_type == "percent_per_unit" and v > 100:
        raise ValidationError("Line discount cannot exceed 100%.")
    if v == 0:
        return None, 0.0
    return discount_type, v


def calculate_line_discount(
    purchase_price: float,
    amount: float,
    discount_type: Optional[str],
    discount_value: float,
) -> float:
    """
    percent_per_unit: price * amount * value / 100
    amount_per_unit:  value * amount
    total_amount:     value, once for the line
    """
    if not discount_type or not discount_value:
        return 0.0
    if discount_type == "percent_per_unit":
        return purchase_price * amount * (discount_value / 100.0)
    if discount_type == "amount_per_unit":
        return discount_value * amount
    if discount_type == "total_amount":
        return float(discount_value)
    return 0.0


def calculate_line_total(
    purchase_price: float,
    amount: float,
    discount_type: Optional[str],
    discount_value: float,
) -> float:
    """Line gross after its own discount, never below 0."""
    gross = purchase_price * amount
    return max(0.0, gross - calculate_line_discount(purchase_price, amount, discount_type, discount_value))


# -----------------------------
# MRP from margin
# -----------------------------

def calculate_mrp(purchase_price: float, margin_percent: float) -> float:
    if not margin_percent:
        return purchase_price
    return round_money(purchase_price * (1 + margin_percent / 100.0))


def apply_margin_if_enabled(
    purchase_price: float,
    margin_enabled: bool,
    margin_percent: float,
    manual_mrp: Optional[float] = None,
) -> float:
    """Margin-derived MRP when the margin is on, else the typed MRP, else the purchase price."""
    if margin_enabled and margin_percent > 0:
        return calculate_mrp(purchase_price, margin_percent)
    return manual_mrp or purchase_price


# -----------------------------
# Round-off
# -----------------------------

def suggest_round_off(amount: float) -> float:
    """Adjustment that brings `amount` to the nearest rupee (halves round up)."""
    return round_money(math.floor(amount + 0.5) - amount)


def check_round_off(value: Any) -> float:
    try:
        v = float(value or 0.0)
    except (TypeError, ValueError):
        raise ValidationError("Round-off is not a number.")
    if not math.isfinite(v) or abs(v) >= ROUND_OFF_LIMIT:
        raise ValidationError(f"Round-off must stay within {ROUND_OFF_LIMIT:g} either way.")
    return v
