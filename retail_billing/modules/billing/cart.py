"""
billing/cart.py

In-memory cart of lines being billed plus the invoice totals calculator.

Lines merge by sku_id. A per-unit line carries an integer quantity, a
per-length line carries a decimal length in metres; only the field that
matches the price type is meaningful. Prices are tax inclusive.

Purchase lines may also carry a supplier discount of their own (see
purchase_pricing) and the MRP to print on labels; the bill can carry a
round-off that is added after tax.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
import math
from typing import Any, Dict, List, Optional, Tuple

from ...constants import PRICE_TYPES
from ...errors import ValidationError
from ...utils.helpers import round_money
from ...utils.validators import is_whole_number
from .gst import (
    allocate_proportional_discount,
    calc_inclusive_line,
    clamp_gst_rate,
    split_gst,
)
from .purchase_pricing import (
    calculate_line_discount,
    calculate_line_total,
    check_line_discount,
    check_round_off,
)

__all__ = [
    "CartLine",
    "PricedLine",
    "InvoiceTotals",
    "Cart",
    "calculate_totals",
]


@dataclass(frozen=True)
class CartLine:
    sku_id: int
    sku_code: str
    sku_name: str
    price_type: str                      # 'per_unit' | 'per_length'
    unit_price: float                    # gross, per unit or per metre
    gst_rate: float = 0.0
    quantity: int = 0                    # per_unit only
    length: float = 0.0                  # per_length only, metres
    hsn_code: Optional[str] = None
    cost_price: Optional[float] = None
    available_stock: Optional[float] = None   # display snapshot; re-checked at completion
    discount_type: Optional[str] = None         # purchase line discount, see LINE_DISCOUNT_TYPES
    discount_value: float = 0.0
    mrp: Optional[float] = None

    @property
    def is_per_length(self) -> bool:
        return self.price_type == "per_length"

    @property
    def amount(self) -> float:
        """Quantity or length, whichever the price type uses."""
        return float(self.length) if self.is_per_length else float(self.quantity)

    @property
    def gross_amount(self) -> float:
        return self.unit_price * self.amount

    @property
    def line_discount(self) -> float:
        return min(
            self.gross_amount,
            calculate_line_discount(self.unit_price, self.amount, self.discount_type, self.discount_value),
        )

    @property
    def line_total(self) -> float:
        """Gross after the line's own discount; the bill discount comes later."""
        return calculate_line_total(self.unit_price, self.amount, self.discount_type, self.discount_value)


@dataclass(frozen=True)
class PricedLine:
    line: CartLine
    line_total: float
    discount_allocated: float
    discounted_gross: float
    taxable_value: float
    gst_amount: float
    cgst: float
    sgst: float
    igst: float


@dataclass(frozen=True)
class InvoiceTotals:
    lines: Tuple[PricedLine, ...]
    gross_total: float
    discount_amount: float
    subtotal: float
    tax_amount: float
    cgst_amount: float
    sgst_amount: float
    igst_amount: float
    total_amount: float
    is_inter_state: bool
    line_discount_amount: float = 0.0
    round_off_amount: float = 0.0

    def rounded(self) -> Dict[str, float]:
        """Header money fields rounded for storage."""
        return {
            "subtotal": round_money(self.subtotal),
            "discount_amount": round_money(self.discount_amount),
            "tax_amount": round_money(self.tax_amount),
            "cgst_amount": round_money(self.cgst_amount),
            "sgst_amount": round_money(self.sgst_amount),
            "igst_amount": round_money(self.igst_amount),
            "total_amount": round_money(self.total_amount),
            "round_off_amount": round_money(self.round_off_amount),
        }


# -----------------------------
# validation helpers
# -----------------------------

def _check_price(price: Any, label: str) -> float:
    try:
        p = float(price)
    except (TypeError, ValueError):
        raise ValidationError(f"{label}: price is not a number.")
    if not math.isfinite(p) or p <= 0:
        raise ValidationError(f"{label}: price must be greater than zero.")
    return p


def _check_quantity(qty: Any, label: str, *, allow_zero: bool) -> int:
    try:
        q = float(qty)
    except (TypeError, ValueError):
        raise ValidationError(f"{label}: quantity is not a number.")
    if not math.isfinite(q) or q < 0:
        raise ValidationError(f"{label}: quantity cannot be negative.")
    if not is_whole_number(q):
        raise ValidationError(f"{label}: quantity must be a whole number.")
    if q == 0 and not allow_zero:
        raise ValidationError(f"{label}: quantity must be greater than zero.")
    return int(q)


def _check_length(length: Any, label: str, *, allow_zero: bool) -> float:
    try:
        v = float(length)
    except (TypeError, ValueError):
        raise ValidationError(f"{label}: length is not a number.")
    if not math.isfinite(v) or v < 0:
        raise ValidationError(f"{label}: length cannot be negative.")
    if v == 0 and not allow_zero:
        raise ValidationError(f"{label}: length must be greater than zero.")
    return v


def sku_selling_price(sku: Any) -> Optional[float]:
    if getattr(sku, "price_type", None) == "per_length":
        return getattr(sku, "rate", None)
    return getattr(sku, "fixed_price", None)


# -----------------------------
# Cart
# -----------------------------

class Cart:
    """Ordered collection of CartLine keyed by sku_id."""

    def __init__(self) -> None:
        self._lines: Dict[int, CartLine] = {}

    # ---- read ----
    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, sku_id: int) -> Optional[CartLine]:
        return self._lines.get(sku_id)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    # ---- mutate ----
    def add_item(self, sku: Any, quantity: Any = None, length: Any = None, *, unit_price: Any = None) -> CartLine:
        """
        Add a SKU, or increment the existing line for the same sku_id.

        Defaults: 1 unit for per_unit SKUs, 1 metre for per_length SKUs.
        `unit_price` overrides the SKU selling price (purchases bill at cost);
        it only applies when the line is new.
        """
        label = getattr(sku, "name", None) or f"SKU {sku.sku_id}"
        price_type = sku.price_type
        if price_type not in PRICE_TYPES:
            raise ValidationError(f"{label}: unknown price type {price_type!r}.")

        price = _check_price(sku_selling_price(sku) if unit_price is None else unit_price, label)

        existing = self._lines.get(sku.sku_id)
        if price_type == "per_length":
            add_len = _check_length(1.0 if length is None else length, label, allow_zero=False)
            if existing:
                line = replace(existing, length=existing.length + add_len)
            else:
                line = CartLine(
                    sku_id=sku.sku_id,
                    sku_code=sku.sku_code,
                    sku_name=sku.name,
                    price_type=price_type,
                    unit_price=price,
                    gst_rate=clamp_gst_rate(getattr(sku, "gst_rate", 0.0)),
                    length=add_len,
                    hsn_code=getattr(sku, "hsn_code", None),
                    cost_price=getattr(sku, "cost_price", None),
                    available_stock=getattr(sku, "length_metres", None),
                )
        else:
            add_qty = _check_quantity(1 if quantity is None else quantity, label, allow_zero=False)
            if existing:
                line = replace(existing, quantity=existing.quantity + add_qty)
            else:
                line = CartLine(
                    sku_id=sku.sku_id,
                    sku_code=sku.sku_code,
                    sku_name=sku.name,
                    price_type=price_type,
                    unit_price=price,
                    gst_rate=clamp_gst_rate(getattr(sku, "gst_rate", 0.0)),
                    quantity=add_qty,
                    hsn_code=getattr(sku, "hsn_code", None),
                    cost_price=getattr(sku, "cost_price", None),
                    available_stock=getattr(sku, "quantity", None),
                )

        self._lines[sku.sku_id] = line
        return line

    def update_item(self, sku_id: int, **changes: Any) -> Optional[CartLine]:
        """
        Change quantity, length, unit_price or gst_rate of a line.

        Setting the quantity (or length) to zero drops the line and returns None.
        """
        line = self._lines.get(sku_id)
        if line is None:
            raise ValidationError(f"SKU {sku_id} is not in the cart.")

        allowed = {"quantity", "length", "unit_price", "gst_rate"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update {', '.join(sorted(unknown))} on a cart line.")

        label = line.sku_name
        new = {}
        if "unit_price" in changes:
            new["unit_price"] = _check_price(changes["unit_price"], label)
        if "gst_rate" in changes:
            new["gst_rate"] = clamp_gst_rate(changes["gst_rate"])
        if line.is_per_length:
            if "length" in changes:
                new["length"] = _check_length(changes["length"], label, allow_zero=True)
        elif "quantity" in changes:
            new["quantity"] = _check_quantity(changes["quantity"], label, allow_zero=True)

        updated = replace(line, **new)
        if updated.amount == 0:
            del self._lines[sku_id]
            return None
        self._lines[sku_id] = updated
        return updated

    def set_line_discount(self, sku_id: int, discount_type: Optional[str], discount_value: Any = 0.0) -> CartLine:
        """Attach a supplier discount to one line; a blank type clears it."""
        line = self._lines.get(sku_id)
        if line is None:
            raise ValidationError(f"SKU {sku_id} is not in the cart.")
        dtype, value = check_line_discount(discount_type, discount_value)
        updated = replace(line, discount_type=dtype, discount_value=value)
        self._lines[sku_id] = updated
        return updated

    def set_mrp(self, sku_id: int, mrp: Any) -> CartLine:
        line = self._lines.get(sku_id)
        if line is None:
            raise ValidationError(f"SKU {sku_id} is not in the cart.")
        value = None if mrp is None else _check_price(mrp, f"{line.sku_name} MRP")
        updated = replace(line, mrp=value)
        self._lines[sku_id] = updated
        return updated

    def remove_item(self, sku_id: int) -> None:
        self._lines.pop(sku_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def calculate_totals(
        self,
        bill_discount: float = 0.0,
        is_inter_state: bool = False,
        round_off: float = 0.0,
    ) -> InvoiceTotals:
        return calculate_totals(
            self.lines, bill_discount=bill_discount, is_inter_state=is_inter_state, round_off=round_off
        )


# -----------------------------
# Totals
# -----------------------------

def calculate_totals(
    lines: List[CartLine],
    *,
    bill_discount: float = 0.0,
    is_inter_state: bool = False,
    round_off: float = 0.0,
) -> InvoiceTotals:
    """
    Price a list of lines.

    line gross   = unit price * amount - the line's own discount
    total_amount = sum of line gross - bill discount + round-off (never below 0)
    subtotal     = sum of taxable values of the discounted line grosses
    tax_amount   = total before round-off - subtotal = cgst + sgst + igst
    """
    try:
        discount = float(bill_discount or 0.0)
    except (TypeError, ValueError):
        raise ValidationError("Bill discount is not a number.")
    if not math.isfinite(discount) or discount < 0:
        raise ValidationError("Bill discount cannot be negative.")
    round_off = check_round_off(round_off)

    grosses = [ln.line_total for ln in lines]
    gross_total = sum(grosses)
    allocations = allocate_proportional_discount(grosses, discount)

    priced: List[PricedLine] = []
    subtotal = cgst = sgst = igst = 0.0
    total = 0.0
    for ln, gross, alloc in zip(lines, grosses, allocations):
        discounted = max(0.0, gross - alloc)
        inc = calc_inclusive_line(discounted, ln.gst_rate)
        split = split_gst(is_inter_state, inc.gst_amount)
        priced.append(
            PricedLine(
                line=ln,
                line_total=gross,
                discount_allocated=min(alloc, gross),
                discounted_gross=discounted,
                taxable_value=inc.taxable_value,
                gst_amount=inc.gst_amount,
                cgst=split.cgst,
                sgst=split.sgst,
                igst=split.igst,
            )
        )
        total += discounted
        subtotal += inc.taxable_value
        cgst += split.cgst
        sgst += split.sgst
        igst += split.igst

    final = max(0.0, total + round_off)
    return InvoiceTotals(
        lines=tuple(priced),
        gross_total=gross_total,
        discount_amount=gross_total - total,
        subtotal=subtotal,
        tax_amount=max(0.0, total - subtotal),
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        total_amount=final,
        is_inter_state=is_inter_state,
        line_discount_amount=sum(ln.line_discount for ln in lines),
        round_off_amount=final - total,
    )
