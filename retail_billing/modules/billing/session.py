"""
billing/session.py

BillingSession: everything one counter/user session is building before it
is persisted. Holds the cart, the selected party (or walk-in details), the
bill discount and notes. Purchase sessions also carry supplier line
discounts, the retail margin used to derive MRP and the bill round-off.
Each user session owns its own instance; nothing here is module-global.
"""
from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Optional

from ...errors import ValidationError
from .cart import Cart, CartLine, InvoiceTotals, sku_selling_price
from .gst import is_inter_state, normalize_state
from .purchase_pricing import apply_margin_if_enabled, check_round_off, suggest_round_off

__all__ = ["PartyRef", "DraftInvoice", "BillingSession"]


@dataclass(frozen=True)
class PartyRef:
    party_type: str               # 'customer' | 'supplier'
    party_id: int
    name: str
    phone: Optional[str] = None
    state: Optional[str] = None
    gstin: Optional[str] = None

    @classmethod
    def from_customer(cls, c: Any) -> "PartyRef":
        return cls("customer", c.customer_id, c.name, c.phone, c.state, c.gstin)

    @classmethod
    def from_supplier(cls, s: Any) -> "PartyRef":
        return cls("supplier", s.supplier_id, s.name, s.phone, s.state, s.gstin)


@dataclass(frozen=True)
class DraftInvoice:
    """Priced, validated input for InvoicesRepo.create_draft()."""

    invoice_type: str
    totals: InvoiceTotals
    party: Optional[PartyRef] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    place_of_supply_state: Optional[str] = None
    supplier_invoice_no: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None

    @property
    def customer_id(self) -> Optional[int]:
        return self.party.party_id if self.party and self.party.party_type == "customer" else None

    @property
    def supplier_id(self) -> Optional[int]:
        return self.party.party_id if self.party and self.party.party_type == "supplier" else None


class BillingSession:
    def __init__(self, invoice_type: str = "sale", *, shop_state: Optional[str] = None, user: Optional[str] = None):
        if invoice_type not in ("sale", "purchase"):
            raise ValidationError(f"A billing session is for sales or purchases, not {invoice_type!r}.")
        self.invoice_type = invoice_type
        self.shop_state = shop_state
        self.user = user
        self.cart = Cart()
        self.party: Optional[PartyRef] = None
        self.walk_in_name: Optional[str] = None
        self.walk_in_phone: Optional[str] = None
        self.bill_discount: float = 0.0
        self.notes: Optional[str] = None
        self.supplier_invoice_no: Optional[str] = None
        self.round_off: float = 0.0
        self.margin_enabled: bool = False
        self.margin_percent: float = 0.0

    # ---- cart passthrough ----
    def add_item(self, sku: Any, quantity: Any = None, length: Any = None) -> CartLine:
        # purchases are billed at cost when the SKU has one
        price = None
        if self.invoice_type == "purchase" and getattr(sku, "cost_price", None):
            price = sku.cost_price
        is_new = self.cart.get(sku.sku_id) is None
        line = self.cart.add_item(sku, quantity, length, unit_price=price)
        if self.invoice_type == "purchase" and is_new:
            mrp = apply_margin_if_enabled(
                line.unit_price, self.margin_enabled, self.margin_percent, sku_selling_price(sku)
            )
            line = self.cart.set_mrp(sku.sku_id, mrp)
        return line

    def update_item(self, sku_id: int, **changes: Any) -> Optional[CartLine]:
        line = self.cart.update_item(sku_id, **changes)
        # a new purchase price re-derives the MRP while the margin is on
        if line is not None and "unit_price" in changes and self.invoice_type == "purchase" and self.margin_enabled:
            line = self.cart.set_mrp(
                sku_id, apply_margin_if_enabled(line.unit_price, True, self.margin_percent, line.mrp)
            )
        return line

    def remove_item(self, sku_id: int) -> None:
        self.cart.remove_item(sku_id)

    def clear(self) -> None:
        self.cart.clear()

    # ---- purchase pricing ----
    def _require_purchase(self, what: str) -> None:
        if self.invoice_type != "purchase":
            raise ValidationError(f"{what} only applies to purchases.")

    def set_line_discount(self, sku_id: int, discount_type: Optional[str], discount_value: Any = 0.0) -> CartLine:
        self._require_purchase("A line discount")
        return self.cart.set_line_discount(sku_id, discount_type, discount_value)

    def set_mrp(self, sku_id: int, mrp: Any) -> CartLine:
        self._require_purchase("MRP")
        return self.cart.set_mrp(sku_id, mrp)

    def set_margin(self, enabled: bool, percent: Any = 0.0) -> None:
        """
        Turn the retail margin on or off. While on, every purchase line's
        MRP is its purchase price plus the margin.
        """
        self._require_purchase("A retail margin")
        try:
            p = float(percent or 0.0)
        except (TypeError, ValueError):
            raise ValidationError("Margin is not a number.")
        if not math.isfinite(p) or p < 0:
            raise ValidationError("Margin cannot be negative.")
        self.margin_enabled = bool(enabled)
        self.margin_percent = p
        if self.margin_enabled:
            for line in self.cart.lines:
                self.cart.set_mrp(line.sku_id, apply_margin_if_enabled(line.unit_price, True, p, line.mrp))

    def set_round_off(self, amount: Any) -> None:
        self._require_purchase("Round-off")
        self.round_off = check_round_off(amount)

    def suggest_round_off(self) -> float:
        """Round-off that brings the current total to a whole rupee."""
        self._require_purchase("Round-off")
        before = self.cart.calculate_totals(self.bill_discount, self.is_inter_state).total_amount
        return suggest_round_off(before)

    # ---- party ----
    def set_customer(self, customer: Any) -> None:
        if self.invoice_type != "sale":
            raise ValidationError("Customers can only be billed on sales.")
        self.party = PartyRef.from_customer(customer)

    def set_supplier(self, supplier: Any) -> None:
        if self.invoice_type != "purchase":
            raise ValidationError("Suppliers can only be billed on purchases.")
        self.party = PartyRef.from_supplier(supplier)

    def set_walk_in(self, name: Optional[str] = None, phone: Optional[str] = None) -> None:
        self.party = None
        self.walk_in_name = (name or "").strip() or None
        self.walk_in_phone = (phone or "").strip() or None

    def clear_party(self) -> None:
        self.party = None

    @property
    def has_party(self) -> bool:
        return self.party is not None

    # ---- discount ----
    def set_discount(self, amount: Any) -> None:
        try:
            d = float(amount or 0.0)
        except (TypeError, ValueError):
            raise ValidationError("Bill discount is not a number.")
        if not math.isfinite(d) or d < 0:
            raise ValidationError("Bill discount cannot be negative.")
        self.bill_discount = d

    # ---- pricing ----
    @property
    def place_of_supply_state(self) -> Optional[str]:
        if self.party and self.party.state:
            return normalize_state(self.party.state)
        return normalize_state(self.shop_state)

    @property
    def is_inter_state(self) -> bool:
        return is_inter_state(self.shop_state, self.party.state if self.party else None)

    def calculate_totals(self) -> InvoiceTotals:
        return self.cart.calculate_totals(self.bill_discount, self.is_inter_state, self.round_off)

    def build_draft(self) -> DraftInvoice:
        if self.cart.is_empty:
            raise ValidationError("Add items to the bill first.")
        if self.invoice_type == "purchase" and self.party is None:
            raise ValidationError("Select a supplier for the purchase.")

        customer_name = self.walk_in_name
        customer_phone = self.walk_in_phone
        if self.party and self.party.party_type == "customer":
            customer_name = self.party.name
            customer_phone = self.party.phone

        return DraftInvoice(
            invoice_type=self.invoice_type,
            totals=self.calculate_totals(),
            party=self.party,
            customer_name=customer_name,
            customer_phone=customer_phone,
            place_of_supply_state=self.place_of_supply_state,
            supplier_invoice_no=self.supplier_invoice_no,
            notes=self.notes,
            created_by=self.user,
        )

    def reset(self) -> None:
        """Start a fresh bill in the same session."""
        self.cart.clear()
        self.party = None
        self.walk_in_name = None
        self.walk_in_phone = None
        self.bill_discount = 0.0
        self.notes = None
        self.supplier_invoice_no = None
        self.round_off = 0.0
