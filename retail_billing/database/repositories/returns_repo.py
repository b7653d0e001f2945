from __future__ import annotations

"""
Return engine for completed sales.

A return is a new 'return' invoice linked to the sale through
parent_invoice_id; its lines point back at the sale lines through
parent_item_id. What is still returnable on a sale line is its original
quantity/length minus everything returned on non-cancelled return invoices.

The refund value of a returned line is priced at the original sale price:

    value = returned_quantity * unit_price    (or returned_length * rate)

The bill discount the line carried is not taken back.

For a customer the value is credited to the ledger ('return' entry), which
clears the due first and parks the rest as advance. A walk-in return posts
nothing; the whole value is reported as refund_due for the counter.
"""

from collections import OrderedDict
from dataclasses import dataclass
import logging
import math
import sqlite3
from typing import Iterable, Optional

from ...constants import INVOICE_PREFIXES, QTY_EPS
from ...errors import StateConflict, ValidationError
from ...modules.billing.gst import calc_inclusive_line, split_gst
from ...modules.billing.lifecycle import ACTION_RETURN, assert_transition
from ...modules.payments.calculations import split_credit_against_due
from ...utils.helpers import now_str, round_money
from ...utils.validators import is_whole_number
from .. import transaction
from .invoices_repo import Invoice, InvoiceItem, InvoicesRepo
from .ledger_repo import LedgerRepo
from .stock_repo import StockRepo

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReturnableItem:
    item_id: int
    sku_id: int
    sku_code: str
    sku_name: str
    price_type: str
    unit_price: float
    line_total: float
    discount_allocated: float
    gst_rate: float
    original_quantity: int
    original_length: float
    returned_quantity: int
    returned_length: float

    @property
    def returnable_quantity(self) -> int:
        return max(0, self.original_quantity - self.returned_quantity)

    @property
    def returnable_length(self) -> float:
        return max(0.0, round(self.original_length - self.returned_length, 6))

    @property
    def returnable(self) -> float:
        """Remainder in the line's own unit."""
        if self.price_type == "per_length":
            return self.returnable_length
        return float(self.returnable_quantity)


@dataclass(frozen=True)
class ReturnRequest:
    item_id: int
    quantity: int = 0
    length: float = 0.0


@dataclass(frozen=True)
class ReturnOutcome:
    return_invoice_id: int
    return_invoice_number: str
    return_amount: float
    applied_to_due: float
    to_advance: float
    refund_due: float


class ReturnsRepo:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        invoices: InvoicesRepo | None = None,
        stock: StockRepo | None = None,
        ledger: LedgerRepo | None = None,
    ):
        self.conn = conn
        self.stock = stock or StockRepo(conn)
        self.ledger = ledger or LedgerRepo(conn)
        self.invoices = invoices or InvoicesRepo(conn, stock=self.stock, ledger=self.ledger)

    # ------------------------------------------------------------------
    # remainder
    # ------------------------------------------------------------------
    def get_returnable_items(self, invoice_id: int) -> list[ReturnableItem]:
        """
        Per sale line: original vs already-returned amounts. InvoiceNotFound
        for unknown ids; non-sale invoices have nothing returnable.
        """
        inv = self.invoices.get(invoice_id, with_items=False)
        if inv.invoice_type != "sale":
            return []
        rows = self.conn.execute(
            """
            SELECT
              si.item_id, si.sku_id, si.sku_code, si.sku_name, si.price_type,
              CAST(si.unit_price AS REAL)         AS unit_price,
              CAST(si.line_total AS REAL)         AS line_total,
              CAST(si.discount_allocated AS REAL) AS discount_allocated,
              CAST(si.gst_rate AS REAL)           AS gst_rate,
              si.quantity                         AS original_quantity,
              CAST(si.length_metres AS REAL)      AS original_length,
              COALESCE((
                SELECT SUM(ri.quantity)
                  FROM invoice_items ri
                  JOIN invoices r ON r.invoice_id = ri.invoice_id
                 WHERE ri.parent_item_id = si.item_id
                   AND r.invoice_type = 'return'
                   AND r.status <> 'cancelled'
              ), 0) AS returned_quantity,
              COALESCE((
                SELECT SUM(CAST(ri.length_metres AS REAL))
                  FROM invoice_items ri
                  JOIN invoices r ON r.invoice_id = ri.invoice_id
                 WHERE ri.parent_item_id = si.item_id
                   AND r.invoice_type = 'return'
                   AND r.status <> 'cancelled'
              ), 0.0) AS returned_length
            FROM invoice_items si
            WHERE si.invoice_id = ?
            ORDER BY si.item_id
            """,
            (invoice_id,),
        ).fetchall()
        return [ReturnableItem(**r) for r in rows]

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _group_requests(items: Iterable[ReturnRequest | dict]) -> "OrderedDict[int, float]":
        """Sum requested amounts per sale line; blank lines are dropped."""
        grouped: "OrderedDict[int, float]" = OrderedDict()
        for req in items:
            if isinstance(req, dict):
                req = ReturnRequest(
                    item_id=req.get("item_id"),
                    quantity=req.get("quantity") or 0,
                    length=req.get("length") or 0.0,
                )
            try:
                item_id = int(req.item_id)
            except (TypeError, ValueError):
                raise ValidationError("Return line is missing its item id.")
            try:
                q = float(req.quantity or 0)
                ln = float(req.length or 0.0)
            except (TypeError, ValueError):
                raise ValidationError(f"Return amount for line {req.item_id} is not a number.")
            if not (math.isfinite(q) and math.isfinite(ln)) or q < 0 or ln < 0:
                raise ValidationError(f"Return amount for line {req.item_id} cannot be negative.")
            amount = q if q > 0 else ln
            if amount <= 0:
                continue
            grouped[item_id] = grouped.get(item_id, 0.0) + amount
        return grouped

    # ------------------------------------------------------------------
    # process
    # ------------------------------------------------------------------
    def process_return(
        self,
        parent_invoice_id: int,
        items: Iterable[ReturnRequest | dict],
        notes: Optional[str] = None,
        *,
        actor: Optional[str] = None,
    ) -> ReturnOutcome:
        """
        Validate every requested line against its remainder, then in one
        transaction: create the completed return invoice, restock, bump the
        sale's returned_amount and credit the customer ledger.

        Any line over its remainder is a StateConflict; nothing is clamped.
        """
        requested = self._group_requests(items)
        if not requested:
            raise ValidationError("Select at least one item to return.")

        with transaction(self.conn):
            parent = self.invoices.get(parent_invoice_id, with_items=False)
            assert_transition(parent.invoice_type, parent.status, ACTION_RETURN)

            returnable = {ri.item_id: ri for ri in self.get_returnable_items(parent_invoice_id)}
            lines: list[tuple[ReturnableItem, float]] = []
            for item_id, amount in requested.items():
                ri = returnable.get(item_id)
                if ri is None:
                    raise ValidationError(f"Line {item_id} is not on invoice {parent.invoice_number}.")
                if ri.price_type == "per_unit" and not is_whole_number(amount):
                    raise ValidationError(f"{ri.sku_name}: return quantity must be a whole number.")
                if amount > ri.returnable + QTY_EPS:
                    raise StateConflict(
                        f"{ri.sku_name}: requested {amount:g}, returnable {ri.returnable:g}.",
                        context={"item_id": item_id, "requested": amount, "returnable": ri.returnable},
                    )
                lines.append((ri, amount))

            inter_state = bool(parent.is_inter_state)
            return_items: list[InvoiceItem] = []
            total = subtotal = cgst = sgst = igst = 0.0
            for ri, amount in lines:
                value = ri.unit_price * amount
                inc = calc_inclusive_line(value, ri.gst_rate)
                split = split_gst(inter_state, inc.gst_amount)
                total += value
                subtotal += inc.taxable_value
                cgst += split.cgst
                sgst += split.sgst
                igst += split.igst
                return_items.append(
                    InvoiceItem(
                        item_id=None,
                        invoice_id=None,
                        sku_id=ri.sku_id,
                        sku_code=ri.sku_code,
                        sku_name=ri.sku_name,
                        price_type=ri.price_type,
                        quantity=int(round(amount)) if ri.price_type == "per_unit" else 0,
                        length_metres=amount if ri.price_type == "per_length" else 0.0,
                        unit_price=ri.unit_price,
                        line_total=round_money(value),
                        discount_allocated=0.0,
                        gst_rate=ri.gst_rate,
                        taxable_value=round_money(inc.taxable_value),
                        cgst_amount=round_money(split.cgst),
                        sgst_amount=round_money(split.sgst),
                        igst_amount=round_money(split.igst),
                        parent_item_id=ri.item_id,
                    )
                )

            return_amount = round_money(total)
            if parent.customer_id is not None:
                due = self.ledger.get_balances("customer", parent.customer_id).due
                applied_to_due, to_advance = split_credit_against_due(return_amount, due)
                applied_to_due, to_advance = round_money(applied_to_due), round_money(to_advance)
                refund_due = 0.0
            else:
                applied_to_due = to_advance = 0.0
                refund_due = return_amount

            number = self.invoices.generate_invoice_number(INVOICE_PREFIXES["return"])
            now = now_str()
            header = Invoice(
                invoice_id=0,
                invoice_number=number,
                invoice_type="return",
                status="completed",
                customer_id=parent.customer_id,
                customer_name=parent.customer_name,
                customer_phone=parent.customer_phone,
                subtotal=-round_money(subtotal),
                discount_amount=0.0,
                tax_amount=-round_money(total - subtotal),
                cgst_amount=-round_money(cgst),
                sgst_amount=-round_money(sgst),
                igst_amount=-round_money(igst),
                total_amount=-return_amount,
                advance_created=to_advance,
                place_of_supply_state=parent.place_of_supply_state,
                customer_gstin=parent.customer_gstin,
                is_inter_state=parent.is_inter_state,
                parent_invoice_id=parent_invoice_id,
                notes=notes,
                created_by=actor,
                completed_at=now,
            )
            return_id = self.invoices.insert_header(header)
            for it in return_items:
                it.invoice_id = return_id
                self.invoices.insert_item(it)
                self.stock.restore(
                    it.sku_id, it.amount,
                    change_type="return_restock", reference_id=return_id,
                    actor=actor, notes=f"{number} against {parent.invoice_number}",
                )

            self.conn.execute(
                "UPDATE invoices SET returned_amount = ROUND(CAST(returned_amount AS REAL) + ?, 2), updated_at = ? "
                "WHERE invoice_id = ?",
                (return_amount, now, parent_invoice_id),
            )

            if parent.customer_id is not None:
                self.ledger.append(
                    "customer", parent.customer_id, "return",
                    credit=return_amount, reference_id=return_id, reference_label=number,
                    notes=notes or f"return against {parent.invoice_number}", actor=actor,
                )

        _log.info(
            "return %s against %s amount=%.2f due=%.2f advance=%.2f refund=%.2f",
            number, parent.invoice_number, return_amount, applied_to_due, to_advance, refund_due,
        )
        return ReturnOutcome(
            return_invoice_id=return_id,
            return_invoice_number=number,
            return_amount=return_amount,
            applied_to_due=applied_to_due,
            to_advance=to_advance,
            refund_due=refund_due,
        )
