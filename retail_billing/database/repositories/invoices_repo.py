from __future__ import annotations

"""
Invoices: numbering, draft creation, and the two atomic transitions.

complete_invoice() and cancel_invoice() each run as one BEGIN IMMEDIATE
transaction covering the status re-check, every stock movement, every ledger
entry and the header update. Any exception rolls the whole unit back, so a
rejected completion leaves the invoice in 'draft' with stock and balances
untouched.
"""

from dataclasses import dataclass, field, fields
from datetime import date
import logging
import sqlite3
from typing import Optional

from ...constants import GST_PRICING_MODE, INVOICE_PREFIXES, INVOICE_TYPES, MONEY_EPS
from ...errors import InvoiceNotFound, StateConflict, ValidationError
from ...modules.billing.lifecycle import ACTION_CANCEL, ACTION_COMPLETE, assert_transition
from ...modules.billing.session import DraftInvoice
from ...modules.ledger.reconciliation import Balances
from ...modules.payments.allocation import PaymentSplit, allocate_payment
from ...modules.payments.calculations import clamp_non_negative, status_from_paid
from ...utils.helpers import now_str, round_money
from .. import transaction
from .ledger_repo import LedgerRepo
from .stock_repo import StockRepo

_log = logging.getLogger(__name__)


@dataclass
class InvoiceItem:
    item_id: int | None
    invoice_id: int | None
    sku_id: int
    sku_code: str
    sku_name: str
    price_type: str
    quantity: int
    length_metres: float
    unit_price: float
    line_total: float
    discount_allocated: float = 0.0
    gst_rate: float = 0.0
    hsn_code: str | None = None
    cost_price: float | None = None
    taxable_value: float = 0.0
    cgst_amount: float = 0.0
    sgst_amount: float = 0.0
    igst_amount: float = 0.0
    discount_type: str | None = None
    discount_value: float = 0.0
    line_discount: float = 0.0
    mrp: float | None = None
    parent_item_id: int | None = None

    @property
    def amount(self) -> float:
        """Quantity or length, whichever the price type uses."""
        return float(self.length_metres) if self.price_type == "per_length" else float(self.quantity)


@dataclass
class Invoice:
    invoice_id: int
    invoice_number: str
    invoice_type: str
    status: str
    customer_id: int | None = None
    supplier_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    supplier_name: str | None = None
    supplier_invoice_no: str | None = None
    subtotal: float = 0.0
    discount_amount: float = 0.0
    tax_amount: float = 0.0
    cgst_amount: float = 0.0
    sgst_amount: float = 0.0
    igst_amount: float = 0.0
    total_amount: float = 0.0
    round_off_amount: float = 0.0
    cash_amount: float = 0.0
    upi_amount: float = 0.0
    card_amount: float = 0.0
    credit_amount: float = 0.0
    amount_paid: float = 0.0
    advance_applied: float = 0.0
    advance_created: float = 0.0
    pending_amount: float = 0.0
    returned_amount: float = 0.0
    place_of_supply_state: str | None = None
    customer_gstin: str | None = None
    supplier_gstin: str | None = None
    gst_pricing_mode: str = GST_PRICING_MODE
    is_inter_state: int = 0
    parent_invoice_id: int | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None
    cancelled_at: str | None = None
    items: list[InvoiceItem] = field(default_factory=list)

    @property
    def party(self) -> tuple[str, int] | None:
        if self.customer_id is not None:
            return "customer", self.customer_id
        if self.supplier_id is not None:
            return "supplier", self.supplier_id
        return None

    @property
    def payment_status(self) -> str:
        """paid / partial / unpaid, counting advance applied as paid."""
        if self.status != "completed":
            return "unpaid"
        return status_from_paid(self.total_amount - MONEY_EPS, self.amount_paid + self.advance_applied)


@dataclass(frozen=True)
class CompletionOutcome:
    invoice_id: int
    invoice_number: str
    total_amount: float
    amount_paid: float
    advance_used: float
    pending: float
    overpay: float
    advance_created: float
    balances: Balances | None = None


@dataclass(frozen=True)
class CancelOutcome:
    invoice_id: int
    invoice_number: str
    refund_due: float        # money to hand back at the counter
    reversed_to_ledger: float
    balances: Balances | None = None


_MONEY_COLS = (
    "subtotal", "discount_amount", "tax_amount", "cgst_amount", "sgst_amount", "igst_amount",
    "total_amount", "cash_amount", "upi_amount", "card_amount", "credit_amount", "amount_paid",
    "advance_applied", "advance_created", "pending_amount", "returned_amount", "round_off_amount",
)
_HEADER_COLS = ", ".join(
    f"CAST({f.name} AS REAL) AS {f.name}" if f.name in _MONEY_COLS else f.name
    for f in fields(Invoice)
    if f.name != "items"
)
_ITEM_REAL_COLS = (
    "length_metres", "unit_price", "line_total", "discount_allocated", "gst_rate",
    "cost_price", "taxable_value", "cgst_amount", "sgst_amount", "igst_amount",
    "discount_value", "line_discount", "mrp",
)
_ITEM_COLS = ", ".join(
    f"CAST({f.name} AS REAL) AS {f.name}" if f.name in _ITEM_REAL_COLS else f.name
    for f in fields(InvoiceItem)
)


class InvoicesRepo:
    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        stock: StockRepo | None = None,
        ledger: LedgerRepo | None = None,
    ):
        self.conn = conn
        self.stock = stock or StockRepo(conn)
        self.ledger = ledger or LedgerRepo(conn)

    # ------------------------------------------------------------------
    # numbering
    # ------------------------------------------------------------------
    def generate_invoice_number(self, prefix: str, *, day: date | None = None) -> str:
        """
        PREFIX-YYYYMMDD-#### with a per-prefix, per-day sequence.
        Runs inside the caller's transaction when there is one.
        """
        d = (day or date.today()).strftime("%Y%m%d")
        with transaction(self.conn):
            self.conn.execute(
                """
                INSERT INTO invoice_counters(prefix, day, last_seq) VALUES (?, ?, 1)
                ON CONFLICT(prefix, day) DO UPDATE SET last_seq = last_seq + 1
                """,
                (prefix, d),
            )
            seq = self.conn.execute(
                "SELECT last_seq FROM invoice_counters WHERE prefix = ? AND day = ?", (prefix, d)
            ).fetchone()["last_seq"]
        return f"{prefix}-{d}-{int(seq):04d}"

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def _row_to_invoice(self, row: sqlite3.Row) -> Invoice:
        return Invoice(**{k: row[k] for k in row.keys()})

    def get(self, invoice_id: int, *, with_items: bool = True) -> Invoice:
        """Invoice by id; InvoiceNotFound when it does not exist."""
        row = self.conn.execute(
            f"SELECT {_HEADER_COLS} FROM invoices WHERE invoice_id = ?", (invoice_id,)
        ).fetchone()
        if row is None:
            raise InvoiceNotFound(invoice_id)
        inv = self._row_to_invoice(row)
        if with_items:
            inv.items = self.list_items(invoice_id)
        return inv

    def get_by_number(self, invoice_number: str) -> Invoice:
        row = self.conn.execute(
            "SELECT invoice_id FROM invoices WHERE invoice_number = ?", (invoice_number,)
        ).fetchone()
        if row is None:
            raise InvoiceNotFound(invoice_number)
        return self.get(int(row["invoice_id"]))

    def list_items(self, invoice_id: int) -> list[InvoiceItem]:
        rows = self.conn.execute(
            f"SELECT {_ITEM_COLS} FROM invoice_items WHERE invoice_id = ? ORDER BY item_id",
            (invoice_id,),
        ).fetchall()
        return [InvoiceItem(**r) for r in rows]

    def list_invoices(
        self,
        *,
        invoice_type: str | None = None,
        status: str | None = None,
        customer_id: int | None = None,
        supplier_id: int | None = None,
        limit: int = 100,
    ) -> list[Invoice]:
        if invoice_type is not None and invoice_type not in INVOICE_TYPES:
            raise ValidationError(f"Unknown invoice type: {invoice_type}")
        where, params = [], []
        for col, val in (
            ("invoice_type", invoice_type),
            ("status", status),
            ("customer_id", customer_id),
            ("supplier_id", supplier_id),
        ):
            if val is not None:
                where.append(f"{col} = ?")
                params.append(val)
        sql = f"SELECT {_HEADER_COLS} FROM invoices"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY invoice_id DESC LIMIT ?"
        params.append(int(limit))
        return [self._row_to_invoice(r) for r in self.conn.execute(sql, params).fetchall()]

    def has_active_returns(self, invoice_id: int) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM invoices WHERE parent_invoice_id = ? AND invoice_type = 'return' "
            "AND status <> 'cancelled' LIMIT 1",
            (invoice_id,),
        ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # inserts
    # ------------------------------------------------------------------
    def insert_header(self, inv: Invoice) -> int:
        cols = [f.name for f in fields(Invoice) if f.name not in ("invoice_id", "items", "created_at", "updated_at")]
        placeholders = ", ".join("?" for _ in cols)
        cur = self.conn.execute(
            f"INSERT INTO invoices({', '.join(cols)}) VALUES ({placeholders})",
            [getattr(inv, c) for c in cols],
        )
        return int(cur.lastrowid)

    def insert_item(self, it: InvoiceItem) -> int:
        cols = [f.name for f in fields(InvoiceItem) if f.name != "item_id"]
        placeholders = ", ".join("?" for _ in cols)
        cur = self.conn.execute(
            f"INSERT INTO invoice_items({', '.join(cols)}) VALUES ({placeholders})",
            [getattr(it, c) for c in cols],
        )
        return int(cur.lastrowid)

    def create_draft(self, draft: DraftInvoice) -> Invoice:
        """Persist a priced draft with its items. Stock and ledgers are untouched."""
        if draft.invoice_type not in ("sale", "purchase"):
            raise ValidationError(f"Drafts are sales or purchases, not {draft.invoice_type!r}.")
        if not draft.totals.lines:
            raise ValidationError("Add items to the bill first.")
        if draft.invoice_type == "purchase" and draft.supplier_id is None:
            raise ValidationError("Select a supplier for the purchase.")
        if draft.invoice_type == "sale" and draft.supplier_id is not None:
            raise ValidationError("A sale cannot be billed to a supplier.")

        t = draft.totals
        party = draft.party
        with transaction(self.conn):
            number = self.generate_invoice_number(INVOICE_PREFIXES[draft.invoice_type])
            header = Invoice(
                invoice_id=0,
                invoice_number=number,
                invoice_type=draft.invoice_type,
                status="draft",
                customer_id=draft.customer_id,
                supplier_id=draft.supplier_id,
                customer_name=draft.customer_name,
                customer_phone=draft.customer_phone,
                supplier_name=party.name if draft.supplier_id is not None else None,
                supplier_invoice_no=draft.supplier_invoice_no,
                place_of_supply_state=draft.place_of_supply_state,
                customer_gstin=party.gstin if draft.customer_id is not None else None,
                supplier_gstin=party.gstin if draft.supplier_id is not None else None,
                is_inter_state=1 if t.is_inter_state else 0,
                pending_amount=round_money(t.total_amount),
                notes=draft.notes,
                created_by=draft.created_by,
                **t.rounded(),
            )
            invoice_id = self.insert_header(header)
            for pl in t.lines:
                ln = pl.line
                self.insert_item(
                    InvoiceItem(
                        item_id=None,
                        invoice_id=invoice_id,
                        sku_id=ln.sku_id,
                        sku_code=ln.sku_code,
                        sku_name=ln.sku_name,
                        price_type=ln.price_type,
                        quantity=int(ln.quantity) if ln.price_type == "per_unit" else 0,
                        length_metres=float(ln.length) if ln.price_type == "per_length" else 0.0,
                        unit_price=round_money(ln.unit_price),
                        line_total=round_money(pl.line_total),
                        discount_allocated=round_money(pl.discount_allocated),
                        gst_rate=ln.gst_rate,
                        hsn_code=ln.hsn_code,
                        cost_price=ln.cost_price,
                        taxable_value=round_money(pl.taxable_value),
                        cgst_amount=round_money(pl.cgst),
                        sgst_amount=round_money(pl.sgst),
                        igst_amount=round_money(pl.igst),
                        discount_type=ln.discount_type,
                        discount_value=ln.discount_value,
                        line_discount=round_money(ln.line_discount),
                        mrp=None if ln.mrp is None else round_money(ln.mrp),
                    )
                )
        _log.info("draft %s created (%s, total %.2f)", number, draft.invoice_type, t.total_amount)
        return self.get(invoice_id)

    # ------------------------------------------------------------------
    # draft -> completed
    # ------------------------------------------------------------------
    def complete_invoice(
        self,
        invoice_id: int,
        split: PaymentSplit,
        *,
        confirm_overpay: bool = False,
        actor: str | None = None,
    ) -> CompletionOutcome:
        """
        Atomically: re-check status, validate the payment split, move stock
        (sale deducts, purchase adds), post ledger entries, flip to completed.

        Ledger postings for a party, in order:
          sale|purchase  debit  total
          advance_applied credit advance used
          payment        credit cash + upi + card
        """
        with transaction(self.conn):
            inv = self.get(invoice_id)
            new_status = assert_transition(inv.invoice_type, inv.status, ACTION_COMPLETE)
            party = inv.party
            alloc = allocate_payment(
                inv.total_amount, split, has_party=party is not None, confirm_overpay=confirm_overpay
            )

            before = None
            if party is not None:
                before = self.ledger.get_balances(*party)
                if split.advance_used > before.advance + MONEY_EPS:
                    raise ValidationError(
                        f"Advance used {split.advance_used:.2f} exceeds available advance {before.advance:.2f}.",
                        context={"advance_balance": before.advance, "advance_used": split.advance_used},
                    )

            for it in inv.items:
                if inv.invoice_type == "sale":
                    self.stock.deduct(
                        it.sku_id, it.amount,
                        change_type="sale_deduction", reference_id=invoice_id,
                        actor=actor, notes=inv.invoice_number,
                    )
                else:
                    self.stock.restore(
                        it.sku_id, it.amount,
                        change_type="purchase_addition", reference_id=invoice_id,
                        actor=actor, notes=inv.invoice_number,
                    )

            advance_used = round_money(split.advance_used)
            paid_now = round_money(split.paid_now)
            advance_created = 0.0
            after = None
            if party is not None:
                label = inv.invoice_number
                self.ledger.append(
                    *party, inv.invoice_type,
                    debit=inv.total_amount, reference_id=invoice_id, reference_label=label, actor=actor,
                )
                self.ledger.append(
                    *party, "advance_applied",
                    credit=advance_used, reference_id=invoice_id, reference_label=label,
                    notes="advance applied to bill", actor=actor,
                )
                self.ledger.append(
                    *party, "payment",
                    credit=paid_now, reference_id=invoice_id, reference_label=label,
                    notes="paid at billing", actor=actor,
                )
                after = self.ledger.get_balances(*party)
                advance_created = round_money(clamp_non_negative(after.advance - (before.advance - advance_used)))

            now = now_str()
            self.conn.execute(
                """
                UPDATE invoices
                   SET status = ?, cash_amount = ?, upi_amount = ?, card_amount = ?, credit_amount = ?,
                       amount_paid = ?, advance_applied = ?, advance_created = ?, pending_amount = ?,
                       completed_at = ?, updated_at = ?
                 WHERE invoice_id = ? AND status = 'draft'
                """,
                (
                    new_status,
                    round_money(split.cash), round_money(split.upi), round_money(split.card),
                    alloc.credit_applied,
                    paid_now, advance_used, advance_created, alloc.pending,
                    now, now, invoice_id,
                ),
            )

        _log.info(
            "completed %s total=%.2f paid=%.2f advance=%.2f pending=%.2f",
            inv.invoice_number, inv.total_amount, paid_now, advance_used, alloc.pending,
        )
        return CompletionOutcome(
            invoice_id=invoice_id,
            invoice_number=inv.invoice_number,
            total_amount=inv.total_amount,
            amount_paid=paid_now,
            advance_used=advance_used,
            pending=alloc.pending,
            overpay=alloc.overpay,
            advance_created=advance_created,
            balances=after,
        )

    # ------------------------------------------------------------------
    # completed -> cancelled
    # ------------------------------------------------------------------
    def cancel_invoice(self, invoice_id: int, *, actor: str | None = None) -> CancelOutcome:
        """
        Compensating transaction for a completed sale or purchase.

        Stock moves back (a purchase needs the received stock still on hand).
        The party gets one adjustment credit for what the bill left on its
        account: pending + advance used. The bill's share of the money paid
        is handed back at the counter and reported as refund_due; any excess
        that went to older dues or advance stays with the party.
        """
        with transaction(self.conn):
            inv = self.get(invoice_id)
            new_status = assert_transition(inv.invoice_type, inv.status, ACTION_CANCEL)
            if self.has_active_returns(invoice_id):
                raise StateConflict(
                    f"{inv.invoice_number} has returns against it and cannot be cancelled.",
                    context={"invoice_id": invoice_id},
                )

            for it in inv.items:
                if inv.invoice_type == "sale":
                    self.stock.restore(
                        it.sku_id, it.amount,
                        change_type="cancellation_restore", reference_id=invoice_id,
                        actor=actor, notes=f"{inv.invoice_number} cancelled",
                    )
                else:
                    self.stock.deduct(
                        it.sku_id, it.amount,
                        change_type="cancellation_restore", reference_id=invoice_id,
                        actor=actor, notes=f"{inv.invoice_number} cancelled",
                    )

            reversed_amount = round_money(inv.pending_amount + inv.advance_applied)
            refund_due = round_money(
                min(inv.amount_paid, clamp_non_negative(inv.total_amount - inv.advance_applied))
            )
            after = None
            party = inv.party
            if party is not None:
                self.ledger.append(
                    *party, "adjustment",
                    credit=reversed_amount, reference_id=invoice_id, reference_label=inv.invoice_number,
                    notes="bill cancelled", actor=actor,
                )
                after = self.ledger.get_balances(*party)

            now = now_str()
            self.conn.execute(
                "UPDATE invoices SET status = ?, cancelled_at = ?, updated_at = ? "
                "WHERE invoice_id = ? AND status = 'completed'",
                (new_status, now, now, invoice_id),
            )

        _log.info("cancelled %s refund_due=%.2f reversed=%.2f", inv.invoice_number, refund_due, reversed_amount)
        return CancelOutcome(
            invoice_id=invoice_id,
            invoice_number=inv.invoice_number,
            refund_due=refund_due,
            reversed_to_ledger=reversed_amount,
            balances=after,
        )
