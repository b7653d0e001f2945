from __future__ import annotations

"""
Append-only party ledgers (customer_ledger / supplier_ledger).

Each append folds the new entry onto the party's cached balances with
modules.ledger.reconciliation.apply_entry, stores the resulting snapshot on
the ledger row and writes the same numbers back to the party's
outstanding_balance / advance_balance. The cache can always be re-derived
from the rows with derive_balances().
"""

from dataclasses import dataclass
import logging
import sqlite3
from typing import Optional

from ...constants import LEDGER_ENTRY_TYPES, PARTY_TYPES
from ...errors import ValidationError
from ...modules.ledger.reconciliation import Balances, LedgerRow, apply_entry, fold
from ...utils.helpers import round_money
from .. import transaction

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartyTables:
    party_table: str
    id_column: str
    ledger_table: str
    payments_table: str


PARTY_TABLES = {
    "customer": PartyTables("customers", "customer_id", "customer_ledger", "customer_payments"),
    "supplier": PartyTables("suppliers", "supplier_id", "supplier_ledger", "supplier_payments"),
}


def party_tables(party: str) -> PartyTables:
    if party not in PARTY_TYPES:
        raise ValidationError(f"Unknown party type: {party!r}")
    return PARTY_TABLES[party]


class LedgerRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Balances ----------
    def get_balances(self, party: str, party_id: int) -> Balances:
        """Cached balances from the party row; ValidationError for unknown ids."""
        t = party_tables(party)
        row = self.conn.execute(
            f"SELECT CAST(outstanding_balance AS REAL) AS due, CAST(advance_balance AS REAL) AS advance "
            f"FROM {t.party_table} WHERE {t.id_column} = ?",
            (party_id,),
        ).fetchone()
        if row is None:
            raise ValidationError(f"Unknown {party}: {party_id!r}")
        return Balances(due=float(row["due"] or 0.0), advance=float(row["advance"] or 0.0))

    def _write_cache(self, party: str, party_id: int, balances: Balances) -> None:
        t = party_tables(party)
        self.conn.execute(
            f"UPDATE {t.party_table} SET outstanding_balance = ?, advance_balance = ? WHERE {t.id_column} = ?",
            (round_money(balances.due), round_money(balances.advance), party_id),
        )

    # ---------- Append ----------
    def append(
        self,
        party: str,
        party_id: int,
        entry_type: str,
        *,
        debit: float = 0.0,
        credit: float = 0.0,
        reference_id: Optional[int] = None,
        reference_label: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Optional[LedgerRow]:
        """
        Post one entry and update the party's cached balances.

        Zero-amount entries are not written; returns None for them.
        Does not commit on its own when the caller holds a transaction.
        """
        if entry_type not in LEDGER_ENTRY_TYPES:
            raise ValidationError(f"Unknown ledger entry type: {entry_type!r}")
        debit = round_money(debit or 0.0)
        credit = round_money(credit or 0.0)
        if debit < 0 or credit < 0:
            raise ValidationError("Ledger amounts cannot be negative.")
        if debit == 0 and credit == 0:
            return None

        t = party_tables(party)
        with transaction(self.conn):
            before = self.get_balances(party, party_id)
            after = apply_entry(before, entry_type, debit, credit)
            cur = self.conn.execute(
                f"""
                INSERT INTO {t.ledger_table}(
                    {t.id_column}, entry_type, debit_amount, credit_amount,
                    running_balance, advance_balance, reference_id, reference_label, notes, created_by
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    party_id, entry_type, debit, credit,
                    after.due, after.advance, reference_id, reference_label, notes, actor,
                ),
            )
            self._write_cache(party, party_id, after)
            entry_id = int(cur.lastrowid)

        _log.debug(
            "ledger %s#%s %s dr=%.2f cr=%.2f -> due=%.2f adv=%.2f",
            party, party_id, entry_type, debit, credit, after.due, after.advance,
        )
        return LedgerRow(
            entry_type=entry_type,
            debit_amount=debit,
            credit_amount=credit,
            running_balance=after.due,
            advance_balance=after.advance,
            entry_id=entry_id,
            party_id=party_id,
            reference_id=reference_id,
            reference_label=reference_label,
            notes=notes,
            created_by=actor,
        )

    # ---------- Queries ----------
    def list_entries(self, party: str, party_id: int) -> list[LedgerRow]:
        t = party_tables(party)
        rows = self.conn.execute(
            f"""
            SELECT entry_id, {t.id_column} AS party_id, entry_type,
                   CAST(debit_amount AS REAL)    AS debit_amount,
                   CAST(credit_amount AS REAL)   AS credit_amount,
                   CAST(running_balance AS REAL) AS running_balance,
                   CAST(advance_balance AS REAL) AS advance_balance,
                   reference_id, reference_label, notes, created_by, created_at
              FROM {t.ledger_table}
             WHERE {t.id_column} = ?
             ORDER BY entry_id
            """,
            (party_id,),
        ).fetchall()
        return [LedgerRow(**r) for r in rows]

    def derive_balances(self, party: str, party_id: int) -> Balances:
        """Replay the party's full history."""
        return fold(self.list_entries(party, party_id))

    def party_ids(self, party: str) -> list[int]:
        t = party_tables(party)
        rows = self.conn.execute(f"SELECT {t.id_column} AS pid FROM {t.party_table} ORDER BY {t.id_column}").fetchall()
        return [int(r["pid"]) for r in rows]

    def rewrite_cache(self, party: str, party_id: int) -> Balances:
        with transaction(self.conn):
            derived = self.derive_balances(party, party_id)
            self._write_cache(party, party_id, derived)
        return derived
