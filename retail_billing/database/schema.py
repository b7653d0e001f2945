from pathlib import Path
import logging
import sqlite3
import sys

_log = logging.getLogger(__name__)

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- shop -------- */
CREATE TABLE IF NOT EXISTS shop_settings (
    shop_id    INTEGER PRIMARY KEY CHECK (shop_id = 1),
    shop_name  TEXT NOT NULL,
    state      TEXT,
    gstin      TEXT,
    address    TEXT,
    phone      TEXT
);

/* -------- parties -------- */
CREATE TABLE IF NOT EXISTS customers (
    customer_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name                TEXT NOT NULL,
    phone               TEXT,
    city                TEXT,
    state               TEXT,
    gstin               TEXT,
    outstanding_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(outstanding_balance AS REAL) >= 0),
    advance_balance     NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(advance_balance AS REAL) >= 0),
    is_deleted          INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0,1)),
    created_at          TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_customers_phone ON customers(phone);

CREATE TABLE IF NOT EXISTS suppliers (
    supplier_id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name                TEXT NOT NULL,
    phone               TEXT,
    state               TEXT,
    gstin               TEXT,
    outstanding_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(outstanding_balance AS REAL) >= 0),
    advance_balance     NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(advance_balance AS REAL) >= 0),
    created_at          TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

/* -------- SKUs -------- */
CREATE TABLE IF NOT EXISTS skus (
    sku_id              INTEGER PRIMARY KEY AUTOINCREMENT,
    sku_code            TEXT UNIQUE NOT NULL,
    name                TEXT NOT NULL,
    barcode             TEXT UNIQUE,
    price_type          TEXT NOT NULL CHECK (price_type IN ('per_unit','per_length')),
    /* per_unit sells at fixed_price, per_length at rate (per metre); both tax inclusive */
    fixed_price         NUMERIC CHECK (fixed_price IS NULL OR CAST(fixed_price AS REAL) >= 0),
    rate                NUMERIC CHECK (rate IS NULL OR CAST(rate AS REAL) >= 0),
    cost_price          NUMERIC CHECK (cost_price IS NULL OR CAST(cost_price AS REAL) >= 0),
    gst_rate            NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(gst_rate AS REAL) BETWEEN 0 AND 100),
    hsn_code            TEXT,
    quantity            INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
    length_metres       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(length_metres AS REAL) >= 0),
    low_stock_threshold NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(low_stock_threshold AS REAL) >= 0),
    created_at          TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);

/* -------- invoice numbering -------- */
CREATE TABLE IF NOT EXISTS invoice_counters (
    prefix   TEXT NOT NULL,
    day      TEXT NOT NULL,
    last_seq INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (prefix, day)
);

/* -------- invoices: sale / purchase / return -------- */
CREATE TABLE IF NOT EXISTS invoices (
    invoice_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number        TEXT UNIQUE NOT NULL,
    invoice_type          TEXT NOT NULL CHECK (invoice_type IN ('sale','purchase','return')),
    status                TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','completed','cancelled')),

    customer_id           INTEGER,
    supplier_id           INTEGER,
    customer_name         TEXT,
    customer_phone        TEXT,
    supplier_name         TEXT,
    supplier_invoice_no   TEXT,

    /* money; return invoices carry negative subtotal/tax/total */
    subtotal              NUMERIC NOT NULL DEFAULT 0,
    discount_amount       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_amount AS REAL) >= 0),
    tax_amount            NUMERIC NOT NULL DEFAULT 0,
    cgst_amount           NUMERIC NOT NULL DEFAULT 0,
    sgst_amount           NUMERIC NOT NULL DEFAULT 0,
    igst_amount           NUMERIC NOT NULL DEFAULT 0,
    round_off_amount      NUMERIC NOT NULL DEFAULT 0,
    total_amount          NUMERIC NOT NULL DEFAULT 0,

    /* checkout split */
    cash_amount           NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(cash_amount AS REAL) >= 0),
    upi_amount            NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(upi_amount AS REAL) >= 0),
    card_amount           NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(card_amount AS REAL) >= 0),
    credit_amount         NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(credit_amount AS REAL) >= 0),
    amount_paid           NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(amount_paid AS REAL) >= 0),
    advance_applied       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(advance_applied AS REAL) >= 0),
    advance_created       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(advance_created AS REAL) >= 0),
    pending_amount        NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(pending_amount AS REAL) >= 0),
    returned_amount       NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(returned_amount AS REAL) >= 0),

    /* tax context */
    place_of_supply_state TEXT,
    customer_gstin        TEXT,
    supplier_gstin        TEXT,
    gst_pricing_mode      TEXT NOT NULL DEFAULT 'inclusive' CHECK (gst_pricing_mode = 'inclusive'),
    is_inter_state        INTEGER NOT NULL DEFAULT 0 CHECK (is_inter_state IN (0,1)),

    parent_invoice_id     INTEGER,
    notes                 TEXT,
    created_by            TEXT,
    created_at            TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at            TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    completed_at          TIMESTAMP,
    cancelled_at          TIMESTAMP,

    CHECK (NOT (customer_id IS NOT NULL AND supplier_id IS NOT NULL)),
    CHECK (invoice_type <> 'purchase' OR supplier_id IS NOT NULL),
    CHECK (invoice_type <> 'return' OR parent_invoice_id IS NOT NULL),
    FOREIGN KEY (customer_id)       REFERENCES customers(customer_id),
    FOREIGN KEY (supplier_id)       REFERENCES suppliers(supplier_id),
    FOREIGN KEY (parent_invoice_id) REFERENCES invoices(invoice_id)
);
CREATE INDEX IF NOT EXISTS idx_invoices_parent   ON invoices(parent_invoice_id);
CREATE INDEX IF NOT EXISTS idx_invoices_customer ON invoices(customer_id);
CREATE INDEX IF NOT EXISTS idx_invoices_supplier ON invoices(supplier_id);

CREATE TABLE IF NOT EXISTS invoice_items (
    item_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id         INTEGER NOT NULL,
    sku_id             INTEGER NOT NULL,
    sku_code           TEXT NOT NULL,
    sku_name           TEXT NOT NULL,
    price_type         TEXT NOT NULL CHECK (price_type IN ('per_unit','per_length')),
    quantity           INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
    length_metres      NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(length_metres AS REAL) >= 0),
    unit_price         NUMERIC NOT NULL CHECK (CAST(unit_price AS REAL) >= 0),
    /* purchase lines: supplier discount and the MRP printed on labels */
    discount_type      TEXT CHECK (discount_type IS NULL OR discount_type IN ('percent_per_unit','amount_per_unit','total_amount')),
    discount_value     NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_value AS REAL) >= 0),
    line_discount      NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(line_discount AS REAL) >= 0),
    mrp                NUMERIC,
    line_total         NUMERIC NOT NULL CHECK (CAST(line_total AS REAL) >= 0),
    discount_allocated NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(discount_allocated AS REAL) >= 0),
    gst_rate           NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(gst_rate AS REAL) BETWEEN 0 AND 100),
    hsn_code           TEXT,
    cost_price         NUMERIC,
    taxable_value      NUMERIC NOT NULL DEFAULT 0,
    cgst_amount        NUMERIC NOT NULL DEFAULT 0,
    sgst_amount        NUMERIC NOT NULL DEFAULT 0,
    igst_amount        NUMERIC NOT NULL DEFAULT 0,
    /* return lines point back at the sale line they reverse */
    parent_item_id     INTEGER,
    FOREIGN KEY (invoice_id)     REFERENCES invoices(invoice_id) ON DELETE CASCADE,
    FOREIGN KEY (sku_id)         REFERENCES skus(sku_id),
    FOREIGN KEY (parent_item_id) REFERENCES invoice_items(item_id)
);
CREATE INDEX IF NOT EXISTS idx_invoice_items_invoice ON invoice_items(invoice_id);
CREATE INDEX IF NOT EXISTS idx_invoice_items_parent  ON invoice_items(parent_item_id);

/* -------- stock audit trail (append-only) -------- */
CREATE TABLE IF NOT EXISTS inventory_logs (
    log_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    sku_id            INTEGER NOT NULL,
    previous_quantity INTEGER,
    new_quantity      INTEGER,
    previous_length   NUMERIC,
    new_length        NUMERIC,
    change_type       TEXT NOT NULL CHECK (change_type IN (
                          'manual_update','opening_stock','sale_deduction',
                          'purchase_addition','return_restock','cancellation_restore')),
    reference_id      INTEGER,
    changed_by        TEXT,
    notes             TEXT,
    created_at        TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (sku_id)       REFERENCES skus(sku_id),
    FOREIGN KEY (reference_id) REFERENCES invoices(invoice_id)
);
CREATE INDEX IF NOT EXISTS idx_inventory_logs_sku ON inventory_logs(sku_id, log_id);

/* -------- party ledgers (append-only) -------- */
CREATE TABLE IF NOT EXISTS customer_ledger (
    entry_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id     INTEGER NOT NULL,
    entry_type      TEXT NOT NULL CHECK (entry_type IN (
                        'sale','purchase','payment','return',
                        'advance_applied','advance_refund','adjustment')),
    debit_amount    NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(debit_amount AS REAL) >= 0),
    credit_amount   NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(credit_amount AS REAL) >= 0),
    running_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(running_balance AS REAL) >= 0),
    advance_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(advance_balance AS REAL) >= 0),
    reference_id    INTEGER,
    reference_label TEXT,
    notes           TEXT,
    created_by      TEXT,
    created_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);
CREATE INDEX IF NOT EXISTS idx_customer_ledger_party ON customer_ledger(customer_id, entry_id);

CREATE TABLE IF NOT EXISTS supplier_ledger (
    entry_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id     INTEGER NOT NULL,
    entry_type      TEXT NOT NULL CHECK (entry_type IN (
                        'sale','purchase','payment','return',
                        'advance_applied','advance_refund','adjustment')),
    debit_amount    NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(debit_amount AS REAL) >= 0),
    credit_amount   NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(credit_amount AS REAL) >= 0),
    running_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(running_balance AS REAL) >= 0),
    advance_balance NUMERIC NOT NULL DEFAULT 0 CHECK (CAST(advance_balance AS REAL) >= 0),
    reference_id    INTEGER,
    reference_label TEXT,
    notes           TEXT,
    created_by      TEXT,
    created_at      TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (supplier_id) REFERENCES suppliers(supplier_id)
);
CREATE INDEX IF NOT EXISTS idx_supplier_ledger_party ON supplier_ledger(supplier_id, entry_id);

/* -------- standalone receipts / payouts / refunds -------- */
CREATE TABLE IF NOT EXISTS customer_payments (
    payment_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id    INTEGER NOT NULL,
    amount         NUMERIC NOT NULL CHECK (CAST(amount AS REAL) <> 0),
    payment_method TEXT NOT NULL CHECK (payment_method IN ('cash','upi','card')),
    kind           TEXT NOT NULL CHECK (kind IN ('receipt','refund')),
    notes          TEXT,
    created_by     TEXT,
    payment_date   TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CHECK ((kind = 'receipt' AND CAST(amount AS REAL) > 0) OR (kind = 'refund' AND CAST(amount AS REAL) < 0)),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);

CREATE TABLE IF NOT EXISTS supplier_payments (
    payment_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    supplier_id    INTEGER NOT NULL,
    amount         NUMERIC NOT NULL CHECK (CAST(amount AS REAL) <> 0),
    payment_method TEXT NOT NULL CHECK (payment_method IN ('cash','upi','card')),
    kind           TEXT NOT NULL CHECK (kind IN ('receipt','refund')),
    notes          TEXT,
    created_by     TEXT,
    payment_date   TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
    CHECK ((kind = 'receipt' AND CAST(amount AS REAL) > 0) OR (kind = 'refund' AND CAST(amount AS REAL) < 0)),
    FOREIGN KEY (supplier_id) REFERENCES suppliers(supplier_id)
);

/* ======================== APPEND-ONLY GUARDS ======================== */

DROP TRIGGER IF EXISTS trg_inventory_logs_no_update;
CREATE TRIGGER trg_inventory_logs_no_update
BEFORE UPDATE ON inventory_logs
BEGIN
  SELECT RAISE(ABORT, 'inventory_logs is append-only');
END;

DROP TRIGGER IF EXISTS trg_inventory_logs_no_delete;
CREATE TRIGGER trg_inventory_logs_no_delete
BEFORE DELETE ON inventory_logs
BEGIN
  SELECT RAISE(ABORT, 'inventory_logs is append-only');
END;

DROP TRIGGER IF EXISTS trg_customer_ledger_no_update;
CREATE TRIGGER trg_customer_ledger_no_update
BEFORE UPDATE ON customer_ledger
BEGIN
  SELECT RAISE(ABORT, 'ledger entries are append-only');
END;

DROP TRIGGER IF EXISTS trg_customer_ledger_no_delete;
CREATE TRIGGER trg_customer_ledger_no_delete
BEFORE DELETE ON customer_ledger
BEGIN
  SELECT RAISE(ABORT, 'ledger entries are append-only');
END;

DROP TRIGGER IF EXISTS trg_supplier_ledger_no_update;
CREATE TRIGGER trg_supplier_ledger_no_update
BEFORE UPDATE ON supplier_ledger
BEGIN
  SELECT RAISE(ABORT, 'ledger entries are append-only');
END;

DROP TRIGGER IF EXISTS trg_supplier_ledger_no_delete;
CREATE TRIGGER trg_supplier_ledger_no_delete
BEFORE DELETE ON supplier_ledger
BEGIN
  SELECT RAISE(ABORT, 'ledger entries are append-only');
END;

/* items are frozen once the invoice leaves draft */
DROP TRIGGER IF EXISTS trg_invoice_items_frozen_update;
CREATE TRIGGER trg_invoice_items_frozen_update
BEFORE UPDATE ON invoice_items
WHEN (SELECT status FROM invoices WHERE invoice_id = OLD.invoice_id) <> 'draft'
BEGIN
  SELECT RAISE(ABORT, 'items of a non-draft invoice cannot change');
END;

DROP TRIGGER IF EXISTS trg_invoice_items_frozen_delete;
CREATE TRIGGER trg_invoice_items_frozen_delete
BEFORE DELETE ON invoice_items
WHEN (SELECT status FROM invoices WHERE invoice_id = OLD.invoice_id) <> 'draft'
BEGIN
  SELECT RAISE(ABORT, 'items of a non-draft invoice cannot change');
END;
"""


_ADDED_COLUMNS = {
    "invoices": [
        ("round_off_amount", "NUMERIC NOT NULL DEFAULT 0"),
    ],
    "invoice_items": [
        ("discount_type", "TEXT"),
        ("discount_value", "NUMERIC NOT NULL DEFAULT 0"),
        ("line_discount", "NUMERIC NOT NULL DEFAULT 0"),
        ("mrp", "NUMERIC"),
    ],
}


def _ensure_purchase_pricing_columns(conn: sqlite3.Connection) -> None:
    """
    Safe migration for 1.0 files created before purchase line discounts,
    round-off and MRP existed. Adds missing columns; no-op otherwise.
    """
    for table, columns in _ADDED_COLUMNS.items():
        existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table});").fetchall()}
        for name, decl in columns:
            if name not in existing:
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl};")
                _log.info("added %s.%s", table, name)


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the idempotent schema script on an open connection."""
    conn.executescript(SQL)
    _ensure_purchase_pricing_columns(conn)


def init_schema(db_path: Path | str = "retail_billing.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()
    finally:
        conn.close()
    _log.info("schema applied to %s", db_path)


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path(__file__).resolve().parents[2] / "data" / "retail_billing.db"
    init_schema(target)
