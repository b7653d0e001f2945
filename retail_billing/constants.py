APP_NAME = "Retail Billing"

# storage
DATA_DIR = "data"
DB_FILE_NAME = "retail_billing.db"
TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.1.0"

# money: all amounts are floats shown with 2 decimals; equality uses this tolerance
MONEY_PLACES = 2
MONEY_EPS = 0.01
# tolerance for quantity/length comparisons (returns, stock)
QTY_EPS = 1e-9

# GST
GST_RATE_MIN = 0.0
GST_RATE_MAX = 100.0
GST_PRICING_MODE = "inclusive"

# purchases: bill round-off stays within one rupee either way
ROUND_OFF_LIMIT = 1.0

# enums (mirrored by CHECK constraints in database/schema.py)
PRICE_TYPES = ("per_unit", "per_length")
INVOICE_TYPES = ("sale", "purchase", "return")
LINE_DISCOUNT_TYPES = ("percent_per_unit", "amount_per_unit", "total_amount")
INVOICE_STATUSES = ("draft", "completed", "cancelled")
PARTY_TYPES = ("customer", "supplier")
PAYMENT_METHODS = ("cash", "upi", "card")
LEDGER_ENTRY_TYPES = (
    "sale",
    "purchase",
    "payment",
    "return",
    "advance_applied",
    "advance_refund",
    "adjustment",
)
STOCK_CHANGE_TYPES = (
    "manual_update",
    "opening_stock",
    "sale_deduction",
    "purchase_addition",
    "return_restock",
    "cancellation_restore",
)

# invoice number prefixes per invoice type
INVOICE_PREFIXES = {
    "sale": "INV",
    "purchase": "PUR",
    "return": "RET",
}

# capability names checked by the services
PERMISSIONS = (
    "sales_bill",
    "purchase_bill",
    "receive_payment",
    "pay_supplier",
    "stock_edit",
)
