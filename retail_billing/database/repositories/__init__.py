# retail_billing/database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from retail_billing.database.repositories import (
        SkusRepo, SKU, StockRepo, StockLog,
        CustomersRepo, Customer, SuppliersRepo, Supplier,
        InvoicesRepo, Invoice, InvoiceItem,
        ReturnsRepo, ReturnableItem, ReturnRequest,
        LedgerRepo, PaymentsRepo, ShopSettingsRepo,
    )

Repositories raise domain errors from retail_billing.errors and never commit
on their own when the caller already holds a transaction.
"""

from .customers_repo import Customer, CustomersRepo
from .invoices_repo import CancelOutcome, CompletionOutcome, Invoice, InvoiceItem, InvoicesRepo
from .ledger_repo import LedgerRepo
from .payments_repo import PartyPayment, PaymentOutcome, PaymentsRepo
from .returns_repo import ReturnableItem, ReturnOutcome, ReturnRequest, ReturnsRepo
from .shop_settings_repo import ShopSettings, ShopSettingsRepo
from .skus_repo import SKU, SkusRepo
from .stock_repo import StockChange, StockLog, StockRepo
from .suppliers_repo import Supplier, SuppliersRepo

__all__ = [
    "Customer", "CustomersRepo",
    "CancelOutcome", "CompletionOutcome", "Invoice", "InvoiceItem", "InvoicesRepo",
    "LedgerRepo",
    "PartyPayment", "PaymentOutcome", "PaymentsRepo",
    "ReturnableItem", "ReturnOutcome", "ReturnRequest", "ReturnsRepo",
    "ShopSettings", "ShopSettingsRepo",
    "SKU", "SkusRepo",
    "StockChange", "StockLog", "StockRepo",
    "Supplier", "SuppliersRepo",
]
