# retail_billing/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own in-memory SQLite DB (schema + seed applied)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON, autocommit
# - The shop sits in Maharashtra; `customer` is local, `outstation` is not
# - Opening stock goes through StockRepo so it is logged like real stock
# - Provide handy ids + service fixtures + make_draft/make_sale helpers
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3

import pytest

from retail_billing.database import get_connection
from retail_billing.database.repositories.customers_repo import CustomersRepo
from retail_billing.database.repositories.shop_settings_repo import ShopSettingsRepo
from retail_billing.database.repositories.skus_repo import SkusRepo
from retail_billing.database.repositories.stock_repo import StockRepo
from retail_billing.database.repositories.suppliers_repo import SuppliersRepo
from retail_billing.modules.billing.service import BillingService
from retail_billing.modules.inventory.service import StockService
from retail_billing.modules.ledger.service import LedgerService
from retail_billing.modules.payments.allocation import PaymentSplit
from retail_billing.modules.returns.service import ReturnService

SHOP_STATE = "Maharashtra"


# ---------- Per-test database ----------
@pytest.fixture()
def conn():
    """Fresh in-memory DB per test; nothing leaks between tests."""
    con = get_connection(":memory:")
    ShopSettingsRepo(con).update(shop_name="Test Shop", state=SHOP_STATE, gstin="27ABCDE1234F1Z5")
    try:
        yield con
    finally:
        con.close()


# ---------- Handy lookups ----------
@pytest.fixture()
def ids(conn: sqlite3.Connection) -> dict:
    """
    Master data used throughout the tests:
      shirt  per_unit   118.00 incl. 18% GST, cost 80, 10 in stock
      jacket per_unit   350.00 incl. 12% GST, 5 in stock
      cloth  per_length 105.00/m incl. 5% GST, 20.5 m in stock
    """
    skus = SkusRepo(conn)
    stock = StockRepo(conn)

    shirt = skus.create(
        sku_code="SH-001", name="Cotton Shirt", price_type="per_unit",
        fixed_price=118.0, cost_price=80.0, gst_rate=18, hsn_code="6205", barcode="890100000001",
        low_stock_threshold=3,
    )
    jacket = skus.create(
        sku_code="JK-001", name="Denim Jacket", price_type="per_unit",
        fixed_price=350.0, gst_rate=12, hsn_code="6201",
    )
    cloth = skus.create(
        sku_code="CL-001", name="Linen Cloth", price_type="per_length",
        rate=105.0, cost_price=70.0, gst_rate=5, hsn_code="5309",
    )
    stock.set_opening_stock(shirt, 10)
    stock.set_opening_stock(jacket, 5)
    stock.set_opening_stock(cloth, 20.5)

    customers = CustomersRepo(conn)
    customer = customers.create("Asha Verma", "9800000001", city="Pune", state="Maharashtra")
    outstation = customers.create("Ravi Kumar", "9800000002", city="Bengaluru", state="Karnataka")
    supplier = SuppliersRepo(conn).create("Mills & Co", "9800000100", state="Maharashtra")

    return {
        "shirt": shirt,
        "jacket": jacket,
        "cloth": cloth,
        "customer": customer,
        "outstation": outstation,
        "supplier": supplier,
    }


# ---------- Services ----------
@pytest.fixture()
def billing(conn) -> BillingService:
    return BillingService(conn, user="tester")


@pytest.fixture()
def returns(conn) -> ReturnService:
    return ReturnService(conn, user="tester")


@pytest.fixture()
def ledger(conn) -> LedgerService:
    return LedgerService(conn, user="tester")


@pytest.fixture()
def stock_service(conn) -> StockService:
    return StockService(conn, user="tester")


@pytest.fixture()
def stock_of(conn):
    """Current stock of a SKU in its own unit."""
    repo = StockRepo(conn)
    return repo.available


# ---------- Bill helpers ----------
@pytest.fixture()
def make_draft(conn, billing):
    """
    make_draft([(sku_id, qty_or_metres), ...], customer_id=..., discount=...)
    -> draft invoice id. Purchases take supplier_id and bill at cost.
    """
    skus = SkusRepo(conn)
    customers = CustomersRepo(conn)
    suppliers = SuppliersRepo(conn)

    def _make(lines, *, invoice_type="sale", customer_id=None, supplier_id=None, discount=0.0):
        session = billing.new_session(invoice_type)
        if customer_id is not None:
            session.set_customer(customers.get(customer_id))
        if supplier_id is not None:
            session.set_supplier(suppliers.get(supplier_id))
        for sku_id, amount in lines:
            sku = skus.get(sku_id)
            if sku.price_type == "per_length":
                session.add_item(sku, length=amount)
            else:
                session.add_item(sku, quantity=amount)
        session.set_discount(discount)
        res = billing.create_draft(session)
        assert res.success, res.message
        return res.id

    return _make


@pytest.fixture()
def make_sale(billing, make_draft):
    """Draft + complete in two steps; paid in full cash unless a split is given."""

    def _make(lines, *, customer_id=None, discount=0.0, split=None, confirm_overpay=False):
        invoice_id = make_draft(lines, customer_id=customer_id, discount=discount)
        if split is None:
            split = PaymentSplit(cash=billing.get_invoice(invoice_id).total_amount)
        res = billing.complete(invoice_id, split, confirm_overpay=confirm_overpay)
        assert res.success, res.message
        return invoice_id

    return _make
