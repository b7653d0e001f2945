# tests/test_session.py
import pytest

from retail_billing.database.repositories.customers_repo import Customer
from retail_billing.database.repositories.skus_repo import SKU
from retail_billing.database.repositories.suppliers_repo import Supplier
from retail_billing.errors import ValidationError
from retail_billing.modules.billing.session import BillingSession

SHIRT = SKU(
    sku_id=1, sku_code="SH-001", name="Cotton Shirt", price_type="per_unit",
    fixed_price=118.0, cost_price=80.0, gst_rate=18, quantity=10,
)
LOCAL = Customer(customer_id=7, name="Asha Verma", phone="9800000001", state="Maharashtra")
OUTSTATION = Customer(customer_id=8, name="Ravi Kumar", state="Karnataka", gstin="29AAAAA0000A1Z5")
SUPPLIER = Supplier(supplier_id=3, name="Mills & Co", state="Gujarat")


def test_sessions_are_independent():
    a = BillingSession(shop_state="Maharashtra", user="counter-1")
    b = BillingSession(shop_state="Maharashtra", user="counter-2")
    a.add_item(SHIRT, 2)
    assert len(a.cart) == 1
    assert b.cart.is_empty


def test_only_sales_and_purchases_have_sessions():
    with pytest.raises(ValidationError):
        BillingSession("return")


def test_place_of_supply_follows_the_customer():
    s = BillingSession(shop_state="Maharashtra")
    assert s.place_of_supply_state == "MAHARASHTRA"
    assert s.is_inter_state is False
    s.set_customer(OUTSTATION)
    assert s.place_of_supply_state == "KARNATAKA"
    assert s.is_inter_state is True
    s.clear_party()
    assert s.is_inter_state is False


def test_unknown_shop_state_bills_intra_state():
    s = BillingSession(shop_state=None)
    s.set_customer(OUTSTATION)
    s.add_item(SHIRT, 1)
    t = s.calculate_totals()
    assert t.igst_amount == 0
    assert t.cgst_amount == pytest.approx(9.0)


def test_party_kind_must_match_session_type():
    sale = BillingSession()
    with pytest.raises(ValidationError):
        sale.set_supplier(SUPPLIER)
    purchase = BillingSession("purchase")
    with pytest.raises(ValidationError):
        purchase.set_customer(LOCAL)


def test_walk_in_details_are_kept_on_the_draft():
    s = BillingSession(shop_state="Maharashtra")
    s.set_walk_in("  Walk-in Guest ", " ")
    s.add_item(SHIRT, 1)
    d = s.build_draft()
    assert d.party is None
    assert d.customer_id is None
    assert d.customer_name == "Walk-in Guest"
    assert d.customer_phone is None


def test_customer_draft_snapshots_party():
    s = BillingSession(shop_state="Maharashtra", user="cashier")
    s.set_customer(LOCAL)
    s.add_item(SHIRT, 2)
    s.set_discount(36)
    s.notes = "festival offer"
    d = s.build_draft()
    assert d.customer_id == 7 and d.supplier_id is None
    assert (d.customer_name, d.customer_phone) == ("Asha Verma", "9800000001")
    assert d.totals.total_amount == pytest.approx(200.0)
    assert d.created_by == "cashier"
    assert d.notes == "festival offer"


def test_purchase_bills_at_cost_and_needs_supplier():
    s = BillingSession("purchase", shop_state="Maharashtra")
    line = s.add_item(SHIRT, 5)
    assert line.unit_price == 80.0
    with pytest.raises(ValidationError):
        s.build_draft()
    s.set_supplier(SUPPLIER)
    d = s.build_draft()
    assert d.supplier_id == 3
    assert d.totals.is_inter_state is True
    assert d.totals.total_amount == pytest.approx(400.0)


def test_empty_cart_cannot_be_drafted():
    with pytest.raises(ValidationError):
        BillingSession().build_draft()


@pytest.mark.parametrize("amount", [-1, "abc", float("inf")])
def test_bad_discount_is_rejected(amount):
    with pytest.raises(ValidationError):
        BillingSession().set_discount(amount)


def test_reset_starts_a_fresh_bill():
    s = BillingSession(shop_state="Maharashtra", user="cashier")
    s.set_customer(LOCAL)
    s.add_item(SHIRT, 1)
    s.set_discount(5)
    s.reset()
    assert s.cart.is_empty
    assert s.party is None
    assert s.bill_discount == 0
    assert s.user == "cashier"
