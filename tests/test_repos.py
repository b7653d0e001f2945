# tests/test_repos.py
import pytest

from retail_billing.database.repositories.customers_repo import CustomersRepo
from retail_billing.database.repositories.invoices_repo import InvoicesRepo
from retail_billing.database.repositories.skus_repo import SkusRepo
from retail_billing.database.repositories.suppliers_repo import SuppliersRepo
from retail_billing.errors import InvoiceNotFound, ValidationError
from retail_billing.modules.payments.allocation import PaymentSplit


# -------------------------
# SKUs
# -------------------------

def test_sku_lookups(conn, ids):
    repo = SkusRepo(conn)
    assert repo.get_by_code(" SH-001 ").sku_id == ids["shirt"]
    assert repo.get_by_barcode("890100000001").sku_id == ids["shirt"]
    assert repo.get_by_code("NOPE") is None
    assert repo.get_by_barcode("000") is None
    assert [s.sku_id for s in repo.search("jacket")] == [ids["jacket"]]
    assert repo.get(ids["cloth"]).stock == pytest.approx(20.5)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"sku_code": "X-1", "name": "Thing", "price_type": "per_box", "fixed_price": 10},
        {"sku_code": "X-1", "name": "Thing", "price_type": "per_unit", "fixed_price": 0},
        {"sku_code": "X-1", "name": "Thing", "price_type": "per_length"},
        {"sku_code": " ", "name": "Thing", "price_type": "per_unit", "fixed_price": 10},
    ],
)
def test_bad_skus_are_rejected(conn, kwargs):
    with pytest.raises(ValidationError):
        SkusRepo(conn).create(**kwargs)


# -------------------------
# Parties
# -------------------------

def test_customer_list_search_and_soft_delete(conn, ids):
    repo = CustomersRepo(conn)
    assert {c.customer_id for c in repo.list_customers()} == {ids["customer"], ids["outstation"]}
    assert [c.name for c in repo.search("9800000002")] == ["Ravi Kumar"]

    repo.soft_delete(ids["outstation"])
    assert repo.get(ids["outstation"]) is None
    assert [c.customer_id for c in repo.list_customers()] == [ids["customer"]]
    assert repo.search("Ravi") == []


def test_customer_name_is_required(conn):
    with pytest.raises(ValidationError):
        CustomersRepo(conn).create("   ")


def test_supplier_list_and_search(conn, ids):
    repo = SuppliersRepo(conn)
    other = repo.create("Alpha Textiles", "9800000200", state="Gujarat")
    assert [s.name for s in repo.list_suppliers()] == ["Alpha Textiles", "Mills & Co"]
    assert [s.supplier_id for s in repo.search("Mills")] == [ids["supplier"]]
    assert repo.get(other).state == "Gujarat"


# -------------------------
# Invoices
# -------------------------

def test_invoice_lookup_by_number(conn, make_sale, ids):
    invoice_id = make_sale([(ids["shirt"], 1)])
    repo = InvoicesRepo(conn)
    inv = repo.get(invoice_id)
    assert repo.get_by_number(inv.invoice_number).invoice_id == invoice_id
    with pytest.raises(InvoiceNotFound):
        repo.get_by_number("INV-19990101-0001")


def test_list_invoices_filters(conn, make_draft, make_sale, ids):
    sale = make_sale([(ids["shirt"], 1)], customer_id=ids["customer"])
    draft = make_draft([(ids["jacket"], 1)])
    purchase = make_draft([(ids["shirt"], 2)], invoice_type="purchase", supplier_id=ids["supplier"])
    repo = InvoicesRepo(conn)

    assert [i.invoice_id for i in repo.list_invoices()] == [purchase, draft, sale]
    assert [i.invoice_id for i in repo.list_invoices(invoice_type="sale")] == [draft, sale]
    assert [i.invoice_id for i in repo.list_invoices(status="completed")] == [sale]
    assert [i.invoice_id for i in repo.list_invoices(customer_id=ids["customer"])] == [sale]
    assert [i.invoice_id for i in repo.list_invoices(supplier_id=ids["supplier"])] == [purchase]
    assert len(repo.list_invoices(limit=1)) == 1
    with pytest.raises(ValidationError):
        repo.list_invoices(invoice_type="quote")


def test_payment_status(billing, make_draft, make_sale, ids):
    cid = ids["customer"]
    assert billing.get_invoice(make_draft([(ids["shirt"], 1)])).payment_status == "unpaid"
    assert billing.get_invoice(make_sale([(ids["shirt"], 1)])).payment_status == "paid"

    partial = make_sale([(ids["shirt"], 2)], customer_id=cid, split=PaymentSplit(cash=36, credit=200))
    assert billing.get_invoice(partial).payment_status == "partial"

    on_credit = make_sale([(ids["shirt"], 1)], customer_id=cid, split=PaymentSplit(credit=118))
    assert billing.get_invoice(on_credit).payment_status == "unpaid"
