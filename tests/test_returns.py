# tests/test_returns.py
import pytest

from retail_billing.database.repositories.ledger_repo import LedgerRepo
from retail_billing.database.repositories.returns_repo import ReturnRequest
from retail_billing.errors import InvoiceNotFound
from retail_billing.modules.payments.allocation import PaymentSplit
from retail_billing.modules.returns.service import ReturnService


@pytest.fixture()
def credit_sale(make_sale, ids):
    """Two jackets (700) to the local customer: 500 cash, 200 on credit."""
    return make_sale(
        [(ids["jacket"], 2)], customer_id=ids["customer"], split=PaymentSplit(cash=500, credit=200)
    )


def _line(returns, invoice_id, index=0):
    return returns.list_returnable(invoice_id)[index]


def _count_returns(conn):
    return conn.execute("SELECT COUNT(*) FROM invoices WHERE invoice_type = 'return'").fetchone()[0]


# -------------------------
# Customer returns
# -------------------------

def test_return_clears_due_first_then_creates_advance(returns, billing, credit_sale, stock_of, conn, ids):
    line = _line(returns, credit_sale)
    assert (line.original_quantity, line.returned_quantity, line.returnable_quantity) == (2, 0, 2)

    res = returns.submit_return(credit_sale, [ReturnRequest(line.item_id, quantity=1)], notes="size issue")
    assert res.success, res.message
    assert (res.return_amount, res.applied_to_due, res.to_advance, res.refund_due) == (350.0, 200.0, 150.0, 0.0)

    b = LedgerRepo(conn).get_balances("customer", ids["customer"])
    assert (b.due, b.advance) == (0.0, 150.0)
    assert LedgerRepo(conn).list_entries("customer", ids["customer"])[-1].entry_type == "return"
    assert stock_of(ids["jacket"]) == 4


def test_return_invoice_mirrors_the_sale(returns, billing, credit_sale):
    line = _line(returns, credit_sale)
    res = returns.submit_return(credit_sale, [ReturnRequest(line.item_id, quantity=1)])

    ret = billing.get_invoice(res.id)
    assert ret.invoice_type == "return"
    assert ret.status == "completed"
    assert ret.invoice_number.startswith("RET-")
    assert ret.invoice_number == res.return_invoice_number
    assert ret.parent_invoice_id == credit_sale
    assert ret.total_amount == -350.0
    assert ret.subtotal == pytest.approx(-312.5)
    assert ret.tax_amount == pytest.approx(-37.5)
    assert ret.customer_id is not None
    assert len(ret.items) == 1
    assert ret.items[0].parent_item_id == line.item_id
    assert ret.items[0].quantity == 1

    assert billing.get_invoice(credit_sale).returned_amount == 350.0


def test_remainder_shrinks_and_over_request_is_a_conflict(returns, credit_sale, conn):
    item_id = _line(returns, credit_sale).item_id
    assert returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1)]).success
    line = _line(returns, credit_sale)
    assert (line.returned_quantity, line.returnable_quantity) == (1, 1)

    res = returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=2)])
    assert res.success is False
    assert res.error_code == "state_conflict"
    assert res.context["returnable"] == 1
    assert _count_returns(conn) == 1

    assert returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1)]).success
    assert _line(returns, credit_sale).returnable == 0
    assert returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1)]).error_code == "state_conflict"


def test_repeated_lines_in_one_request_are_summed(returns, credit_sale):
    item_id = _line(returns, credit_sale).item_id
    res = returns.submit_return(
        credit_sale, [ReturnRequest(item_id, quantity=2), ReturnRequest(item_id, quantity=1)]
    )
    assert res.error_code == "state_conflict"


def test_returned_advance_can_be_refunded(returns, ledger, credit_sale, ids):
    item_id = _line(returns, credit_sale).item_id
    returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1)])
    res = ledger.refund_advance("customer", ids["customer"], 150)
    assert res.success, res.message
    assert (res.outstanding_balance, res.advance_balance) == (0.0, 0.0)


def test_sale_with_returns_cannot_be_cancelled(returns, billing, credit_sale):
    item_id = _line(returns, credit_sale).item_id
    returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1)])
    res = billing.cancel(credit_sale)
    assert res.error_code == "state_conflict"
    assert billing.get_invoice(credit_sale).status == "completed"


# -------------------------
# Walk-in and discounted returns
# -------------------------

def test_discounted_walk_in_return_is_refunded_at_the_sale_price(returns, billing, make_sale, conn, stock_of, ids):
    invoice_id = make_sale([(ids["jacket"], 2)], discount=70)
    line = _line(returns, invoice_id)
    assert line.discount_allocated == pytest.approx(70.0)

    res = returns.submit_return(invoice_id, [{"item_id": line.item_id, "quantity": 1}])
    assert res.success
    assert res.return_amount == pytest.approx(350.0)
    assert res.refund_due == pytest.approx(350.0)
    ret = billing.get_invoice(res.id)
    assert ret.total_amount == pytest.approx(-350.0)
    assert ret.discount_amount == 0
    assert (res.applied_to_due, res.to_advance) == (0.0, 0.0)
    assert conn.execute("SELECT COUNT(*) FROM customer_ledger").fetchone()[0] == 0
    assert stock_of(ids["jacket"]) == 4


def test_per_length_return(returns, make_sale, stock_of, ids):
    invoice_id = make_sale([(ids["cloth"], 3)])
    item_id = _line(returns, invoice_id).item_id
    res = returns.submit_return(invoice_id, [{"item_id": item_id, "length": 1.25}])
    assert res.return_amount == pytest.approx(131.25)
    assert _line(returns, invoice_id).returnable_length == pytest.approx(1.75)
    assert stock_of(ids["cloth"]) == pytest.approx(18.75)


# -------------------------
# Rejections
# -------------------------

def test_fractional_units_cannot_be_returned(returns, credit_sale):
    item_id = _line(returns, credit_sale).item_id
    res = returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1.5)])
    assert res.error_code == "validation_error"


@pytest.mark.parametrize("items", [[], [ReturnRequest(1, quantity=0)], [{"item_id": 1}]])
def test_empty_request_is_rejected(returns, credit_sale, items):
    assert returns.submit_return(credit_sale, items).error_code == "validation_error"


def test_negative_amount_is_rejected(returns, credit_sale):
    item_id = _line(returns, credit_sale).item_id
    res = returns.submit_return(credit_sale, [ReturnRequest(item_id, quantity=-1)])
    assert res.error_code == "validation_error"


@pytest.mark.parametrize("items", [[{"quantity": 1}], [{"item_id": "abc", "quantity": 1}], [ReturnRequest(None, quantity=1)]])
def test_line_without_item_id_is_rejected(returns, credit_sale, conn, items):
    res = returns.submit_return(credit_sale, items)
    assert res.success is False
    assert res.error_code == "validation_error"
    assert "item id" in res.message
    assert _count_returns(conn) == 0


def test_line_from_another_invoice_is_rejected(returns, credit_sale):
    res = returns.submit_return(credit_sale, [ReturnRequest(9999, quantity=1)])
    assert res.error_code == "validation_error"


def test_only_completed_sales_take_returns(returns, billing, make_draft, make_sale, ids):
    draft_id = make_draft([(ids["shirt"], 1)])
    item_id = billing.get_invoice(draft_id).items[0].item_id
    assert returns.submit_return(draft_id, [ReturnRequest(item_id, quantity=1)]).error_code == "state_conflict"

    sale_id = make_sale([(ids["shirt"], 1)])
    billing.cancel(sale_id)
    item_id = billing.get_invoice(sale_id).items[0].item_id
    assert returns.submit_return(sale_id, [ReturnRequest(item_id, quantity=1)]).error_code == "state_conflict"


def test_purchases_have_nothing_returnable(returns, billing, make_draft, ids):
    invoice_id = make_draft([(ids["shirt"], 2)], invoice_type="purchase", supplier_id=ids["supplier"])
    billing.complete(invoice_id, PaymentSplit(cash=160))
    assert returns.list_returnable(invoice_id) == []
    item_id = billing.get_invoice(invoice_id).items[0].item_id
    assert returns.submit_return(invoice_id, [ReturnRequest(item_id, quantity=1)]).error_code == "state_conflict"


def test_unknown_invoice_raises(returns):
    with pytest.raises(InvoiceNotFound):
        returns.list_returnable(9999)
    with pytest.raises(InvoiceNotFound):
        returns.submit_return(9999, [ReturnRequest(1, quantity=1)])


def test_returns_need_sales_bill_permission(conn, credit_sale, returns):
    item_id = _line(returns, credit_sale).item_id
    svc = ReturnService(conn, can=lambda p: False, user="viewer")
    res = svc.submit_return(credit_sale, [ReturnRequest(item_id, quantity=1)])
    assert res.error_code == "permission_denied"
