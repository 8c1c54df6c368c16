from datetime import datetime

import pytest

from conftest import at, cart, line
from shopledger.errors import NotFoundError, ValidationError
from shopledger.models import Payment, Sale
from shopledger.services import sales_service
from shopledger.services.settlement_service import (
    OutstandingSale,
    allocate_fifo,
    settle_customer,
    settle_sale,
)

MOBILE = "0771234567"


def _outstanding(*balances, sold_at=None):
    return [
        OutstandingSale(
            sale_id=f"S{i}",
            sold_at=sold_at or datetime(2026, 1, 1 + i),
            seq=i,
            balance_due_cents=balance,
        )
        for i, balance in enumerate(balances, start=1)
    ]


# ---------------------------------------------------------------------------
# allocate_fifo (pure)
# ---------------------------------------------------------------------------

def test_fifo_pays_oldest_first():
    allocation = allocate_fifo(_outstanding(3000, 5000, 2000), 7000)

    assert [(l.sale_id, l.amount_cents) for l in allocation.lines] == [("S1", 3000), ("S2", 4000)]
    assert [l.balance_after_cents for l in allocation.lines] == [0, 1000]
    assert allocation.allocated_cents == 7000
    assert allocation.unallocated_cents == 0


def test_fifo_orders_by_sold_at_not_input_order():
    items = list(reversed(_outstanding(3000, 5000, 2000)))
    allocation = allocate_fifo(items, 3500)
    assert [l.sale_id for l in allocation.lines] == ["S1", "S2"]


def test_fifo_breaks_ties_by_insertion_order():
    same_time = datetime(2026, 1, 1, 9, 0)
    items = _outstanding(1000, 1000, 1000, sold_at=same_time)
    allocation = allocate_fifo(list(reversed(items)), 1500)
    assert [(l.sale_id, l.amount_cents) for l in allocation.lines] == [("S1", 1000), ("S2", 500)]


def test_fifo_reports_unallocated_remainder():
    allocation = allocate_fifo(_outstanding(1000, 2000), 5000)
    assert allocation.allocated_cents == 3000
    assert allocation.unallocated_cents == 2000


def test_fifo_never_exceeds_a_sale_balance():
    allocation = allocate_fifo(_outstanding(1, 999, 0, 50), 10_000)
    for alloc_line in allocation.lines:
        assert 0 < alloc_line.amount_cents <= alloc_line.balance_before_cents
    assert "S3" not in [l.sale_id for l in allocation.lines]


def test_fifo_zero_amount_and_negative_amount():
    assert allocate_fifo(_outstanding(1000), 0).lines == ()
    with pytest.raises(ValidationError):
        allocate_fifo(_outstanding(1000), -1)


def test_fifo_does_not_modify_input():
    items = _outstanding(3000, 5000)
    snapshot = list(items)
    allocate_fifo(items, 4000)
    assert items == snapshot


# ---------------------------------------------------------------------------
# settle_customer / settle_sale against the store
# ---------------------------------------------------------------------------

@pytest.fixture
def debts(store, shop, make_product):
    """Three unpaid sales for one customer: 30.00, 50.00, 20.00, oldest first."""
    product = make_product(retail=1000, stock="1000")
    sale_ids = []
    for day, qty in enumerate((3, 5, 2)):
        result = sales_service.finalize_sale(
            store, shop.id,
            cart(line(product, qty), name="Nimal", mobile=MOBILE),
            paid_cents=0,
            sold_at=at(days=day),
        )
        sale_ids.append(result.sale_id)
    return sale_ids


def _balances(store, sale_ids):
    store.session.expire_all()
    return [store.session.get(Sale, sale_id).balance_due_cents for sale_id in sale_ids]


def test_settle_customer_spreads_payment(store, shop, debts, slot):
    writes_before = slot.writes

    result = settle_customer(store, MOBILE, 7000, shop_id=shop.id, method="card")

    assert _balances(store, debts) == [0, 1000, 2000]
    assert result.allocation.allocated_cents == 7000
    assert result.snapshot_error is None
    assert slot.writes == writes_before + 1

    payments = store.session.query(Payment).order_by(Payment.id).all()
    assert [(p.sale_id, p.amount_cents, p.method) for p in payments] == [
        (debts[0], 3000, "card"),
        (debts[1], 4000, "card"),
    ]


def test_settle_customer_keeps_paid_plus_balance_equal_to_total(store, shop, debts):
    settle_customer(store, MOBILE, 4500, shop_id=shop.id)
    store.session.expire_all()
    for sale_id in debts:
        sale = store.session.get(Sale, sale_id)
        assert sale.paid_cents + sale.balance_due_cents == sale.total_cents
        assert sale.balance_due_cents >= 0


def test_settle_customer_overpay_leaves_unallocated(store, shop, debts):
    result = settle_customer(store, MOBILE, 15000, shop_id=shop.id)
    assert _balances(store, debts) == [0, 0, 0]
    assert result.allocation.unallocated_cents == 5000


def test_settle_customer_without_debt(store, shop):
    with pytest.raises(ValidationError):
        settle_customer(store, "0000000000", 1000, shop_id=shop.id)


def test_settle_customer_rejects_non_positive_amount(store, shop, debts):
    with pytest.raises(ValidationError):
        settle_customer(store, MOBILE, 0, shop_id=shop.id)
    assert _balances(store, debts) == [3000, 5000, 2000]


def test_settle_sale_partial(store, debts):
    result = settle_sale(store, debts[1], 1500)

    assert _balances(store, debts) == [3000, 3500, 2000]
    assert result.allocation.unallocated_cents == 0
    assert result.payments[0].amount_cents == 1500


def test_settle_sale_overpay_records_only_the_balance(store, debts):
    result = settle_sale(store, debts[2], 9999)

    assert _balances(store, debts) == [3000, 5000, 0]
    assert result.payments[0].amount_cents == 2000
    assert result.allocation.unallocated_cents == 7999


def test_settle_sale_already_paid(store, debts):
    settle_sale(store, debts[0], 3000)
    with pytest.raises(ValidationError):
        settle_sale(store, debts[0], 100)


def test_settle_sale_unknown_sale(store):
    with pytest.raises(NotFoundError):
        settle_sale(store, "SALE-1-0", 100)


def test_settle_sale_non_positive_amount(store, debts):
    with pytest.raises(ValidationError):
        settle_sale(store, debts[0], 0)
