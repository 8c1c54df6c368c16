"""
Sales Service - cart finalization

Turns a confirmed cart into ledger state exactly once, atomically:

    sale header -> lines (+ stock per line) -> FIFO settlement of leftover

all inside one store transaction, followed by a snapshot write. The order
is fixed: settlement reads balances that must already include this sale.
If anything fails, nothing from the cart is visible afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func

from ..errors import NotFoundError, ValidationError
from ..models import Sale, SaleLine, Shop
from ..time_utils import epoch_millis, utcnow
from .billing import BillTotals, Cart, compute_bill
from .customer_service import prior_balance, register_if_new
from .inventory_service import adjust_stock
from .settlement_service import Allocation, allocate_fifo, apply_allocation, outstanding_sales

logger = logging.getLogger(__name__)

# Balance at or below this many cents is not listed as outstanding
OUTSTANDING_MIN_CENTS = 1


@dataclass
class FinalizedSale:
    """What the receipt needs after a successful finalization."""
    sale: Sale | None
    bill: BillTotals
    allocation: Allocation | None
    snapshot_error: object = None

    @property
    def sale_id(self) -> str | None:
        return self.sale.id if self.sale is not None else None

    @property
    def balance_due_cents(self) -> int:
        """Customer's remaining debt as printed on the receipt."""
        return self.bill.balance_due_cents

    @property
    def unallocated_cents(self) -> int:
        """Money beyond all known debt; handed back as change, not stored."""
        if self.allocation is not None:
            return self.allocation.unallocated_cents
        return max(0, self.bill.paid_cents - self.bill.current_bill_total_cents)

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(include_lines=True) if self.sale is not None else None,
            "bill": self.bill.to_dict(),
            "settlement": self.allocation.to_dict() if self.allocation is not None else None,
            "balance_due_cents": self.balance_due_cents,
            "unallocated_cents": self.unallocated_cents,
            "snapshot_persisted": self.snapshot_error is None,
            "snapshot_error": self.snapshot_error.to_dict() if self.snapshot_error else None,
        }


def preview_bill(store, shop_id: int, cart: Cart, paid_cents: int | None = None) -> BillTotals:
    """Totals for the current cart, including the customer's prior balance. Writes nothing."""
    prior = prior_balance(store, cart.customer_mobile, shop_id=shop_id)
    return compute_bill(cart, prior, paid_cents)


def _next_sale_id(store, shop_id: int, sold_at: datetime) -> str:
    base = f"SALE-{shop_id}-{epoch_millis(sold_at)}"
    candidate = base
    suffix = 1
    while store.session.get(Sale, candidate) is not None:
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def _next_seq(store) -> int:
    return int(store.session.query(func.coalesce(func.max(Sale.created_seq), 0)).scalar()) + 1


def _insert_sale(store, shop_id: int, cart: Cart, bill: BillTotals, sold_at: datetime) -> Sale:
    total = bill.current_bill_total_cents
    # The current bill is covered first; whatever exceeds it goes to old debt
    paid_here = max(0, min(bill.paid_cents, total))

    sale = Sale(
        id=_next_sale_id(store, shop_id, sold_at),
        shop_id=shop_id,
        sold_at=sold_at,
        created_seq=_next_seq(store),
        subtotal_cents=bill.subtotal_cents,
        discount_cents=bill.discount_cents,
        tax_rate=cart.tax_rate,
        tax_cents=bill.tax_cents,
        total_cents=total,
        paid_cents=paid_here,
        balance_due_cents=max(0, total - paid_here),
        customer_name=cart.customer_name,
        customer_mobile=cart.customer_mobile,
    )
    store.session.add(sale)
    store.session.flush()
    return sale


def _insert_line(store, sale: Sale, line) -> SaleLine:
    row = SaleLine(
        sale_id=sale.id,
        product_id=line.product_id,
        shop_id=sale.shop_id,
        description=line.description,
        description_secondary=line.description_secondary,
        quantity=line.quantity,
        unit_price_cents=line.unit_price_cents,
        line_total_cents=line.line_total_cents,
        is_return=line.is_return,
        tax_code=line.tax_code,
    )
    store.session.add(row)
    return row


def finalize_sale(
    store,
    shop_id: int,
    cart: Cart,
    paid_cents: int | None = None,
    *,
    sold_at: datetime | None = None,
    method: str | None = None,
) -> FinalizedSale:
    """
    Finalize a cart into a sale.

    paid_cents defaults to the grand total (current bill plus prior balance).
    A cart with no lines is accepted when the customer has a prior balance:
    it records a pure payment against old debt and creates no sale.

    Raises:
        ValidationError: nothing to finalize or a bad amount (no transaction opened)
        NotFoundError: unknown shop
        StockAdjustmentError / StorageWriteError: the transaction rolled back
    """
    if paid_cents is not None and paid_cents < 0:
        raise ValidationError("paid_cents must be >= 0")
    if store.session.get(Shop, shop_id) is None:
        raise NotFoundError(f"Shop {shop_id} not found")

    prior = prior_balance(store, cart.customer_mobile, shop_id=shop_id)
    if cart.is_empty and prior <= 0:
        raise ValidationError("Cannot finalize an empty sale")

    bill = compute_bill(cart, prior, paid_cents)
    sold_at = sold_at or utcnow()

    with store.transaction() as txn:
        sale = None
        if not cart.is_empty:
            sale = _insert_sale(store, shop_id, cart, bill, sold_at)
            for line in cart.lines:
                _insert_line(store, sale, line)
                adjust_stock(store, shop_id, line.product_id, line.stock_delta)

        allocation = None
        leftover = bill.paid_cents - bill.current_bill_total_cents
        if leftover > 0 and cart.customer_mobile:
            outstanding = outstanding_sales(
                store,
                cart.customer_mobile,
                shop_id=shop_id,
                exclude_sale_id=sale.id if sale is not None else None,
            )
            allocation = allocate_fifo(outstanding, leftover)
            apply_allocation(store, allocation, paid_at=sold_at, method=method)

        register_if_new(store, cart.customer_name, cart.customer_mobile)

    result = FinalizedSale(sale=sale, bill=bill, allocation=allocation, snapshot_error=txn.snapshot_error)
    logger.info(
        "Finalized %s in shop %s: total=%d paid=%d settled=%d",
        result.sale_id or "debt payment", shop_id, bill.current_bill_total_cents, bill.paid_cents,
        allocation.allocated_cents if allocation is not None else 0,
    )
    return result


def get_sale(store, sale_id: str) -> Sale:
    sale = store.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(store, shop_id: int, *, start: datetime | None = None, end: datetime | None = None) -> list[Sale]:
    query = store.session.query(Sale).filter(Sale.shop_id == shop_id)
    if start is not None:
        query = query.filter(Sale.sold_at >= start)
    if end is not None:
        query = query.filter(Sale.sold_at <= end)
    return query.order_by(Sale.sold_at.desc(), Sale.created_seq.desc()).all()


def list_outstanding(store, shop_id: int | None = None, search: str | None = None) -> list[Sale]:
    """Sales with a balance due, newest first; search matches name, mobile or invoice id."""
    query = store.session.query(Sale).filter(Sale.balance_due_cents >= OUTSTANDING_MIN_CENTS)
    if shop_id is not None:
        query = query.filter(Sale.shop_id == shop_id)
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.filter(
            func.lower(Sale.customer_name).like(term)
            | func.lower(Sale.customer_mobile).like(term)
            | func.lower(Sale.id).like(term)
        )
    return query.order_by(Sale.sold_at.desc(), Sale.created_seq.desc()).all()
