# Overview: Balance settlement; FIFO allocation of a payment over outstanding sales, and direct per-invoice settlement.

"""
Balance settlement

Two entry points apply money to outstanding sales (balance_due > 0):

- FIFO: a payment for a customer is spread over their unpaid sales,
  oldest first (sold_at, then insertion order), never more than each
  sale's own balance. Anything left over is change and is not recorded.
- Direct: a payment against one named sale.

Every applied amount moves Sale.paid_cents up and Sale.balance_due_cents
down by the same number and appends a Payment row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app, has_app_context

from ..errors import NotFoundError, StorageWriteError, ValidationError
from ..models import Payment, Sale
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

FALLBACK_PAYMENT_METHOD = "cash"


def default_method() -> str:
    if has_app_context():
        return current_app.config.get("DEFAULT_PAYMENT_METHOD", FALLBACK_PAYMENT_METHOD)
    return FALLBACK_PAYMENT_METHOD


@dataclass(frozen=True)
class OutstandingSale:
    sale_id: str
    sold_at: datetime
    seq: int
    balance_due_cents: int


@dataclass(frozen=True)
class AllocationLine:
    sale_id: str
    amount_cents: int
    balance_before_cents: int

    @property
    def balance_after_cents(self) -> int:
        return self.balance_before_cents - self.amount_cents

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "amount_cents": self.amount_cents,
            "balance_before_cents": self.balance_before_cents,
            "balance_after_cents": self.balance_after_cents,
        }


@dataclass(frozen=True)
class Allocation:
    requested_cents: int
    lines: tuple[AllocationLine, ...] = field(default_factory=tuple)
    unallocated_cents: int = 0

    @property
    def allocated_cents(self) -> int:
        return sum(line.amount_cents for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "requested_cents": self.requested_cents,
            "allocated_cents": self.allocated_cents,
            "unallocated_cents": self.unallocated_cents,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass
class SettlementResult:
    allocation: Allocation
    payments: list[Payment]
    snapshot_error: object = None

    def to_dict(self) -> dict:
        return {
            "allocation": self.allocation.to_dict(),
            "payments": [p.to_dict() for p in self.payments],
            "snapshot_persisted": self.snapshot_error is None,
            "snapshot_error": self.snapshot_error.to_dict() if self.snapshot_error else None,
        }


def allocate_fifo(outstanding: list[OutstandingSale], amount_cents: int) -> Allocation:
    """
    Spread amount_cents over outstanding sales, oldest first.

    Pure: the input list is not modified. Sorting is stable on
    (sold_at, seq), so equal timestamps settle in insertion order.
    """
    if amount_cents < 0:
        raise ValidationError("Settlement amount must be >= 0")

    remaining = amount_cents
    lines = []
    for item in sorted(outstanding, key=lambda o: (o.sold_at, o.seq)):
        if remaining <= 0:
            break
        if item.balance_due_cents <= 0:
            continue
        payment = min(remaining, item.balance_due_cents)
        lines.append(AllocationLine(
            sale_id=item.sale_id,
            amount_cents=payment,
            balance_before_cents=item.balance_due_cents,
        ))
        remaining -= payment

    return Allocation(requested_cents=amount_cents, lines=tuple(lines), unallocated_cents=remaining)


def outstanding_sales(
    store,
    mobile: str,
    *,
    shop_id: int | None = None,
    exclude_sale_id: str | None = None,
) -> list[OutstandingSale]:
    query = store.session.query(Sale).filter(
        Sale.customer_mobile == mobile,
        Sale.balance_due_cents > 0,
    )
    if shop_id is not None:
        query = query.filter(Sale.shop_id == shop_id)
    if exclude_sale_id is not None:
        query = query.filter(Sale.id != exclude_sale_id)

    rows = query.order_by(Sale.sold_at.asc(), Sale.created_seq.asc()).all()
    return [
        OutstandingSale(
            sale_id=sale.id,
            sold_at=sale.sold_at,
            seq=sale.created_seq,
            balance_due_cents=sale.balance_due_cents,
        )
        for sale in rows
    ]


def _record_payment(store, sale: Sale, amount_cents: int, paid_at: datetime, method: str) -> Payment:
    if amount_cents > sale.balance_due_cents:
        raise StorageWriteError(
            "Settlement would drive balance due negative",
            details={"sale_id": sale.id, "amount_cents": amount_cents, "balance_due_cents": sale.balance_due_cents},
        )
    sale.paid_cents += amount_cents
    sale.balance_due_cents -= amount_cents

    payment = Payment(sale_id=sale.id, paid_at=paid_at, amount_cents=amount_cents, method=method)
    store.session.add(payment)
    return payment


def apply_allocation(store, allocation: Allocation, *, paid_at: datetime | None = None, method: str | None = None) -> list[Payment]:
    """Write an allocation inside the caller's transaction."""
    paid_at = paid_at or utcnow()
    method = method or default_method()

    payments = []
    for line in allocation.lines:
        sale = store.session.get(Sale, line.sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {line.sale_id} not found")
        payments.append(_record_payment(store, sale, line.amount_cents, paid_at, method))
    return payments


def settle_customer(
    store,
    mobile: str,
    amount_cents: int,
    *,
    shop_id: int | None = None,
    method: str | None = None,
    paid_at: datetime | None = None,
) -> SettlementResult:
    """Pay down a customer's debt across their outstanding sales, oldest first."""
    if not mobile:
        raise ValidationError("customer mobile is required")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    with store.transaction() as txn:
        outstanding = outstanding_sales(store, mobile, shop_id=shop_id)
        if not outstanding:
            raise ValidationError("Customer has no outstanding balance", details={"mobile": mobile})
        allocation = allocate_fifo(outstanding, amount_cents)
        payments = apply_allocation(store, allocation, paid_at=paid_at, method=method)

    logger.info("Settled %d cents for %s over %d sales (%d unallocated)",
                allocation.allocated_cents, mobile, len(allocation.lines), allocation.unallocated_cents)
    return SettlementResult(allocation=allocation, payments=payments, snapshot_error=txn.snapshot_error)


def settle_sale(
    store,
    sale_id: str,
    amount_cents: int,
    *,
    method: str | None = None,
    paid_at: datetime | None = None,
) -> SettlementResult:
    """
    Apply a payment against one invoice.

    The amount recorded is what the invoice could absorb
    (min(amount, balance_due)); any excess is change.
    """
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive")

    with store.transaction() as txn:
        sale = txn.session.get(Sale, sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found")
        if sale.balance_due_cents <= 0:
            raise ValidationError("Sale has no remaining balance due", details={"sale_id": sale_id})

        applied = min(amount_cents, sale.balance_due_cents)
        allocation = Allocation(
            requested_cents=amount_cents,
            lines=(AllocationLine(sale_id=sale.id, amount_cents=applied, balance_before_cents=sale.balance_due_cents),),
            unallocated_cents=amount_cents - applied,
        )
        payment = _record_payment(store, sale, applied, paid_at or utcnow(), method or default_method())

    logger.info("Settled %d cents against sale %s", applied, sale_id)
    return SettlementResult(allocation=allocation, payments=[payment], snapshot_error=txn.snapshot_error)
