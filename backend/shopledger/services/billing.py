"""
Bill computation.

Pure functions over a cart value: re-run on every cart mutation, never
touches storage. All money is integer cents; quantities and the tax rate
are Decimals, so no binary float ever enters the arithmetic.

    subtotal           = sum(sold lines) - sum(returned lines)
    tax                = (subtotal - discount) * tax_rate / 100
    current_bill_total = subtotal - discount + tax
    grand_total        = current_bill_total + prior_balance
    balance_due        = max(0, grand_total - paid)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_cents(value: Decimal) -> int:
    """Round a Decimal amount of cents to a whole cent (half up)."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: Decimal
    unit_price_cents: int
    is_return: bool = False
    description: str = ""
    description_secondary: str | None = None
    tax_code: str | None = None

    @property
    def line_total_cents(self) -> int:
        return to_cents(Decimal(self.quantity) * self.unit_price_cents)

    @property
    def stock_delta(self) -> Decimal:
        """Returns put goods back on the shelf; sales take them off."""
        return Decimal(self.quantity) if self.is_return else -Decimal(self.quantity)


@dataclass(frozen=True)
class Cart:
    lines: tuple[CartLine, ...] = field(default_factory=tuple)
    discount_cents: int = 0
    tax_rate: Decimal = ZERO
    customer_name: str | None = None
    customer_mobile: str | None = None

    @property
    def is_empty(self) -> bool:
        return len(self.lines) == 0


@dataclass(frozen=True)
class BillTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    current_bill_total_cents: int
    prior_balance_cents: int
    grand_total_cents: int
    paid_cents: int
    balance_due_cents: int
    # Paid beyond the grand total; handed back, never recorded as credit
    change_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "current_bill_total_cents": self.current_bill_total_cents,
            "prior_balance_cents": self.prior_balance_cents,
            "grand_total_cents": self.grand_total_cents,
            "paid_cents": self.paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "change_cents": self.change_cents,
        }


def compute_subtotal(lines) -> int:
    sold = sum(line.line_total_cents for line in lines if not line.is_return)
    returned = sum(line.line_total_cents for line in lines if line.is_return)
    return sold - returned


def compute_bill(cart: Cart, prior_balance_cents: int = 0, paid_cents: int | None = None) -> BillTotals:
    """
    Derive every figure the sale screen shows.

    paid_cents=None means the operator has not overridden the amount, in
    which case the customer is assumed to pay the grand total.
    """
    subtotal = compute_subtotal(cart.lines)
    taxable = subtotal - cart.discount_cents
    tax = to_cents(Decimal(taxable) * Decimal(cart.tax_rate) / HUNDRED)
    current_bill_total = subtotal - cart.discount_cents + tax
    grand_total = current_bill_total + prior_balance_cents

    if paid_cents is None:
        paid_cents = max(0, grand_total)

    return BillTotals(
        subtotal_cents=subtotal,
        discount_cents=cart.discount_cents,
        tax_cents=tax,
        current_bill_total_cents=current_bill_total,
        prior_balance_cents=prior_balance_cents,
        grand_total_cents=grand_total,
        paid_cents=paid_cents,
        balance_due_cents=max(0, grand_total - paid_cents),
        change_cents=max(0, paid_cents - grand_total),
    )
