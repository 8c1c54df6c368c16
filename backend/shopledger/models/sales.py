from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .types import FixedDecimal


class Sale(db.Model):
    """
    Finalized sale (invoice header).

    Created once at finalization and afterwards only touched by settlement,
    which moves paid_cents up and balance_due_cents down in lockstep:
    balance_due_cents == total_cents - paid_cents, never below zero.

    customer_name/customer_mobile are snapshots taken at sale time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_shop_sold_at", "shop_id", "sold_at"),
        db.Index("ix_sales_mobile_balance", "customer_mobile", "balance_due_cents"),
    )

    # "SALE-<shop>-<epoch ms>"
    id = db.Column(db.String(64), primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False, index=True)
    sold_at = db.Column(db.DateTime, nullable=False)
    # Insertion order; breaks ties between sales with the same sold_at
    created_seq = db.Column(db.Integer, nullable=False, unique=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate = db.Column(FixedDecimal(3), nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_mobile = db.Column(db.String(32), nullable=True)

    shop = db.relationship("Shop", back_populates="sales")
    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SaleLine.id",
    )
    payments = db.relationship(
        "Payment",
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Payment.id",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "shop_id": self.shop_id,
            "sold_at": to_utc_z(self.sold_at),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_rate": str(self.tax_rate),
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "paid_cents": self.paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "customer_name": self.customer_name,
            "customer_mobile": self.customer_mobile,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class SaleLine(db.Model):
    """
    Invoice line. Description, price and tax code are copied from the product
    at sale time so later product edits never rewrite historical invoices.
    """
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)
    shop_id = db.Column(db.Integer, nullable=False)

    description = db.Column(db.String(255), nullable=False)
    description_secondary = db.Column(db.String(255), nullable=True)
    quantity = db.Column(FixedDecimal(3), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    is_return = db.Column(db.Boolean, nullable=False, default=False)
    tax_code = db.Column(db.String(32), nullable=True)

    sale = db.relationship("Sale", back_populates="lines")

    @property
    def signed_total_cents(self) -> int:
        return -self.line_total_cents if self.is_return else self.line_total_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "shop_id": self.shop_id,
            "description": self.description,
            "description_secondary": self.description_secondary,
            "quantity": str(self.quantity),
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "is_return": self.is_return,
            "tax_code": self.tax_code,
        }


class Payment(db.Model):
    """
    Append-only record of money applied against a sale.

    IMMUTABLE: never updated or deleted (except by cascade when the sale
    itself is removed). The audit trail of how Sale.paid_cents accumulated.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_sale_paid_at", "sale_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.String(64), db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False)
    paid_at = db.Column(db.DateTime, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=True)

    sale = db.relationship("Sale", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "paid_at": to_utc_z(self.paid_at),
            "amount_cents": self.amount_cents,
            "method": self.method,
        }
