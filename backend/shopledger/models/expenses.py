from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Expense(db.Model):
    """Shop operating cost. Plain CRUD; not part of the ledger invariants."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_shop_spent_at", "shop_id", "spent_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    spent_at = db.Column(db.DateTime, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    shop = db.relationship("Shop", back_populates="expenses")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "spent_at": to_utc_z(self.spent_at),
            "description": self.description,
            "category": self.category,
            "amount_cents": self.amount_cents,
        }
