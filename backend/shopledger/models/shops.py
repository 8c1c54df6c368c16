from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Shop(db.Model):
    """
    Tenant boundary.

    Owns the monotonically increasing next_product_id counter; product ids
    are only unique within a shop.
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    next_product_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    products = db.relationship(
        "Product", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True,
    )
    sales = db.relationship(
        "Sale", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True,
    )
    expenses = db.relationship(
        "Expense", back_populates="shop", cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "next_product_id": self.next_product_id,
            "created_at": to_utc_z(self.created_at),
        }
