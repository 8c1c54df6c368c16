from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer master data, shared across shops.

    Sales reference customers by a mobile-number snapshot, not a foreign key:
    deleting a customer never deletes or orphans their sales.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("mobile", name="uq_customers_mobile"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    mobile = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "mobile": self.mobile,
            "created_at": to_utc_z(self.created_at),
        }
