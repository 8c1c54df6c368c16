from __future__ import annotations

from ..extensions import db
from .types import FixedDecimal


class Product(db.Model):
    """
    Product master data.

    Identity is (id, shop_id): ids come from Shop.next_product_id and are only
    unique within their shop.

    stock is the authoritative on-hand quantity after every committed sale.
    It is fractional (loose goods) and has no floor; oversell drives it
    negative.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_shop_barcode", "shop_id", "barcode"),
        db.Index("ix_products_shop_description", "shop_id", "description"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    shop_id = db.Column(
        db.Integer, db.ForeignKey("shops.id", ondelete="CASCADE"), primary_key=True,
    )

    description = db.Column(db.String(255), nullable=False)
    # Second-language label printed under the description on receipts
    description_secondary = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    # Two price tiers (all money in cents)
    wholesale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(FixedDecimal(3), nullable=False, default=0)
    category = db.Column(db.String(128), nullable=True)
    tax_code = db.Column(db.String(32), nullable=True)

    shop = db.relationship("Shop", back_populates="products")

    def __repr__(self) -> str:
        return f"<Product id={self.id} shop_id={self.shop_id} description={self.description!r}>"

    def price_for(self, price_mode: str) -> int:
        return self.wholesale_price_cents if price_mode == "wholesale" else self.retail_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "description": self.description,
            "description_secondary": self.description_secondary,
            "barcode": self.barcode,
            "wholesale_price_cents": self.wholesale_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "stock": str(self.stock) if self.stock is not None else None,
            "category": self.category,
            "tax_code": self.tax_code,
        }
