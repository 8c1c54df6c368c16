# Overview: Stock adjustment for sale and return lines, scoped to (product id, shop id).

from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import StockAdjustmentError
from ..models import Product

logger = logging.getLogger(__name__)


def adjust_stock(store, shop_id: int, product_id: int, delta: Decimal) -> Product:
    """
    Apply a stock delta inside the caller's transaction.

    Negative delta for goods sold, positive for goods returned. There is no
    floor check: oversell drives stock negative and that is allowed.

    Raises:
        StockAdjustmentError: if the product does not exist in this shop
    """
    product = store.session.get(Product, {"id": product_id, "shop_id": shop_id})
    if product is None:
        raise StockAdjustmentError(
            f"Product {product_id} not found in shop {shop_id}",
            details={"product_id": product_id, "shop_id": shop_id},
        )

    product.stock = Decimal(product.stock) + Decimal(delta)
    if product.stock < 0:
        logger.info("Product %s in shop %s oversold; stock now %s", product_id, shop_id, product.stock)
    return product


def low_stock(store, shop_id: int, threshold: Decimal = Decimal("5")) -> list[Product]:
    """Products at or under the threshold, lowest stock first."""
    return (
        store.session.query(Product)
        .filter(Product.shop_id == shop_id, Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )
