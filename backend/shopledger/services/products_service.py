# backend/shopledger/services/products_service.py
"""
Products Service

All product operations are shop-scoped. Product ids are handed out from
Shop.next_product_id and the counter moves in the same transaction as the
insert, so a rolled-back add never burns an id.
"""
from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..models import Product, Shop
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "description", "description_secondary", "barcode",
        "wholesale_price_cents", "retail_price_cents",
        "stock", "category", "tax_code",
    },
    required_on_create={"description"},
)

PRICE_MODES = {"wholesale": "wholesale_price_cents", "retail": "retail_price_cents"}
DETAIL_FIELDS = {"description", "description_secondary"}


def _require_shop(store, shop_id: int) -> Shop:
    shop = store.session.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError(f"Shop {shop_id} not found")
    return shop


def get_product(store, shop_id: int, product_id: int) -> Product:
    product = store.session.get(Product, {"id": product_id, "shop_id": shop_id})
    if product is None:
        raise NotFoundError(f"Product {product_id} not found in shop {shop_id}")
    return product


def list_products(store, shop_id: int) -> list[Product]:
    return (
        store.session.query(Product)
        .filter(Product.shop_id == shop_id)
        .order_by(Product.id.asc())
        .all()
    )


def find_by_barcode(store, shop_id: int, barcode: str) -> Product | None:
    return (
        store.session.query(Product)
        .filter(Product.shop_id == shop_id, Product.barcode == barcode)
        .order_by(Product.id.asc())
        .first()
    )


def _clean(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


def _insert(store, shop: Shop, patch: dict) -> Product:
    product = Product(id=shop.next_product_id, shop_id=shop.id, **patch)
    shop.next_product_id += 1
    store.session.add(product)
    return product


def add_product(store, shop_id: int, payload: dict) -> Product:
    patch = _clean(payload, partial=False)
    with store.transaction() as txn:
        shop = _require_shop(store, shop_id)
        product = _insert(store, shop, patch)
        txn.session.flush()
    return product


def bulk_add_products(store, shop_id: int, payloads: list[dict]) -> list[Product]:
    """
    Insert many products in one transaction: every row validates and lands,
    or none do.
    """
    if not isinstance(payloads, list) or not payloads:
        raise ValidationError("products must be a non-empty list")

    patches = []
    for index, payload in enumerate(payloads):
        try:
            patches.append(_clean(payload, partial=False))
        except ValidationError as exc:
            raise ValidationError(f"products[{index}]: {exc.message}", details={"index": index}) from exc

    with store.transaction() as txn:
        shop = _require_shop(store, shop_id)
        products = [_insert(store, shop, patch) for patch in patches]
        txn.session.flush()
    return products


def update_product(store, shop_id: int, product_id: int, payload: dict) -> Product:
    patch = _clean(payload, partial=True)
    with store.transaction():
        product = get_product(store, shop_id, product_id)
        for key, value in patch.items():
            setattr(product, key, value)
    return product


def update_price_from_sale(store, shop_id: int, product_id: int, price_cents: int, price_mode: str) -> Product:
    """The sale screen lets the cashier fix a price; it writes back to the matching tier."""
    if price_mode not in PRICE_MODES:
        raise ValidationError(f"price_mode must be one of {sorted(PRICE_MODES)}")
    return update_product(store, shop_id, product_id, {PRICE_MODES[price_mode]: price_cents})


def update_details_from_sale(store, shop_id: int, product_id: int, field: str, value: str) -> Product:
    if field not in DETAIL_FIELDS:
        raise ValidationError(f"field must be one of {sorted(DETAIL_FIELDS)}")
    return update_product(store, shop_id, product_id, {field: value})


def delete_products(store, shop_id: int, product_ids: list[int]) -> int:
    """
    Delete products from a shop. Historical sale lines keep their snapshot of
    the product, so invoices are unaffected.
    """
    if not product_ids:
        return 0
    with store.transaction():
        deleted = (
            store.session.query(Product)
            .filter(Product.shop_id == shop_id, Product.id.in_(product_ids))
            .delete(synchronize_session="fetch")
        )
    return deleted


def delete_product(store, shop_id: int, product_id: int) -> None:
    get_product(store, shop_id, product_id)
    delete_products(store, shop_id, [product_id])
