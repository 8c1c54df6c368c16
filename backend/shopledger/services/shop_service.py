# Overview: Shop (tenant) management; create, rename, list and cascading delete.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..models import Shop


def list_shops(store) -> list[Shop]:
    return store.session.query(Shop).order_by(Shop.id.asc()).all()


def get_shop(store, shop_id: int) -> Shop:
    shop = store.session.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError(f"Shop {shop_id} not found")
    return shop


def _clean_name(name) -> str:
    trimmed = (name or "").strip() if isinstance(name, str) else ""
    if not trimmed:
        raise ValidationError("Shop name cannot be empty")
    if len(trimmed) > 255:
        raise ValidationError("Shop name exceeds max length 255")
    return trimmed


def create_shop(store, name: str) -> Shop:
    shop = Shop(name=_clean_name(name), next_product_id=1)
    with store.transaction() as txn:
        txn.session.add(shop)
    return shop


def rename_shop(store, shop_id: int, name: str) -> Shop:
    trimmed = _clean_name(name)
    with store.transaction():
        shop = get_shop(store, shop_id)
        shop.name = trimmed
    return shop


def delete_shop(store, shop_id: int) -> None:
    """
    Remove a shop with its products, sales (lines and payments included)
    and expenses in one transaction.
    """
    with store.transaction() as txn:
        shop = get_shop(store, shop_id)
        txn.session.delete(shop)
