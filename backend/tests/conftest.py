"""
Pytest fixtures for the shop ledger backend tests.

Every test gets its own in-memory ledger store and an in-memory snapshot
slot, so nothing touches disk and tests never share state.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from shopledger import create_app
from shopledger.config import TestConfig
from shopledger.extensions import db
from shopledger.services import products_service, shop_service
from shopledger.services.billing import Cart, CartLine
from shopledger.services.snapshot_service import MemorySnapshotSlot


class FlakySlot(MemorySnapshotSlot):
    """Memory slot whose writes can be switched to fail with an OSError."""

    def __init__(self, blob=None):
        super().__init__(blob, key="flaky")
        self.fail = False
        self.failed_writes = 0

    def write(self, blob):
        if self.fail:
            self.failed_writes += 1
            raise OSError("disk full")
        super().write(blob)


@pytest.fixture
def slot():
    return FlakySlot()


@pytest.fixture
def app(slot):
    """Create application for testing, with an app context pushed."""
    app = create_app(TestConfig, snapshot_slot=slot)
    with app.app_context():
        yield app
        db.session.remove()
    app.extensions["ledger_store"].close()


@pytest.fixture
def store(app):
    return app.extensions["ledger_store"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def shop(store):
    return shop_service.create_shop(store, "Main Street")


@pytest.fixture
def make_product(store, shop):
    """Factory: make_product("Rice", retail=10000, stock="100")."""
    def _make(description="Rice 1kg", retail=10000, stock="100", shop_id=None, **extra):
        payload = {
            "description": description,
            "retail_price_cents": retail,
            "wholesale_price_cents": extra.pop("wholesale", retail),
            "stock": stock,
        }
        payload.update(extra)
        return products_service.add_product(store, shop_id or shop.id, payload)
    return _make


def line(product, quantity="1", price=None, is_return=False):
    """CartLine snapshotting a product the way the sale screen does."""
    return CartLine(
        product_id=product.id,
        quantity=Decimal(str(quantity)),
        unit_price_cents=product.retail_price_cents if price is None else price,
        is_return=is_return,
        description=product.description,
        description_secondary=product.description_secondary,
        tax_code=product.tax_code,
    )


def cart(*lines, discount=0, tax="0", name=None, mobile=None):
    return Cart(
        lines=tuple(lines),
        discount_cents=discount,
        tax_rate=Decimal(tax),
        customer_name=name,
        customer_mobile=mobile,
    )


BASE_TIME = datetime(2026, 1, 5, 10, 0, 0)


def at(days=0, minutes=0):
    return BASE_TIME + timedelta(days=days, minutes=minutes)
