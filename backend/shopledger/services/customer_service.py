# Overview: Customer records and per-customer balance aggregates.

from __future__ import annotations

from sqlalchemy import func

from ..errors import ConflictError, NotFoundError
from ..models import Customer, Sale
from ..validation import ModelValidationPolicy, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "mobile"},
    required_on_create={"name", "mobile"},
)


def list_customers(store) -> list[Customer]:
    return store.session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(store, customer_id: int) -> Customer:
    customer = store.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def find_by_mobile(store, mobile: str) -> Customer | None:
    return store.session.query(Customer).filter(Customer.mobile == mobile).first()


def _ensure_mobile_free(store, mobile: str, customer_id: int | None = None) -> None:
    existing = find_by_mobile(store, mobile)
    if existing is not None and existing.id != customer_id:
        raise ConflictError(
            "A customer with this mobile number already exists",
            details={"mobile": mobile, "customer_id": existing.id},
        )


def add_customer(store, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    with store.transaction() as txn:
        _ensure_mobile_free(store, patch["mobile"])
        customer = Customer(**patch)
        txn.session.add(customer)
    return customer


def update_customer(store, customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    with store.transaction():
        customer = get_customer(store, customer_id)
        if "mobile" in patch:
            _ensure_mobile_free(store, patch["mobile"], customer_id=customer.id)
        for key, value in patch.items():
            setattr(customer, key, value)
    return customer


def delete_customer(store, customer_id: int) -> None:
    """Removes the customer from the list only; their sales keep the mobile snapshot."""
    with store.transaction() as txn:
        txn.session.delete(get_customer(store, customer_id))


def register_if_new(store, name: str | None, mobile: str | None) -> Customer | None:
    """Called inside the finalization transaction; first sale to a new mobile enrolls them."""
    if not name or not mobile:
        return None
    if find_by_mobile(store, mobile) is not None:
        return None
    customer = Customer(name=name, mobile=mobile)
    store.session.add(customer)
    return customer


def prior_balance(store, mobile: str | None, shop_id: int | None = None, exclude_sale_id: str | None = None) -> int:
    """Sum of balance_due over the customer's sales (optionally one shop, minus one sale)."""
    if not mobile:
        return 0
    query = store.session.query(func.coalesce(func.sum(Sale.balance_due_cents), 0)).filter(
        Sale.customer_mobile == mobile,
        Sale.balance_due_cents > 0,
    )
    if shop_id is not None:
        query = query.filter(Sale.shop_id == shop_id)
    if exclude_sale_id is not None:
        query = query.filter(Sale.id != exclude_sale_id)
    return int(query.scalar() or 0)


def customer_history(store, mobile: str, shop_id: int | None = None) -> list[Sale]:
    query = store.session.query(Sale).filter(Sale.customer_mobile == mobile)
    if shop_id is not None:
        query = query.filter(Sale.shop_id == shop_id)
    return query.order_by(Sale.sold_at.desc(), Sale.created_seq.desc()).all()
