# Overview: Shop expense records; simple CRUD outside the ledger invariants.

from __future__ import annotations

from ..errors import NotFoundError
from ..models import Expense, Shop
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_expense, validate_payload

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"spent_at", "description", "category", "amount_cents"},
    required_on_create={"description", "amount_cents"},
)


def list_expenses(store, shop_id: int) -> list[Expense]:
    return (
        store.session.query(Expense)
        .filter(Expense.shop_id == shop_id)
        .order_by(Expense.spent_at.desc(), Expense.id.desc())
        .all()
    )


def add_expense(store, shop_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)
    if patch.get("spent_at") is None:
        patch["spent_at"] = utcnow()

    with store.transaction() as txn:
        if txn.session.get(Shop, shop_id) is None:
            raise NotFoundError(f"Shop {shop_id} not found")
        expense = Expense(shop_id=shop_id, **patch)
        txn.session.add(expense)
    return expense


def delete_expense(store, shop_id: int, expense_id: int) -> None:
    with store.transaction() as txn:
        expense = txn.session.get(Expense, expense_id)
        if expense is None or expense.shop_id != shop_id:
            raise NotFoundError(f"Expense {expense_id} not found in shop {shop_id}")
        txn.session.delete(expense)
