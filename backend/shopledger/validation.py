from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models.types import FixedDecimal
from .time_utils import parse_iso_datetime


# Quantities, stock and tax rates are stored with this many decimal places
FIXED_PLACES = 3

# Upper bound for any product price tier (9,999,999.99)
MAX_PRICE_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which a create must supply."""
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_cents(value: Any, field: str) -> int:
    """
    Strict integer-cents parsing.

    Rejects bools, floats, decimal points and scientific notation so a
    price can never silently lose a fraction of a cent.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer amount in cents")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer amount in cents (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer amount in cents")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer amount in cents, not a decimal")
    raise ValidationError(f"{field} must be an integer amount in cents")


def parse_decimal(value: Any, field: str, places: int | None = None) -> Decimal:
    """
    Quantities and rates: accept ints, numeric strings and JSON floats (via str).

    With `places`, reject values a FixedDecimal(places) column could not
    store exactly, so what is billed is what gets saved.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if places is not None:
        try:
            exact = result == result.quantize(Decimal(1).scaleb(-places))
        except InvalidOperation:
            exact = False
        if not exact:
            raise ValidationError(f"{field} allows at most {places} decimal places")
    return result


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, FixedDecimal):
        return parse_decimal(value, col.key, coltype.scale)

    if isinstance(coltype, Integer):
        return parse_cents(value, col.key) if col.key.endswith("_cents") else _parse_int(value, col.key)

    # spent_at and similar: ISO-8601 strings only
    if isinstance(coltype, DateTime):
        parsed = None
        if isinstance(value, str):
            try:
                parsed = parse_iso_datetime(value)
            except ValueError:
                parsed = None
        if parsed is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        return parsed

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def _check_text(col, value: str) -> None:
    if not col.nullable and value == "":
        raise ValidationError(f"{col.key} cannot be blank")
    limit = getattr(col.type, "length", None)
    if limit and len(value) > limit:
        raise ValidationError(f"{col.key} exceeds max length {limit}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a client JSON object into a column patch for `model`.

    Keys must be in the policy allowlist and map to real columns; values are
    coerced by column type (cents stay strict integers, FixedDecimal columns
    take Decimals). A create (partial=False) must carry every
    required_on_create key; an update validates only what it was given.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(set(policy.required_on_create) - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    rejected = sorted(k for k in payload if k not in policy.writable_fields or k not in cols)
    if rejected:
        raise ValidationError(f"Field not allowed: {rejected[0]}", details={"fields": rejected})

    patch: dict = {}
    for key, raw in payload.items():
        col = cols[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        value = _coerce_value(col, raw)
        if isinstance(value, str):
            _check_text(col, value)
        patch[key] = value

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.

    Stock has no floor: oversell may drive it negative.
    """
    for field in ("wholesale_price_cents", "retail_price_cents"):
        if field in patch and patch[field] is not None:
            price = patch[field]
            if price < 0:
                raise ValidationError(f"{field} must be >= 0")
            if price > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_expense(patch: dict) -> None:
    if "amount_cents" in patch and patch["amount_cents"] is not None:
        if patch["amount_cents"] <= 0:
            raise ValidationError("amount_cents must be > 0")


def parse_cart(payload: Any):
    """
    Build a Cart from the UI payload.

    {
      "lines": [{"product_id": 1, "quantity": "1.5", "unit_price_cents": 1000,
                 "is_return": false, "description": "...", "tax_code": "..."}],
      "discount_cents": 0, "tax_rate": "5", "customer_name": "...",
      "customer_mobile": "..."
    }
    """
    from .services.billing import Cart, CartLine

    if not isinstance(payload, dict):
        raise ValidationError("Invalid cart payload")

    raw_lines = payload.get("lines") or []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    lines = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        if "product_id" not in raw:
            raise ValidationError(f"lines[{index}].product_id is required")
        quantity = parse_decimal(raw.get("quantity"), f"lines[{index}].quantity", FIXED_PLACES)
        if quantity <= 0:
            raise ValidationError(f"lines[{index}].quantity must be > 0")
        unit_price = parse_cents(raw.get("unit_price_cents"), f"lines[{index}].unit_price_cents")
        if unit_price < 0:
            raise ValidationError(f"lines[{index}].unit_price_cents must be >= 0")
        is_return = raw.get("is_return", False)
        if not isinstance(is_return, bool):
            raise ValidationError(f"lines[{index}].is_return must be a boolean")
        lines.append(CartLine(
            product_id=_parse_int(raw["product_id"], f"lines[{index}].product_id"),
            quantity=quantity,
            unit_price_cents=unit_price,
            is_return=is_return,
            description=str(raw.get("description") or "").strip(),
            description_secondary=(str(raw["description_secondary"]).strip()
                                   if raw.get("description_secondary") else None),
            tax_code=str(raw["tax_code"]).strip() if raw.get("tax_code") else None,
        ))

    discount = parse_cents(payload.get("discount_cents", 0), "discount_cents")
    if discount < 0:
        raise ValidationError("discount_cents must be >= 0")
    tax_rate = parse_decimal(payload.get("tax_rate", 0), "tax_rate", FIXED_PLACES)
    if tax_rate < 0:
        raise ValidationError("tax_rate must be >= 0")

    return Cart(
        lines=tuple(lines),
        discount_cents=discount,
        tax_rate=tax_rate,
        customer_name=(str(payload["customer_name"]).strip() or None) if payload.get("customer_name") else None,
        customer_mobile=(str(payload["customer_mobile"]).strip() or None) if payload.get("customer_mobile") else None,
    )


def parse_optional_cents(payload: dict, field: str) -> int | None:
    """Missing or null means "let the ledger default it"."""
    if payload.get(field) is None:
        return None
    value = parse_cents(payload[field], field)
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value


def parse_positive_cents(value: Any, field: str) -> int:
    amount = parse_cents(value, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be > 0")
    return amount
