# Overview: Flask API routes for customers; CRUD, balances, history and FIFO settlement.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import customer_service, settlement_service
from ..services.store import get_store
from ..validation import parse_positive_cents
from . import error_response, internal_error

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _optional_shop_id(data: dict) -> int | None:
    shop_id = data.get("shop_id")
    if shop_id is None:
        return None
    if not isinstance(shop_id, int) or isinstance(shop_id, bool):
        raise ValidationError("shop_id must be an integer")
    return shop_id


@customers_bp.get("")
def list_customers_route():
    customers = customer_service.list_customers(get_store())
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
def create_customer_route():
    try:
        customer = customer_service.add_customer(get_store(), request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create customer")


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(get_store(), customer_id, request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update customer")


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(get_store(), customer_id)
        return "", 204
    except LedgerError as e:
        return error_response(e)


@customers_bp.get("/<mobile>/balance")
def customer_balance_route(mobile: str):
    shop_id = request.args.get("shop_id", type=int)
    balance = customer_service.prior_balance(get_store(), mobile, shop_id=shop_id)
    return jsonify({"mobile": mobile, "shop_id": shop_id, "balance_due_cents": balance}), 200


@customers_bp.get("/<mobile>/history")
def customer_history_route(mobile: str):
    sales = customer_service.customer_history(get_store(), mobile, shop_id=request.args.get("shop_id", type=int))
    return jsonify({"items": [s.to_dict(include_lines=True) for s in sales], "count": len(sales)}), 200


@customers_bp.post("/<mobile>/settle")
def settle_customer_route(mobile: str):
    """
    Pay down a customer's debt oldest-invoice-first.

    Body: {"amount_cents": 7000, "shop_id": optional, "method": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = settlement_service.settle_customer(
            get_store(),
            mobile,
            parse_positive_cents(data.get("amount_cents"), "amount_cents"),
            shop_id=_optional_shop_id(data),
            method=data.get("method"),
        )
        return jsonify(result.to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to settle customer balance")
