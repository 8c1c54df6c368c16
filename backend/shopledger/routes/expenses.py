# Overview: Flask API routes for shop expenses.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import expense_service
from ..services.store import get_store
from . import error_response, internal_error

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("/<int:shop_id>")
def list_expenses_route(shop_id: int):
    expenses = expense_service.list_expenses(get_store(), shop_id)
    return jsonify({"items": [e.to_dict() for e in expenses], "count": len(expenses)}), 200


@expenses_bp.post("/<int:shop_id>")
def create_expense_route(shop_id: int):
    try:
        expense = expense_service.add_expense(get_store(), shop_id, request.get_json(silent=True))
        return jsonify({"expense": expense.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create expense")


@expenses_bp.delete("/<int:shop_id>/<int:expense_id>")
def delete_expense_route(shop_id: int, expense_id: int):
    try:
        expense_service.delete_expense(get_store(), shop_id, expense_id)
        return "", 204
    except LedgerError as e:
        return error_response(e)
