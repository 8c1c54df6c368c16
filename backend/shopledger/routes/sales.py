# Overview: Flask API routes for sales; bill preview, finalization, settlement and lookups.

"""Sales API routes"""

from flask import Blueprint, jsonify, request

from ..errors import LedgerError, ValidationError
from ..services import sales_service, settlement_service
from ..services.store import get_store
from ..time_utils import parse_iso_datetime
from ..validation import parse_cart, parse_optional_cents, parse_positive_cents
from . import error_response, internal_error

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _shop_id(data: dict) -> int:
    shop_id = data.get("shop_id")
    if not isinstance(shop_id, int) or isinstance(shop_id, bool):
        raise ValidationError("shop_id required")
    return shop_id


@sales_bp.post("/preview")
def preview_bill_route():
    """
    Compute bill totals for a cart without writing anything.

    Body: {"shop_id": 1, "cart": {...}, "paid_cents": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        bill = sales_service.preview_bill(
            get_store(),
            _shop_id(data),
            parse_cart(data.get("cart")),
            parse_optional_cents(data, "paid_cents"),
        )
        return jsonify({"bill": bill.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to preview bill")


@sales_bp.post("")
def finalize_sale_route():
    """
    Finalize a cart.

    Body: {"shop_id": 1, "cart": {...}, "paid_cents": optional, "method": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = sales_service.finalize_sale(
            get_store(),
            _shop_id(data),
            parse_cart(data.get("cart")),
            parse_optional_cents(data, "paid_cents"),
            method=data.get("method"),
        )
        return jsonify(result.to_dict()), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to finalize sale")


@sales_bp.get("")
def list_sales_route():
    shop_id = request.args.get("shop_id", type=int)
    if shop_id is None:
        return jsonify({"error": "shop_id required"}), 400
    try:
        start = parse_iso_datetime(request.args.get("start_date"))
        end = parse_iso_datetime(request.args.get("end_date"), end_of_day=True)
    except ValueError:
        return jsonify({"error": "start_date and end_date must be ISO-8601 datetimes"}), 400

    sales = sales_service.list_sales(get_store(), shop_id, start=start, end=end)
    return jsonify({"items": [s.to_dict(include_lines=True) for s in sales], "count": len(sales)}), 200


@sales_bp.get("/outstanding")
def list_outstanding_route():
    sales = sales_service.list_outstanding(
        get_store(),
        shop_id=request.args.get("shop_id", type=int),
        search=request.args.get("q"),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<sale_id>")
def get_sale_route(sale_id: str):
    try:
        sale = sales_service.get_sale(get_store(), sale_id)
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200
    except LedgerError as e:
        return error_response(e)


@sales_bp.post("/<sale_id>/settle")
def settle_sale_route(sale_id: str):
    """
    Pay against one invoice.

    Body: {"amount_cents": 5000, "method": optional}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = settlement_service.settle_sale(
            get_store(),
            sale_id,
            parse_positive_cents(data.get("amount_cents"), "amount_cents"),
            method=data.get("method"),
        )
        return jsonify(result.to_dict()), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to settle sale")
