# Overview: Flask API routes for products; parses input and returns JSON responses.

"""
Product management routes. Everything is scoped to a shop: products are
addressed as /api/products/<shop_id>/<product_id>.
"""
from decimal import Decimal

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import inventory_service, products_service
from ..services.store import get_store
from ..validation import parse_decimal
from . import error_response, internal_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/<int:shop_id>")
def list_products_route(shop_id: int):
    products = products_service.list_products(get_store(), shop_id)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:shop_id>/low-stock")
def low_stock_route(shop_id: int):
    try:
        threshold = parse_decimal(request.args.get("threshold", "5"), "threshold")
    except LedgerError as e:
        return error_response(e)
    products = inventory_service.low_stock(get_store(), shop_id, Decimal(threshold))
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:shop_id>/barcode/<barcode>")
def find_by_barcode_route(shop_id: int, barcode: str):
    product = products_service.find_by_barcode(get_store(), shop_id, barcode)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/<int:shop_id>")
def create_product_route(shop_id: int):
    try:
        product = products_service.add_product(get_store(), shop_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create product")


@products_bp.post("/<int:shop_id>/bulk")
def bulk_create_products_route(shop_id: int):
    try:
        data = request.get_json(silent=True) or {}
        products = products_service.bulk_add_products(get_store(), shop_id, data.get("products"))
        return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to bulk create products")


@products_bp.put("/<int:shop_id>/<int:product_id>")
def update_product_route(shop_id: int, product_id: int):
    try:
        product = products_service.update_product(get_store(), shop_id, product_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update product")


@products_bp.put("/<int:shop_id>/<int:product_id>/price")
def update_price_from_sale_route(shop_id: int, product_id: int):
    """
    Write a price edited on the sale screen back to the product.

    Body: {"price_cents": 1250, "price_mode": "retail" | "wholesale"}
    """
    try:
        data = request.get_json(silent=True) or {}
        product = products_service.update_price_from_sale(
            get_store(), shop_id, product_id, data.get("price_cents"), data.get("price_mode"),
        )
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update product price")


@products_bp.put("/<int:shop_id>/<int:product_id>/details")
def update_details_from_sale_route(shop_id: int, product_id: int):
    """Body: {"field": "description" | "description_secondary", "value": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        product = products_service.update_details_from_sale(
            get_store(), shop_id, product_id, data.get("field"), data.get("value"),
        )
        return jsonify({"product": product.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update product details")


@products_bp.delete("/<int:shop_id>/<int:product_id>")
def delete_product_route(shop_id: int, product_id: int):
    try:
        products_service.delete_product(get_store(), shop_id, product_id)
        return "", 204
    except LedgerError as e:
        return error_response(e)


@products_bp.post("/<int:shop_id>/delete")
def delete_products_route(shop_id: int):
    """Body: {"product_ids": [1, 2, 3]}"""
    data = request.get_json(silent=True) or {}
    product_ids = data.get("product_ids") or []
    if not isinstance(product_ids, list) or not all(isinstance(i, int) for i in product_ids):
        return jsonify({"error": "product_ids must be a list of integers"}), 400
    try:
        deleted = products_service.delete_products(get_store(), shop_id, product_ids)
        return jsonify({"deleted": deleted}), 200
    except LedgerError as e:
        return error_response(e)
