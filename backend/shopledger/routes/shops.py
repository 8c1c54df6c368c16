# Overview: Flask API routes for shops.

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import shop_service
from ..services.store import get_store
from . import error_response

shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


@shops_bp.get("")
def list_shops_route():
    shops = shop_service.list_shops(get_store())
    return jsonify({"items": [s.to_dict() for s in shops], "count": len(shops)}), 200


@shops_bp.post("")
def create_shop_route():
    data = request.get_json(silent=True) or {}
    try:
        shop = shop_service.create_shop(get_store(), data.get("name"))
        return jsonify({"shop": shop.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)


@shops_bp.put("/<int:shop_id>")
def rename_shop_route(shop_id: int):
    data = request.get_json(silent=True) or {}
    try:
        shop = shop_service.rename_shop(get_store(), shop_id, data.get("name"))
        return jsonify({"shop": shop.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)


@shops_bp.delete("/<int:shop_id>")
def delete_shop_route(shop_id: int):
    try:
        shop_service.delete_shop(get_store(), shop_id)
        return "", 204
    except LedgerError as e:
        return error_response(e)
