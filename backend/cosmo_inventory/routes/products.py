# Overview: Flask API routes for products operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_master
from ..errors import InventoryError
from ..services import products_service
from .responses import domain_error, json_body, unexpected_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    include_inactive = request.args.get("active_only", "").lower() not in ("1", "true", "yes")
    products = products_service.list_products(include_inactive=include_inactive)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
@require_auth
@require_master
def create_product_route():
    """
    Register a product.

    Body: product fields plus optional
    `initial_stocks: [{location_id | location, batch_code, quantity}]`.
    """
    try:
        data = json_body()
        initial_stocks = data.pop("initial_stocks", None)
        result = products_service.create_product(
            data,
            initial_stocks=initial_stocks,
            actor=g.current_user.username,
        )
        return jsonify(result), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to create product")


@products_bp.post("/bulk")
@require_auth
@require_master
def bulk_register_route():
    try:
        data = json_body()
        result = products_service.bulk_register_products(
            data.get("products"),
            actor=g.current_user.username,
        )
        return jsonify(result), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Bulk product registration failed")


@products_bp.put("/<int:product_id>")
@require_auth
@require_master
def update_product_route(product_id: int):
    try:
        product = products_service.update_product(product_id, json_body())
        return jsonify({"product": product.to_dict()}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_master
def delete_product_route(product_id: int):
    try:
        result = products_service.delete_product(product_id)
        return jsonify({"message": "Product deleted", **result}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to delete product")
