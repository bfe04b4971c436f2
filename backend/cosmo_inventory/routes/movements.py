# Overview: Flask API routes for the movement history; read-only.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth
from ..errors import InventoryError
from ..services import movement_service
from .responses import domain_error, query_date, query_int, unexpected_error

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.get("")
@require_auth
def list_movements_route():
    """
    Query params: location_id, start_date, end_date (inclusive, YYYY-MM-DD),
    movement_type, product_id, category_id, search, limit.
    """
    try:
        limit = query_int("limit")
        movements = movement_service.list_movements(
            location_id=query_int("location_id"),
            start_date=query_date("start_date"),
            end_date=query_date("end_date"),
            movement_type=request.args.get("movement_type") or None,
            product_id=query_int("product_id"),
            category_id=query_int("category_id"),
            search=request.args.get("search") or None,
            limit=limit if limit is not None else movement_service.DEFAULT_LIMIT,
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load movements")


@movements_bp.get("/transfer-groups/<transfer_group_id>")
@require_auth
def transfer_group_route(transfer_group_id: str):
    try:
        legs = movement_service.get_transfer_group(transfer_group_id)
        return jsonify({
            "transfer_group_id": transfer_group_id,
            "movements": [m.to_dict() for m in legs],
        }), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load transfer group")
