# Overview: Flask API routes for locations and categories.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_master
from ..errors import InventoryError
from ..extensions import db
from ..services import catalog_service
from .responses import domain_error, json_body, unexpected_error

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "").lower() in ("1", "true", "yes")


@catalog_bp.get("/locations")
@require_auth
def list_locations_route():
    locations = catalog_service.list_locations(include_inactive=_include_inactive())
    return jsonify({"locations": [loc.to_dict() for loc in locations]}), 200


@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = catalog_service.list_categories(include_inactive=_include_inactive())
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@catalog_bp.post("/categories")
@require_auth
@require_master
def create_category_route():
    try:
        data = json_body()
        category = catalog_service.create_category(
            name=data.get("name"),
            code=data.get("code"),
            description=data.get("description"),
        )
        db.session.commit()
        return jsonify({"category": category.to_dict()}), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to create category")
