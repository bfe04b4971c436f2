# Overview: Flask API routes for user accounts and personal settings.

from flask import Blueprint, g, jsonify

from ..decorators import require_auth, require_master
from ..errors import InventoryError
from ..models.auth import ROLE_GENERAL
from ..services import auth_service
from ..services.catalog_service import ref_from_payload
from .responses import domain_error, json_body, unexpected_error

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_master
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_master
def create_user_route():
    try:
        data = json_body()
        user = auth_service.create_user(
            data.get("username"),
            data.get("password"),
            role=data.get("role") or ROLE_GENERAL,
            location=ref_from_payload(data, "location"),
            alert_threshold=data.get("alert_threshold"),
        )
        return jsonify({"user": user.to_dict()}), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to create user")


@users_bp.put("/me/settings")
@require_auth
def update_settings_route():
    """Personal dashboard settings; currently only the low-stock alert threshold."""
    try:
        data = json_body()
        if "alert_threshold" not in data:
            return jsonify({"error": "alert_threshold is required", "kind": "validation"}), 400
        user = auth_service.update_alert_threshold(g.current_user, data["alert_threshold"])
        return jsonify({"message": "Settings updated", "user": user.to_dict()}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to update settings")
