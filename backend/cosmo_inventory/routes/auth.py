# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify

from ..decorators import bearer_token, require_auth
from ..errors import InventoryError
from ..services import auth_service, session_service
from ..time_utils import to_utc_z
from .responses import domain_error, json_body, unexpected_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Exchange username and password for a bearer token.

    The token goes in `Authorization: Bearer <token>` on every other call.
    """
    try:
        data = json_body()
        username = data.get("username")
        password = data.get("password")
        if not username or not password:
            return jsonify({"error": "username and password required", "kind": "validation"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"error": "Invalid credentials", "kind": "unauthorized"}), 401

        session, token = session_service.create_session(user)
        return jsonify({
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "user": user.to_dict(),
        }), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Login failed")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
