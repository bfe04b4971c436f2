# Overview: Shared JSON response helpers for API routes.

from flask import current_app, jsonify, request

from ..errors import InventoryError
from ..extensions import db
from ..validation import parse_date_field, parse_int, require_json_object


def json_body() -> dict:
    """Request body as a dict; ValidationError for anything else."""
    return require_json_object(request.get_json(silent=True))


def query_int(name: str) -> int | None:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return parse_int(value, name)


def query_date(name: str):
    value = request.args.get(name)
    if not value:
        return None
    return parse_date_field(value, name)


def domain_error(exc: InventoryError):
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


def unexpected_error(message: str):
    """Call from inside an except block; logs the active traceback."""
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "kind": "internal"}), 500
