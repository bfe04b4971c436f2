# backend/cosmo_inventory/routes/transfer_requests.py
"""
Transfer request API routes.

General users ask for stock to move; a master approves (stock moves) or
rejects (nothing moves).
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_master, require_write
from ..errors import InventoryError, PermissionDenied
from ..services import transfer_service
from ..services.catalog_service import ref_from_payload, resolve_location, resolve_product
from ..validation import require_fields
from .responses import domain_error, json_body, unexpected_error

transfer_requests_bp = Blueprint("transfer_requests", __name__, url_prefix="/api/transfer-requests")


@transfer_requests_bp.post("")
@require_auth
@require_write
def create_request_route():
    """
    Body: {product_id | product, from_location_id | from_location,
    to_location_id | to_location, batch_code, quantity, reason?}

    General users may only request transfers that touch their own location.
    """
    try:
        data = json_body()
        require_fields(data, ["batch_code", "quantity"])
        product = resolve_product(ref_from_payload(data, "product"))
        from_location = resolve_location(ref_from_payload(data, "from_location"))
        to_location = resolve_location(ref_from_payload(data, "to_location"))

        user = g.current_user
        if not user.is_master and user.location_id not in (from_location.id, to_location.id):
            raise PermissionDenied("Transfer requests must involve your assigned location")

        req = transfer_service.create_request(
            product_id=product.id,
            from_location_id=from_location.id,
            to_location_id=to_location.id,
            batch_code=data["batch_code"],
            quantity=data["quantity"],
            requested_by=user.username,
            reason=data.get("reason"),
        )
        return jsonify({"request": req.to_dict()}), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to create transfer request")


@transfer_requests_bp.get("")
@require_auth
def list_requests_route():
    """?status=pending|approved|rejected|all (default pending), newest first."""
    try:
        requests = transfer_service.list_requests(status=request.args.get("status") or "pending")
        return jsonify({"requests": [r.to_dict() for r in requests]}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load transfer requests")


@transfer_requests_bp.get("/<int:request_id>")
@require_auth
def get_request_route(request_id: int):
    try:
        return jsonify({"request": transfer_service.get_request(request_id).to_dict()}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load transfer request")


@transfer_requests_bp.put("/<int:request_id>")
@require_auth
@require_master
def process_request_route(request_id: int):
    """Body: {action: approve | reject, rejection_reason?}"""
    try:
        data = json_body()
        require_fields(data, ["action"])
        result = transfer_service.process_request(
            request_id,
            action=data["action"],
            actor=g.current_user.username,
            rejection_reason=data.get("rejection_reason"),
        )
        return jsonify(result), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to process transfer request")
