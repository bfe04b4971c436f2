# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/cosmo_inventory/routes/inventory.py
from flask import Blueprint, g, jsonify

from ..decorators import require_auth, require_master, require_write
from ..errors import InventoryError
from ..services import import_service, inventory_service, transfer_service
from ..services.auth_service import ensure_can_write_at
from ..services.catalog_service import ref_from_payload, resolve_location, resolve_product
from ..services.ledger_service import verify_ledger
from ..validation import require_fields
from .responses import domain_error, json_body, query_int, unexpected_error

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def overview_route():
    """Dashboard payload: active locations, categories, products and inventory rows."""
    try:
        overview = inventory_service.get_inventory_overview(location_id=query_int("location_id"))
        return jsonify(overview), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load inventory")


@inventory_bp.get("/grouped")
@require_auth
def grouped_route():
    try:
        rows = inventory_service.list_inventory(
            location_id=query_int("location_id"),
            product_id=query_int("product_id"),
        )
        return jsonify({"groups": inventory_service.group_inventory_by_product(rows)}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load grouped inventory")


@inventory_bp.post("/movement")
@require_auth
@require_write
def movement_route():
    """
    Record one in / out / adjustment movement.

    Body: {product_id | product, location_id | location, batch_code,
    movement_type, quantity, movement_date?, notes?, is_initial_stock?}
    """
    try:
        data = json_body()
        require_fields(data, ["batch_code", "movement_type", "quantity"])
        product = resolve_product(ref_from_payload(data, "product"))
        location = resolve_location(ref_from_payload(data, "location"))
        ensure_can_write_at(g.current_user, location.id)

        result = inventory_service.create_movement(
            product_id=product.id,
            location_id=location.id,
            batch_code=data["batch_code"],
            movement_type=data["movement_type"],
            quantity=data["quantity"],
            movement_date=data.get("movement_date"),
            notes=data.get("notes"),
            actor=g.current_user.username,
            initial=bool(data.get("is_initial_stock")),
        )
        return jsonify(result), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to record movement")


@inventory_bp.put("/bulk-update")
@require_auth
@require_master
def bulk_update_route():
    """Body: {items: [{item_id, new_stock, old_stock?, product_id?, location_id?, batch_code?}]}"""
    try:
        data = json_body()
        result = inventory_service.bulk_update(data.get("items"), actor=g.current_user.username)
        return jsonify(result), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Bulk update failed")


@inventory_bp.post("/bulk")
@require_auth
@require_master
def bulk_import_route():
    """Body: {rows: [{product, location, batch_code, quantity}]}; names, not ids."""
    try:
        data = json_body()
        result = import_service.bulk_import(data.get("rows"), actor=g.current_user.username)
        return jsonify(result), 201
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Bulk import failed")


@inventory_bp.post("/transfer")
@require_auth
@require_master
def transfer_route():
    """Direct transfer. General users go through /api/transfer-requests instead."""
    try:
        data = json_body()
        require_fields(data, ["batch_code", "quantity"])
        product = resolve_product(ref_from_payload(data, "product"))
        from_location = resolve_location(ref_from_payload(data, "from_location"))
        to_location = resolve_location(ref_from_payload(data, "to_location"))

        result = transfer_service.transfer(
            product_id=product.id,
            from_location_id=from_location.id,
            to_location_id=to_location.id,
            batch_code=data["batch_code"],
            quantity=data["quantity"],
            movement_date=data.get("movement_date"),
            notes=data.get("notes"),
            actor=g.current_user.username,
        )
        return jsonify(result), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Transfer failed")


@inventory_bp.get("/verify")
@require_auth
@require_master
def verify_route():
    """Replay the ledger and report keys whose stock does not match."""
    try:
        mismatches = verify_ledger(
            product_id=query_int("product_id"),
            location_id=query_int("location_id"),
        )
        return jsonify({"ok": not mismatches, "mismatches": mismatches}), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Ledger verification failed")
