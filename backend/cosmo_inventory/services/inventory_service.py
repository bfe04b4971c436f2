# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/cosmo_inventory/services/inventory_service.py

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from ..errors import InventoryError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Inventory, InventoryMovement, Location, Product
from ..models.inventory import MOVEMENT_ADJUSTMENT, MOVEMENT_IN, MOVEMENT_OUT
from ..time_utils import business_today, to_utc_z, utcnow
from ..validation import clean_batch_code, parse_date_field, parse_int
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import apply_movement, ensure_inventory_row, record_movement
"""
Inventory operations (authoritative)

Single movement (create_movement):
- in / out / adjustment only; transfers go through transfer_service.
- quantity > 0; adjustment quantity is the absolute target.
- initial=True is the "seed a tracked row" mode: quantity 0 creates a
  zero-stock row without a movement, quantity > 0 behaves like `in`.
- One database transaction per call.

Bulk update (bulk_update):
- Edit-grid corrections: each item sets an inventory row to an absolute value.
- Items are committed one by one in input order. A failing item aborts the
  batch (earlier items stay applied) and the error names the item.
- Movement type follows the sign of the change: + in, - out, 0 adjustment.
"""

logger = logging.getLogger(__name__)

SINGLE_MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT)

BULK_EDIT_NOTE = "bulk stock edit"


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product not found: {product_id}")
    return product


def _require_location(location_id: int) -> Location:
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFoundError(f"Location not found: {location_id}")
    return location


def create_movement(
    *,
    product_id: int,
    location_id: int,
    batch_code: str,
    movement_type: str,
    quantity: Any,
    movement_date: Any = None,
    notes: str | None = None,
    actor: str | None = None,
    initial: bool = False,
) -> dict:
    """
    Record one in / out / adjustment movement and return before/after stock.

    Raises:
        ValidationError: missing fields, bad type, quantity out of range
        NotFoundError: unknown product or location
        InsufficientStockError: `out` beyond available stock (nothing written)
    """
    if movement_type not in SINGLE_MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type!r}")
    qty = parse_int(quantity, "quantity")
    code = clean_batch_code(batch_code)
    movement_day = parse_date_field(movement_date, "movement_date")

    if initial:
        if movement_type != MOVEMENT_IN:
            raise ValidationError("initial stock entry must use movement type 'in'")
        if qty < 0:
            raise ValidationError("quantity must be >= 0 for initial stock entry")
    elif qty <= 0:
        raise ValidationError("quantity must be > 0")

    def _op():
        _require_product(product_id)
        _require_location(location_id)

        if initial and qty == 0:
            row = ensure_inventory_row(
                product_id=product_id,
                location_id=location_id,
                batch_code=code,
                actor=actor,
            )
            db.session.commit()
            return {
                "previous_stock": row.current_stock,
                "new_stock": row.current_stock,
                "movement_type": movement_type,
                "quantity": 0,
                "movement_id": None,
                "inventory": row.to_dict(),
            }

        result = apply_movement(
            product_id=product_id,
            location_id=location_id,
            batch_code=code,
            movement_type=movement_type,
            quantity=qty,
            movement_date=movement_day,
            notes=notes,
            actor=actor,
        )
        db.session.commit()
        return {
            "previous_stock": result.previous_stock,
            "new_stock": result.new_stock,
            "movement_type": movement_type,
            "quantity": qty,
            "movement_id": result.movement.id if result.movement else None,
            "inventory": result.inventory.to_dict(),
        }

    return run_with_retry(_op)


def _movement_type_for_change(difference: int) -> str:
    if difference > 0:
        return MOVEMENT_IN
    if difference < 0:
        return MOVEMENT_OUT
    return MOVEMENT_ADJUSTMENT


def _apply_bulk_item(item: Any, actor: str | None, today: date) -> None:
    if not isinstance(item, dict):
        raise ValidationError("item must be an object")
    if item.get("item_id") is None:
        raise ValidationError("item_id is required")
    if item.get("new_stock") is None:
        raise ValidationError("new_stock is required")

    item_id = parse_int(item["item_id"], "item_id")
    new_stock = parse_int(item["new_stock"], "new_stock")
    if new_stock < 0:
        raise ValidationError("new_stock must be >= 0")
    old_stock = parse_int(item["old_stock"], "old_stock") if item.get("old_stock") is not None else None

    def _op():
        row = lock_for_update(db.session.query(Inventory).filter_by(id=item_id)).first()
        if row is None:
            raise NotFoundError(f"Inventory row not found: {item_id}")
        if item.get("product_id") is not None and parse_int(item["product_id"], "product_id") != row.product_id:
            raise ValidationError(f"product_id does not match inventory row {item_id}")
        if item.get("location_id") is not None and parse_int(item["location_id"], "location_id") != row.location_id:
            raise ValidationError(f"location_id does not match inventory row {item_id}")
        if item.get("batch_code") and str(item["batch_code"]).strip() != row.batch_code:
            raise ValidationError(f"batch_code does not match inventory row {item_id}")

        previous_stock = row.current_stock
        if old_stock is not None and old_stock != previous_stock:
            # Last write wins; the ledger records what was actually replaced
            logger.warning(
                "Bulk edit on inventory %s based on stale stock (grid %s, stored %s)",
                item_id, old_stock, previous_stock,
            )

        row.current_stock = new_stock
        row.last_updated = utcnow()
        row.last_modified_by = actor
        db.session.flush()

        difference = new_stock - previous_stock
        record_movement(
            InventoryMovement(
                product_id=row.product_id,
                location_id=row.location_id,
                batch_code=row.batch_code,
                movement_type=_movement_type_for_change(difference),
                quantity=abs(difference),
                previous_stock=previous_stock,
                new_stock=new_stock,
                movement_date=today,
                notes=BULK_EDIT_NOTE,
                modified_by=actor,
            )
        )
        db.session.commit()

    run_with_retry(_op)


def bulk_update(items: Any, *, actor: str | None = None) -> dict:
    """
    Apply edit-grid corrections in order.

    Each item: {item_id, product_id?, location_id?, batch_code?, old_stock?, new_stock}.
    Returns {"updated_count": n}. On failure the raised error carries the
    1-based `item` index and how many items were already applied.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("No items to update")

    today = business_today()
    updated = 0
    for index, item in enumerate(items, start=1):
        try:
            _apply_bulk_item(item, actor, today)
        except InventoryError as exc:
            exc.message = f"Item {index}: {exc.message}"
            exc.details.update(item=index, updated_count=updated)
            raise
        updated += 1

    logger.info("Bulk update applied %d items by %s", updated, actor)
    return {"updated_count": updated}


def list_inventory(*, location_id: int | None = None, product_id: int | None = None) -> list[Inventory]:
    query = db.session.query(Inventory)
    if location_id is not None:
        query = query.filter_by(location_id=location_id)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    return query.order_by(Inventory.current_stock.asc(), Inventory.id.asc()).all()


def get_inventory_overview(*, location_id: int | None = None) -> dict:
    """Everything the dashboard loads at once: active masters plus inventory rows."""
    locations = db.session.query(Location).filter_by(is_active=True).order_by(Location.name).all()
    categories = db.session.query(Category).filter_by(is_active=True).order_by(Category.name).all()
    products = db.session.query(Product).filter_by(is_active=True).order_by(Product.name).all()
    rows = list_inventory(location_id=location_id)
    return {
        "locations": [loc.to_dict() for loc in locations],
        "categories": [cat.to_dict() for cat in categories],
        "products": [p.to_dict() for p in products],
        "inventory": [row.to_dict() for row in rows],
    }


def sort_batches_by_expiry(batches: list[Inventory]) -> list[Inventory]:
    """Earliest expiry first; rows without dates sort after dated ones by batch code."""
    return sorted(
        batches,
        key=lambda b: (b.expiry_date is None, b.expiry_date or date.max, b.batch_code),
    )


def group_inventory_by_product(rows: list[Inventory]) -> list[dict]:
    """
    Collapse batch rows into one entry per (product, location).

    Each group has the total stock, batch count, the latest update time and
    its batches sorted by expiry.
    """
    grouped: dict[tuple[int, int], dict] = {}
    batches: dict[tuple[int, int], list[Inventory]] = {}

    for row in rows:
        key = (row.product_id, row.location_id)
        if key not in grouped:
            grouped[key] = {
                "product_id": row.product_id,
                "product": row.product.name if row.product else None,
                "location_id": row.location_id,
                "location": row.location.name if row.location else None,
                "total_stock": 0,
                "batch_count": 0,
                "latest_updated": row.last_updated,
            }
            batches[key] = []
        group = grouped[key]
        group["total_stock"] += row.current_stock
        group["batch_count"] += 1
        if row.last_updated and (group["latest_updated"] is None or row.last_updated > group["latest_updated"]):
            group["latest_updated"] = row.last_updated
        batches[key].append(row)

    result = []
    for key in sorted(grouped, key=lambda k: ((grouped[k]["product"] or ""), k[0], k[1])):
        group = grouped[key]
        group["latest_updated"] = to_utc_z(group["latest_updated"])
        group["batches"] = [b.to_dict() for b in sort_batches_by_expiry(batches[key])]
        result.append(group)
    return result
