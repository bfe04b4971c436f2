# Overview: Read-side queries over the append-only movement ledger.

from __future__ import annotations

from datetime import date

from sqlalchemy import or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryMovement, Product
from ..models.inventory import MOVEMENT_TYPES

DEFAULT_LIMIT = 500
MAX_LIMIT = 5000


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_movements(
    *,
    location_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    movement_type: str | None = None,
    product_id: int | None = None,
    category_id: int | None = None,
    search: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[InventoryMovement]:
    """
    Movement history, newest first.

    The date range applies to movement_date and is inclusive on both ends.
    `search` matches product name or notes, case-insensitive.
    """
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type!r}")
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    if limit <= 0 or limit > MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")

    query = db.session.query(InventoryMovement).join(Product, Product.id == InventoryMovement.product_id)

    if location_id is not None:
        query = query.filter(InventoryMovement.location_id == location_id)
    if start_date is not None:
        query = query.filter(InventoryMovement.movement_date >= start_date)
    if end_date is not None:
        query = query.filter(InventoryMovement.movement_date <= end_date)
    if movement_type is not None:
        query = query.filter(InventoryMovement.movement_type == movement_type)
    if product_id is not None:
        query = query.filter(InventoryMovement.product_id == product_id)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        pattern = f"%{_escape_like(search.strip().lower())}%"
        query = query.filter(or_(
            db.func.lower(Product.name).like(pattern, escape="\\"),
            db.func.lower(InventoryMovement.notes).like(pattern, escape="\\"),
        ))

    return (
        query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )


def get_transfer_group(transfer_group_id: str) -> list[InventoryMovement]:
    """Both legs of one transfer, source leg first."""
    legs = (
        db.session.query(InventoryMovement)
        .filter_by(transfer_group_id=transfer_group_id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )
    if not legs:
        raise NotFoundError(f"Transfer group not found: {transfer_group_id}")
    return legs
