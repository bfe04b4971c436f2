# Overview: Ledger writer; the single place where stock mutations become inventory + movement rows.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from ..batch_codes import derive_dates
from ..errors import InsufficientStockError, ValidationError
from ..extensions import db
from ..models import Inventory, InventoryMovement
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TRANSFER,
    MOVEMENT_TYPES,
)
from ..time_utils import business_today, utcnow
from .concurrency import lock_for_update
"""
Ledger Invariants (authoritative)

- inventory holds current state; inventory_movements is the append-only audit trail.
- Each mutation reads the key's row under lock, computes previous/new stock once,
  writes the inventory row and appends exactly one movement in the caller's
  database transaction.
- current_stock never goes negative; a mutation that would do so raises
  InsufficientStockError before anything is written.
- The inventory write is authoritative. The movement insert runs inside a
  SAVEPOINT: if it fails the savepoint is rolled back, the failure is logged
  with the inventory key, and the stock change still commits.
- Nothing here commits; the calling operation owns the transaction boundary.
"""

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class LedgerResult:
    inventory: Inventory
    movement: InventoryMovement | None
    previous_stock: int
    new_stock: int

    @property
    def recorded(self) -> bool:
        return self.movement is not None


def get_inventory_row(
    product_id: int,
    location_id: int,
    batch_code: str,
    *,
    lock: bool = False,
) -> Inventory | None:
    query = db.session.query(Inventory).filter_by(
        product_id=product_id,
        location_id=location_id,
        batch_code=batch_code,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def compute_new_stock(movement_type: str, previous_stock: int, quantity: int) -> tuple[int, int]:
    """
    Return (new_stock, recorded_quantity) for a mutation of one key.

    - in: quantity added (quantity > 0)
    - out: quantity removed (quantity > 0, result must stay >= 0)
    - adjustment: quantity is the absolute target; recorded quantity is the delta
    - transfer: quantity is the signed delta supplied by the caller
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type!r}")

    if movement_type == MOVEMENT_IN:
        if quantity <= 0:
            raise ValidationError("quantity must be > 0 for in")
        return previous_stock + quantity, quantity

    if movement_type == MOVEMENT_OUT:
        if quantity <= 0:
            raise ValidationError("quantity must be > 0 for out")
        new_stock = previous_stock - quantity
        if new_stock < 0:
            raise InsufficientStockError(
                f"Insufficient stock: on hand {previous_stock}, requested {quantity}",
                current_stock=previous_stock,
                requested=quantity,
            )
        return new_stock, quantity

    if movement_type == MOVEMENT_ADJUSTMENT:
        if quantity < 0:
            raise ValidationError("adjustment target must be >= 0")
        return quantity, quantity - previous_stock

    if quantity == 0:
        raise ValidationError("transfer delta must be non-zero")
    new_stock = previous_stock + quantity
    if new_stock < 0:
        raise InsufficientStockError(
            f"Insufficient stock: on hand {previous_stock}, requested {-quantity}",
            current_stock=previous_stock,
            requested=-quantity,
        )
    return new_stock, quantity


def _insert_movement(movement: InventoryMovement) -> None:
    with db.session.begin_nested():
        db.session.add(movement)


def record_movement(movement: InventoryMovement) -> InventoryMovement | None:
    """
    Append a movement without letting a ledger failure undo the stock change.

    Returns the movement, or None when the insert failed (already logged).
    """
    try:
        _insert_movement(movement)
    except SQLAlchemyError:
        logger.exception(
            "Movement record failed; inventory change kept (product_id=%s location_id=%s batch=%s type=%s)",
            movement.product_id,
            movement.location_id,
            movement.batch_code,
            movement.movement_type,
        )
        return None
    return movement


def _new_inventory_row(
    product_id: int,
    location_id: int,
    batch_code: str,
    dates_from: Inventory | None,
) -> Inventory:
    if dates_from is not None:
        production_date, expiry_date = dates_from.production_date, dates_from.expiry_date
    else:
        production_date, expiry_date = derive_dates(batch_code)
    row = Inventory(
        product_id=product_id,
        location_id=location_id,
        batch_code=batch_code,
        current_stock=0,
        production_date=production_date,
        expiry_date=expiry_date,
    )
    db.session.add(row)
    return row


def ensure_inventory_row(
    *,
    product_id: int,
    location_id: int,
    batch_code: str,
    actor: str | None = None,
    dates_from: Inventory | None = None,
) -> Inventory:
    """Read the key's row under lock, creating a zero-stock row if absent."""
    row = get_inventory_row(product_id, location_id, batch_code, lock=True)
    if row is None:
        row = _new_inventory_row(product_id, location_id, batch_code, dates_from)
        row.last_updated = utcnow()
        row.last_modified_by = actor or SYSTEM_ACTOR
        db.session.flush()
    return row


def apply_movement(
    *,
    product_id: int,
    location_id: int,
    batch_code: str,
    movement_type: str,
    quantity: int,
    movement_date: date | None = None,
    notes: str | None = None,
    actor: str | None = None,
    transfer_group_id: str | None = None,
    from_location_id: int | None = None,
    to_location_id: int | None = None,
    dates_from: Inventory | None = None,
) -> LedgerResult:
    """
    Apply one stock mutation to (product, location, batch_code).

    dates_from: when the row has to be created, copy production/expiry dates
    from this row instead of deriving them (transfer destinations).
    """
    row = get_inventory_row(product_id, location_id, batch_code, lock=True)
    previous_stock = row.current_stock if row is not None else 0

    new_stock, recorded_quantity = compute_new_stock(movement_type, previous_stock, quantity)

    actor = actor or SYSTEM_ACTOR
    if row is None:
        row = _new_inventory_row(product_id, location_id, batch_code, dates_from)
    row.current_stock = new_stock
    row.last_updated = utcnow()
    row.last_modified_by = actor
    db.session.flush()

    movement = record_movement(
        InventoryMovement(
            product_id=product_id,
            location_id=location_id,
            batch_code=batch_code,
            movement_type=movement_type,
            quantity=recorded_quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            movement_date=movement_date or business_today(),
            notes=notes,
            modified_by=actor,
            transfer_group_id=transfer_group_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
        )
    )

    logger.debug(
        "Applied %s product_id=%s location_id=%s batch=%s %s -> %s",
        movement_type, product_id, location_id, batch_code, previous_stock, new_stock,
    )
    return LedgerResult(inventory=row, movement=movement, previous_stock=previous_stock, new_stock=new_stock)


def replay_stock(product_id: int, location_id: int, batch_code: str) -> int:
    """Stock implied by the key's movements, replayed in creation order from 0."""
    movements = (
        db.session.query(InventoryMovement)
        .filter_by(product_id=product_id, location_id=location_id, batch_code=batch_code)
        .order_by(InventoryMovement.created_at.asc(), InventoryMovement.id.asc())
        .all()
    )
    stock = 0
    for movement in movements:
        stock += movement.delta
    return stock


def verify_ledger(*, product_id: int | None = None, location_id: int | None = None) -> list[dict]:
    """
    Compare every inventory row with its replayed ledger.

    Returns one entry per key whose replayed stock differs from current_stock.
    """
    query = db.session.query(Inventory)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    if location_id is not None:
        query = query.filter_by(location_id=location_id)

    mismatches = []
    for row in query.order_by(Inventory.id.asc()).all():
        replayed = replay_stock(row.product_id, row.location_id, row.batch_code)
        if replayed != row.current_stock:
            mismatches.append({
                "inventory_id": row.id,
                "product_id": row.product_id,
                "location_id": row.location_id,
                "batch_code": row.batch_code,
                "current_stock": row.current_stock,
                "replayed_stock": replayed,
            })
    return mismatches
