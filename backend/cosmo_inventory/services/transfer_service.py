# backend/cosmo_inventory/services/transfer_service.py
"""
Cross-location transfers and the transfer request workflow.

Direct transfer (master):
- Source leg (movement_type=transfer, -quantity) then destination leg
  (+quantity), both tagged with one transfer_group_id.
- Destination row is created on first arrival with the source row's
  production/expiry dates (same batch, same dates).
- Both legs and their movements commit in one database transaction.

Request workflow (general user asks, master decides):
1. pending: source stock checked at creation (best effort)
2. approved: source stock re-checked, then the same two-leg move as a direct transfer
3. rejected: reason recorded, no stock change

approved and rejected are terminal; any further processing raises
AlreadyProcessedError.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from ..errors import (
    AlreadyProcessedError,
    InsufficientStockError,
    NotFoundError,
    SourceNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import Location, Product, TransferRequest
from ..models.inventory import MOVEMENT_TRANSFER
from ..models.transfers import (
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUSES,
)
from ..time_utils import utcnow
from ..validation import clean_batch_code, optional_str, parse_date_field, parse_int
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import apply_movement, get_inventory_row

logger = logging.getLogger(__name__)

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"


def _validate_route(from_location_id: int, to_location_id: int, quantity: Any) -> int:
    if from_location_id == to_location_id:
        raise ValidationError("Source and destination locations must differ")
    qty = parse_int(quantity, "quantity")
    if qty <= 0:
        raise ValidationError("quantity must be > 0")
    return qty


def _require(model, row_id: int, label: str):
    row = db.session.get(model, row_id)
    if row is None:
        raise NotFoundError(f"{label} not found: {row_id}")
    return row


def _check_source(product_id: int, location_id: int, batch_code: str, quantity: int, *, lock: bool):
    source = get_inventory_row(product_id, location_id, batch_code, lock=lock)
    if source is None:
        raise SourceNotFound(
            f"No stock of batch {batch_code} at the source location",
        )
    if source.current_stock < quantity:
        raise InsufficientStockError(
            f"Insufficient stock: on hand {source.current_stock}, requested {quantity}",
            current_stock=source.current_stock,
            requested=quantity,
        )
    return source


def _leg_summary(leg) -> dict:
    return {"previous_stock": leg.previous_stock, "new_stock": leg.new_stock}


def _move_stock(
    *,
    product_id: int,
    from_location: Location,
    to_location: Location,
    batch_code: str,
    quantity: int,
    movement_date: date | None,
    actor: str | None,
    notes: str | None,
    note_suffix: str = "",
) -> tuple[str, dict, dict]:
    """Two-leg move under lock; returns (transfer_group_id, source summary, destination summary)."""
    source = _check_source(product_id, from_location.id, batch_code, quantity, lock=True)

    transfer_group_id = str(uuid.uuid4())

    out_leg = apply_movement(
        product_id=product_id,
        location_id=from_location.id,
        batch_code=batch_code,
        movement_type=MOVEMENT_TRANSFER,
        quantity=-quantity,
        movement_date=movement_date,
        notes=notes or f"moved to {to_location.name}{note_suffix}",
        actor=actor,
        transfer_group_id=transfer_group_id,
        from_location_id=from_location.id,
        to_location_id=to_location.id,
    )
    in_leg = apply_movement(
        product_id=product_id,
        location_id=to_location.id,
        batch_code=batch_code,
        movement_type=MOVEMENT_TRANSFER,
        quantity=quantity,
        movement_date=movement_date,
        notes=notes or f"moved from {from_location.name}{note_suffix}",
        actor=actor,
        transfer_group_id=transfer_group_id,
        from_location_id=from_location.id,
        to_location_id=to_location.id,
        dates_from=source,
    )

    logger.info(
        "Transfer %s: product_id=%s batch=%s qty=%s %s -> %s by %s",
        transfer_group_id, product_id, batch_code, quantity, from_location.name, to_location.name, actor,
    )
    return transfer_group_id, _leg_summary(out_leg), _leg_summary(in_leg)


def transfer(
    *,
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    batch_code: str,
    quantity: Any,
    movement_date: Any = None,
    notes: str | None = None,
    actor: str | None = None,
) -> dict:
    """
    Move stock of one batch between two locations immediately.

    Raises:
        ValidationError: same location, non-positive quantity, missing batch code
        NotFoundError / SourceNotFound: unknown product/location or no source row
        InsufficientStockError: source stock below quantity
    """
    qty = _validate_route(from_location_id, to_location_id, quantity)
    code = clean_batch_code(batch_code)
    movement_day = parse_date_field(movement_date, "movement_date")

    def _op():
        _require(Product, product_id, "Product")
        from_location = _require(Location, from_location_id, "Location")
        to_location = _require(Location, to_location_id, "Location")

        group_id, source, destination = _move_stock(
            product_id=product_id,
            from_location=from_location,
            to_location=to_location,
            batch_code=code,
            quantity=qty,
            movement_date=movement_day,
            actor=actor,
            notes=optional_str(notes),
        )
        db.session.commit()
        return {
            "message": "Transfer completed",
            "transfer_group_id": group_id,
            "source": source,
            "destination": destination,
        }

    return run_with_retry(_op)


def create_request(
    *,
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    batch_code: str,
    quantity: Any,
    requested_by: str,
    reason: str | None = None,
) -> TransferRequest:
    """
    Record a pending transfer request.

    Source stock is checked now and again at approval; it may change in between.
    """
    qty = _validate_route(from_location_id, to_location_id, quantity)
    code = clean_batch_code(batch_code)
    if not requested_by:
        raise ValidationError("requested_by is required")

    def _op():
        _require(Product, product_id, "Product")
        _require(Location, from_location_id, "Location")
        _require(Location, to_location_id, "Location")
        _check_source(product_id, from_location_id, code, qty, lock=False)

        request = TransferRequest(
            product_id=product_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            batch_code=code,
            quantity=qty,
            reason=optional_str(reason),
            status=REQUEST_STATUS_PENDING,
            requested_by=requested_by,
            requested_at=utcnow(),
        )
        db.session.add(request)
        db.session.commit()
        logger.info("Transfer request %s created by %s", request.id, requested_by)
        return request

    return run_with_retry(_op)


def process_request(
    request_id: int,
    *,
    action: str,
    actor: str,
    rejection_reason: str | None = None,
) -> dict:
    """
    Approve or reject a pending request.

    Raises:
        ValidationError: unknown action
        NotFoundError: unknown request id
        AlreadyProcessedError: request is approved or rejected already
        SourceNotFound / InsufficientStockError: approval when stock is gone
    """
    if action not in (ACTION_APPROVE, ACTION_REJECT):
        raise ValidationError(f"Invalid action: {action!r}")

    def _op():
        request = lock_for_update(db.session.query(TransferRequest).filter_by(id=request_id)).first()
        if request is None:
            raise NotFoundError(f"Transfer request not found: {request_id}")
        if request.is_terminal:
            raise AlreadyProcessedError(f"Transfer request {request_id} is already {request.status}")

        if action == ACTION_APPROVE:
            group_id, _, _ = _move_stock(
                product_id=request.product_id,
                from_location=request.from_location,
                to_location=request.to_location,
                batch_code=request.batch_code,
                quantity=request.quantity,
                movement_date=None,
                actor=actor,
                notes=None,
                note_suffix=" (request approved)",
            )
            request.status = REQUEST_STATUS_APPROVED
            request.approved_by = actor
            request.transfer_group_id = group_id
            message = "Transfer request approved"
        else:
            request.status = REQUEST_STATUS_REJECTED
            request.rejection_reason = optional_str(rejection_reason)
            message = "Transfer request rejected"

        request.processed_at = utcnow()
        db.session.commit()
        logger.info("Transfer request %s %s by %s", request_id, request.status, actor)
        return {"message": message, "request": request.to_dict()}

    return run_with_retry(_op)


def list_requests(*, status: str | None = REQUEST_STATUS_PENDING) -> list[TransferRequest]:
    query = db.session.query(TransferRequest)
    if status and status != "all":
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"Invalid status: {status!r}")
        query = query.filter_by(status=status)
    return query.order_by(TransferRequest.requested_at.desc(), TransferRequest.id.desc()).all()


def get_request(request_id: int) -> TransferRequest:
    request = db.session.get(TransferRequest, request_id)
    if request is None:
        raise NotFoundError(f"Transfer request not found: {request_id}")
    return request
