# Overview: Bulk stock import; validate every row, then post them all in one transaction.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import ValidationError
from ..extensions import db
from ..models import Location, Product
from ..models.inventory import MOVEMENT_IN
from ..time_utils import business_today
from ..validation import clean_batch_code, parse_int
from .concurrency import run_with_retry
from .ledger_service import apply_movement, ensure_inventory_row

logger = logging.getLogger(__name__)

IMPORT_NOTE = "bulk import"


@dataclass(frozen=True)
class ImportRow:
    row_number: int
    product_id: int
    location_id: int
    batch_code: str
    quantity: int


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def validate_rows(rows: Any) -> tuple[list[ImportRow], list[str]]:
    """
    Check every row before anything is written.

    Rows reference products and locations by name. Returns the parsed rows
    and one message per problem, prefixed with the 1-based row number.
    """
    if not isinstance(rows, list) or not rows:
        raise ValidationError("No rows to import")

    product_ids = dict(db.session.query(Product.name, Product.id).all())
    location_ids = dict(db.session.query(Location.name, Location.id).all())

    parsed: list[ImportRow] = []
    errors: list[str] = []

    for index, raw in enumerate(rows, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Row {index}: row must be an object")
            continue

        row_errors = []
        product_name = _text(raw.get("product"))
        location_name = _text(raw.get("location"))

        if product_name not in product_ids:
            row_errors.append(f"Row {index}: unknown product '{product_name}'")
        if location_name not in location_ids:
            row_errors.append(f"Row {index}: unknown location '{location_name}'")
        batch_code = None
        try:
            batch_code = clean_batch_code(raw.get("batch_code"))
        except ValidationError as exc:
            row_errors.append(f"Row {index}: {exc.message}")

        quantity = None
        try:
            quantity = parse_int(raw.get("quantity"), "quantity")
        except ValidationError as exc:
            row_errors.append(f"Row {index}: {exc.message}")
        else:
            if quantity < 0:
                row_errors.append(f"Row {index}: quantity must be >= 0")

        if row_errors:
            errors.extend(row_errors)
            continue

        parsed.append(ImportRow(
            row_number=index,
            product_id=product_ids[product_name],
            location_id=location_ids[location_name],
            batch_code=batch_code,
            quantity=quantity,
        ))

    return parsed, errors


def bulk_import(rows: Any, *, actor: str | None = None) -> dict:
    """
    Add imported quantities to stock as `in` movements.

    All-or-nothing validation: any invalid row raises ValidationError with
    `errors` listing every problem, and nothing is written. Valid imports post
    in input order inside one transaction; a zero quantity only makes sure
    the (product, location, batch) row exists.
    """
    parsed, errors = validate_rows(rows)
    if errors:
        raise ValidationError("Import validation failed", errors=errors)

    today = business_today()

    def _op():
        for row in parsed:
            if row.quantity == 0:
                ensure_inventory_row(
                    product_id=row.product_id,
                    location_id=row.location_id,
                    batch_code=row.batch_code,
                    actor=actor,
                )
                continue
            apply_movement(
                product_id=row.product_id,
                location_id=row.location_id,
                batch_code=row.batch_code,
                movement_type=MOVEMENT_IN,
                quantity=row.quantity,
                movement_date=today,
                notes=IMPORT_NOTE,
                actor=actor,
            )
        db.session.commit()
        return {"inserted_count": len(parsed)}

    result = run_with_retry(_op)
    logger.info("Imported %d stock rows by %s", result["inserted_count"], actor)
    return result
