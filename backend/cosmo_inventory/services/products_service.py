# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Product administration.

IDENTITY: inventory, movement and transfer-request rows reference products
by surrogate id. Renaming a product is a single-row update; every stock row
and ledger entry follows the new name automatically.
"""
from __future__ import annotations

import logging
from typing import Any

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Inventory, InventoryMovement, Product, TransferRequest
from ..models.inventory import MOVEMENT_IN
from ..validation import (
    ModelValidationPolicy,
    clean_batch_code,
    enforce_rules_product,
    optional_str,
    parse_int,
    validate_payload,
)
from .catalog_service import ref_from_payload, resolve_category, resolve_location
from .concurrency import run_with_retry
from .ledger_service import apply_movement

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "code", "category_id", "description", "image_url", "cost_price", "unit", "is_active"}),
    required_on_create=frozenset({"name", "category_id"}),
)

INITIAL_STOCK_NOTE = "initial stock on registration"


def _with_category_id(payload: dict) -> dict:
    """Accept `category` (name or id) as an alias for `category_id`."""
    data = dict(payload)
    if "category" in data:
        ref = data.pop("category")
        if data.get("category_id") is None:
            data["category_id"] = resolve_category(ref).id
    elif data.get("category_id") is not None:
        data["category_id"] = resolve_category(parse_int(data["category_id"], "category_id")).id
    return data


def _ensure_unique_name(name: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.name == name)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Product name already exists: {name}")


def list_products(*, include_inactive: bool = True) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def create_product(
    payload: dict,
    *,
    initial_stocks: list | None = None,
    actor: str | None = None,
) -> dict:
    """
    Register a product and, optionally, its opening stock per location.

    initial_stocks: [{location | location_id, batch_code, quantity}, ...].
    Entries with quantity 0 are skipped; the rest post as `in` movements in the
    same transaction as the product.
    """
    if initial_stocks is not None and not isinstance(initial_stocks, list):
        raise ValidationError("initial_stocks must be a list")

    def _op():
        patch = validate_payload(
            model=Product,
            payload=_with_category_id(payload or {}),
            policy=PRODUCT_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        _ensure_unique_name(patch["name"])

        product = Product(**patch, created_by=actor)
        db.session.add(product)
        db.session.flush()

        seeded = 0
        for entry in initial_stocks or []:
            if not isinstance(entry, dict):
                raise ValidationError("initial_stocks entries must be objects")
            quantity = parse_int(entry.get("quantity", 0), "quantity")
            if quantity < 0:
                raise ValidationError("initial stock quantity must be >= 0")
            if quantity == 0:
                continue
            batch_code = clean_batch_code(entry.get("batch_code"))
            location = resolve_location(ref_from_payload(entry, "location"))
            apply_movement(
                product_id=product.id,
                location_id=location.id,
                batch_code=batch_code,
                movement_type=MOVEMENT_IN,
                quantity=quantity,
                notes=INITIAL_STOCK_NOTE,
                actor=actor,
            )
            seeded += 1

        db.session.commit()
        logger.info("Product %s registered by %s with %d opening stock rows", product.name, actor, seeded)
        return {"product": product.to_dict(), "initial_stock_rows": seeded}

    return run_with_retry(_op)


def bulk_register_products(rows: Any, *, actor: str | None = None) -> dict:
    """
    Register many products at once; categories are referenced by name.

    Every referenced category must exist and every name must be new,
    otherwise nothing is inserted.
    """
    if not isinstance(rows, list) or not rows:
        raise ValidationError("No products to register")

    def _op():
        categories = {c.name: c.id for c in db.session.query(Category).all()}
        existing_names = {name for (name,) in db.session.query(Product.name).all()}

        missing_categories: list[str] = []
        duplicate_names: list[str] = []
        seen: set[str] = set()
        patches = []

        for index, row in enumerate(rows, start=1):
            if not isinstance(row, dict):
                raise ValidationError(f"Row {index}: row must be an object")
            category_name = optional_str(row.get("category")) or ""
            if category_name not in categories:
                if category_name not in missing_categories:
                    missing_categories.append(category_name)
                continue
            data = {k: v for k, v in row.items() if k != "category"}
            data["category_id"] = categories[category_name]
            patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
            enforce_rules_product(patch)
            if patch["name"] in existing_names or patch["name"] in seen:
                duplicate_names.append(patch["name"])
            seen.add(patch["name"])
            patches.append(patch)

        if missing_categories:
            raise ValidationError(
                f"Unknown categories: {', '.join(missing_categories)}",
                missing_categories=missing_categories,
            )
        if duplicate_names:
            raise ConflictError(
                f"Product names already exist: {', '.join(duplicate_names)}",
                duplicate_names=duplicate_names,
            )

        for patch in patches:
            db.session.add(Product(**patch, created_by=actor))
        db.session.commit()
        return {"inserted_count": len(patches)}

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    """Patch product fields. Renames keep all stock and ledger rows attached."""
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")

        patch = validate_payload(
            model=Product,
            payload=_with_category_id(payload or {}),
            policy=PRODUCT_POLICY,
            partial=True,
        )
        enforce_rules_product(patch)
        if "name" in patch and patch["name"] != product.name:
            _ensure_unique_name(patch["name"], exclude_id=product.id)
            logger.info("Renaming product %s: %r -> %r", product.id, product.name, patch["name"])

        for key, value in patch.items():
            setattr(product, key, value)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> dict:
    """
    Remove a product together with its ledger, stock rows and transfer requests.

    This is the only code path that deletes movements.
    """
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")

        movements = db.session.query(InventoryMovement).filter_by(product_id=product_id).delete()
        requests = db.session.query(TransferRequest).filter_by(product_id=product_id).delete()
        rows = db.session.query(Inventory).filter_by(product_id=product_id).delete()
        name = product.name
        db.session.query(Product).filter_by(id=product_id).delete()
        db.session.commit()
        logger.warning(
            "Deleted product %r with %d movements, %d inventory rows, %d transfer requests",
            name, movements, rows, requests,
        )
        return {"deleted_movements": movements, "deleted_inventory_rows": rows, "deleted_requests": requests}

    return run_with_retry(_op)
