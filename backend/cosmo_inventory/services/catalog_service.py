# Overview: Lookup helpers for products, locations and categories.

from __future__ import annotations

from typing import Any

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Location, Product
from ..validation import parse_int


def _resolve(model, ref: Any, label: str):
    """
    Resolve an id (int) or a name (str) to a row.

    JSON bodies carry either `<label>_id` (int) or `<label>` (name); both
    arrive here as `ref`.
    """
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        raise ValidationError(f"{label} is required")
    if isinstance(ref, bool):
        raise ValidationError(f"{label} must be an id or a name")
    if isinstance(ref, int):
        row = db.session.get(model, ref)
    else:
        row = db.session.query(model).filter_by(name=str(ref).strip()).first()
    if row is None:
        raise NotFoundError(f"{label.capitalize()} not found: {ref}")
    return row


def resolve_product(ref: Any) -> Product:
    return _resolve(Product, ref, "product")


def resolve_location(ref: Any) -> Location:
    return _resolve(Location, ref, "location")


def resolve_category(ref: Any) -> Category:
    return _resolve(Category, ref, "category")


def ref_from_payload(payload: dict, name: str) -> Any:
    """Prefer `<name>_id` (parsed as an integer) over `<name>` when both are present."""
    key = f"{name}_id"
    if payload.get(key) is not None:
        return parse_int(payload[key], key)
    return payload.get(name)


def list_locations(*, include_inactive: bool = False) -> list[Location]:
    query = db.session.query(Location)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Location.name.asc()).all()


def list_categories(*, include_inactive: bool = False) -> list[Category]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Category.name.asc()).all()


def create_location(*, name: str, code: str, description: str | None = None) -> Location:
    """Seed a location. Used by the CLI; there is no HTTP endpoint for this."""
    name = (name or "").strip()
    code = (code or "").strip()
    if not name or not code:
        raise ValidationError("Location name and code are required")
    exists = db.session.query(Location).filter(
        (Location.name == name) | (Location.code == code)
    ).first()
    if exists:
        raise ConflictError(f"Location already exists: {exists.name}")
    location = Location(name=name, code=code, description=description, is_active=True)
    db.session.add(location)
    db.session.flush()
    return location


def create_category(*, name: str, code: str | None = None, description: str | None = None) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    if db.session.query(Category).filter_by(name=name).first():
        raise ConflictError(f"Category already exists: {name}")
    category = Category(name=name, code=code, description=description, is_active=True)
    db.session.add(category)
    db.session.flush()
    return category
