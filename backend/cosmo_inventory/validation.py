# Overview: Input parsing and payload validation shared by services and routes.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_date


# Cost price ceiling: 99,999,999 won
MAX_COST_PRICE = 99_999_999

# Width of every batch_code column
MAX_BATCH_CODE_LENGTH = 32


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may set, and which of them a create must carry."""
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def parse_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats with a fractional part, scientific notation and
    decimal strings so "12.5" never silently becomes 12.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_date_field(value: Any, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")


def clean_batch_code(value: Any) -> str:
    """Stripped batch code; required and at most MAX_BATCH_CODE_LENGTH characters."""
    code = str(value).strip() if value is not None else ""
    if not code:
        raise ValidationError("batch_code is required")
    if len(code) > MAX_BATCH_CODE_LENGTH:
        raise ValidationError(f"batch_code exceeds max length {MAX_BATCH_CODE_LENGTH}")
    return code


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_fields(payload: dict, fields: Iterable[str]) -> None:
    """Fields must be present and not blank; 0 counts as present."""
    missing = []
    for f in fields:
        value = payload.get(f)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(f)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    if isinstance(col.type, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{col.key} must be true or false")
        return value
    if isinstance(col.type, Integer):
        return parse_int(value, col.key)
    if isinstance(col.type, (String, Text)):
        return str(value).strip()
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Return the subset of `payload` that may be written to `model`, coerced to
    the column types.

    Unknown or non-writable keys are rejected. NOT NULL columns reject null and
    blank strings; String columns enforce their length. With partial=False the
    policy's required_on_create fields must all be present.
    """
    payload = require_json_object(payload)

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Product rules the column metadata cannot express."""
    if "cost_price" in patch and patch["cost_price"] is not None:
        price = patch["cost_price"]
        if price < 0:
            raise ValidationError("cost_price must be >= 0")
        if price > MAX_COST_PRICE:
            raise ValidationError(f"cost_price cannot exceed {MAX_COST_PRICE:,}")
