# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and role rules.

Every write is attributed to a username, so accounts are unique and never
reused. Passwords are hashed with bcrypt (cost from BCRYPT_ROUNDS).

ROLE RULES:
- readonly: no writes at all
- general: stock writes only at the assigned location; transfers only by request
- master: everything, including direct transfers, bulk operations, product
  administration and request approvals
"""
from __future__ import annotations

import logging

import bcrypt
from flask import current_app

from ..errors import ConflictError, PermissionDenied, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_GENERAL, ROLE_MASTER, ROLES
from ..time_utils import utcnow
from ..validation import parse_int
from .catalog_service import resolve_location

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe; malformed hashes simply fail."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    *,
    role: str = ROLE_GENERAL,
    location: int | str | None = None,
    alert_threshold: int | None = None,
) -> User:
    """
    Create an account.

    General users must be assigned a location; masters and readonly users may
    have one for display purposes.
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role!r}")
    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username already exists: {username}")

    location_id = resolve_location(location).id if location is not None else None
    if role == ROLE_GENERAL and location_id is None:
        raise ValidationError("General users need an assigned location")

    if alert_threshold is None:
        alert_threshold = int(current_app.config.get("DEFAULT_ALERT_THRESHOLD", 30))
    else:
        alert_threshold = parse_int(alert_threshold, "alert_threshold")
        if alert_threshold < 0:
            raise ValidationError("alert_threshold must be >= 0")

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=role,
        location_id=location_id,
        alert_threshold=alert_threshold,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User %s created with role %s", username, role)
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for valid credentials and stamp last_login_at."""
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()
    if not user or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_alert_threshold(user: User, value) -> User:
    threshold = parse_int(value, "alert_threshold")
    if threshold < 0:
        raise ValidationError("alert_threshold must be >= 0")
    user.alert_threshold = threshold
    db.session.commit()
    return user


def ensure_can_write_at(user: User, location_id: int) -> None:
    """Raise PermissionDenied unless `user` may change stock at `location_id`."""
    if user.role == ROLE_MASTER:
        return
    if not user.can_write:
        raise PermissionDenied("Read-only users cannot change inventory")
    if user.location_id != location_id:
        raise PermissionDenied("General users can only change stock at their assigned location")
