# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session token management.

- Cryptographically secure random tokens (32 bytes, hex encoded)
- Only the SHA-256 hash is stored
- Absolute expiry of SESSION_TTL_HOURS from creation
- Revocable on logout; deactivated users lose their sessions
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow

DEFAULT_SESSION_TTL_HOURS = 24


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Tokens are high-entropy, so a plain SHA-256 digest is enough for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _session_ttl() -> timedelta:
    hours = current_app.config.get("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS)
    return timedelta(hours=int(hours))


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def create_session(user: User) -> tuple[SessionToken, str]:
    """
    Issue a token for `user`.

    Returns (session_record, plaintext_token); the plaintext is never stored.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + _session_ttl(),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Return the user behind a live token, or None.

    Expired tokens and tokens of deactivated users are rejected; the latter
    are revoked on sight.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if _naive_utc(session.expires_at) < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        session.is_revoked = True
        db.session.commit()
        return None

    return user


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    session.is_revoked = True
    db.session.commit()
    return True
