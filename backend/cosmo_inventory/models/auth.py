from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

ROLE_MASTER = "master"
ROLE_GENERAL = "general"
ROLE_READONLY = "readonly"

ROLES = (ROLE_MASTER, ROLE_GENERAL, ROLE_READONLY)


class User(db.Model):
    """
    User accounts for authentication and attribution.

    ROLES:
    - master: full read/write, direct transfers, approves transfer requests
    - general: writes only at the assigned location, requests transfers
    - readonly: no writes

    Movement and inventory rows record the acting username, so usernames are
    unique and never reused.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_GENERAL)

    # Assigned location for general users
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)

    # Low-stock warning level shown on the dashboard
    alert_threshold = db.Column(db.Integer, nullable=False, default=30)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    location = db.relationship("Location")

    @property
    def is_master(self) -> bool:
        return self.role == ROLE_MASTER

    @property
    def can_write(self) -> bool:
        return self.role in (ROLE_MASTER, ROLE_GENERAL)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "location_id": self.location_id,
            "location": self.location.name if self.location else None,
            "alert_threshold": self.alert_threshold,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Opaque bearer token issued at login.

    Only the SHA-256 hash of the token is stored; the plaintext leaves the
    server once, in the login response.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
