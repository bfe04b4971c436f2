from __future__ import annotations

from ..extensions import db
from ..batch_codes import expiry_status
from ..time_utils import business_today, to_iso_date, to_utc_z, utcnow

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TRANSFER = "transfer"

MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT, MOVEMENT_TRANSFER)


class Inventory(db.Model):
    """
    Current stock of one product batch at one location.

    KEY: (product_id, location_id, batch_code) is unique.

    INVARIANTS:
    - current_stock is never negative (also enforced by a CHECK constraint)
    - replaying the key's InventoryMovement rows in creation order from 0
      reproduces current_stock
    - rows are created lazily by the first movement into the key
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location_id", "batch_code", name="uq_inventory_key"),
        db.CheckConstraint("current_stock >= 0", name="ck_inventory_stock_non_negative"),
        db.Index("ix_inventory_location_product", "location_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    batch_code = db.Column(db.String(32), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)

    # Derived from batch_code; NULL when the code does not follow the date format
    production_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True, index=True)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_modified_by = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("inventory_rows", lazy=True))
    location = db.relationship("Location", backref=db.backref("inventory_rows", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Inventory id={self.id} product_id={self.product_id} location_id={self.location_id} "
            f"batch={self.batch_code!r} stock={self.current_stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.name if self.product else None,
            "location_id": self.location_id,
            "location": self.location.name if self.location else None,
            "batch_code": self.batch_code,
            "current_stock": self.current_stock,
            "production_date": to_iso_date(self.production_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "expiry_status": expiry_status(self.expiry_date, business_today()) if self.expiry_date else None,
            "last_updated": to_utc_z(self.last_updated),
            "last_modified_by": self.last_modified_by,
            "version_id": self.version_id,
        }


class InventoryMovement(db.Model):
    """
    Append-only stock ledger.

    quantity semantics by movement_type:
    - in: units received (positive)
    - out: units issued (positive; the row's stock dropped by this amount)
    - adjustment: signed delta (target - previous_stock)
    - transfer: signed delta (negative at source, positive at destination)

    new_stock - previous_stock is always the signed effect on the key, which is
    what ledger replay uses.

    movement_date is the business calendar date; created_at is system time.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_movements_key", "product_id", "location_id", "batch_code"),
        db.Index("ix_movements_date", "movement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    batch_code = db.Column(db.String(32), nullable=False)

    movement_type = db.Column(db.String(16), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    movement_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.String(255), nullable=True)
    modified_by = db.Column(db.String(64), nullable=True)

    # Transfer legs only: both legs share transfer_group_id
    transfer_group_id = db.Column(db.String(36), nullable=True, index=True)
    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))
    location = db.relationship("Location", foreign_keys=[location_id])
    from_location = db.relationship("Location", foreign_keys=[from_location_id])
    to_location = db.relationship("Location", foreign_keys=[to_location_id])

    @property
    def delta(self) -> int:
        return self.new_stock - self.previous_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.name if self.product else None,
            "location_id": self.location_id,
            "location": self.location.name if self.location else None,
            "batch_code": self.batch_code,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "movement_date": to_iso_date(self.movement_date),
            "notes": self.notes,
            "modified_by": self.modified_by,
            "transfer_group_id": self.transfer_group_id,
            "from_location_id": self.from_location_id,
            "from_location": self.from_location.name if self.from_location else None,
            "to_location_id": self.to_location_id,
            "to_location": self.to_location.name if self.to_location else None,
            "created_at": to_utc_z(self.created_at),
        }
