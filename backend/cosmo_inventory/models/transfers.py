from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"

REQUEST_STATUSES = (REQUEST_STATUS_PENDING, REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED)


class TransferRequest(db.Model):
    """
    Deferred cross-location transfer awaiting a master's decision.

    LIFECYCLE:
    1. pending: created by a general user (source stock checked at creation)
    2. approved: master approved; stock moved, transfer_group_id links the legs
    3. rejected: master rejected with a reason; no stock change

    approved and rejected are terminal.
    """
    __tablename__ = "transfer_requests"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transfer_requests_quantity_positive"),
        db.Index("ix_transfer_requests_status_requested", "status", "requested_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False)
    batch_code = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING, index=True)

    requested_by = db.Column(db.String(64), nullable=False)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    approved_by = db.Column(db.String(64), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Set on approval; points at the two transfer movements
    transfer_group_id = db.Column(db.String(36), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    from_location = db.relationship("Location", foreign_keys=[from_location_id])
    to_location = db.relationship("Location", foreign_keys=[to_location_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status != REQUEST_STATUS_PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.name if self.product else None,
            "from_location_id": self.from_location_id,
            "from_location": self.from_location.name if self.from_location else None,
            "to_location_id": self.to_location_id,
            "to_location": self.to_location.name if self.to_location else None,
            "batch_code": self.batch_code,
            "quantity": self.quantity,
            "reason": self.reason,
            "status": self.status,
            "requested_by": self.requested_by,
            "requested_at": to_utc_z(self.requested_at),
            "approved_by": self.approved_by,
            "rejection_reason": self.rejection_reason,
            "processed_at": to_utc_z(self.processed_at),
            "transfer_group_id": self.transfer_group_id,
        }
