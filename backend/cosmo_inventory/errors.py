# Overview: Domain error taxonomy shared by services and routes.

"""
Inventory error taxonomy.

Every domain failure is an InventoryError carrying:
- status_code: the HTTP status a route should answer with
- kind: a machine-checkable tag the dashboard can branch on
- details: extra payload merged into the JSON error body

Validation, not-found and insufficient-stock errors are raised before any
write, so callers never see them after a partial mutation.
"""
from __future__ import annotations

from typing import Any


class InventoryError(ValueError):
    status_code = 400
    kind = "error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, **self.details}


class ValidationError(InventoryError):
    """400-level input problem."""
    kind = "validation"


class InvalidBatchCode(ValidationError):
    kind = "invalid_batch_code"


class NotFoundError(InventoryError):
    """Referenced product, location, inventory row or request does not exist."""
    status_code = 404
    kind = "not_found"


class SourceNotFound(NotFoundError):
    """No inventory row at the source location for the requested batch."""
    kind = "source_not_found"


class InsufficientStockError(InventoryError):
    """Requested quantity exceeds current stock; carries the stock for display."""
    kind = "insufficient_stock"

    def __init__(self, message: str, *, current_stock: int, requested: int | None = None):
        super().__init__(message, current_stock=current_stock, requested=requested)
        self.current_stock = current_stock
        self.requested = requested


class AlreadyProcessedError(InventoryError):
    """Transfer request is no longer pending."""
    kind = "already_processed"


class ConflictError(InventoryError):
    """409-level business rule conflict (e.g., duplicate product name)."""
    status_code = 409
    kind = "conflict"


class PermissionDenied(InventoryError):
    status_code = 403
    kind = "permission_denied"


class PersistenceError(InventoryError):
    """Underlying read/write failed after retries."""
    status_code = 500
    kind = "persistence"
