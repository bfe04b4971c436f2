"""
Bulk import tests.

Verifies:
- Every row is validated before anything is written
- All problems are reported, each prefixed with its row number
- Valid imports add stock as `in` movements
"""

import pytest

from cosmo_inventory.errors import ValidationError
from cosmo_inventory.models import Inventory, InventoryMovement
from cosmo_inventory.services import import_service


class TestBulkImport:
    def test_imports_rows_as_inbound(self, db_session, toner, cream, warehouse, store):
        result = import_service.bulk_import(
            [
                {"product": "Toner", "location": "Warehouse", "batch_code": "4030", "quantity": 100},
                {"product": "Cream", "location": "Store", "batch_code": "4100", "quantity": "12"},
                {"product": "Toner", "location": "Warehouse", "batch_code": "4030", "quantity": 5},
            ],
            actor="master",
        )

        assert result == {"inserted_count": 3}
        row = db_session.query(Inventory).filter_by(product_id=toner.id, location_id=warehouse.id).one()
        assert row.current_stock == 105

        movements = db_session.query(InventoryMovement).all()
        assert len(movements) == 3
        assert all(m.movement_type == "in" for m in movements)
        assert all(m.notes == import_service.IMPORT_NOTE for m in movements)
        assert all(m.modified_by == "master" for m in movements)

    def test_zero_quantity_row_creates_empty_row(self, db_session, toner, warehouse):
        result = import_service.bulk_import(
            [{"product": "Toner", "location": "Warehouse", "batch_code": "4030", "quantity": 0}]
        )

        assert result == {"inserted_count": 1}
        assert db_session.query(Inventory).one().current_stock == 0
        assert db_session.query(InventoryMovement).count() == 0

    def test_any_invalid_row_rejects_whole_import(self, db_session, toner, warehouse):
        rows = [
            {"product": "Toner", "location": "Warehouse", "batch_code": "4030", "quantity": 10},
            {"product": "Serum", "location": "Basement", "batch_code": "", "quantity": -1},
            {"product": "Toner", "location": "Warehouse", "batch_code": "4031", "quantity": "ten"},
        ]

        with pytest.raises(ValidationError) as exc:
            import_service.bulk_import(rows)

        errors = exc.value.details["errors"]
        assert "Row 2: unknown product 'Serum'" in errors
        assert "Row 2: unknown location 'Basement'" in errors
        assert "Row 2: batch_code is required" in errors
        assert "Row 2: quantity must be >= 0" in errors
        assert any(e.startswith("Row 3:") for e in errors)
        assert not any(e.startswith("Row 1:") for e in errors)

        assert db_session.query(Inventory).count() == 0
        assert db_session.query(InventoryMovement).count() == 0

    def test_error_payload_lists_errors(self, db_session):
        with pytest.raises(ValidationError) as exc:
            import_service.bulk_import([{"product": "Nope", "location": "Nowhere", "batch_code": "1", "quantity": 1}])
        body = exc.value.to_dict()
        assert body["kind"] == "validation"
        assert len(body["errors"]) == 2

    def test_empty_import(self, db_session):
        with pytest.raises(ValidationError):
            import_service.bulk_import([])

    def test_overlong_batch_code_is_a_row_error(self, db_session, toner, warehouse):
        rows = [
            {"product": "Toner", "location": "Warehouse", "batch_code": "4030", "quantity": 1},
            {"product": "Toner", "location": "Warehouse", "batch_code": "4" * 33, "quantity": 1},
        ]

        with pytest.raises(ValidationError) as exc:
            import_service.bulk_import(rows)

        assert exc.value.details["errors"] == ["Row 2: batch_code exceeds max length 32"]
        assert db_session.query(Inventory).count() == 0
