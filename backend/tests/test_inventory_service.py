"""
Inventory operation tests.

Verifies:
- Single movements return before/after stock and write one movement
- Initial-stock mode with zero quantity seeds a row without a movement
- Bulk update applies items in order, stops at the first failure and names it
- Overview and grouped views
- End-to-end scenario: receive, transfer, over-issue
"""

import logging
from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

from cosmo_inventory.errors import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from cosmo_inventory.models import Inventory, InventoryMovement
from cosmo_inventory.services import inventory_service, ledger_service, transfer_service
from cosmo_inventory.services.ledger_service import verify_ledger


def _stock(db_session, product, location, batch_code):
    db_session.expire_all()
    row = db_session.query(Inventory).filter_by(
        product_id=product.id, location_id=location.id, batch_code=batch_code
    ).first()
    return row.current_stock if row else None


class TestCreateMovement:
    def test_in_then_out(self, db_session, toner, warehouse):
        first = inventory_service.create_movement(
            product_id=toner.id, location_id=warehouse.id, batch_code="4030",
            movement_type="in", quantity=100, actor="master",
        )
        assert first["previous_stock"] == 0
        assert first["new_stock"] == 100
        assert first["movement_id"] is not None

        second = inventory_service.create_movement(
            product_id=toner.id, location_id=warehouse.id, batch_code="4030",
            movement_type="out", quantity="30", actor="master",
        )
        assert second["previous_stock"] == 100
        assert second["new_stock"] == 70
        assert db_session.query(InventoryMovement).count() == 2

    def test_adjustment_sets_absolute_value(self, db_session, toner, warehouse):
        inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id,
                                          batch_code="4030", movement_type="in", quantity=10)
        result = inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id,
                                                   batch_code="4030", movement_type="adjustment", quantity=4)
        assert result["new_stock"] == 4

        movement = db_session.query(InventoryMovement).order_by(InventoryMovement.id.desc()).first()
        assert movement.movement_type == "adjustment"
        assert movement.quantity == -6

    def test_movement_date_is_stored(self, db_session, toner, warehouse):
        inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                          movement_type="in", quantity=1, movement_date="2025-03-02")
        assert db_session.query(InventoryMovement).one().movement_date == date(2025, 3, 2)

    @pytest.mark.parametrize("quantity", [0, -5, "abc", 1.5, True])
    def test_rejects_invalid_quantity(self, db_session, toner, warehouse, quantity):
        with pytest.raises(ValidationError):
            inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                              movement_type="in", quantity=quantity)
        assert db_session.query(Inventory).count() == 0

    def test_rejects_transfer_type(self, db_session, toner, warehouse):
        with pytest.raises(ValidationError):
            inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                              movement_type="transfer", quantity=1)

    def test_requires_batch_code(self, db_session, toner, warehouse):
        with pytest.raises(ValidationError):
            inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="  ",
                                              movement_type="in", quantity=1)

    def test_unknown_product(self, db_session, warehouse):
        with pytest.raises(NotFoundError):
            inventory_service.create_movement(product_id=9999, location_id=warehouse.id, batch_code="4030",
                                              movement_type="in", quantity=1)

    def test_over_issue_reports_current_stock(self, db_session, toner, warehouse):
        inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                          movement_type="in", quantity=5)
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                              movement_type="out", quantity=6)
        assert exc.value.current_stock == 5
        assert exc.value.to_dict()["current_stock"] == 5
        assert _stock(db_session, toner, warehouse, "4030") == 5

    def test_initial_zero_creates_tracked_row(self, db_session, toner, warehouse):
        result = inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                                   movement_type="in", quantity=0, initial=True)
        assert result["movement_id"] is None
        assert result["new_stock"] == 0
        assert db_session.query(Inventory).count() == 1
        assert db_session.query(InventoryMovement).count() == 0

    def test_initial_positive_behaves_like_in(self, db_session, toner, warehouse):
        result = inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                                   movement_type="in", quantity=12, initial=True)
        assert result["new_stock"] == 12
        assert db_session.query(InventoryMovement).count() == 1


class TestBulkUpdate:
    def _seed(self, toner, cream, warehouse):
        a = inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                              movement_type="in", quantity=10)
        b = inventory_service.create_movement(product_id=cream.id, location_id=warehouse.id, batch_code="4100",
                                              movement_type="in", quantity=20)
        return a["inventory"]["id"], b["inventory"]["id"]

    def test_applies_items_and_picks_movement_type(self, db_session, toner, cream, warehouse):
        toner_row, cream_row = self._seed(toner, cream, warehouse)

        result = inventory_service.bulk_update(
            [
                {"item_id": toner_row, "old_stock": 10, "new_stock": 15},
                {"item_id": cream_row, "old_stock": 20, "new_stock": 8},
            ],
            actor="master",
        )
        assert result == {"updated_count": 2}
        assert _stock(db_session, toner, warehouse, "4030") == 15
        assert _stock(db_session, cream, warehouse, "4100") == 8

        edits = db_session.query(InventoryMovement).filter_by(notes=inventory_service.BULK_EDIT_NOTE).all()
        by_product = {m.product_id: m for m in edits}
        assert by_product[toner.id].movement_type == "in"
        assert by_product[toner.id].quantity == 5
        assert by_product[cream.id].movement_type == "out"
        assert by_product[cream.id].quantity == 12
        assert verify_ledger() == []

    def test_unchanged_value_records_adjustment(self, db_session, toner, cream, warehouse):
        toner_row, _ = self._seed(toner, cream, warehouse)
        inventory_service.bulk_update([{"item_id": toner_row, "new_stock": 10}])

        edit = db_session.query(InventoryMovement).filter_by(notes=inventory_service.BULK_EDIT_NOTE).one()
        assert edit.movement_type == "adjustment"
        assert edit.quantity == 0

    def test_failure_stops_and_keeps_earlier_items(self, db_session, toner, cream, warehouse):
        toner_row, cream_row = self._seed(toner, cream, warehouse)

        with pytest.raises(ValidationError) as exc:
            inventory_service.bulk_update([
                {"item_id": toner_row, "new_stock": 1},
                {"item_id": cream_row, "new_stock": -3},
                {"item_id": toner_row, "new_stock": 99},
            ])

        assert exc.value.details["item"] == 2
        assert exc.value.details["updated_count"] == 1
        assert exc.value.message.startswith("Item 2:")
        assert _stock(db_session, toner, warehouse, "4030") == 1
        assert _stock(db_session, cream, warehouse, "4100") == 20

    def test_failed_movement_insert_keeps_item_and_continues(self, db_session, toner, cream, warehouse,
                                                             monkeypatch, caplog):
        toner_row, cream_row = self._seed(toner, cream, warehouse)
        real_insert = ledger_service._insert_movement
        calls = []

        def _fail_first_insert(movement):
            calls.append(movement.product_id)
            if len(calls) == 1:
                raise SQLAlchemyError("ledger table unavailable")
            real_insert(movement)

        monkeypatch.setattr(ledger_service, "_insert_movement", _fail_first_insert)

        with caplog.at_level(logging.ERROR, logger="cosmo_inventory.services.ledger_service"):
            result = inventory_service.bulk_update([
                {"item_id": toner_row, "new_stock": 1},
                {"item_id": cream_row, "new_stock": 2},
            ])

        assert result == {"updated_count": 2}
        assert _stock(db_session, toner, warehouse, "4030") == 1
        assert _stock(db_session, cream, warehouse, "4100") == 2
        assert db_session.query(InventoryMovement).count() == 3
        assert "Movement record failed" in caplog.text

        mismatches = verify_ledger()
        assert [(m["inventory_id"], m["current_stock"], m["replayed_stock"]) for m in mismatches] == [
            (toner_row, 1, 10)
        ]

    def test_unknown_row(self, db_session):
        with pytest.raises(NotFoundError) as exc:
            inventory_service.bulk_update([{"item_id": 12345, "new_stock": 1}])
        assert exc.value.details["item"] == 1

    def test_stale_old_stock_still_records_true_previous(self, db_session, toner, cream, warehouse):
        toner_row, _ = self._seed(toner, cream, warehouse)

        inventory_service.bulk_update([{"item_id": toner_row, "old_stock": 3, "new_stock": 6}])

        edit = db_session.query(InventoryMovement).filter_by(notes=inventory_service.BULK_EDIT_NOTE).one()
        assert edit.previous_stock == 10
        assert edit.new_stock == 6
        assert verify_ledger() == []

    def test_empty_items(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.bulk_update([])


class TestInventoryViews:
    def test_overview_lists_rows_by_stock(self, db_session, toner, cream, warehouse, store):
        inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                          movement_type="in", quantity=50)
        inventory_service.create_movement(product_id=cream.id, location_id=store.id, batch_code="4100",
                                          movement_type="in", quantity=5)

        overview = inventory_service.get_inventory_overview()
        assert [row["current_stock"] for row in overview["inventory"]] == [5, 50]
        assert {loc["name"] for loc in overview["locations"]} == {"Warehouse", "Store"}
        assert overview["inventory"][1]["expiry_status"] is not None

        filtered = inventory_service.get_inventory_overview(location_id=store.id)
        assert len(filtered["inventory"]) == 1

    def test_grouped_by_product_and_location(self, db_session, toner, warehouse):
        for code, qty in [("5100", 10), ("4030", 20), ("LOT-X", 1)]:
            inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code=code,
                                              movement_type="in", quantity=qty)

        groups = inventory_service.group_inventory_by_product(inventory_service.list_inventory())
        assert len(groups) == 1
        group = groups[0]
        assert group["total_stock"] == 31
        assert group["batch_count"] == 3
        assert [b["batch_code"] for b in group["batches"]] == ["4030", "5100", "LOT-X"]


class TestTonerScenario:
    def test_receive_transfer_then_over_issue(self, db_session, toner, warehouse, store):
        inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                          movement_type="in", quantity=100, actor="master")

        transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id, to_location_id=store.id,
                                  batch_code="4030", quantity=30, actor="master")

        assert _stock(db_session, toner, warehouse, "4030") == 70
        assert _stock(db_session, toner, store, "4030") == 30

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                              movement_type="out", quantity=1000, actor="master")
        assert exc.value.current_stock == 70

        assert _stock(db_session, toner, warehouse, "4030") == 70
        assert db_session.query(InventoryMovement).count() == 3
        assert verify_ledger() == []
