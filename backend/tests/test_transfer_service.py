"""
Transfer and transfer request tests.

Verifies:
- Conservation: a transfer moves stock without creating or destroying any
- Exactly two movements per transfer group, with opposite effects
- Destination rows inherit the source row's dates
- Request lifecycle: pending -> approved | rejected, terminal afterwards
- Approval re-checks stock
"""

import pytest

from cosmo_inventory.errors import (
    AlreadyProcessedError,
    InsufficientStockError,
    NotFoundError,
    SourceNotFound,
    ValidationError,
)
from cosmo_inventory.models import Inventory, InventoryMovement, TransferRequest
from cosmo_inventory.services import inventory_service, transfer_service
from cosmo_inventory.services.ledger_service import verify_ledger


def _receive(product, location, batch_code, quantity):
    inventory_service.create_movement(product_id=product.id, location_id=location.id, batch_code=batch_code,
                                      movement_type="in", quantity=quantity, actor="master")


def _stock(db_session, product, location, batch_code):
    db_session.expire_all()
    row = db_session.query(Inventory).filter_by(
        product_id=product.id, location_id=location.id, batch_code=batch_code
    ).first()
    return row.current_stock if row else None


class TestDirectTransfer:
    def test_conserves_stock_and_links_legs(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 100)

        result = transfer_service.transfer(
            product_id=toner.id, from_location_id=warehouse.id, to_location_id=store.id,
            batch_code="4030", quantity=30, actor="master",
        )

        assert result["message"] == "Transfer completed"
        assert result["source"] == {"previous_stock": 100, "new_stock": 70}
        assert result["destination"] == {"previous_stock": 0, "new_stock": 30}
        assert _stock(db_session, toner, warehouse, "4030") + _stock(db_session, toner, store, "4030") == 100

        legs = db_session.query(InventoryMovement).filter_by(
            transfer_group_id=result["transfer_group_id"]
        ).order_by(InventoryMovement.id).all()
        assert len(legs) == 2
        assert [leg.movement_type for leg in legs] == ["transfer", "transfer"]
        assert legs[0].delta == -30
        assert legs[1].delta == 30
        assert legs[0].location_id == warehouse.id
        assert legs[1].location_id == store.id
        assert all(leg.from_location_id == warehouse.id and leg.to_location_id == store.id for leg in legs)
        assert legs[0].notes == "moved to Store"
        assert legs[1].notes == "moved from Warehouse"
        assert verify_ledger() == []

    def test_destination_copies_source_dates(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 10)
        source = db_session.query(Inventory).filter_by(location_id=warehouse.id).one()
        source.expiry_date = source.expiry_date.replace(day=1)
        db_session.commit()

        transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id, to_location_id=store.id,
                                  batch_code="4030", quantity=4)

        db_session.expire_all()
        destination = db_session.query(Inventory).filter_by(location_id=store.id).one()
        source = db_session.query(Inventory).filter_by(location_id=warehouse.id).one()
        assert destination.production_date == source.production_date
        assert destination.expiry_date == source.expiry_date

    def test_insufficient_source_writes_nothing(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 5)

        with pytest.raises(InsufficientStockError) as exc:
            transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id,
                                      to_location_id=store.id, batch_code="4030", quantity=6)

        assert exc.value.current_stock == 5
        assert _stock(db_session, toner, warehouse, "4030") == 5
        assert _stock(db_session, toner, store, "4030") is None
        assert db_session.query(InventoryMovement).count() == 1

    def test_missing_source_row(self, db_session, toner, warehouse, store):
        with pytest.raises(SourceNotFound):
            transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id,
                                      to_location_id=store.id, batch_code="4030", quantity=1)

    def test_same_location_rejected(self, db_session, toner, warehouse):
        with pytest.raises(ValidationError):
            transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id,
                                      to_location_id=warehouse.id, batch_code="4030", quantity=1)

    def test_non_positive_quantity_rejected(self, db_session, toner, warehouse, store):
        with pytest.raises(ValidationError):
            transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id,
                                      to_location_id=store.id, batch_code="4030", quantity=0)

    def test_overlong_batch_code_rejected(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 5)
        with pytest.raises(ValidationError, match="max length 32"):
            transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id,
                                      to_location_id=store.id, batch_code="4030" + "x" * 40, quantity=1)
        assert db_session.query(InventoryMovement).count() == 1

    def test_unknown_location(self, db_session, toner, warehouse):
        with pytest.raises(NotFoundError):
            transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id,
                                      to_location_id=4242, batch_code="4030", quantity=1)


class TestTransferRequests:
    def _request(self, toner, warehouse, store, quantity=10):
        return transfer_service.create_request(
            product_id=toner.id, from_location_id=warehouse.id, to_location_id=store.id,
            batch_code="4030", quantity=quantity, requested_by="clerk", reason="weekend restock",
        )

    def test_create_is_pending_and_moves_nothing(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 50)
        request = self._request(toner, warehouse, store)

        assert request.status == "pending"
        assert request.requested_by == "clerk"
        assert _stock(db_session, toner, warehouse, "4030") == 50
        assert _stock(db_session, toner, store, "4030") is None

    def test_create_without_source_row(self, db_session, toner, warehouse, store):
        with pytest.raises(SourceNotFound):
            self._request(toner, warehouse, store)
        assert db_session.query(TransferRequest).count() == 0

    def test_create_with_overlong_batch_code(self, db_session, toner, warehouse, store):
        with pytest.raises(ValidationError, match="max length 32"):
            transfer_service.create_request(
                product_id=toner.id, from_location_id=warehouse.id, to_location_id=store.id,
                batch_code="x" * 33, quantity=1, requested_by="clerk",
            )
        assert db_session.query(TransferRequest).count() == 0

    def test_create_beyond_stock(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 5)
        with pytest.raises(InsufficientStockError):
            self._request(toner, warehouse, store, quantity=6)

    def test_approve_moves_stock(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 50)
        request = self._request(toner, warehouse, store)

        result = transfer_service.process_request(request.id, action="approve", actor="master")

        assert result["message"] == "Transfer request approved"
        assert result["request"]["status"] == "approved"
        assert result["request"]["approved_by"] == "master"
        assert result["request"]["processed_at"] is not None
        assert _stock(db_session, toner, warehouse, "4030") == 40
        assert _stock(db_session, toner, store, "4030") == 10

        legs = db_session.query(InventoryMovement).filter_by(
            transfer_group_id=result["request"]["transfer_group_id"]
        ).all()
        assert len(legs) == 2
        assert all(leg.notes.endswith("(request approved)") for leg in legs)

    def test_reject_records_reason(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 50)
        request = self._request(toner, warehouse, store)

        result = transfer_service.process_request(request.id, action="reject", actor="master",
                                                  rejection_reason="not needed")

        assert result["request"]["status"] == "rejected"
        assert result["request"]["rejection_reason"] == "not needed"
        assert _stock(db_session, toner, warehouse, "4030") == 50

    @pytest.mark.parametrize("first,second", [("approve", "approve"), ("approve", "reject"), ("reject", "approve")])
    def test_second_processing_fails(self, db_session, toner, warehouse, store, first, second):
        _receive(toner, warehouse, "4030", 50)
        request = self._request(toner, warehouse, store)
        transfer_service.process_request(request.id, action=first, actor="master")

        with pytest.raises(AlreadyProcessedError):
            transfer_service.process_request(request.id, action=second, actor="master")

        expected = 40 if first == "approve" else 50
        assert _stock(db_session, toner, warehouse, "4030") == expected

    def test_approval_rechecks_stock(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 10)
        request = self._request(toner, warehouse, store, quantity=10)
        inventory_service.create_movement(product_id=toner.id, location_id=warehouse.id, batch_code="4030",
                                          movement_type="out", quantity=5)

        with pytest.raises(InsufficientStockError):
            transfer_service.process_request(request.id, action="approve", actor="master")

        db_session.expire_all()
        assert db_session.get(TransferRequest, request.id).status == "pending"
        assert _stock(db_session, toner, warehouse, "4030") == 5

    def test_invalid_action(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 10)
        request = self._request(toner, warehouse, store)
        with pytest.raises(ValidationError):
            transfer_service.process_request(request.id, action="maybe", actor="master")

    def test_unknown_request(self, db_session):
        with pytest.raises(NotFoundError):
            transfer_service.process_request(999, action="approve", actor="master")

    def test_list_by_status(self, db_session, toner, warehouse, store):
        _receive(toner, warehouse, "4030", 50)
        first = self._request(toner, warehouse, store, quantity=1)
        self._request(toner, warehouse, store, quantity=2)
        transfer_service.process_request(first.id, action="reject", actor="master")

        assert [r.quantity for r in transfer_service.list_requests()] == [2]
        assert [r.quantity for r in transfer_service.list_requests(status="rejected")] == [1]
        assert len(transfer_service.list_requests(status="all")) == 2

        with pytest.raises(ValidationError):
            transfer_service.list_requests(status="done")
