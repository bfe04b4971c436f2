"""
Statistics tests.

Verifies:
- Per-location totals include empty locations
- Daily inbound/outbound totals over a window, zero-filled
- Low stock uses the threshold inclusively
- Monthly view covers every day of the month
"""

from datetime import date

import pytest

from cosmo_inventory.errors import ValidationError
from cosmo_inventory.services import inventory_service, reporting_service, transfer_service

TODAY = date(2025, 3, 10)


def _move(product, location, movement_type, quantity, day, batch_code="4030"):
    inventory_service.create_movement(product_id=product.id, location_id=location.id, batch_code=batch_code,
                                      movement_type=movement_type, quantity=quantity, movement_date=day)


class TestDashboardStats:
    def test_location_totals(self, db_session, toner, cream, warehouse, store):
        _move(toner, warehouse, "in", 40, TODAY)
        _move(cream, warehouse, "in", 2, TODAY)

        stats = reporting_service.location_stats()
        by_name = {s["location"]: s for s in stats}
        assert by_name["Warehouse"] == {"location_id": warehouse.id, "location": "Warehouse",
                                        "total_stock": 42, "item_count": 2}
        assert by_name["Store"]["total_stock"] == 0
        assert by_name["Store"]["item_count"] == 0

    def test_daily_window_counts_only_in_and_out(self, db_session, toner, warehouse, store):
        _move(toner, warehouse, "in", 100, date(2025, 3, 1))
        _move(toner, warehouse, "in", 10, date(2025, 3, 8))
        _move(toner, warehouse, "out", 4, date(2025, 3, 10))
        _move(toner, warehouse, "adjustment", 50, date(2025, 3, 9))
        transfer_service.transfer(product_id=toner.id, from_location_id=warehouse.id, to_location_id=store.id,
                                  batch_code="4030", quantity=5, movement_date="2025-03-10")

        stats = reporting_service.dashboard_stats(threshold=10, days=7, today=TODAY)

        assert stats["start_date"] == "2025-03-04"
        assert len(stats["daily"]) == 7
        by_date = {d["date"]: d for d in stats["daily"]}
        assert by_date["2025-03-08"]["in_total"] == 10
        assert by_date["2025-03-10"]["out_total"] == 4
        assert by_date["2025-03-09"] == {"date": "2025-03-09", "in_total": 0, "out_total": 0}
        assert stats["recent_inbound"] == 10
        assert stats["recent_outbound"] == 4

    def test_low_stock_is_inclusive(self, db_session, toner, cream, warehouse):
        _move(toner, warehouse, "in", 30, TODAY)
        _move(cream, warehouse, "in", 31, TODAY)

        stats = reporting_service.dashboard_stats(threshold=30, today=TODAY)
        assert [row["product"] for row in stats["low_stock"]] == ["Toner"]

    @pytest.mark.parametrize("days", [0, -1, 400])
    def test_rejects_bad_window(self, db_session, days):
        with pytest.raises(ValidationError):
            reporting_service.dashboard_stats(threshold=30, days=days, today=TODAY)


class TestMonthlyStats:
    def test_every_day_of_month(self, db_session, toner, warehouse):
        _move(toner, warehouse, "in", 20, date(2024, 2, 1))
        _move(toner, warehouse, "out", 3, date(2024, 2, 29))
        _move(toner, warehouse, "in", 7, date(2024, 3, 1))

        stats = reporting_service.monthly_stats(year=2024, month=2)

        assert len(stats["days"]) == 29
        assert stats["in_total"] == 20
        assert stats["out_total"] == 3
        assert stats["active_days"] == 2

    def test_rejects_bad_month(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.monthly_stats(year=2024, month=13)
