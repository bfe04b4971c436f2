# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

import calendar
from datetime import date, timedelta

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Category, Inventory, InventoryMovement, Location, Product
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..time_utils import business_today, to_iso_date

DEFAULT_DAYS = 7
MAX_DAYS = 366


def location_stats() -> list[dict]:
    """Total stock and inventory row count per active location."""
    rows = (
        db.session.query(
            Location.id,
            Location.name,
            func.coalesce(func.sum(Inventory.current_stock), 0).label("total_stock"),
            func.count(Inventory.id).label("item_count"),
        )
        .outerjoin(Inventory, Inventory.location_id == Location.id)
        .filter(Location.is_active.is_(True))
        .group_by(Location.id, Location.name)
        .order_by(Location.name.asc())
        .all()
    )
    return [
        {
            "location_id": r.id,
            "location": r.name,
            "total_stock": int(r.total_stock or 0),
            "item_count": int(r.item_count or 0),
        }
        for r in rows
    ]


def category_stats() -> list[dict]:
    rows = (
        db.session.query(
            Category.id,
            Category.name,
            func.coalesce(func.sum(Inventory.current_stock), 0).label("total_stock"),
            func.count(Inventory.id).label("item_count"),
        )
        .join(Product, Product.category_id == Category.id)
        .join(Inventory, Inventory.product_id == Product.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.name.asc())
        .all()
    )
    return [
        {
            "category_id": r.id,
            "category": r.name,
            "total_stock": int(r.total_stock or 0),
            "item_count": int(r.item_count or 0),
        }
        for r in rows
    ]


def _daily_totals(start: date, end: date) -> list[dict]:
    """
    Inbound and outbound quantities per movement_date, every day in [start, end].

    Only `in` and `out` movements count; adjustments and transfers move no
    stock into or out of the business.
    """
    rows = (
        db.session.query(
            InventoryMovement.movement_date,
            InventoryMovement.movement_type,
            func.coalesce(func.sum(InventoryMovement.quantity), 0).label("total"),
        )
        .filter(
            InventoryMovement.movement_date >= start,
            InventoryMovement.movement_date <= end,
            InventoryMovement.movement_type.in_((MOVEMENT_IN, MOVEMENT_OUT)),
        )
        .group_by(InventoryMovement.movement_date, InventoryMovement.movement_type)
        .all()
    )

    totals: dict[date, dict] = {}
    day = start
    while day <= end:
        totals[day] = {"date": to_iso_date(day), "in_total": 0, "out_total": 0}
        day += timedelta(days=1)

    for r in rows:
        bucket = totals.get(r.movement_date)
        if bucket is None:
            continue
        key = "in_total" if r.movement_type == MOVEMENT_IN else "out_total"
        bucket[key] += abs(int(r.total or 0))

    return list(totals.values())


def low_stock(threshold: int, *, location_id: int | None = None) -> list[Inventory]:
    query = db.session.query(Inventory).filter(Inventory.current_stock <= threshold)
    if location_id is not None:
        query = query.filter(Inventory.location_id == location_id)
    return query.order_by(Inventory.current_stock.asc(), Inventory.id.asc()).all()


def dashboard_stats(*, threshold: int, days: int = DEFAULT_DAYS, today: date | None = None) -> dict:
    """Stats page payload: location and category totals, recent daily flow, low stock."""
    if days <= 0 or days > MAX_DAYS:
        raise ValidationError(f"days must be between 1 and {MAX_DAYS}")
    if threshold < 0:
        raise ValidationError("threshold must be >= 0")

    end = today or business_today()
    start = end - timedelta(days=days - 1)
    daily = _daily_totals(start, end)

    return {
        "days": days,
        "start_date": to_iso_date(start),
        "end_date": to_iso_date(end),
        "location_stats": location_stats(),
        "category_stats": category_stats(),
        "daily": daily,
        "recent_inbound": sum(d["in_total"] for d in daily),
        "recent_outbound": sum(d["out_total"] for d in daily),
        "alert_threshold": threshold,
        "low_stock": [row.to_dict() for row in low_stock(threshold)],
    }


def monthly_stats(*, year: int, month: int) -> dict:
    """Daily in/out totals for one calendar month."""
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 2000 <= year <= 2099:
        raise ValidationError("year must be between 2000 and 2099")

    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    daily = _daily_totals(start, end)
    return {
        "year": year,
        "month": month,
        "days": daily,
        "in_total": sum(d["in_total"] for d in daily),
        "out_total": sum(d["out_total"] for d in daily),
        "active_days": sum(1 for d in daily if d["in_total"] or d["out_total"]),
    }
