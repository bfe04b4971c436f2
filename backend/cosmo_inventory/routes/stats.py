# Overview: Flask API routes for dashboard statistics.

from flask import Blueprint, g, jsonify

from ..decorators import require_auth
from ..errors import InventoryError, ValidationError
from ..services import reporting_service
from ..time_utils import business_today
from .responses import domain_error, query_int, unexpected_error

stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.get("")
@require_auth
def stats_route():
    """?days=N (default 7). Low stock uses the caller's alert_threshold."""
    try:
        days = query_int("days")
        result = reporting_service.dashboard_stats(
            threshold=g.current_user.alert_threshold,
            days=days if days is not None else reporting_service.DEFAULT_DAYS,
        )
        return jsonify(result), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load stats")


@stats_bp.get("/monthly")
@require_auth
def monthly_route():
    """?year=&month= (default: current business month)."""
    try:
        today = business_today()
        year = query_int("year")
        month = query_int("month")
        if (year is None) != (month is None):
            raise ValidationError("year and month must be given together")
        result = reporting_service.monthly_stats(
            year=year if year is not None else today.year,
            month=month if month is not None else today.month,
        )
        return jsonify(result), 200
    except InventoryError as e:
        return domain_error(e)
    except Exception:
        return unexpected_error("Failed to load monthly stats")
