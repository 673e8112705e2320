# Overview: Flask API routes for stock alerts and stock analysis.

from flask import Blueprint, g, request

from .. import realtime
from ..decorators import require_admin, require_auth
from ..responses import created, ok
from ..services import alert_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/alerts/low-stock")
@require_auth
def low_stock_route():
    return ok(alert_service.low_stock_alerts(g.restaurant_id))


@stock_bp.get("/alerts/history")
@require_auth
def alert_history_route():
    return ok(alert_service.alert_history(g.restaurant_id, request.args))


@stock_bp.post("/alerts")
@require_auth
@require_admin
def create_alert_route():
    """Manual alert pushed to the restaurant's dashboards as stock-alert. Not persisted."""
    alert = alert_service.manual_alert(g.restaurant_id, request.get_json(silent=True) or {})
    realtime.emit(realtime.EVENT_STOCK_ALERT, alert)
    return created(alert, "Stock alert sent")


@stock_bp.get("/analysis")
@require_auth
def stock_analysis_route():
    return ok(alert_service.stock_analysis(g.restaurant_id))
