# Overview: Flask API routes for read-only reports and the dashboard.

"""
Reporting routes

Date windows use start_date / end_date (ISO-8601). A date-only end_date
includes that whole day. Revenue counts completed sales only.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..responses import ok
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/inventory-valuation")
@require_auth
def inventory_valuation_route():
    return ok(reporting_service.inventory_valuation(g.restaurant_id))


@reports_bp.get("/daily-sales")
@require_auth
def daily_sales_route():
    return ok(reporting_service.daily_sales(g.restaurant_id, request.args.get("date")))


@reports_bp.get("/financial-summary")
@require_auth
def financial_summary_route():
    return ok(reporting_service.financial_summary(g.restaurant_id, request.args))


@reports_bp.get("/cost-analysis")
@require_auth
def cost_analysis_route():
    """Query: type=recipes (default) | products."""
    return ok(reporting_service.cost_analysis(g.restaurant_id, request.args))


@reports_bp.get("/sales-performance")
@require_auth
def sales_performance_route():
    return ok(reporting_service.sales_performance(g.restaurant_id, request.args))


@reports_bp.get("/profitability")
@require_auth
def profitability_route():
    return ok(reporting_service.profitability(g.restaurant_id, request.args))


@reports_bp.get("/ingredient-usage")
@require_auth
def ingredient_usage_route():
    return ok(reporting_service.ingredient_usage(g.restaurant_id, request.args))


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    return ok(reporting_service.dashboard(g.restaurant_id))
