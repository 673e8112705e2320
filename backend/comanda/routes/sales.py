# Overview: Flask API routes for sales; recording, stock posting, cancellation and summaries.

"""
Sales routes

POST /sales records a ticket and, unless sent with status "active", posts
its ingredient consumption in the same transaction. Low-stock alerts
raised by the posting come back in the sale's low_stock_alerts.

DELETE /sales/<id> cancels the sale and credits its stock back; the row
is kept for the audit trail.

SECURITY: any role can record and complete sales; editing and cancelling
are admin-only.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@sales_bp.get("")
@require_auth
def list_sales_route():
    items, pagination = sales_service.list_sales(g.restaurant_id, request.args)
    return paginated("sales", items, pagination)


@sales_bp.post("")
@require_auth
def create_sale_route():
    sale = sales_service.create_sale(g.restaurant_id, _payload(), user_id=g.current_user.id)
    return created(sale.to_dict(), "Sale recorded")


@sales_bp.get("/daily")
@require_auth
def daily_summary_route():
    return ok(sales_service.daily_summary(g.restaurant_id, request.args.get("date")))


@sales_bp.get("/report")
@require_auth
def sales_report_route():
    return ok(sales_service.sales_report(g.restaurant_id, request.args))


@sales_bp.get("/close-cash-register")
@require_auth
def close_cash_register_route():
    return ok(sales_service.close_cash_register_summary(g.restaurant_id, request.args.get("date")))


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    return ok(sales_service.get_sale(g.restaurant_id, sale_id).to_dict())


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_admin
def update_sale_route(sale_id: int):
    sale = sales_service.update_sale(g.restaurant_id, sale_id, _payload())
    return ok(sale.to_dict(), message="Sale updated")


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_admin
def cancel_sale_route(sale_id: int):
    reason = _payload().get("reason") or request.args.get("reason")
    sale = sales_service.cancel_sale(
        g.restaurant_id, sale_id, user_id=g.current_user.id, reason=reason,
    )
    return ok(sale.to_dict(), message="Sale cancelled")


@sales_bp.post("/<int:sale_id>/complete")
@require_auth
def complete_sale_route(sale_id: int):
    sale = sales_service.complete_sale(g.restaurant_id, sale_id, user_id=g.current_user.id)
    return ok(sale.to_dict(), message="Sale completed")
