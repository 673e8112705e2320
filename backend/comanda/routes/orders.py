# Overview: Flask API routes for dining orders; broadcasts order and table events.

"""
Order routes

Order creation occupies its table; completing leaves the table in
cleaning and cancelling frees it. After each successful change the route
pushes order-created / order-updated (and table-updated when a table is
involved) to the restaurant's real-time room.

SECURITY: any role can open, complete and update line status; editing and
cancelling are admin-only.
"""

from flask import Blueprint, g, request

from .. import realtime
from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _broadcast(event: str, order) -> None:
    realtime.emit(event, order.to_dict())
    if order.table is not None:
        realtime.emit(realtime.EVENT_TABLE_UPDATED, order.table.to_dict())


@orders_bp.get("")
@require_auth
def list_orders_route():
    items, pagination = order_service.list_orders(g.restaurant_id, request.args)
    return paginated("orders", items, pagination)


@orders_bp.post("")
@require_auth
def create_order_route():
    """Body: {table_id?, order_type?, customer_name?, lines: [{product_id, quantity, unit_price?, notes?}]}."""
    order = order_service.create_order(g.restaurant_id, _payload(), user_id=g.current_user.id)
    _broadcast(realtime.EVENT_ORDER_CREATED, order)
    return created(order.to_dict(), "Order created")


@orders_bp.get("/actives")
@require_auth
def list_active_orders_route():
    """Query: start_date + period (daily|weekly|monthly|yearly) narrows the window."""
    items, pagination = order_service.list_active_orders(g.restaurant_id, request.args)
    return paginated("orders", items, pagination)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    return ok(order_service.get_order(g.restaurant_id, order_id).to_dict())


@orders_bp.put("/<int:order_id>")
@require_auth
@require_admin
def update_order_route(order_id: int):
    order = order_service.update_order(g.restaurant_id, order_id, _payload())
    realtime.emit(realtime.EVENT_ORDER_UPDATED, order.to_dict())
    return ok(order.to_dict(), message="Order updated")


@orders_bp.post("/<int:order_id>/complete")
@require_auth
def complete_order_route(order_id: int):
    order = order_service.complete_order(g.restaurant_id, order_id)
    _broadcast(realtime.EVENT_ORDER_UPDATED, order)
    return ok(order.to_dict(), message="Order completed")


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_admin
def cancel_order_route(order_id: int):
    order = order_service.cancel_order(g.restaurant_id, order_id)
    _broadcast(realtime.EVENT_ORDER_UPDATED, order)
    return ok(order.to_dict(), message="Order cancelled")


@orders_bp.patch("/<int:order_id>/lines/<int:line_id>/status")
@require_auth
def update_line_status_route(order_id: int, line_id: int):
    order = order_service.update_line_status(
        g.restaurant_id, order_id, line_id, _payload().get("status"),
    )
    realtime.emit(realtime.EVENT_ORDER_UPDATED, order.to_dict())
    return ok(order.to_dict(), message="Line status updated")
