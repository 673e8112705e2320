# Overview: Flask API routes for cash registers; open, transactions, close and history.

"""
Cash register routes

One active register per restaurant per business date. Closing computes
expected = opening + sales - expenses and records the counted difference.

SECURITY: any role can open a register and add transactions; closing is
admin-only.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import cash_service


cash_register_bp = Blueprint("cash_register", __name__, url_prefix="/api/cash-register")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@cash_register_bp.post("/open")
@require_auth
def open_register_route():
    register = cash_service.open_register(g.restaurant_id, _payload(), user_id=g.current_user.id)
    return created(register.to_dict(), "Cash register opened")


@cash_register_bp.get("/actives")
@require_auth
def active_registers_route():
    return ok([r.to_dict() for r in cash_service.list_active(g.restaurant_id)])


@cash_register_bp.get("/history")
@require_auth
def register_history_route():
    items, pagination = cash_service.history(g.restaurant_id, request.args)
    return paginated(
        "registers", items, pagination,
        serializer=lambda r: r.to_dict(include_transactions=False),
    )


@cash_register_bp.get("/summary")
@require_auth
def register_summary_route():
    return ok(cash_service.summary(g.restaurant_id, request.args))


@cash_register_bp.get("/<int:register_id>")
@require_auth
def get_register_route(register_id: int):
    return ok(cash_service.get_register(g.restaurant_id, register_id).to_dict())


@cash_register_bp.post("/<int:register_id>/close")
@require_auth
@require_admin
def close_register_route(register_id: int):
    register = cash_service.close_register(
        g.restaurant_id, register_id, _payload(), user_id=g.current_user.id,
    )
    return ok(register.to_dict(), message="Cash register closed")


@cash_register_bp.post("/<int:register_id>/transaction")
@require_auth
def add_transaction_route(register_id: int):
    """Body: {"type": "sale" | "expense", "amount": > 0, "description"?, "payment_method"?, "sale_id"?}."""
    register = cash_service.add_transaction(
        g.restaurant_id, register_id, _payload(), user_id=g.current_user.id,
    )
    return created(register.to_dict(), "Transaction recorded")
