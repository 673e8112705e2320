# Overview: Flask API routes for suppliers and purchase orders.

"""
Purchasing routes

Receiving a purchase credits ingredient stock and overwrites each
ingredient's unit cost with the purchase line cost. It does not recompute
recipes or products; use the recalculate endpoints for that.

SECURITY: reads are open to every role, writes are admin-only.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import directory_service, purchase_service


purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/api/purchasing")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


# =============================================================================
# Suppliers
# =============================================================================

@purchasing_bp.get("/suppliers")
@require_auth
def list_suppliers_route():
    items, pagination = directory_service.list_suppliers(g.restaurant_id, request.args)
    return paginated("suppliers", items, pagination)


@purchasing_bp.post("/suppliers")
@require_auth
@require_admin
def create_supplier_route():
    supplier = directory_service.create_supplier(g.restaurant_id, _payload())
    return created(supplier.to_dict(), "Supplier created")


@purchasing_bp.get("/suppliers/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    return ok(directory_service.get_supplier(g.restaurant_id, supplier_id).to_dict())


@purchasing_bp.put("/suppliers/<int:supplier_id>")
@require_auth
@require_admin
def update_supplier_route(supplier_id: int):
    supplier = directory_service.update_supplier(g.restaurant_id, supplier_id, _payload())
    return ok(supplier.to_dict(), message="Supplier updated")


@purchasing_bp.delete("/suppliers/<int:supplier_id>")
@require_auth
@require_admin
def delete_supplier_route(supplier_id: int):
    supplier = directory_service.archive_supplier(g.restaurant_id, supplier_id)
    return ok(supplier.to_dict(), message="Supplier archived")


# =============================================================================
# Purchases
# =============================================================================

@purchasing_bp.get("/purchases")
@require_auth
def list_purchases_route():
    items, pagination = purchase_service.list_purchases(g.restaurant_id, request.args)
    return paginated("purchases", items, pagination)


@purchasing_bp.post("/purchases")
@require_auth
@require_admin
def create_purchase_route():
    purchase = purchase_service.create_purchase(g.restaurant_id, _payload(), user_id=g.current_user.id)
    return created(purchase.to_dict(), "Purchase created")


@purchasing_bp.get("/purchases/summary")
@require_auth
def purchase_summary_route():
    return ok(purchase_service.purchase_summary(g.restaurant_id, request.args))


@purchasing_bp.get("/purchases/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    return ok(purchase_service.get_purchase(g.restaurant_id, purchase_id).to_dict())


@purchasing_bp.put("/purchases/<int:purchase_id>")
@require_auth
@require_admin
def update_purchase_route(purchase_id: int):
    purchase = purchase_service.update_purchase(g.restaurant_id, purchase_id, _payload())
    return ok(purchase.to_dict(), message="Purchase updated")


@purchasing_bp.post("/purchases/<int:purchase_id>/receive")
@require_auth
@require_admin
def receive_purchase_route(purchase_id: int):
    """Body (optional): {"lines": [{"line_id", "received_quantity"}]}; default receives everything outstanding."""
    purchase = purchase_service.receive_purchase(
        g.restaurant_id, purchase_id, request.get_json(silent=True), user_id=g.current_user.id,
    )
    return ok(purchase.to_dict(), message="Purchase received")


@purchasing_bp.post("/purchases/<int:purchase_id>/cancel")
@require_auth
@require_admin
def cancel_purchase_route(purchase_id: int):
    purchase = purchase_service.cancel_purchase(g.restaurant_id, purchase_id)
    return ok(purchase.to_dict(), message="Purchase cancelled")
