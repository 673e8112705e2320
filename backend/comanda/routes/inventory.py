# Overview: Flask API routes for ingredients, semifinished goods and stock levels.

"""
Inventory routes

MULTI-TENANT: every operation is scoped to g.restaurant_id (set by @require_auth).

SECURITY: reads are open to every role; creating, editing, archiving,
adjusting stock and recalculating costs are admin-only.
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import catalog_service, costing_service, inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


# =============================================================================
# Ingredients
# =============================================================================

@inventory_bp.get("/ingredients")
@require_auth
def list_ingredients_route():
    items, pagination = inventory_service.list_ingredients(g.restaurant_id, request.args)
    return paginated("ingredients", items, pagination)


@inventory_bp.post("/ingredients")
@require_auth
@require_admin
def create_ingredient_route():
    ingredient = inventory_service.create_ingredient(g.restaurant_id, _payload(), user_id=g.current_user.id)
    return created(ingredient.to_dict(), "Ingredient created")


@inventory_bp.get("/ingredients/<int:ingredient_id>")
@require_auth
def get_ingredient_route(ingredient_id: int):
    return ok(inventory_service.get_ingredient(g.restaurant_id, ingredient_id).to_dict())


@inventory_bp.put("/ingredients/<int:ingredient_id>")
@require_auth
@require_admin
def update_ingredient_route(ingredient_id: int):
    ingredient = inventory_service.update_ingredient(g.restaurant_id, ingredient_id, _payload())
    return ok(ingredient.to_dict(), message="Ingredient updated")


@inventory_bp.delete("/ingredients/<int:ingredient_id>")
@require_auth
@require_admin
def delete_ingredient_route(ingredient_id: int):
    ingredient = inventory_service.archive_ingredient(g.restaurant_id, ingredient_id)
    return ok(ingredient.to_dict(), message="Ingredient archived")


@inventory_bp.patch("/ingredients/<int:ingredient_id>/stock")
@require_auth
@require_admin
def adjust_stock_route(ingredient_id: int):
    """Body: {"quantity": > 0, "operation": "add" | "subtract", "note": optional}."""
    result = inventory_service.adjust_ingredient_stock(
        g.restaurant_id, ingredient_id, _payload(), user_id=g.current_user.id,
    )
    return ok(result.to_dict(), message="Stock updated")


@inventory_bp.get("/ingredients/<int:ingredient_id>/movements")
@require_auth
def list_movements_route(ingredient_id: int):
    items, pagination = inventory_service.list_movements(g.restaurant_id, ingredient_id, request.args)
    return paginated("movements", items, pagination)


@inventory_bp.post("/ingredients/<int:ingredient_id>/recalculate-dependents")
@require_auth
@require_admin
def recalculate_dependents_route(ingredient_id: int):
    touched = inventory_service.recalculate_dependents(g.restaurant_id, ingredient_id)
    return ok(touched, message="Dependent costs recalculated")


@inventory_bp.get("/stock/report")
@require_auth
def stock_report_route():
    return ok(inventory_service.stock_report(g.restaurant_id))


# =============================================================================
# Semifinished goods
# =============================================================================

@inventory_bp.get("/semifinished")
@require_auth
def list_semifinished_route():
    items, pagination = catalog_service.list_semifinished(g.restaurant_id, request.args)
    return paginated("semifinished", items, pagination)


@inventory_bp.post("/semifinished")
@require_auth
@require_admin
def create_semifinished_route():
    semi = catalog_service.create_semifinished(g.restaurant_id, _payload())
    return created(semi.to_dict(), "Semifinished item created")


@inventory_bp.get("/semifinished/<int:semifinished_id>")
@require_auth
def get_semifinished_route(semifinished_id: int):
    return ok(catalog_service.get_semifinished(g.restaurant_id, semifinished_id).to_dict())


@inventory_bp.put("/semifinished/<int:semifinished_id>")
@require_auth
@require_admin
def update_semifinished_route(semifinished_id: int):
    semi = catalog_service.update_semifinished(g.restaurant_id, semifinished_id, _payload())
    return ok(semi.to_dict(), message="Semifinished item updated")


@inventory_bp.delete("/semifinished/<int:semifinished_id>")
@require_auth
@require_admin
def delete_semifinished_route(semifinished_id: int):
    semi = catalog_service.archive_semifinished(g.restaurant_id, semifinished_id)
    return ok(semi.to_dict(), message="Semifinished item archived")


@inventory_bp.post("/semifinished/<int:semifinished_id>/calculate-cost")
@require_auth
@require_admin
def calculate_semifinished_cost_route(semifinished_id: int):
    semi = catalog_service.recalculate_semifinished(g.restaurant_id, semifinished_id)
    return ok({
        "semifinished": semi.to_dict(),
        "breakdown": costing_service.cost_breakdown(semi),
    })
