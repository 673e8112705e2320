# Overview: Flask API routes for recipes; cost roll-up, pricing and cost analysis.

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import created, ok, paginated
from ..services import catalog_service, costing_service


recipes_bp = Blueprint("recipes", __name__, url_prefix="/api/recipes")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@recipes_bp.get("")
@require_auth
def list_recipes_route():
    items, pagination = catalog_service.list_recipes(g.restaurant_id, request.args)
    return paginated("recipes", items, pagination)


@recipes_bp.post("")
@require_auth
@require_admin
def create_recipe_route():
    """
    Body: recipe fields plus "ingredients" [{ingredient_id, quantity, unit}]
    and "semifinished" [{semifinished_id, quantity, unit}].
    """
    recipe = catalog_service.create_recipe(g.restaurant_id, _payload())
    return created(recipe.to_dict(), "Recipe created")


@recipes_bp.get("/cost-analysis")
@require_auth
def cost_analysis_route():
    return ok(catalog_service.cost_analysis(g.restaurant_id, "recipes"))


@recipes_bp.get("/<int:recipe_id>")
@require_auth
def get_recipe_route(recipe_id: int):
    return ok(catalog_service.get_recipe(g.restaurant_id, recipe_id).to_dict())


@recipes_bp.put("/<int:recipe_id>")
@require_auth
@require_admin
def update_recipe_route(recipe_id: int):
    recipe = catalog_service.update_recipe(g.restaurant_id, recipe_id, _payload())
    return ok(recipe.to_dict(), message="Recipe updated")


@recipes_bp.delete("/<int:recipe_id>")
@require_auth
@require_admin
def delete_recipe_route(recipe_id: int):
    recipe = catalog_service.archive_recipe(g.restaurant_id, recipe_id)
    return ok(recipe.to_dict(), message="Recipe archived")


@recipes_bp.post("/<int:recipe_id>/calculate-cost")
@require_auth
@require_admin
def calculate_recipe_cost_route(recipe_id: int):
    recipe = catalog_service.recalculate_recipe(g.restaurant_id, recipe_id)
    return ok({"recipe": recipe.to_dict(), "breakdown": costing_service.cost_breakdown(recipe)})


@recipes_bp.put("/<int:recipe_id>/price")
@require_auth
@require_admin
def update_recipe_price_route(recipe_id: int):
    recipe = catalog_service.update_recipe_price(g.restaurant_id, recipe_id, _payload())
    return ok(recipe.to_dict(), message="Price updated")
