# Overview: Cost roll-up from ingredients through semifinished goods to recipes and products.

"""
Costing Invariants (authoritative)

Roll-up:
- Semifinished.calculated_cost = sum(ingredient.unit_cost * quantity)
- Semifinished.unit_cost = calculated_cost / yield_quantity
- Recipe.calculated_cost = sum(component.unit_cost * quantity) where a
  component is an ingredient or a semifinished (its stored unit_cost)
- Product.total_cost = same roll-up over gross_quantity (waste included)
- Product.final_price = base_price * (1 + margin_percentage / 100)
- profit = price - cost; profit_percentage = profit / price * 100, 0 without a
  price, clamped to +/-99999.99

Staleness:
- Stored costs reflect component costs at the last recalculation.
- Changing an ingredient's unit_cost does not touch dependents. Callers
  recalculate explicitly, either one entity at a time or with
  recalculate_ingredient_dependents(), which walks the two-level graph
  in dependency order (semifinished first, then recipes and products).

Acyclicity:
- Semifinished lines reference ingredients only; recipe and product lines
  reference an ingredient or a semifinished. The reference graph is
  therefore at most Recipe/Product -> Semifinished -> Ingredient.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import (
    Product,
    ProductComponent,
    Recipe,
    RecipeComponent,
    Semifinished,
    SemifinishedIngredient,
)
from ..models.mixins import RECORD_ACTIVE
from ..money import D, HUNDRED, ZERO, bounded_percentage, money, unit_cost
from ..validation import ValidationError
from comanda.time_utils import utcnow


def profit_figures(price, cost) -> tuple[Decimal, Decimal]:
    """(profit, profit_percentage); percentage is 0 when price is 0 or None."""
    if price is None:
        return money(ZERO), money(ZERO)
    profit = money(D(price) - D(cost))
    return profit, bounded_percentage(profit, price)


def final_price(base_price, margin_percentage) -> Decimal:
    return money(D(base_price) * (1 + D(margin_percentage) / HUNDRED))


def component_unit_cost(component) -> Decimal:
    """Current unit cost of whatever a line points at."""
    if component.ingredient_id is not None:
        return D(component.ingredient.unit_cost)
    return D(component.semifinished.unit_cost)


def component_name(component) -> str:
    if component.ingredient_id is not None:
        return component.ingredient.name
    return component.semifinished.name


def line_cost(component) -> Decimal:
    return component_unit_cost(component) * D(component.quantity)


def compute_semifinished_cost(semi: Semifinished) -> tuple[Decimal, Decimal]:
    """(calculated_cost, unit_cost) from current ingredient costs."""
    calculated = sum((D(line.ingredient.unit_cost) * D(line.quantity) for line in semi.lines), ZERO)
    yield_quantity = D(semi.yield_quantity)
    if yield_quantity <= 0:
        raise ValidationError("yield_quantity must be > 0")
    return unit_cost(calculated), unit_cost(calculated / yield_quantity)


def recalculate_semifinished(semi: Semifinished) -> Semifinished:
    calculated, per_unit = compute_semifinished_cost(semi)
    semi.calculated_cost = calculated
    semi.unit_cost = per_unit
    semi.last_cost_calculation = utcnow()
    return semi


def compute_components_cost(lines) -> Decimal:
    return unit_cost(sum((line_cost(line) for line in lines), ZERO))


def recalculate_recipe(recipe: Recipe) -> Recipe:
    recipe.calculated_cost = compute_components_cost(recipe.lines)
    recipe.profit, recipe.profit_percentage = profit_figures(recipe.selling_price, recipe.calculated_cost)
    recipe.last_cost_calculation = utcnow()
    return recipe


def recalculate_product(product: Product) -> Product:
    product.total_cost = compute_components_cost(product.lines)
    product.final_price = final_price(product.base_price, product.margin_percentage)
    product.profit, product.profit_percentage = profit_figures(product.final_price, product.total_cost)
    product.last_cost_calculation = utcnow()
    return product


def cost_breakdown(entity) -> list[dict]:
    """Per-line cost detail for semifinished goods, recipes and products."""
    rows = []
    for line in entity.lines:
        kind = "ingredient" if line.ingredient_id is not None else "semifinished"
        per_unit = component_unit_cost(line)
        row = {
            "type": kind,
            "id": line.ingredient_id if kind == "ingredient" else line.semifinished_id,
            "name": component_name(line),
            "quantity": float(D(line.quantity)),
            "unit_cost": float(per_unit),
            "cost": float(money(per_unit * D(line.quantity))),
        }
        if isinstance(line, ProductComponent):
            row["net_quantity"] = float(D(line.net_quantity))
            row["waste_percentage"] = float(D(line.waste_percentage))
        rows.append(row)
    return rows


def recalculate_ingredient_dependents(restaurant_id: int, ingredient_id: int) -> dict:
    """
    Propagate an ingredient's current cost to everything built from it.

    Semifinished goods are recomputed first so recipes and products that
    use them directly see the fresh unit cost. Does not commit.
    """
    semis = (
        db.session.query(Semifinished)
        .join(SemifinishedIngredient, SemifinishedIngredient.semifinished_id == Semifinished.id)
        .filter(
            Semifinished.restaurant_id == restaurant_id,
            SemifinishedIngredient.ingredient_id == ingredient_id,
        )
        .distinct()
        .all()
    )
    for semi in semis:
        recalculate_semifinished(semi)
    semi_ids = [s.id for s in semis]

    def _dependents(model, component_model, fk):
        refs = component_model.ingredient_id == ingredient_id
        if semi_ids:
            refs = db.or_(refs, component_model.semifinished_id.in_(semi_ids))
        return (
            db.session.query(model)
            .join(component_model, fk == model.id)
            .filter(model.restaurant_id == restaurant_id, refs)
            .distinct()
            .all()
        )

    recipes = _dependents(Recipe, RecipeComponent, RecipeComponent.recipe_id)
    for recipe in recipes:
        recalculate_recipe(recipe)

    products = _dependents(Product, ProductComponent, ProductComponent.product_id)
    for product in products:
        recalculate_product(product)

    return {
        "semifinished": semi_ids,
        "recipes": [r.id for r in recipes],
        "products": [p.id for p in products],
    }


def recalculate_all(restaurant_id: int) -> dict:
    """Recompute every active cost-bearing entity of a restaurant. Does not commit."""
    counts = {"semifinished": 0, "recipes": 0, "products": 0}
    for semi in db.session.query(Semifinished).filter_by(restaurant_id=restaurant_id, record_status=RECORD_ACTIVE).all():
        recalculate_semifinished(semi)
        counts["semifinished"] += 1
    for recipe in db.session.query(Recipe).filter_by(restaurant_id=restaurant_id, record_status=RECORD_ACTIVE).all():
        recalculate_recipe(recipe)
        counts["recipes"] += 1
    for product in db.session.query(Product).filter_by(restaurant_id=restaurant_id, record_status=RECORD_ACTIVE).all():
        recalculate_product(product)
        counts["products"] += 1
    return counts
