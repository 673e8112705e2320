# Overview: Service-layer operations for semifinished goods, recipes, products and production areas.

"""
Catalog service

Owns the component lists of cost-bearing entities and triggers the cost
roll-up (costing_service) whenever a write touches components, yield,
margin or price. Writes that only touch descriptive fields leave stored
costs alone, so a cost only moves when something that defines it moves.

Component payloads:
- semifinished: "ingredients": [{"ingredient_id", "quantity", "unit"}]
- recipe: "ingredients": [...] and "semifinished": [{"semifinished_id", "quantity", "unit"}]
- product: "recipe": [{"ingredient_id" | "semifinished_id", "gross_quantity",
  "net_quantity", "waste_percentage"}]
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import (
    Ingredient,
    Product,
    ProductComponent,
    ProductionArea,
    Recipe,
    RecipeComponent,
    Semifinished,
    SemifinishedIngredient,
)
from ..models.catalog import RECIPE_CATEGORIES, SEMIFINISHED_CATEGORIES
from ..models.mixins import RECORD_ACTIVE
from ..money import D, HUNDRED, money, qty
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_percentage,
    require_non_negative,
    require_positive,
    to_decimal,
    validate_payload,
)
from . import costing_service, crud_service
from .tenant_service import get_scoped_or_404, require_reference, scoped_query


SEMIFINISHED_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "yield_quantity", "yield_unit",
        "preparation_time", "instructions",
    },
    required_on_create={"name"},
    choices={"category": SEMIFINISHED_CATEGORIES},
    uppercase_fields={"name"},
    non_negative={"preparation_time"},
)

RECIPE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "portions", "selling_price",
        "profit_margin", "preparation_time", "instructions",
    },
    required_on_create={"name"},
    choices={"category": RECIPE_CATEGORIES},
    uppercase_fields={"name"},
    non_negative={"selling_price", "profit_margin", "preparation_time"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "production_area_id", "base_price",
        "margin_percentage", "is_available", "preparation_time", "image_url",
        "tags", "allergens",
    },
    required_on_create={"name", "base_price"},
    uppercase_fields={"name"},
    non_negative={"base_price", "margin_percentage", "preparation_time"},
)

PRODUCTION_AREA_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
    uppercase_fields={"name"},
)

SEMIFINISHED_COST_FIELDS = {"yield_quantity"}
RECIPE_COST_FIELDS = {"selling_price"}
PRODUCT_COST_FIELDS = {"base_price", "margin_percentage"}


def _split(payload: dict | None, *line_keys: str) -> tuple[dict, dict]:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    fields = {k: v for k, v in payload.items() if k not in line_keys}
    lines = {k: payload[k] for k in line_keys if k in payload}
    for key, value in lines.items():
        if not isinstance(value, list):
            raise ValidationError(f"{key} must be a list")
    return fields, lines


def _ingredient(restaurant_id: int, ingredient_id) -> Ingredient:
    return require_reference(Ingredient, ingredient_id, restaurant_id, "Ingredient")


def _semifinished(restaurant_id: int, semifinished_id) -> Semifinished:
    return require_reference(Semifinished, semifinished_id, restaurant_id, "Semifinished")


def _one_reference(item: dict, index: int, key: str) -> tuple[str, int]:
    if not isinstance(item, dict):
        raise ValidationError(f"{key}[{index}] must be an object")
    has_ingredient = item.get("ingredient_id") is not None
    has_semi = item.get("semifinished_id") is not None
    if has_ingredient == has_semi:
        raise ValidationError(f"{key}[{index}] needs exactly one of ingredient_id or semifinished_id")
    if has_ingredient:
        return "ingredient", item["ingredient_id"]
    return "semifinished", item["semifinished_id"]


# =============================================================================
# Semifinished
# =============================================================================

def build_semifinished_lines(restaurant_id: int, items: list) -> list[SemifinishedIngredient]:
    """
    Semifinished goods are built from ingredients only.

    Rejecting semifinished references here is what keeps the cost graph
    acyclic.
    """
    lines = []
    seen = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"ingredients[{index}] must be an object")
        if item.get("semifinished_id") is not None:
            raise ValidationError("Semifinished components may only reference ingredients")
        ingredient = _ingredient(restaurant_id, item.get("ingredient_id"))
        if ingredient.id in seen:
            raise ValidationError(f"Ingredient {ingredient.id} listed twice")
        seen.add(ingredient.id)
        lines.append(SemifinishedIngredient(
            ingredient=ingredient,
            ingredient_id=ingredient.id,
            quantity=qty(require_positive(item.get("quantity"), f"ingredients[{index}].quantity")),
            unit=(item.get("unit") or ingredient.unit),
            position=index,
        ))
    return lines


def _yield_rule(patch: dict) -> None:
    if "yield_quantity" in patch and (patch["yield_quantity"] is None or patch["yield_quantity"] <= 0):
        raise ValidationError("yield_quantity must be > 0")


def create_semifinished(restaurant_id: int, payload: dict) -> Semifinished:
    fields, lines = _split(payload, "ingredients")
    patch = validate_payload(model=Semifinished, payload=fields, policy=SEMIFINISHED_POLICY, partial=False)
    _yield_rule(patch)

    semi = Semifinished(restaurant_id=restaurant_id, **patch)
    semi.lines = build_semifinished_lines(restaurant_id, lines.get("ingredients", []))
    db.session.add(semi)
    costing_service.recalculate_semifinished(semi)
    crud_service.commit_or_conflict("A semifinished item with that name already exists")
    return semi


def update_semifinished(restaurant_id: int, semifinished_id: int, payload: dict) -> Semifinished:
    semi = get_semifinished(restaurant_id, semifinished_id)
    fields, lines = _split(payload, "ingredients")
    patch = validate_payload(model=Semifinished, payload=fields, policy=SEMIFINISHED_POLICY, partial=True)
    _yield_rule(patch)

    for key, value in patch.items():
        setattr(semi, key, value)
    if "ingredients" in lines:
        semi.lines = build_semifinished_lines(restaurant_id, lines["ingredients"])
    if "ingredients" in lines or SEMIFINISHED_COST_FIELDS & patch.keys():
        costing_service.recalculate_semifinished(semi)
    crud_service.commit_or_conflict("A semifinished item with that name already exists")
    return semi


def get_semifinished(restaurant_id: int, semifinished_id: int) -> Semifinished:
    return get_scoped_or_404(Semifinished, semifinished_id, restaurant_id, "Semifinished")


def list_semifinished(restaurant_id: int, args):
    category = args.get("category")
    return crud_service.list_entities(
        Semifinished, restaurant_id, args,
        search_column=Semifinished.name,
        order_by=(Semifinished.name.asc(),),
        filters=(lambda q: q.filter(Semifinished.category == category)) if category else None,
    )


def archive_semifinished(restaurant_id: int, semifinished_id: int) -> Semifinished:
    return crud_service.archive_entity(get_semifinished(restaurant_id, semifinished_id))


def recalculate_semifinished(restaurant_id: int, semifinished_id: int) -> Semifinished:
    semi = get_semifinished(restaurant_id, semifinished_id)
    costing_service.recalculate_semifinished(semi)
    db.session.commit()
    return semi


# =============================================================================
# Recipes
# =============================================================================

def build_recipe_lines(restaurant_id: int, ingredients: list, semifinished: list) -> list[RecipeComponent]:
    lines = []
    position = 0
    for key, items in (("ingredients", ingredients), ("semifinished", semifinished)):
        for index, item in enumerate(items):
            kind, ref_id = _one_reference(item, index, key)
            quantity = qty(require_positive(item.get("quantity"), f"{key}[{index}].quantity"))
            if kind == "ingredient":
                ingredient = _ingredient(restaurant_id, ref_id)
                line = RecipeComponent(ingredient=ingredient, ingredient_id=ingredient.id,
                                       quantity=quantity, unit=item.get("unit") or ingredient.unit)
            else:
                semi = _semifinished(restaurant_id, ref_id)
                line = RecipeComponent(semifinished=semi, semifinished_id=semi.id,
                                       quantity=quantity, unit=item.get("unit") or semi.yield_unit)
            line.position = position
            position += 1
            lines.append(line)
    return lines


def _recipe_rules(patch: dict) -> None:
    if "portions" in patch and (patch["portions"] is None or patch["portions"] < 1):
        raise ValidationError("portions must be >= 1")
    enforce_rules_percentage(patch, "profit_margin")


def _replace_recipe_lines(restaurant_id: int, recipe: Recipe, lines: dict) -> None:
    current_ingredients = [
        {"ingredient_id": c.ingredient_id, "quantity": c.quantity, "unit": c.unit}
        for c in recipe.lines if c.ingredient_id is not None
    ]
    current_semis = [
        {"semifinished_id": c.semifinished_id, "quantity": c.quantity, "unit": c.unit}
        for c in recipe.lines if c.semifinished_id is not None
    ]
    recipe.lines = build_recipe_lines(
        restaurant_id,
        lines.get("ingredients", current_ingredients),
        lines.get("semifinished", current_semis),
    )


def create_recipe(restaurant_id: int, payload: dict) -> Recipe:
    fields, lines = _split(payload, "ingredients", "semifinished")
    patch = validate_payload(model=Recipe, payload=fields, policy=RECIPE_POLICY, partial=False)
    _recipe_rules(patch)

    recipe = Recipe(restaurant_id=restaurant_id, **patch)
    recipe.lines = build_recipe_lines(
        restaurant_id, lines.get("ingredients", []), lines.get("semifinished", []),
    )
    db.session.add(recipe)
    costing_service.recalculate_recipe(recipe)
    crud_service.commit_or_conflict("A recipe with that name already exists")
    return recipe


def update_recipe(restaurant_id: int, recipe_id: int, payload: dict) -> Recipe:
    recipe = get_recipe(restaurant_id, recipe_id)
    fields, lines = _split(payload, "ingredients", "semifinished")
    patch = validate_payload(model=Recipe, payload=fields, policy=RECIPE_POLICY, partial=True)
    _recipe_rules(patch)

    for key, value in patch.items():
        setattr(recipe, key, value)
    if lines:
        _replace_recipe_lines(restaurant_id, recipe, lines)
    if lines or RECIPE_COST_FIELDS & patch.keys():
        costing_service.recalculate_recipe(recipe)
    crud_service.commit_or_conflict("A recipe with that name already exists")
    return recipe


def update_recipe_price(restaurant_id: int, recipe_id: int, payload: dict) -> Recipe:
    if not isinstance(payload, dict) or "selling_price" not in payload:
        raise ValidationError("selling_price is required")
    recipe = get_recipe(restaurant_id, recipe_id)
    recipe.selling_price = money(require_non_negative(payload["selling_price"], "selling_price"))
    if payload.get("profit_margin") is not None:
        patch = {"profit_margin": to_decimal(payload["profit_margin"], "profit_margin")}
        enforce_rules_percentage(patch, "profit_margin")
        recipe.profit_margin = patch["profit_margin"]
    recipe.profit, recipe.profit_percentage = costing_service.profit_figures(
        recipe.selling_price, recipe.calculated_cost,
    )
    db.session.commit()
    return recipe


def get_recipe(restaurant_id: int, recipe_id: int) -> Recipe:
    return get_scoped_or_404(Recipe, recipe_id, restaurant_id, "Recipe")


def list_recipes(restaurant_id: int, args):
    category = args.get("category")
    return crud_service.list_entities(
        Recipe, restaurant_id, args,
        search_column=Recipe.name,
        order_by=(Recipe.name.asc(),),
        filters=(lambda q: q.filter(Recipe.category == category)) if category else None,
    )


def archive_recipe(restaurant_id: int, recipe_id: int) -> Recipe:
    return crud_service.archive_entity(get_recipe(restaurant_id, recipe_id))


def recalculate_recipe(restaurant_id: int, recipe_id: int) -> Recipe:
    recipe = get_recipe(restaurant_id, recipe_id)
    costing_service.recalculate_recipe(recipe)
    db.session.commit()
    return recipe


# =============================================================================
# Products
# =============================================================================

def build_product_lines(restaurant_id: int, items: list) -> list[ProductComponent]:
    """
    Product lines carry waste: net = gross * (1 - waste / 100).

    Either waste_percentage or net_quantity may be given; the other is
    derived. Both missing means no waste.
    """
    lines = []
    for index, item in enumerate(items):
        kind, ref_id = _one_reference(item, index, "recipe")
        gross = qty(require_positive(item.get("gross_quantity", item.get("quantity")), f"recipe[{index}].gross_quantity"))

        if item.get("waste_percentage") is not None:
            waste = to_decimal(item["waste_percentage"], f"recipe[{index}].waste_percentage")
            enforce_rules_percentage({"waste_percentage": waste}, "waste_percentage")
            net = qty(gross * (1 - waste / HUNDRED))
        elif item.get("net_quantity") is not None:
            net = qty(require_non_negative(item["net_quantity"], f"recipe[{index}].net_quantity"))
            if net > gross:
                raise ValidationError(f"recipe[{index}].net_quantity cannot exceed gross_quantity")
            waste = money((gross - net) / gross * HUNDRED)
        else:
            net, waste = gross, Decimal("0")

        line = ProductComponent(gross_quantity=gross, net_quantity=net, waste_percentage=waste, position=index)
        if kind == "ingredient":
            ingredient = _ingredient(restaurant_id, ref_id)
            line.ingredient, line.ingredient_id = ingredient, ingredient.id
        else:
            semi = _semifinished(restaurant_id, ref_id)
            line.semifinished, line.semifinished_id = semi, semi.id
        lines.append(line)
    return lines


def _product_rules(restaurant_id: int, patch: dict) -> None:
    enforce_rules_percentage(patch, "margin_percentage")
    if patch.get("production_area_id") is not None:
        require_reference(ProductionArea, patch["production_area_id"], restaurant_id, "Production area")
    for key in ("tags", "allergens"):
        if key in patch:
            value = patch[key]
            if value is None:
                patch[key] = []
            elif not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValidationError(f"{key} must be a list of strings")


def create_product(restaurant_id: int, payload: dict) -> Product:
    fields, lines = _split(payload, "recipe")
    patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=False)
    _product_rules(restaurant_id, patch)

    product = Product(restaurant_id=restaurant_id, **patch)
    if product.margin_percentage is None:
        product.margin_percentage = Decimal("30")
    product.lines = build_product_lines(restaurant_id, lines.get("recipe", []))
    db.session.add(product)
    costing_service.recalculate_product(product)
    crud_service.commit_or_conflict("A product with that name already exists")
    return product


def update_product(restaurant_id: int, product_id: int, payload: dict) -> Product:
    product = get_product(restaurant_id, product_id)
    fields, lines = _split(payload, "recipe")
    patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=True)
    _product_rules(restaurant_id, patch)

    for key, value in patch.items():
        setattr(product, key, value)
    if "recipe" in lines:
        product.lines = build_product_lines(restaurant_id, lines["recipe"])
    if "recipe" in lines or PRODUCT_COST_FIELDS & patch.keys():
        costing_service.recalculate_product(product)
    crud_service.commit_or_conflict("A product with that name already exists")
    return product


def update_product_price(restaurant_id: int, product_id: int, payload: dict) -> Product:
    """Reprice from margin (and optionally base price); cost is untouched."""
    if not isinstance(payload, dict) or "margin_percentage" not in payload:
        raise ValidationError("margin_percentage is required")
    product = get_product(restaurant_id, product_id)
    patch = {"margin_percentage": to_decimal(payload["margin_percentage"], "margin_percentage")}
    enforce_rules_percentage(patch, "margin_percentage")
    product.margin_percentage = patch["margin_percentage"]
    if payload.get("base_price") is not None:
        product.base_price = money(require_non_negative(payload["base_price"], "base_price"))
    product.final_price = costing_service.final_price(product.base_price, product.margin_percentage)
    product.profit, product.profit_percentage = costing_service.profit_figures(
        product.final_price, product.total_cost,
    )
    db.session.commit()
    return product


def get_product(restaurant_id: int, product_id: int) -> Product:
    return get_scoped_or_404(Product, product_id, restaurant_id, "Product")


def list_products(restaurant_id: int, args):
    category = args.get("category")
    area = args.get("production_area_id")
    available = args.get("is_available")

    def _filters(query):
        if category:
            query = query.filter(Product.category == category)
        if area:
            query = query.filter(Product.production_area_id == area)
        if available not in (None, ""):
            query = query.filter(Product.is_available.is_(str(available).lower() in ("1", "true", "yes")))
        return query

    return crud_service.list_entities(
        Product, restaurant_id, args,
        search_column=Product.name,
        order_by=(Product.name.asc(),),
        filters=_filters,
    )


def archive_product(restaurant_id: int, product_id: int) -> Product:
    return crud_service.archive_entity(get_product(restaurant_id, product_id))


def recalculate_product(restaurant_id: int, product_id: int) -> Product:
    product = get_product(restaurant_id, product_id)
    costing_service.recalculate_product(product)
    db.session.commit()
    return product


# =============================================================================
# Cost analysis
# =============================================================================

def cost_analysis(restaurant_id: int, kind: str) -> dict:
    """
    Profitability table for active recipes or products, best margin first.
    """
    if kind == "recipes":
        rows = scoped_query(Recipe, restaurant_id).filter(Recipe.record_status == RECORD_ACTIVE).all()
        items = [
            {
                "id": r.id,
                "name": r.name,
                "category": r.category,
                "cost": float(D(r.calculated_cost)),
                "price": float(D(r.selling_price)),
                "profit": float(D(r.profit)),
                "profit_percentage": float(D(r.profit_percentage)),
                "component_count": len(r.lines),
                "is_profitable": D(r.profit) > 0,
            }
            for r in rows
        ]
    elif kind == "products":
        rows = scoped_query(Product, restaurant_id).filter(Product.record_status == RECORD_ACTIVE).all()
        items = [
            {
                "id": p.id,
                "name": p.name,
                "category": p.category,
                "production_area": p.production_area.name if p.production_area else None,
                "cost": float(D(p.total_cost)),
                "price": float(D(p.final_price)),
                "margin_percentage": float(D(p.margin_percentage)),
                "profit": float(D(p.profit)),
                "profit_percentage": float(D(p.profit_percentage)),
                "component_count": len(p.lines),
                "is_profitable": D(p.profit) > 0,
            }
            for p in rows
        ]
    else:
        raise ValidationError("kind must be 'recipes' or 'products'")

    items.sort(key=lambda item: item["profit_percentage"], reverse=True)
    count = len(items)
    summary = {
        "total_items": count,
        "profitable_items": sum(1 for item in items if item["is_profitable"]),
        "average_profit_percentage": round(sum(i["profit_percentage"] for i in items) / count, 2) if count else 0.0,
        "total_cost_value": round(sum(i["cost"] for i in items), 2),
        "total_price_value": round(sum(i["price"] for i in items), 2),
    }
    return {"analysis": items, "summary": summary}


# =============================================================================
# Production areas
# =============================================================================

def create_production_area(restaurant_id: int, payload: dict) -> ProductionArea:
    return crud_service.create_entity(
        ProductionArea, restaurant_id, payload, PRODUCTION_AREA_POLICY,
        duplicate_message="A production area with that name already exists",
    )


def update_production_area(restaurant_id: int, area_id: int, payload: dict) -> ProductionArea:
    return crud_service.update_entity(
        get_production_area(restaurant_id, area_id), payload, PRODUCTION_AREA_POLICY,
        duplicate_message="A production area with that name already exists",
    )


def get_production_area(restaurant_id: int, area_id: int) -> ProductionArea:
    return get_scoped_or_404(ProductionArea, area_id, restaurant_id, "Production area")


def list_production_areas(restaurant_id: int, args):
    return crud_service.list_entities(
        ProductionArea, restaurant_id, args,
        search_column=ProductionArea.name,
        order_by=(ProductionArea.name.asc(),),
    )


def archive_production_area(restaurant_id: int, area_id: int) -> ProductionArea:
    return crud_service.archive_entity(get_production_area(restaurant_id, area_id))
