# Overview: Service-layer operations for ingredients; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import replace

from ..extensions import db
from ..models import Ingredient, StockMovement, Supplier
from ..models.inventory import INGREDIENT_CATEGORIES, INGREDIENT_UNITS, STOCK_LOW, STOCK_OK, STOCK_OUT
from ..models.mixins import RECORD_ACTIVE
from ..money import D, ZERO, money
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from . import costing_service, crud_service, stock_service
from .tenant_service import get_scoped_or_404, page_args, paginate, require_reference, scoped_query


INGREDIENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "unit", "category", "current_stock",
        "min_stock", "unit_cost", "supplier_id",
    },
    required_on_create={"name", "unit"},
    choices={"unit": INGREDIENT_UNITS, "category": INGREDIENT_CATEGORIES},
    uppercase_fields={"name"},
    non_negative={"current_stock", "min_stock", "unit_cost"},
)

# Stock only moves through the ledger after creation.
INGREDIENT_UPDATE_POLICY = replace(
    INGREDIENT_POLICY,
    writable_fields=INGREDIENT_POLICY.writable_fields - {"current_stock"},
)

DUPLICATE_MESSAGE = "An ingredient with that name already exists"


def _check_supplier(restaurant_id: int, patch: dict) -> None:
    if patch.get("supplier_id") is not None:
        require_reference(Supplier, patch["supplier_id"], restaurant_id, "Supplier")


def create_ingredient(restaurant_id: int, payload: dict, *, user_id: int | None = None) -> Ingredient:
    """
    Create an ingredient. Opening stock is booked as an adjustment
    movement so the ledger accounts for every unit on hand.
    """
    patch = validate_payload(model=Ingredient, payload=payload, policy=INGREDIENT_POLICY, partial=False)
    _check_supplier(restaurant_id, patch)
    ingredient = Ingredient(restaurant_id=restaurant_id, **patch)
    db.session.add(ingredient)
    crud_service.flush_or_conflict(DUPLICATE_MESSAGE)
    stock_service.record_opening_stock(ingredient, user_id=user_id)
    crud_service.commit_or_conflict(DUPLICATE_MESSAGE)
    return ingredient


def update_ingredient(restaurant_id: int, ingredient_id: int, payload: dict) -> Ingredient:
    """
    Update ingredient fields.

    Editing unit_cost here does not recompute dependents; use
    recalculate-dependents when the new cost should flow downstream.
    current_stock is rejected; stock changes go through adjust_stock.
    """
    ingredient = get_ingredient(restaurant_id, ingredient_id)
    return crud_service.update_entity(
        ingredient, payload, INGREDIENT_UPDATE_POLICY,
        duplicate_message=DUPLICATE_MESSAGE,
        rules=lambda patch: _check_supplier(restaurant_id, patch),
    )


def get_ingredient(restaurant_id: int, ingredient_id: int) -> Ingredient:
    return get_scoped_or_404(Ingredient, ingredient_id, restaurant_id, "Ingredient")


def archive_ingredient(restaurant_id: int, ingredient_id: int) -> Ingredient:
    return crud_service.archive_entity(get_ingredient(restaurant_id, ingredient_id))


def list_ingredients(restaurant_id: int, args) -> tuple[list[Ingredient], dict]:
    category = args.get("category")
    if category and category not in INGREDIENT_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(INGREDIENT_CATEGORIES)}")
    low_stock = str(args.get("low_stock", "")).lower() in ("1", "true", "yes")

    def _filters(query):
        if category:
            query = query.filter(Ingredient.category == category)
        if low_stock:
            query = query.filter(Ingredient.current_stock <= Ingredient.min_stock)
        return query

    return crud_service.list_entities(
        Ingredient, restaurant_id, args,
        search_column=Ingredient.name,
        order_by=(Ingredient.name.asc(),),
        filters=_filters,
    )


def list_movements(restaurant_id: int, ingredient_id: int, args) -> tuple[list[StockMovement], dict]:
    get_ingredient(restaurant_id, ingredient_id)
    page, limit = page_args(args)
    query = (
        scoped_query(StockMovement, restaurant_id)
        .filter(StockMovement.ingredient_id == ingredient_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
    )
    return paginate(query, page=page, limit=limit)


def stock_report(restaurant_id: int) -> dict:
    """Status counts, valuation and per-category totals over active ingredients."""
    ingredients = (
        scoped_query(Ingredient, restaurant_id)
        .filter(Ingredient.record_status == RECORD_ACTIVE)
        .order_by(Ingredient.name.asc())
        .all()
    )
    counts = {STOCK_OK: 0, STOCK_LOW: 0, STOCK_OUT: 0}
    by_category: dict[str, dict] = {}
    total_value = ZERO
    for ingredient in ingredients:
        counts[ingredient.stock_status] += 1
        value = ingredient.stock_value
        total_value += value
        bucket = by_category.setdefault(ingredient.category, {"category": ingredient.category, "items": 0, "value": ZERO})
        bucket["items"] += 1
        bucket["value"] += value

    return {
        "total_ingredients": len(ingredients),
        "ok": counts[STOCK_OK],
        "low_stock": counts[STOCK_LOW],
        "out_of_stock": counts[STOCK_OUT],
        "total_value": float(money(total_value)),
        "by_category": [
            {"category": b["category"], "items": b["items"], "value": float(money(b["value"]))}
            for b in sorted(by_category.values(), key=lambda b: b["category"])
        ],
        "alerts": [
            {
                "ingredient_id": i.id,
                "name": i.name,
                "current_stock": float(D(i.current_stock)),
                "min_stock": float(D(i.min_stock)),
                "unit": i.unit,
                "stock_status": i.stock_status,
            }
            for i in ingredients
            if i.stock_status != STOCK_OK
        ],
    }


def adjust_ingredient_stock(restaurant_id: int, ingredient_id: int, payload: dict, *, user_id: int | None = None):
    """Manual stock correction: {"quantity": > 0, "operation": "add" | "subtract"}."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    ingredient = get_ingredient(restaurant_id, ingredient_id)
    if not ingredient.is_active:
        raise ValidationError("Cannot adjust stock of an archived ingredient")
    note = payload.get("note") or payload.get("reason")
    return stock_service.adjust_stock(
        ingredient,
        quantity=payload.get("quantity"),
        operation=payload.get("operation"),
        user_id=user_id,
        note=note.strip()[:255] if isinstance(note, str) and note.strip() else None,
    )


def recalculate_dependents(restaurant_id: int, ingredient_id: int) -> dict:
    """Push the ingredient's current unit cost through everything built from it."""
    get_ingredient(restaurant_id, ingredient_id)
    touched = costing_service.recalculate_ingredient_dependents(restaurant_id, ingredient_id)
    db.session.commit()
    return touched
