# Overview: Ingredient stock debit/credit bookkeeping with an append-only movement ledger.

"""
Stock Ledger Invariants (authoritative)

- current_stock never goes below zero. A debit larger than the stock on
  hand clamps at zero and records only the quantity actually removed.
- A credit always increases stock by the full quantity.
- Every change writes a StockMovement with the applied delta, the stock
  after the change and the source document, in the caller's transaction.
- A debit reports an alert derived from the post-debit level:
  OUT_OF_STOCK at or below zero, LOW_STOCK at or below min_stock.
- Reversing a source document credits back exactly the deltas recorded
  for it, so a clamped debit is never over-credited.

None of the ledger functions commit; callers own the transaction.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Ingredient, StockMovement
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    STOCK_LOW,
    STOCK_OUT,
    classify_stock,
)
from ..money import D, ZERO, qty
from ..validation import ValidationError, require_positive
from .concurrency import lock_for_update
from comanda.time_utils import utcnow


class StockError(ValueError):
    """Raised when a stock operation cannot be applied."""
    pass


@dataclass
class StockResult:
    ingredient: Ingredient
    requested: Decimal
    applied: Decimal
    resulting_stock: Decimal
    alert: str | None

    def to_alert_dict(self) -> dict:
        return {
            "ingredient_id": self.ingredient.id,
            "ingredient_name": self.ingredient.name,
            "current_stock": float(self.resulting_stock),
            "min_stock": float(D(self.ingredient.min_stock)),
            "unit": self.ingredient.unit,
            "alert_type": self.alert,
        }

    def to_dict(self) -> dict:
        return {
            "ingredient": self.ingredient.to_dict(),
            "requested": float(self.requested),
            "applied": float(self.applied),
            "resulting_stock": float(self.resulting_stock),
            "alert": self.alert,
        }


def stock_alert(current_stock, min_stock) -> str | None:
    status = classify_stock(current_stock, min_stock)
    if status in (STOCK_OUT, STOCK_LOW):
        return status
    return None


def _record(ingredient: Ingredient, *, reason: str, requested: Decimal, delta: Decimal,
            source_type: str | None, source_id: int | None, user_id: int | None,
            note: str | None) -> None:
    db.session.add(StockMovement(
        restaurant_id=ingredient.restaurant_id,
        ingredient_id=ingredient.id,
        reason=reason,
        quantity_requested=requested,
        quantity_delta=delta,
        resulting_stock=D(ingredient.current_stock),
        source_type=source_type,
        source_id=source_id,
        user_id=user_id,
        note=note,
        occurred_at=utcnow(),
    ))


def debit(
    ingredient: Ingredient,
    quantity,
    *,
    reason: str,
    source_type: str | None = None,
    source_id: int | None = None,
    user_id: int | None = None,
    note: str | None = None,
) -> StockResult:
    """Remove stock, clamping at zero."""
    requested = qty(quantity)
    if requested < 0:
        raise StockError("debit quantity must be >= 0")

    before = D(ingredient.current_stock)
    after = max(before - requested, ZERO)
    applied = before - after

    ingredient.current_stock = after
    _record(ingredient, reason=reason, requested=requested, delta=-applied,
            source_type=source_type, source_id=source_id, user_id=user_id, note=note)

    alert = stock_alert(after, ingredient.min_stock)
    if alert:
        current_app.logger.warning(
            "Stock alert %s for ingredient %s (%s): stock=%s min=%s",
            alert, ingredient.id, ingredient.name, after, ingredient.min_stock,
        )
    return StockResult(ingredient, requested, applied, after, alert)


def credit(
    ingredient: Ingredient,
    quantity,
    *,
    reason: str,
    source_type: str | None = None,
    source_id: int | None = None,
    user_id: int | None = None,
    note: str | None = None,
) -> StockResult:
    """Add stock unconditionally."""
    requested = qty(quantity)
    if requested < 0:
        raise StockError("credit quantity must be >= 0")

    after = D(ingredient.current_stock) + requested
    ingredient.current_stock = after
    _record(ingredient, reason=reason, requested=requested, delta=requested,
            source_type=source_type, source_id=source_id, user_id=user_id, note=note)
    return StockResult(ingredient, requested, requested, after, stock_alert(after, ingredient.min_stock))


def lock_ingredients(restaurant_id: int, ingredient_ids) -> dict[int, Ingredient]:
    """Load (and lock where supported) a set of tenant ingredients by id."""
    ids = sorted(set(ingredient_ids))
    if not ids:
        return {}
    rows = lock_for_update(
        db.session.query(Ingredient)
        .filter(Ingredient.restaurant_id == restaurant_id, Ingredient.id.in_(ids))
        .order_by(Ingredient.id)
    ).all()
    found = {row.id: row for row in rows}
    missing = [i for i in ids if i not in found]
    if missing:
        raise StockError(f"Ingredients not found: {missing}")
    return found


def component_demand(lines, sold_quantity) -> dict[int, Decimal]:
    """
    Ingredient quantities consumed by selling `sold_quantity` of an item.

    Ingredient lines contribute quantity * sold. A semifinished line of
    quantity q contributes, for each of its ingredients,
    ingredient_qty * (q / yield_quantity) * sold.
    """
    demand: dict[int, Decimal] = defaultdict(lambda: ZERO)
    sold = D(sold_quantity)
    for line in lines:
        line_qty = D(line.quantity)
        if line.ingredient_id is not None:
            demand[line.ingredient_id] += line_qty * sold
            continue
        semi = line.semifinished
        batches = line_qty / D(semi.yield_quantity)
        for semi_line in semi.lines:
            demand[semi_line.ingredient_id] += D(semi_line.quantity) * batches * sold
    return dict(demand)


def merge_demand(*demands: dict[int, Decimal]) -> dict[int, Decimal]:
    total: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for demand in demands:
        for ingredient_id, amount in demand.items():
            total[ingredient_id] += amount
    return dict(total)


def movements_for_source(restaurant_id: int, source_type: str, source_id: int) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(restaurant_id=restaurant_id, source_type=source_type, source_id=source_id)
        .order_by(StockMovement.id)
        .all()
    )


def reverse_source(
    *,
    restaurant_id: int,
    source_type: str,
    source_id: int,
    reason: str,
    user_id: int | None = None,
) -> list[StockResult]:
    """
    Credit back every debit recorded for a source document.

    Only negative deltas are reversed; the sum of what was removed per
    ingredient is credited once.
    """
    removed: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for movement in movements_for_source(restaurant_id, source_type, source_id):
        if D(movement.quantity_delta) < 0:
            removed[movement.ingredient_id] += -D(movement.quantity_delta)

    ingredients = lock_ingredients(restaurant_id, removed.keys())
    results = []
    for ingredient_id in sorted(removed):
        amount = removed[ingredient_id]
        if amount == 0:
            continue
        results.append(credit(
            ingredients[ingredient_id], amount, reason=reason,
            source_type=source_type, source_id=source_id, user_id=user_id,
        ))
    return results


def record_opening_stock(ingredient: Ingredient, *, user_id: int | None = None) -> None:
    """Ledger entry for the stock an ingredient is created with. Does not commit."""
    opening = D(ingredient.current_stock)
    if opening <= 0:
        return
    _record(ingredient, reason=MOVEMENT_ADJUSTMENT, requested=opening, delta=opening,
            source_type=None, source_id=None, user_id=user_id, note="Opening stock")


def adjust_stock(
    ingredient: Ingredient,
    *,
    quantity,
    operation: str,
    user_id: int | None = None,
    note: str | None = None,
) -> StockResult:
    """Manual add/subtract from the inventory screen. Commits."""
    amount = require_positive(quantity, "quantity")
    if operation == "add":
        result = credit(ingredient, amount, reason=MOVEMENT_ADJUSTMENT, user_id=user_id, note=note)
    elif operation == "subtract":
        result = debit(ingredient, amount, reason=MOVEMENT_ADJUSTMENT, user_id=user_id, note=note)
    else:
        raise ValidationError("operation must be 'add' or 'subtract'")
    db.session.commit()
    return result
