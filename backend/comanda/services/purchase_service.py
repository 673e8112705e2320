# Overview: Service-layer operations for supplier purchases; receiving credits stock and updates costs.

"""
Purchase Service

RECEIVING:
- credits each ingredient by the received quantity (stock movement
  reason purchase_receive, source the purchase)
- overwrites the ingredient's unit_cost with the line's unit_cost
  (last-write-wins) and stamps last_purchase_date
- does NOT recompute dependent semifinished goods, recipes or products;
  use the ingredient's recalculate-dependents operation for that

A receipt may cover only part of the ordered quantities. The purchase is
then "partial" until the remaining quantities arrive. Receiving a fully
received purchase, or a cancelled one, is rejected.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Ingredient, Purchase, PurchaseLine, Supplier
from ..models.inventory import MOVEMENT_PURCHASE_RECEIVE
from ..models.purchasing import (
    PURCHASE_CANCELLED,
    PURCHASE_PARTIAL,
    PURCHASE_PAYMENT_METHODS,
    PURCHASE_PENDING,
    PURCHASE_RECEIVED,
    PURCHASE_STATUSES,
)
from ..models.sales import PAYMENT_STATUSES
from ..money import D, ZERO, money, qty, unit_cost
from ..validation import ValidationError, coerce_field, require_non_negative, require_positive
from . import crud_service, stock_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .document_service import next_document_number
from .tenant_service import get_scoped_or_404, page_args, paginate, require_reference, scoped_query
from comanda.time_utils import parse_date_range, utcnow


class PurchaseError(Exception):
    """Raised for purchase lifecycle violations."""
    pass


SOURCE_TYPE = "purchase"
RECEIVED_STATUSES = (PURCHASE_RECEIVED, PURCHASE_PARTIAL)
HEADER_FIELDS = ("invoice_number", "notes")


def _build_lines(restaurant_id: int, items) -> list[PurchaseLine]:
    if not isinstance(items, list) or not items:
        raise ValidationError("A purchase needs at least one item")
    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        ingredient = require_reference(Ingredient, item.get("ingredient_id"), restaurant_id, "Ingredient")
        quantity = qty(require_positive(item.get("quantity"), f"items[{index}].quantity"))
        cost = unit_cost(require_non_negative(item.get("unit_cost"), f"items[{index}].unit_cost"))
        lines.append(PurchaseLine(
            ingredient=ingredient,
            ingredient_id=ingredient.id,
            quantity=quantity,
            received_quantity=ZERO,
            unit=item.get("unit") or ingredient.unit,
            unit_cost=cost,
            total_cost=money(quantity * cost),
            batch_number=item.get("batch_number") or None,
            expiration_date=coerce_field(PurchaseLine, "expiration_date", item.get("expiration_date")),
        ))
    return lines


def _apply_header(purchase: Purchase, restaurant_id: int, data: dict) -> None:
    if "supplier_id" in data:
        purchase.supplier = require_reference(Supplier, data["supplier_id"], restaurant_id, "Supplier")
    for key in HEADER_FIELDS:
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            setattr(purchase, key, value.strip() if isinstance(value, str) and value.strip() else None)
    if data.get("payment_method") is not None:
        if data["payment_method"] not in PURCHASE_PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of: {', '.join(PURCHASE_PAYMENT_METHODS)}")
        purchase.payment_method = data["payment_method"]
    if data.get("payment_status") is not None:
        if data["payment_status"] not in PAYMENT_STATUSES:
            raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
        purchase.payment_status = data["payment_status"]
    for key in ("purchase_date", "delivery_date"):
        if data.get(key) is not None:
            setattr(purchase, key, coerce_field(Purchase, key, data[key]))


def _recompute_totals(purchase: Purchase, data: dict) -> None:
    if "tax" in data:
        purchase.tax = money(require_non_negative(data["tax"] or 0, "tax"))
    purchase.subtotal = money(sum((D(line.total_cost) for line in purchase.lines), ZERO))
    purchase.total = money(D(purchase.subtotal) + D(purchase.tax))


def create_purchase(restaurant_id: int, payload: dict, *, user_id: int | None = None) -> Purchase:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if payload.get("supplier_id") is None:
        raise ValidationError("Missing required fields: supplier_id")

    now = utcnow()
    purchase = Purchase(
        restaurant_id=restaurant_id,
        status=PURCHASE_PENDING,
        payment_status="pending",
        tax=ZERO,
        purchase_date=now,
        created_by_user_id=user_id,
    )
    _apply_header(purchase, restaurant_id, payload)
    purchase.lines = _build_lines(restaurant_id, payload.get("items", payload.get("lines")))
    _recompute_totals(purchase, payload)

    purchase.number = next_document_number(restaurant_id=restaurant_id, document_type="PURCHASE", at=now)
    db.session.add(purchase)
    crud_service.commit_or_conflict(f"Duplicate purchase number {purchase.number}")
    current_app.logger.info("Purchase %s created (restaurant=%s total=%s)", purchase.number, restaurant_id, purchase.total)
    return purchase


def get_purchase(restaurant_id: int, purchase_id: int) -> Purchase:
    return get_scoped_or_404(Purchase, purchase_id, restaurant_id, "Purchase")


def _lock_purchase(restaurant_id: int, purchase_id: int) -> Purchase:
    purchase = lock_for_update(
        scoped_query(Purchase, restaurant_id).filter(Purchase.id == purchase_id)
    ).first()
    if purchase is None:
        return get_purchase(restaurant_id, purchase_id)
    return purchase


def list_purchases(restaurant_id: int, args) -> tuple[list[Purchase], dict]:
    page, limit = page_args(args)
    query = scoped_query(Purchase, restaurant_id)

    status = args.get("status")
    if status:
        if status not in PURCHASE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PURCHASE_STATUSES)}")
        query = query.filter(Purchase.status == status)
    if args.get("supplier_id"):
        query = query.filter(Purchase.supplier_id == args.get("supplier_id"))
    search = (args.get("search") or "").strip()
    if search:
        query = query.filter(db.or_(
            Purchase.number.ilike(f"%{search}%"),
            Purchase.invoice_number.ilike(f"%{search}%"),
        ))

    start, end = _window(args)
    if start:
        query = query.filter(Purchase.purchase_date >= start)
    if end:
        query = query.filter(Purchase.purchase_date < end)

    return paginate(query.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()), page=page, limit=limit)


def update_purchase(restaurant_id: int, purchase_id: int, payload: dict) -> Purchase:
    """Edit a pending purchase. Once anything is received it is frozen."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = set(HEADER_FIELDS) | {
        "supplier_id", "payment_method", "payment_status", "purchase_date",
        "delivery_date", "tax", "items", "lines",
    }
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    purchase = _lock_purchase(restaurant_id, purchase_id)
    if purchase.status != PURCHASE_PENDING:
        # payment bookkeeping stays editable after receipt
        if set(payload) - {"payment_status", "payment_method", "invoice_number", "notes"}:
            raise PurchaseError(f"Cannot edit a {purchase.status} purchase")

    _apply_header(purchase, restaurant_id, payload)
    items = payload.get("items", payload.get("lines"))
    if items is not None:
        purchase.lines = _build_lines(restaurant_id, items)
    _recompute_totals(purchase, payload)
    db.session.commit()
    return purchase


def _receipt_plan(purchase: Purchase, payload: dict | None) -> list[tuple[PurchaseLine, object]]:
    """(line, quantity) pairs to receive; defaults to everything outstanding."""
    outstanding = {line.id: D(line.quantity) - D(line.received_quantity) for line in purchase.lines}
    requested = (payload or {}).get("lines", (payload or {}).get("items"))

    if requested is None:
        return [(line, outstanding[line.id]) for line in purchase.lines if outstanding[line.id] > 0]

    if not isinstance(requested, list) or not requested:
        raise ValidationError("lines must be a non-empty list")
    by_id = {line.id: line for line in purchase.lines}
    plan = []
    for index, item in enumerate(requested):
        if not isinstance(item, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        line = by_id.get(item.get("line_id", item.get("id")))
        if line is None:
            raise ValidationError(f"lines[{index}] does not belong to this purchase")
        amount = qty(require_positive(item.get("received_quantity"), f"lines[{index}].received_quantity"))
        if amount > outstanding[line.id]:
            raise ValidationError(
                f"lines[{index}].received_quantity exceeds the outstanding {outstanding[line.id]}"
            )
        outstanding[line.id] -= amount
        plan.append((line, amount))
    return plan


def receive_purchase(
    restaurant_id: int,
    purchase_id: int,
    payload: dict | None = None,
    *,
    user_id: int | None = None,
) -> Purchase:
    """
    Receive outstanding quantities in one transaction.
    """
    def _op():
        begin_write_transaction()
        purchase = _lock_purchase(restaurant_id, purchase_id)
        if purchase.status == PURCHASE_CANCELLED:
            raise PurchaseError("Cannot receive a cancelled purchase")
        if purchase.status == PURCHASE_RECEIVED:
            raise PurchaseError("Purchase already received")

        plan = _receipt_plan(purchase, payload)
        if not plan:
            raise PurchaseError("Nothing left to receive")

        ingredients = stock_service.lock_ingredients(restaurant_id, (line.ingredient_id for line, _ in plan))
        now = utcnow()
        for line, amount in plan:
            ingredient = ingredients[line.ingredient_id]
            stock_service.credit(
                ingredient, amount,
                reason=MOVEMENT_PURCHASE_RECEIVE, source_type=SOURCE_TYPE, source_id=purchase.id,
                user_id=user_id, note=f"Purchase {purchase.number}",
            )
            ingredient.unit_cost = line.unit_cost
            ingredient.last_purchase_date = purchase.purchase_date or now
            line.received_quantity = D(line.received_quantity) + amount

        complete = all(D(line.received_quantity) >= D(line.quantity) for line in purchase.lines)
        purchase.status = PURCHASE_RECEIVED if complete else PURCHASE_PARTIAL
        purchase.received_at = now
        purchase.received_by_user_id = user_id
        if complete and purchase.delivery_date is None:
            purchase.delivery_date = now
        db.session.commit()
        return purchase, len(plan)

    purchase, received_lines = run_with_retry(_op)
    current_app.logger.info(
        "Purchase %s %s (restaurant=%s lines=%s)",
        purchase.number, purchase.status, restaurant_id, received_lines,
    )
    return purchase


def cancel_purchase(restaurant_id: int, purchase_id: int) -> Purchase:
    """Only purchases with nothing received can be cancelled."""
    purchase = _lock_purchase(restaurant_id, purchase_id)
    if purchase.status == PURCHASE_CANCELLED:
        raise PurchaseError("Purchase is already cancelled")
    if purchase.status != PURCHASE_PENDING:
        raise PurchaseError(f"Cannot cancel a {purchase.status} purchase")
    purchase.status = PURCHASE_CANCELLED
    purchase.cancelled_at = utcnow()
    db.session.commit()
    current_app.logger.info("Purchase %s cancelled (restaurant=%s)", purchase.number, restaurant_id)
    return purchase


def _window(args, default_days: int | None = None):
    try:
        return parse_date_range(args.get("start_date"), args.get("end_date"), default_days=default_days)
    except ValueError as exc:
        raise ValidationError(str(exc))


def received_purchases(restaurant_id: int, start=None, end=None) -> list[Purchase]:
    """Purchases that credited stock, by purchase_date window."""
    query = scoped_query(Purchase, restaurant_id).filter(Purchase.status.in_(RECEIVED_STATUSES))
    if start:
        query = query.filter(Purchase.purchase_date >= start)
    if end:
        query = query.filter(Purchase.purchase_date < end)
    return query.order_by(Purchase.purchase_date.asc()).all()


def purchase_summary(restaurant_id: int, args) -> dict:
    start, end = _window(args)
    purchases = received_purchases(restaurant_id, start, end)

    total = tax = ZERO
    suppliers: dict[int, dict] = {}
    for purchase in purchases:
        total += D(purchase.total)
        tax += D(purchase.tax)
        row = suppliers.setdefault(purchase.supplier_id, {
            "supplier_id": purchase.supplier_id,
            "supplier_name": purchase.supplier.name if purchase.supplier else None,
            "total_amount": ZERO,
            "purchase_count": 0,
        })
        row["total_amount"] += D(purchase.total)
        row["purchase_count"] += 1

    count = len(purchases)
    top = sorted(suppliers.values(), key=lambda r: r["total_amount"], reverse=True)[:10]
    return {
        "summary": {
            "total_purchases": count,
            "total_amount": float(money(total)),
            "average_purchase": float(money(total / count)) if count else 0.0,
            "total_tax": float(money(tax)),
        },
        "top_suppliers": [{**r, "total_amount": float(money(r["total_amount"]))} for r in top],
    }
