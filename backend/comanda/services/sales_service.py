# Overview: Service-layer operations for sales; stock posting, cancellation and sales summaries.

"""
Sales Service - ticket recording with transactional stock posting

WHY: A sale is the only thing that consumes ingredients. Completing it
walks every line's components, aggregates the demand per ingredient and
debits all of it in the same transaction that flips stock_updated, so a
crash can never leave a sale half-posted.

LIFECYCLE:
- created "completed" (the default): stock is posted immediately
- created "active": recorded only; POST /sales/<id>/complete posts it
- completing twice is a no-op (stock_updated guards re-entry)
- cancelling credits back the movements recorded for the sale
- create, complete and cancel re-run as a whole on transient lock
  errors (run_with_retry)

TOTALS: line total = quantity * unit_price - discount;
sale total = subtotal - discount_amount + tax_amount.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Order, Product, Recipe, Sale, SaleLine
from ..models.dining import ORDER_TYPES
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_SALE_CANCEL
from ..models.sales import (
    ITEM_PRODUCT,
    ITEM_RECIPE,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    SALE_ACTIVE,
    SALE_CANCELLED,
    SALE_COMPLETED,
    SALE_ITEM_TYPES,
    SALE_STATUSES,
)
from ..money import D, ZERO, money
from ..validation import ValidationError, require_int, require_non_negative, require_positive
from . import crud_service, stock_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .document_service import next_document_number
from .tenant_service import get_scoped_or_404, page_args, paginate, require_reference, scoped_query
from comanda.time_utils import day_bounds, parse_date_range, utcnow


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


SOURCE_TYPE = "sale"
HEADER_FIELDS = ("customer_name", "customer_phone", "notes")
GROUP_FORMATS = {"hour": "%H", "day": "%Y-%m-%d", "month": "%Y-%m"}


# =============================================================================
# Building
# =============================================================================

def _resolve_item(restaurant_id: int, item: dict, index: int):
    item_type = item.get("item_type") or (ITEM_PRODUCT if item.get("product_id") is not None else ITEM_RECIPE)
    if item_type not in SALE_ITEM_TYPES:
        raise ValidationError(f"items[{index}].item_type must be one of: {', '.join(SALE_ITEM_TYPES)}")
    if item_type == ITEM_RECIPE:
        ref = item.get("item_id", item.get("recipe_id"))
        return item_type, require_reference(Recipe, ref, restaurant_id, "Recipe")
    ref = item.get("item_id", item.get("product_id"))
    return item_type, require_reference(Product, ref, restaurant_id, "Product")


def _build_lines(restaurant_id: int, items) -> list[SaleLine]:
    if not isinstance(items, list) or not items:
        raise ValidationError("A sale needs at least one item")
    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        item_type, entity = _resolve_item(restaurant_id, item, index)
        quantity = require_positive(item.get("quantity"), f"items[{index}].quantity")

        if item.get("unit_price") is not None:
            unit_price = money(require_non_negative(item["unit_price"], f"items[{index}].unit_price"))
        elif entity.sale_price is not None:
            unit_price = money(entity.sale_price)
        else:
            raise ValidationError(f"items[{index}].unit_price is required: {entity.name} has no price")

        discount = money(require_non_negative(item.get("discount") or 0, f"items[{index}].discount"))
        total_price = money(quantity * unit_price - discount)
        if total_price < 0:
            raise ValidationError(f"items[{index}].discount exceeds the line amount")

        line = SaleLine(
            item_type=item_type,
            item_name=entity.name,
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            total_price=total_price,
            notes=item.get("notes") or None,
        )
        if item_type == ITEM_RECIPE:
            line.recipe, line.recipe_id = entity, entity.id
        else:
            line.product, line.product_id = entity, entity.id
        lines.append(line)
    return lines


def _choice(data: dict, key: str, allowed: tuple[str, ...], default=None):
    value = data.get(key, default)
    if value not in allowed:
        raise ValidationError(f"{key} must be one of: {', '.join(allowed)}")
    return value


def _apply_header(sale: Sale, restaurant_id: int, data: dict) -> None:
    for key in HEADER_FIELDS:
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            setattr(sale, key, value.strip() if isinstance(value, str) and value.strip() else None)
    if "payment_method" in data:
        sale.payment_method = _choice(data, "payment_method", PAYMENT_METHODS)
    if "payment_status" in data:
        sale.payment_status = _choice(data, "payment_status", PAYMENT_STATUSES)
    if "order_type" in data:
        sale.order_type = _choice(data, "order_type", ORDER_TYPES)
    if "table_number" in data:
        sale.table_number = (
            None if data["table_number"] is None
            else require_int(data["table_number"], "table_number", minimum=1)
        )
    if "order_id" in data:
        if data["order_id"] is None:
            sale.order_id = None
        else:
            sale.order_id = get_scoped_or_404(Order, data["order_id"], restaurant_id, "Order").id


def _recompute_totals(sale: Sale, data: dict) -> None:
    if "discount_amount" in data:
        sale.discount_amount = money(require_non_negative(data["discount_amount"] or 0, "discount_amount"))
    if "tax_amount" in data:
        sale.tax_amount = money(require_non_negative(data["tax_amount"] or 0, "tax_amount"))
    subtotal = money(sum((D(line.total_price) for line in sale.lines), ZERO))
    total = money(subtotal - D(sale.discount_amount) + D(sale.tax_amount))
    if total < 0:
        raise ValidationError("discount_amount exceeds the sale subtotal")
    sale.subtotal = subtotal
    sale.total = total


# =============================================================================
# Stock posting
# =============================================================================

def _post_stock(sale: Sale, user_id: int | None) -> list[dict]:
    """
    Debit every ingredient the sale consumes. Does not commit.

    Demand is merged per ingredient first, so an ingredient used by
    several lines gets a single debit and a single alert.
    """
    demand = stock_service.merge_demand(*(
        stock_service.component_demand(line.item.lines, line.quantity)
        for line in sale.lines
    ))
    ingredients = stock_service.lock_ingredients(sale.restaurant_id, demand.keys())

    alerts = []
    for ingredient_id in sorted(demand):
        if demand[ingredient_id] <= 0:
            continue
        result = stock_service.debit(
            ingredients[ingredient_id], demand[ingredient_id],
            reason=MOVEMENT_SALE, source_type=SOURCE_TYPE, source_id=sale.id,
            user_id=user_id, note=f"Sale {sale.number}",
        )
        if result.alert:
            alerts.append(result.to_alert_dict())

    sale.stock_updated = True
    sale.low_stock_alerts = alerts
    return alerts


def _lock_sale(restaurant_id: int, sale_id: int) -> Sale:
    sale = lock_for_update(
        scoped_query(Sale, restaurant_id).filter(Sale.id == sale_id)
    ).first()
    if sale is None:
        return get_sale(restaurant_id, sale_id)
    return sale


# =============================================================================
# Lifecycle
# =============================================================================

def create_sale(restaurant_id: int, payload: dict, *, user_id: int | None = None) -> Sale:
    """
    Record a sale and, unless created "active", post its stock in the
    same transaction.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    status = payload.get("status", SALE_COMPLETED)
    if status not in (SALE_ACTIVE, SALE_COMPLETED):
        raise ValidationError("status must be 'active' or 'completed'")

    def _op():
        if status == SALE_COMPLETED:
            begin_write_transaction()

        now = utcnow()
        sale = Sale(
            restaurant_id=restaurant_id,
            status=status,
            payment_method="cash",
            payment_status="paid",
            order_type="dine_in",
            discount_amount=ZERO,
            tax_amount=ZERO,
            stock_updated=False,
            low_stock_alerts=[],
            sale_date=now,
            created_by_user_id=user_id,
        )
        _apply_header(sale, restaurant_id, payload)
        sale.lines = _build_lines(restaurant_id, payload.get("items", payload.get("lines")))
        _recompute_totals(sale, payload)

        sale.number = next_document_number(restaurant_id=restaurant_id, document_type="SALE", at=now)
        db.session.add(sale)
        crud_service.flush_or_conflict(f"Duplicate sale number {sale.number}")

        if status == SALE_COMPLETED:
            _post_stock(sale, user_id)
            sale.completed_at = now
        crud_service.commit_or_conflict(f"Duplicate sale number {sale.number}")
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s recorded (restaurant=%s status=%s total=%s)",
        sale.number, restaurant_id, sale.status, sale.total,
    )
    return sale


def complete_sale(restaurant_id: int, sale_id: int, *, user_id: int | None = None) -> Sale:
    """
    Post an active sale's stock. Idempotent: a sale whose stock is already
    posted is returned unchanged.
    """
    def _op():
        begin_write_transaction()
        sale = _lock_sale(restaurant_id, sale_id)
        if sale.status == SALE_CANCELLED:
            raise SaleError("Cannot complete a cancelled sale")
        if sale.stock_updated:
            db.session.commit()
            return sale, False

        _post_stock(sale, user_id)
        sale.status = SALE_COMPLETED
        sale.completed_at = utcnow()
        db.session.commit()
        return sale, True

    sale, posted = run_with_retry(_op)
    if posted:
        current_app.logger.info("Sale %s completed (restaurant=%s)", sale.number, restaurant_id)
    return sale


def cancel_sale(
    restaurant_id: int,
    sale_id: int,
    *,
    user_id: int | None = None,
    reason: str | None = None,
) -> Sale:
    """
    Cancel a sale and credit back exactly what its completion debited.
    """
    def _op():
        begin_write_transaction()
        sale = _lock_sale(restaurant_id, sale_id)
        if sale.status == SALE_CANCELLED:
            raise SaleError("Sale is already cancelled")

        if sale.stock_updated:
            stock_service.reverse_source(
                restaurant_id=restaurant_id,
                source_type=SOURCE_TYPE,
                source_id=sale.id,
                reason=MOVEMENT_SALE_CANCEL,
                user_id=user_id,
            )
            sale.stock_updated = False

        sale.status = SALE_CANCELLED
        sale.cancelled_at = utcnow()
        sale.cancelled_by_user_id = user_id
        sale.cancel_reason = (reason or "").strip()[:255] or None
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s cancelled (restaurant=%s)", sale.number, restaurant_id)
    return sale


def update_sale(restaurant_id: int, sale_id: int, payload: dict) -> Sale:
    """
    Edit header fields and adjustments. Lines can only be replaced while
    the sale is active, because posted stock follows the lines.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = set(HEADER_FIELDS) | {
        "payment_method", "payment_status", "order_type", "table_number",
        "order_id", "discount_amount", "tax_amount", "items", "lines",
    }
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    sale = _lock_sale(restaurant_id, sale_id)
    if sale.status == SALE_CANCELLED:
        raise SaleError("Cannot edit a cancelled sale")

    items = payload.get("items", payload.get("lines"))
    if items is not None:
        if sale.stock_updated:
            raise SaleError("Cannot change the items of a completed sale")
        sale.lines = _build_lines(restaurant_id, items)

    _apply_header(sale, restaurant_id, payload)
    _recompute_totals(sale, payload)
    db.session.commit()
    return sale


def get_sale(restaurant_id: int, sale_id: int) -> Sale:
    return get_scoped_or_404(Sale, sale_id, restaurant_id, "Sale")


def list_sales(restaurant_id: int, args) -> tuple[list[Sale], dict]:
    page, limit = page_args(args)
    query = scoped_query(Sale, restaurant_id)

    for key, allowed, column in (
        ("status", SALE_STATUSES, Sale.status),
        ("payment_method", PAYMENT_METHODS, Sale.payment_method),
        ("order_type", ORDER_TYPES, Sale.order_type),
    ):
        value = args.get(key)
        if value:
            if value not in allowed:
                raise ValidationError(f"{key} must be one of: {', '.join(allowed)}")
            query = query.filter(column == value)

    search = (args.get("search") or "").strip()
    if search:
        query = query.filter(Sale.number.ilike(f"%{search}%"))

    start, end = date_window(args)
    query = in_window(query, start, end)
    return paginate(query.order_by(Sale.sale_date.desc(), Sale.id.desc()), page=page, limit=limit)


# =============================================================================
# Summaries
# =============================================================================

def date_window(args, *, default_days: int | None = None):
    try:
        return parse_date_range(args.get("start_date"), args.get("end_date"), default_days=default_days)
    except ValueError as exc:
        raise ValidationError(str(exc))


def parse_day(raw: str | None) -> date:
    if not raw:
        return utcnow().date()
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        raise ValidationError("date must be an ISO-8601 date")


def in_window(query, start, end):
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date < end)
    return query


def completed_sales(restaurant_id: int, start=None, end=None) -> list[Sale]:
    query = scoped_query(Sale, restaurant_id).filter(Sale.status == SALE_COMPLETED)
    return in_window(query, start, end).order_by(Sale.sale_date.asc(), Sale.id.asc()).all()


def totals(sales) -> dict:
    count = 0
    total = discount = tax = ZERO
    for sale in sales:
        count += 1
        total += D(sale.total)
        discount += D(sale.discount_amount)
        tax += D(sale.tax_amount)
    return {
        "sale_count": count,
        "total_sales": float(money(total)),
        "total_discount": float(money(discount)),
        "total_tax": float(money(tax)),
        "average_ticket": float(money(total / count)) if count else 0.0,
    }


def group_sales(sales, key_func, *, label: str) -> list[dict]:
    """
    Partition sales by key_func and total each group.

    Every sale lands in exactly one group, so the group totals add up to
    totals(sales).
    """
    groups: "OrderedDict[str, list]" = OrderedDict()
    for sale in sales:
        groups.setdefault(key_func(sale), []).append(sale)
    rows = []
    for key in sorted(groups, key=lambda k: (k is None, k)):
        row = {label: key}
        row.update(totals(groups[key]))
        rows.append(row)
    return rows


def top_items(sales, limit: int = 10) -> list[dict]:
    items: dict[tuple, dict] = {}
    for sale in sales:
        for line in sale.lines:
            key = (line.item_type, line.item_id)
            row = items.setdefault(key, {
                "item_type": line.item_type,
                "item_id": line.item_id,
                "item_name": line.item_name,
                "quantity": ZERO,
                "revenue": ZERO,
            })
            row["quantity"] += D(line.quantity)
            row["revenue"] += D(line.total_price)
    ranked = sorted(items.values(), key=lambda r: (r["revenue"], r["quantity"]), reverse=True)[:limit]
    return [
        {**row, "quantity": float(row["quantity"]), "revenue": float(money(row["revenue"]))}
        for row in ranked
    ]


def daily_summary(restaurant_id: int, day_raw: str | None) -> dict:
    day = parse_day(day_raw)
    start, end = day_bounds(day)
    sales = completed_sales(restaurant_id, start, end)
    return {
        "date": day.isoformat(),
        "summary": totals(sales),
        "by_payment_method": group_sales(sales, lambda s: s.payment_method, label="payment_method"),
        "by_hour": group_sales(sales, lambda s: s.sale_date.strftime("%H"), label="hour"),
        "top_items": top_items(sales),
    }


def sales_report(restaurant_id: int, args) -> dict:
    group_by = args.get("group_by", args.get("groupBy", "day"))
    if group_by not in GROUP_FORMATS:
        raise ValidationError(f"group_by must be one of: {', '.join(GROUP_FORMATS)}")
    start, end = date_window(args)
    sales = completed_sales(restaurant_id, start, end)
    fmt = GROUP_FORMATS[group_by]
    return {
        "group_by": group_by,
        "summary": totals(sales),
        "report": group_sales(sales, lambda s: s.sale_date.strftime(fmt), label="period"),
        "payment_breakdown": group_sales(sales, lambda s: s.payment_method, label="payment_method"),
        "order_type_breakdown": group_sales(sales, lambda s: s.order_type, label="order_type"),
    }


def close_cash_register_summary(restaurant_id: int, day_raw: str | None) -> dict:
    """End-of-day takings per payment method for the register count."""
    day = parse_day(day_raw)
    start, end = day_bounds(day)
    sales = completed_sales(restaurant_id, start, end)
    return {
        "date": day.isoformat(),
        "by_payment_method": group_sales(sales, lambda s: s.payment_method, label="payment_method"),
        "summary": totals(sales),
    }
