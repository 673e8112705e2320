# Overview: Service-layer operations for orders; numbering, totals and table status.

"""
Order Service

LIFECYCLE: active -> completed | cancelled. Both terminal states are
final; a second complete or cancel is rejected.

TOTALS: computed here from the lines, never trusted from the client.
subtotal = sum(quantity * unit_price); tax defaults to the restaurant's
tax_rate applied to the subtotal; total = subtotal + tax.

TABLES: order creation occupies the table in the same transaction, see
table_service for the status rules.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Client, Order, OrderLine, Product, Restaurant
from ..models.dining import (
    ORDER_ACTIVE,
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_LINE_STATUSES,
    ORDER_STATUSES,
    ORDER_TYPES,
    TABLE_AVAILABLE,
    TABLE_CLEANING,
)
from ..money import D, HUNDRED, ZERO, money
from ..validation import ConflictError, ValidationError, require_int, require_non_negative
from . import table_service
from .concurrency import lock_for_update
from .document_service import next_document_number
from .tenant_service import get_scoped_or_404, page_args, paginate, require_reference, scoped_query
from comanda.time_utils import PERIODS, parse_date_range, parse_iso_datetime, period_bounds, utcnow


class OrderError(Exception):
    """Raised for order lifecycle violations."""
    pass


HEADER_FIELDS = ("order_type", "customer_name", "customer_phone", "notes")


def _build_lines(restaurant_id: int, items) -> list[OrderLine]:
    if not isinstance(items, list) or not items:
        raise ValidationError("An order needs at least one line")
    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        product = require_reference(Product, item.get("product_id"), restaurant_id, "Product")
        if not product.is_available:
            raise ValidationError(f"Product {product.name} is not available")
        quantity = require_int(item.get("quantity"), f"lines[{index}].quantity", minimum=1)
        if item.get("unit_price") is not None:
            unit_price = money(require_non_negative(item["unit_price"], f"lines[{index}].unit_price"))
        else:
            unit_price = money(product.final_price)
        lines.append(OrderLine(
            product=product,
            product_id=product.id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=money(unit_price * quantity),
            notes=(item.get("notes") or None),
        ))
    return lines


def _apply_header(order: Order, restaurant_id: int, data: dict) -> None:
    for key in HEADER_FIELDS:
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            setattr(order, key, value.strip() if isinstance(value, str) and value.strip() else None)
    if "order_type" in data:
        if order.order_type not in ORDER_TYPES:
            raise ValidationError(f"order_type must be one of: {', '.join(ORDER_TYPES)}")
    if "client_id" in data:
        if data["client_id"] is None:
            order.client_id = None
        else:
            order.client = require_reference(Client, data["client_id"], restaurant_id, "Client")


def _recompute_totals(order: Order, restaurant: Restaurant, tax_amount=None) -> None:
    subtotal = money(sum((D(line.total_price) for line in order.lines), ZERO))
    if tax_amount is None:
        tax = money(subtotal * D(restaurant.tax_rate) / HUNDRED)
    else:
        tax = money(require_non_negative(tax_amount, "tax_amount"))
    order.subtotal = subtotal
    order.tax_amount = tax
    order.total = money(subtotal + tax)


def _commit(order_number: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Duplicate order number {order_number}")


def create_order(restaurant_id: int, payload: dict, *, user_id: int | None = None) -> Order:
    """
    Create an active order, allocate its number and occupy its table.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    restaurant = db.session.get(Restaurant, restaurant_id)

    order = Order(restaurant_id=restaurant_id, status=ORDER_ACTIVE, created_by_user_id=user_id)
    order.order_type = "dine_in"
    _apply_header(order, restaurant_id, payload)
    order.lines = _build_lines(restaurant_id, payload.get("lines", payload.get("items")))
    _recompute_totals(order, restaurant, payload.get("tax_amount"))

    table = None
    if payload.get("table_id") is not None:
        table = table_service.lock_table(restaurant_id, payload["table_id"])
        order.table = table

    order.number = next_document_number(restaurant_id=restaurant_id, document_type="ORDER")
    db.session.add(order)
    if table is not None:
        table_service.occupy(table, order)
    _commit(order.number)

    current_app.logger.info("Order %s created (restaurant=%s)", order.number, restaurant_id)
    return order


def get_order(restaurant_id: int, order_id: int) -> Order:
    return get_scoped_or_404(Order, order_id, restaurant_id, "Order")


def _lock_order(restaurant_id: int, order_id: int) -> Order:
    order = lock_for_update(
        scoped_query(Order, restaurant_id).filter(Order.id == order_id)
    ).first()
    if order is None:
        return get_order(restaurant_id, order_id)
    return order


def list_orders(restaurant_id: int, args) -> tuple[list[Order], dict]:
    page, limit = page_args(args)
    query = scoped_query(Order, restaurant_id)

    status = args.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
        query = query.filter(Order.status == status)
    if args.get("table_id"):
        query = query.filter(Order.table_id == args.get("table_id"))
    if args.get("order_type"):
        query = query.filter(Order.order_type == args.get("order_type"))
    search = (args.get("search") or "").strip()
    if search:
        query = query.filter(Order.number.ilike(f"%{search}%"))

    try:
        start, end = parse_date_range(args.get("start_date"), args.get("end_date"))
    except ValueError as exc:
        raise ValidationError(str(exc))
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at < end)

    return paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page=page, limit=limit)


def list_active_orders(restaurant_id: int, args) -> tuple[list[Order], dict]:
    """
    Active orders, newest first. With start_date, only orders created in
    the daily/weekly/monthly/yearly window (period) containing that date.
    """
    page, limit = page_args(args)
    query = scoped_query(Order, restaurant_id).filter(Order.status == ORDER_ACTIVE)

    start_raw = args.get("start_date")
    if start_raw:
        period = args.get("period", "daily")
        if period not in PERIODS:
            raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")
        try:
            anchor: datetime | None = parse_iso_datetime(start_raw)
        except ValueError:
            raise ValidationError("start_date must be an ISO-8601 date")
        start, end = period_bounds(period, anchor)
        query = query.filter(Order.created_at >= start, Order.created_at < end)

    return paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page=page, limit=limit)


def update_order(restaurant_id: int, order_id: int, payload: dict) -> Order:
    """
    Edit an active order's header and lines. Totals are recomputed.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = set(HEADER_FIELDS) | {"client_id", "lines", "items", "tax_amount"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    order = _lock_order(restaurant_id, order_id)
    if order.status != ORDER_ACTIVE:
        raise OrderError(f"Cannot edit a {order.status} order")

    _apply_header(order, restaurant_id, payload)
    items = payload.get("lines", payload.get("items"))
    if items is not None:
        order.lines = _build_lines(restaurant_id, items)
    if items is not None or "tax_amount" in payload:
        restaurant = db.session.get(Restaurant, restaurant_id)
        _recompute_totals(order, restaurant, payload.get("tax_amount"))
    db.session.commit()
    return order


def complete_order(restaurant_id: int, order_id: int) -> Order:
    order = _lock_order(restaurant_id, order_id)
    if order.status != ORDER_ACTIVE:
        raise OrderError(f"Cannot complete a {order.status} order")
    order.status = ORDER_COMPLETED
    order.completed_at = utcnow()
    if order.table is not None:
        table_service.release(order.table, order, status=TABLE_CLEANING)
    db.session.commit()
    current_app.logger.info("Order %s completed (restaurant=%s)", order.number, restaurant_id)
    return order


def cancel_order(restaurant_id: int, order_id: int) -> Order:
    order = _lock_order(restaurant_id, order_id)
    if order.status != ORDER_ACTIVE:
        raise OrderError(f"Cannot cancel a {order.status} order")
    order.status = ORDER_CANCELLED
    order.cancelled_at = utcnow()
    for line in order.lines:
        line.status = "cancelled"
    if order.table is not None:
        table_service.release(order.table, order, status=TABLE_AVAILABLE)
    db.session.commit()
    current_app.logger.info("Order %s cancelled (restaurant=%s)", order.number, restaurant_id)
    return order


def update_line_status(restaurant_id: int, order_id: int, line_id: int, status: str | None) -> Order:
    if status not in ORDER_LINE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_LINE_STATUSES)}")
    order = get_order(restaurant_id, order_id)
    if order.status != ORDER_ACTIVE:
        raise OrderError(f"Cannot change lines of a {order.status} order")
    line = next((l for l in order.lines if l.id == line_id), None)
    if line is None:
        raise ValidationError(f"Order line {line_id} not found")
    line.status = status
    db.session.commit()
    return order
