# Overview: Stock alert views; low-stock scan, alert history from sales and manual alerts.

"""
Stock alerts are derived, not stored:
- the low-stock list is a live scan of ingredients at or below min_stock
- history is read back from the low_stock_alerts snapshot each sale kept
  when its stock was posted
- manual alerts are built here and broadcast by the route; nothing persists
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Ingredient, Sale, StockMovement
from ..models.inventory import MOVEMENT_SALE, STOCK_LOW, STOCK_OK, STOCK_OUT
from ..models.mixins import RECORD_ACTIVE
from ..money import D, ZERO, money
from ..validation import ValidationError, require_int
from .tenant_service import require_reference, scoped_query
from comanda.time_utils import parse_date_range, to_utc_z, utcnow


HISTORY_DEFAULT_DAYS = 7
HISTORY_DEFAULT_LIMIT = 50
TOP_CONSUMED_DAYS = 30
TOP_CONSUMED_LIMIT = 10


def low_stock_alerts(restaurant_id: int) -> dict:
    limit = current_app.config.get("LOW_STOCK_SCAN_LIMIT", 200)
    ingredients = (
        scoped_query(Ingredient, restaurant_id)
        .filter(
            Ingredient.record_status == RECORD_ACTIVE,
            Ingredient.current_stock <= Ingredient.min_stock,
        )
        .order_by(Ingredient.current_stock.asc(), Ingredient.name.asc())
        .limit(limit)
        .all()
    )
    alerts = []
    for ingredient in ingredients:
        current = D(ingredient.current_stock)
        minimum = D(ingredient.min_stock)
        alerts.append({
            "ingredient_id": ingredient.id,
            "ingredient_name": ingredient.name,
            "current_stock": float(current),
            "min_stock": float(minimum),
            "unit": ingredient.unit,
            "alert_type": STOCK_OUT if current <= 0 else STOCK_LOW,
            "last_purchase_date": to_utc_z(ingredient.last_purchase_date),
            "shortage": float(max(minimum - current, ZERO)),
        })

    return {
        "alerts": alerts,
        "summary": {
            "total_alerts": len(alerts),
            "out_of_stock": sum(1 for a in alerts if a["alert_type"] == STOCK_OUT),
            "low_stock": sum(1 for a in alerts if a["alert_type"] == STOCK_LOW),
            "critical_items": [a["ingredient_name"] for a in alerts if a["alert_type"] == STOCK_OUT],
        },
        "timestamp": to_utc_z(utcnow()),
    }


def alert_history(restaurant_id: int, args) -> dict:
    """Sales whose stock posting raised alerts, newest first (last 7 days by default)."""
    try:
        start, end = parse_date_range(
            args.get("start_date"), args.get("end_date"), default_days=HISTORY_DEFAULT_DAYS,
        )
    except ValueError as exc:
        raise ValidationError(str(exc))
    limit = require_int(args.get("limit", HISTORY_DEFAULT_LIMIT), "limit", minimum=1)

    query = scoped_query(Sale, restaurant_id).filter(Sale.stock_updated.is_(True))
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date < end)

    history = []
    # low_stock_alerts is JSON, so emptiness is filtered here rather than in SQL
    for sale in query.order_by(Sale.sale_date.desc(), Sale.id.desc()):
        if not sale.low_stock_alerts:
            continue
        history.append({
            "sale_id": sale.id,
            "sale_number": sale.number,
            "sale_date": to_utc_z(sale.sale_date),
            "alerts": sale.low_stock_alerts,
            "total_alerts": len(sale.low_stock_alerts),
        })
        if len(history) >= limit:
            break

    return {
        "history": history,
        "summary": {
            "total_sales_with_alerts": len(history),
            "total_alerts": sum(h["total_alerts"] for h in history),
        },
    }


def manual_alert(restaurant_id: int, payload: dict) -> dict:
    """Build a manual alert for an ingredient. The caller broadcasts it."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    ingredient = require_reference(
        Ingredient, payload.get("ingredient_id"), restaurant_id, "Ingredient", allow_archived=True,
    )
    alert_type = payload.get("alert_type") or "MANUAL"
    if not isinstance(alert_type, str):
        raise ValidationError("alert_type must be a string")
    message = payload.get("message") or "Manual stock alert"
    if not isinstance(message, str):
        raise ValidationError("message must be a string")

    current_app.logger.warning(
        "Manual stock alert %s for ingredient %s (restaurant=%s)",
        alert_type, ingredient.id, restaurant_id,
    )
    return {
        "ingredient_id": ingredient.id,
        "ingredient_name": ingredient.name,
        "current_stock": float(D(ingredient.current_stock)),
        "min_stock": float(D(ingredient.min_stock)),
        "unit": ingredient.unit,
        "alert_type": alert_type.strip()[:32],
        "message": message.strip()[:255],
        "timestamp": to_utc_z(utcnow()),
    }


def _top_consumed(restaurant_id: int) -> list[dict]:
    since, _ = parse_date_range(None, None, default_days=TOP_CONSUMED_DAYS)
    rows = (
        db.session.query(
            StockMovement.ingredient_id,
            func.sum(StockMovement.quantity_delta).label("delta"),
        )
        .filter(
            StockMovement.restaurant_id == restaurant_id,
            StockMovement.reason == MOVEMENT_SALE,
            StockMovement.occurred_at >= since,
        )
        .group_by(StockMovement.ingredient_id)
        .order_by(func.sum(StockMovement.quantity_delta).asc())
        .limit(TOP_CONSUMED_LIMIT)
        .all()
    )
    names = {
        i.id: i for i in scoped_query(Ingredient, restaurant_id)
        .filter(Ingredient.id.in_([r.ingredient_id for r in rows]))
    } if rows else {}
    return [
        {
            "ingredient_id": row.ingredient_id,
            "ingredient_name": names[row.ingredient_id].name,
            "unit": names[row.ingredient_id].unit,
            "quantity_consumed": float(-D(row.delta)),
        }
        for row in rows
        if row.ingredient_id in names and D(row.delta) < 0
    ]


def stock_analysis(restaurant_id: int) -> dict:
    ingredients = (
        scoped_query(Ingredient, restaurant_id)
        .filter(Ingredient.record_status == RECORD_ACTIVE)
        .all()
    )
    counts = {STOCK_OK: 0, STOCK_LOW: 0, STOCK_OUT: 0}
    categories: dict[str, dict] = {}
    total_value = ZERO
    for ingredient in ingredients:
        status = ingredient.stock_status
        counts[status] += 1
        value = ingredient.stock_value
        total_value += value
        bucket = categories.setdefault(ingredient.category, {"count": 0, "total_value": ZERO, "low_stock_count": 0})
        bucket["count"] += 1
        bucket["total_value"] += value
        if status != STOCK_OK:
            bucket["low_stock_count"] += 1

    return {
        "total_ingredients": len(ingredients),
        "in_stock": counts[STOCK_OK],
        "low_stock": counts[STOCK_LOW],
        "out_of_stock": counts[STOCK_OUT],
        "total_value": float(money(total_value)),
        "category_breakdown": {
            name: {**bucket, "total_value": float(money(bucket["total_value"]))}
            for name, bucket in sorted(categories.items())
        },
        "top_consumed": _top_consumed(restaurant_id),
    }
