# Overview: Read-only report rollups over sales, purchases, catalog costs and the stock ledger.

"""
Reporting Service

Every report is tenant-scoped and read-only. Breakdowns are built from
the same filtered record set as their totals (see sales_service.group_sales),
so the parts always add up to the whole.

Revenue counts completed sales only. Purchases count once they credited
stock (received or partial), dated by purchase_date.

PROFITABILITY: COGS uses the item's current calculated cost, not the cost
at the time of sale. Net profit subtracts the period's received purchases
from gross profit, which double counts ingredients already in COGS; this
is kept as the documented reporting behavior.
"""

from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import func

from ..extensions import db
from ..models import (
    CashRegister,
    Ingredient,
    Order,
    Recipe,
    StockMovement,
)
from ..models.cash import REGISTER_ACTIVE
from ..models.dining import ORDER_ACTIVE
from ..models.inventory import MOVEMENT_SALE, MOVEMENT_SALE_CANCEL
from ..models.mixins import RECORD_ACTIVE
from ..models.sales import ITEM_RECIPE
from ..money import D, ZERO, money, percentage
from ..validation import ValidationError
from . import catalog_service, inventory_service, purchase_service, sales_service, table_service
from .tenant_service import scoped_query
from comanda.time_utils import period_bounds, to_utc_z, utcnow


COST_BUCKETS = (("under_50", 50), ("50_to_200", 200))
PROFIT_BUCKETS = (("under_20", 20), ("20_to_50", 50))
TOP_ITEMS_LIMIT = 20


def _period(start, end) -> dict:
    return {"start": to_utc_z(start), "end": to_utc_z(end)}


def _purchase_totals(purchases) -> dict:
    total = sum((D(p.total) for p in purchases), ZERO)
    return {"total": float(money(total)), "count": len(purchases)}


# =============================================================================
# Inventory
# =============================================================================

def inventory_valuation(restaurant_id: int) -> dict:
    report = inventory_service.stock_report(restaurant_id)
    ingredients = (
        scoped_query(Ingredient, restaurant_id)
        .filter(Ingredient.record_status == RECORD_ACTIVE)
        .order_by(Ingredient.name.asc())
        .all()
    )
    report["rows"] = [
        {
            "ingredient_id": i.id,
            "name": i.name,
            "category": i.category,
            "unit": i.unit,
            "current_stock": float(D(i.current_stock)),
            "unit_cost": float(D(i.unit_cost)),
            "value": float(money(i.stock_value)),
            "stock_status": i.stock_status,
        }
        for i in ingredients
    ]
    return report


def ingredient_usage(restaurant_id: int, args) -> dict:
    """
    Ingredient consumption from the stock movement ledger.

    Sale debits are negative deltas; sale_cancel credits add them back, so
    used = -(sum of sale deltas + sum of sale_cancel deltas).
    """
    start, end = sales_service.date_window(args)
    query = (
        db.session.query(
            StockMovement.ingredient_id.label("ingredient_id"),
            func.sum(StockMovement.quantity_delta).label("net_delta"),
            func.count(StockMovement.id).label("movement_count"),
        )
        .filter(
            StockMovement.restaurant_id == restaurant_id,
            StockMovement.reason.in_((MOVEMENT_SALE, MOVEMENT_SALE_CANCEL)),
        )
    )
    if start:
        query = query.filter(StockMovement.occurred_at >= start)
    if end:
        query = query.filter(StockMovement.occurred_at < end)
    ingredient_id = args.get("ingredient_id")
    if ingredient_id:
        query = query.filter(StockMovement.ingredient_id == ingredient_id)

    rows = query.group_by(StockMovement.ingredient_id).all()
    ingredients = {
        i.id: i
        for i in scoped_query(Ingredient, restaurant_id)
        .filter(Ingredient.id.in_([r.ingredient_id for r in rows]))
        .all()
    } if rows else {}

    usage = []
    for row in rows:
        ingredient = ingredients.get(row.ingredient_id)
        if ingredient is None:
            continue
        used = -D(row.net_delta)
        if used <= 0:
            continue
        usage.append({
            "ingredient_id": ingredient.id,
            "ingredient_name": ingredient.name,
            "unit": ingredient.unit,
            "unit_cost": float(D(ingredient.unit_cost)),
            "total_quantity_used": float(used),
            "movement_count": int(row.movement_count or 0),
            "total_cost": float(money(used * D(ingredient.unit_cost))),
        })
    usage.sort(key=lambda r: r["total_cost"], reverse=True)
    return {"period": _period(start, end), "usage": usage}


# =============================================================================
# Sales and finance
# =============================================================================

def daily_sales(restaurant_id: int, day_raw: str | None) -> dict:
    return sales_service.daily_summary(restaurant_id, day_raw)


def financial_summary(restaurant_id: int, args) -> dict:
    """Revenue against purchases for a range; defaults to the current month."""
    start, end = sales_service.date_window(args)
    if start is None and end is None:
        start, end = period_bounds("monthly")

    sales = sales_service.completed_sales(restaurant_id, start, end)
    purchases = purchase_service.received_purchases(restaurant_id, start, end)
    revenue = sales_service.totals(sales)
    purchase_totals = _purchase_totals(purchases)
    inventory_value = inventory_service.stock_report(restaurant_id)["total_value"]

    gross_profit = money(D(revenue["total_sales"]) - D(purchase_totals["total"]))
    return {
        "period": _period(start, end),
        "revenue": {
            "total": revenue["total_sales"],
            "count": revenue["sale_count"],
            "average_ticket": revenue["average_ticket"],
            "total_discount": revenue["total_discount"],
            "total_tax": revenue["total_tax"],
        },
        "costs": {
            "purchases": purchase_totals["total"],
            "purchase_count": purchase_totals["count"],
            "inventory_value": inventory_value,
        },
        "profitability": {
            "gross_profit": float(gross_profit),
            "profit_margin": float(percentage(gross_profit, revenue["total_sales"])),
        },
        "sales_breakdown": {
            "by_payment_method": sales_service.group_sales(sales, lambda s: s.payment_method, label="payment_method"),
            "by_order_type": sales_service.group_sales(sales, lambda s: s.order_type, label="order_type"),
        },
    }


def sales_performance(restaurant_id: int, args) -> dict:
    report = sales_service.sales_report(restaurant_id, args)
    start, end = sales_service.date_window(args)
    sales = sales_service.completed_sales(restaurant_id, start, end)
    return {
        "group_by": report["group_by"],
        "summary": report["summary"],
        "performance": report["report"],
        "top_items": sales_service.top_items(sales, TOP_ITEMS_LIMIT),
    }


def _line_cogs(line):
    item = line.item
    if item is None:
        return ZERO
    unit = item.calculated_cost if line.item_type == ITEM_RECIPE else item.total_cost
    return D(unit) * D(line.quantity)


def profitability(restaurant_id: int, args) -> dict:
    start, end = sales_service.date_window(args)
    sales = sales_service.completed_sales(restaurant_id, start, end)
    purchases = purchase_service.received_purchases(restaurant_id, start, end)

    revenue = sum((D(s.total) for s in sales), ZERO)
    cogs = money(sum((_line_cogs(line) for s in sales for line in s.lines), ZERO))
    total_purchases = sum((D(p.total) for p in purchases), ZERO)
    gross_profit = money(revenue - cogs)
    net_profit = money(gross_profit - total_purchases)

    return {
        "period": _period(start, end),
        "revenue": {"total": float(money(revenue)), "sales_count": len(sales)},
        "costs": {"cogs": float(cogs), "purchases": float(money(total_purchases))},
        "profitability": {
            "gross_profit": float(gross_profit),
            "gross_profit_margin": float(percentage(gross_profit, revenue)),
            "net_profit": float(net_profit),
            "net_profit_margin": float(percentage(net_profit, revenue)),
        },
    }


# =============================================================================
# Catalog
# =============================================================================

def _bucket(value: float, buckets, last: str) -> str:
    for name, upper in buckets:
        if value < upper if name.startswith("under") else value <= upper:
            return name
    return last


def cost_analysis(restaurant_id: int, args) -> dict:
    """
    Cost and profit distribution for recipes (default) or products.

    Cost buckets: < 50, 50-200, > 200. Profit buckets: < 20 %, 20-50 %, > 50 %.
    """
    kind = args.get("type", "recipes")
    if kind not in ("recipes", "products"):
        raise ValidationError("type must be 'recipes' or 'products'")
    analysis = catalog_service.cost_analysis(restaurant_id, kind)
    items = analysis["analysis"]

    cost_distribution = {"under_50": 0, "50_to_200": 0, "over_200": 0}
    profit_distribution = {"under_20": 0, "20_to_50": 0, "over_50": 0}
    for item in items:
        cost_distribution[_bucket(item["cost"], COST_BUCKETS, "over_200")] += 1
        profit_distribution[_bucket(item["profit_percentage"], PROFIT_BUCKETS, "over_50")] += 1

    count = len(items)
    return {
        "type": kind,
        "summary": {
            "total_items": count,
            "average_cost": round(sum(i["cost"] for i in items) / count, 2) if count else 0.0,
            "average_price": round(sum(i["price"] for i in items) / count, 2) if count else 0.0,
            "average_profit_percentage": analysis["summary"]["average_profit_percentage"],
            "cost_distribution": cost_distribution,
            "profit_distribution": profit_distribution,
        },
        "items": items,
    }


# =============================================================================
# Dashboard
# =============================================================================

def _revenue_between(restaurant_id: int, start, end) -> dict:
    summary = sales_service.totals(sales_service.completed_sales(restaurant_id, start, end))
    return {"revenue": summary["total_sales"], "count": summary["sale_count"]}


def dashboard(restaurant_id: int) -> dict:
    now = utcnow()
    today_start = datetime.combine(now.date(), time.min)
    month_start, month_end = period_bounds("monthly", now)
    year_start, year_end = period_bounds("yearly", now)

    stock = inventory_service.stock_report(restaurant_id)
    tables = table_service.status_summary(restaurant_id)
    active_orders = (
        scoped_query(Order, restaurant_id)
        .filter(Order.status == ORDER_ACTIVE)
        .count()
    )
    open_register = (
        scoped_query(CashRegister, restaurant_id)
        .filter(CashRegister.status == REGISTER_ACTIVE)
        .order_by(CashRegister.business_date.desc())
        .first()
    )
    recipes = scoped_query(Recipe, restaurant_id).filter(Recipe.record_status == RECORD_ACTIVE).all()
    recipe_count = len(recipes)

    return {
        "sales": {
            "today": _revenue_between(restaurant_id, today_start, None),
            "month": _revenue_between(restaurant_id, month_start, month_end),
            "year": _revenue_between(restaurant_id, year_start, year_end),
        },
        "orders": {"active": active_orders},
        "tables": {
            "total": tables["total"],
            "occupied": tables["occupied"],
            "available": tables["available"],
            "occupancy_rate": tables["occupancy_rate"],
        },
        "inventory": {
            "total": stock["total_ingredients"],
            "healthy": stock["ok"],
            "low_stock": stock["low_stock"],
            "out_of_stock": stock["out_of_stock"],
            "total_value": stock["total_value"],
        },
        "cash_register": open_register.to_dict(include_transactions=False) if open_register else None,
        "recipes": {
            "total": recipe_count,
            "average_cost": (
                float(money(sum((D(r.calculated_cost) for r in recipes), ZERO) / recipe_count))
                if recipe_count else 0.0
            ),
            "average_margin": (
                float(money(sum((D(r.profit_percentage) for r in recipes), ZERO) / recipe_count))
                if recipe_count else 0.0
            ),
        },
        "generated_at": to_utc_z(now),
    }
