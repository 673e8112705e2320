# Overview: Service-layer operations for dining tables and their status.

"""
Table status follows orders:
- creating an order for a table occupies it and links current_order
- completing the order leaves it in cleaning with no current order
- cancelling the order makes it available again

Staff can also set status directly (reserved after a call, available
after cleaning). Setting a table available or cleaning unlinks it from
its order. A table whose current order is still active cannot be
reserved and never takes a second order.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Table
from ..models.dining import (
    ORDER_ACTIVE,
    TABLE_AVAILABLE,
    TABLE_CLEANING,
    TABLE_LOCATIONS,
    TABLE_OCCUPIED,
    TABLE_RESERVED,
    TABLE_STATUSES,
)
from ..models.mixins import RECORD_ACTIVE
from ..validation import ModelValidationPolicy, ValidationError
from . import crud_service
from .concurrency import lock_for_update
from .tenant_service import get_scoped_or_404, scoped_query


TABLE_POLICY = ModelValidationPolicy(
    writable_fields={"number", "capacity", "location", "status"},
    required_on_create={"number"},
    choices={"location": TABLE_LOCATIONS, "status": TABLE_STATUSES},
)

DUPLICATE_MESSAGE = "A table with that number already exists"


def _table_rules(patch: dict) -> None:
    if "number" in patch and (patch["number"] is None or patch["number"] < 1):
        raise ValidationError("number must be >= 1")
    if "capacity" in patch and (patch["capacity"] is None or patch["capacity"] < 1):
        raise ValidationError("capacity must be >= 1")


def _has_active_order(table: Table, order=None) -> bool:
    current = table.current_order
    return current is not None and current is not order and current.status == ORDER_ACTIVE


def _prepare_status(table: Table, status: str) -> None:
    """Check a manual status change against the linked order. Does not commit."""
    if status == TABLE_RESERVED and _has_active_order(table):
        raise ValidationError(f"Table {table.number} has an active order")
    if status in (TABLE_AVAILABLE, TABLE_CLEANING):
        table.current_order = None


def create_table(restaurant_id: int, payload: dict) -> Table:
    return crud_service.create_entity(
        Table, restaurant_id, payload, TABLE_POLICY,
        duplicate_message=DUPLICATE_MESSAGE, rules=_table_rules,
    )


def update_table(restaurant_id: int, table_id: int, payload: dict) -> Table:
    table = get_table(restaurant_id, table_id)

    def _rules(patch):
        _table_rules(patch)
        if "status" in patch:
            _prepare_status(table, patch["status"])

    return crud_service.update_entity(
        table, payload, TABLE_POLICY,
        duplicate_message=DUPLICATE_MESSAGE, rules=_rules,
    )


def get_table(restaurant_id: int, table_id: int) -> Table:
    return get_scoped_or_404(Table, table_id, restaurant_id, "Table")


def lock_table(restaurant_id: int, table_id: int) -> Table:
    table = lock_for_update(
        scoped_query(Table, restaurant_id).filter(Table.id == table_id)
    ).first()
    if table is None:
        raise ValidationError(f"Table {table_id} not found")
    if not table.is_active:
        raise ValidationError(f"Table {table_id} is archived")
    return table


def list_tables(restaurant_id: int, args):
    status = args.get("status")
    location = args.get("location")
    if status and status not in TABLE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TABLE_STATUSES)}")

    def _filters(query):
        if status:
            query = query.filter(Table.status == status)
        if location:
            query = query.filter(Table.location == location)
        return query

    return crud_service.list_entities(
        Table, restaurant_id, args,
        order_by=(Table.number.asc(),),
        filters=_filters,
    )


def archive_table(restaurant_id: int, table_id: int) -> Table:
    table = get_table(restaurant_id, table_id)
    if table.status == TABLE_OCCUPIED:
        raise ValidationError("Cannot delete an occupied table")
    return crud_service.archive_entity(table)


def set_status(restaurant_id: int, table_id: int, status: str | None) -> Table:
    if status not in TABLE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TABLE_STATUSES)}")
    table = get_table(restaurant_id, table_id)
    _prepare_status(table, status)
    table.status = status
    db.session.commit()
    return table


def occupy(table: Table, order) -> None:
    """Link a table to a new order. Does not commit."""
    if _has_active_order(table, order):
        raise ValidationError(f"Table {table.number} is already occupied")
    table.status = TABLE_OCCUPIED
    table.current_order = order


def release(table: Table, order, *, status: str) -> None:
    """Unlink a table from a finished order. Does not commit."""
    if table.current_order not in (None, order):
        return
    table.status = status
    table.current_order = None


def status_summary(restaurant_id: int) -> dict:
    tables = (
        scoped_query(Table, restaurant_id)
        .filter(Table.record_status == RECORD_ACTIVE)
        .order_by(Table.number.asc())
        .all()
    )
    counts = {status: 0 for status in TABLE_STATUSES}
    for table in tables:
        counts[table.status] = counts.get(table.status, 0) + 1
    total = len(tables)
    return {
        "total": total,
        "available": counts[TABLE_AVAILABLE],
        "occupied": counts[TABLE_OCCUPIED],
        "reserved": counts[TABLE_RESERVED],
        "cleaning": counts[TABLE_CLEANING],
        "occupancy_rate": round(counts[TABLE_OCCUPIED] / total * 100, 2) if total else 0.0,
        "tables": [t.to_dict() for t in tables],
    }
