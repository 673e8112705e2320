"""
Multi-Tenant Service: Tenant Scoping, Lookup and Pagination Helpers

WHY: Centralize tenant scoping for reuse across services and routes.
Every request is scoped to one restaurant, and cross-tenant access must be
indistinguishable from a missing row.

SECURITY INVARIANTS:
1. Every authenticated request has g.restaurant_id set
2. Every query on tenant data goes through scoped_query(model, restaurant_id)
3. Lookups by id that miss or hit another tenant raise NotFoundError (404)
4. restaurant_id is a required parameter; there is no unscoped variant

USAGE:
    from comanda.services.tenant_service import get_scoped_or_404, paginate

    ingredient = get_scoped_or_404(Ingredient, ingredient_id, restaurant_id, "Ingredient")
    items, pagination = paginate(query, page=1, limit=20)
"""

from __future__ import annotations

import math

from flask import current_app

from ..extensions import db
from ..models.mixins import RECORD_ACTIVE
from ..validation import ValidationError


class TenantAccessError(Exception):
    """Raised when no tenant context is established."""
    pass


class NotFoundError(LookupError):
    """Row missing or owned by another tenant."""
    pass


def scoped_query(model, restaurant_id: int):
    """Base query for a tenant-owned model."""
    if restaurant_id is None:
        raise TenantAccessError("restaurant_id is required")
    return db.session.query(model).filter(model.restaurant_id == restaurant_id)


def active_only(query, model, include_archived: bool = False):
    """Hide archived catalog rows unless asked for."""
    if include_archived:
        return query
    return query.filter(model.record_status == RECORD_ACTIVE)


def get_scoped_or_404(model, obj_id, restaurant_id: int, label: str):
    """
    Fetch a tenant-owned row by id.

    Raises NotFoundError when the id does not exist or belongs to another
    restaurant; the message never reveals which.
    """
    if obj_id is None:
        raise NotFoundError(f"{label} not found")
    try:
        obj_id = int(obj_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"{label} not found")

    obj = scoped_query(model, restaurant_id).filter(model.id == obj_id).first()
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def require_reference(model, obj_id, restaurant_id: int, label: str, *, allow_archived: bool = False):
    """
    Resolve a foreign reference from client input.

    Unlike get_scoped_or_404 this is a validation failure (400): the
    payload points at something unusable.
    """
    try:
        obj = get_scoped_or_404(model, obj_id, restaurant_id, label)
    except NotFoundError:
        raise ValidationError(f"{label} {obj_id} not found")
    if not allow_archived and hasattr(obj, "record_status") and not obj.is_active:
        raise ValidationError(f"{label} {obj_id} is archived")
    return obj


def page_args(args) -> tuple[int, int]:
    """
    Parse page/limit (or offset/limit) query parameters.

    offset takes precedence when given and is converted to the page it
    falls on. limit is capped at MAX_PAGE_SIZE.
    """
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    try:
        limit = int(args.get("limit", default_limit))
        page = int(args.get("page", 1))
        offset = args.get("offset")
        offset = int(offset) if offset not in (None, "") else None
    except (TypeError, ValueError):
        raise ValidationError("page, limit and offset must be integers")

    if limit < 1:
        raise ValidationError("limit must be >= 1")
    limit = min(limit, max_limit)

    if offset is not None:
        if offset < 0:
            raise ValidationError("offset must be >= 0")
        page = offset // limit + 1
    if page < 1:
        raise ValidationError("page must be >= 1")
    return page, limit


def paginate(query, *, page: int, limit: int) -> tuple[list, dict]:
    """Run a query for one page and return (items, pagination)."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }
    return items, pagination


def search_filter(query, column, term: str | None):
    """Case-insensitive substring filter on a name-like column."""
    if term:
        term = term.strip()
    if not term:
        return query
    return query.filter(column.ilike(f"%{term}%"))
