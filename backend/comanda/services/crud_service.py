# Overview: Shared tenant-scoped create/update/archive/list helpers for catalog entities.

from __future__ import annotations

from typing import Callable

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..validation import ConflictError, ModelValidationPolicy, validate_payload
from .tenant_service import active_only, page_args, paginate, scoped_query, search_filter


def commit_or_conflict(message: str) -> None:
    """Commit, turning a unique-constraint violation into ConflictError."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)


def flush_or_conflict(message: str) -> None:
    try:
        with db.session.begin_nested():
            db.session.flush()
    except IntegrityError:
        raise ConflictError(message)


def create_entity(
    model,
    restaurant_id: int,
    payload: dict,
    policy: ModelValidationPolicy,
    *,
    duplicate_message: str,
    rules: Callable[[dict], None] | None = None,
):
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
    if rules:
        rules(patch)
    obj = model(restaurant_id=restaurant_id, **patch)
    db.session.add(obj)
    commit_or_conflict(duplicate_message)
    return obj


def update_entity(
    obj,
    payload: dict,
    policy: ModelValidationPolicy,
    *,
    duplicate_message: str,
    rules: Callable[[dict], None] | None = None,
):
    patch = validate_payload(model=type(obj), payload=payload, policy=policy, partial=True)
    if rules:
        rules(patch)
    for key, value in patch.items():
        setattr(obj, key, value)
    commit_or_conflict(duplicate_message)
    return obj


def archive_entity(obj):
    obj.archive()
    db.session.commit()
    return obj


def list_entities(
    model,
    restaurant_id: int,
    args,
    *,
    search_column=None,
    order_by=None,
    filters: Callable | None = None,
) -> tuple[list, dict]:
    """
    Standard list: tenant scope, archived hidden unless include_archived,
    optional free-text search, extra filters, then pagination.
    """
    page, limit = page_args(args)
    query = scoped_query(model, restaurant_id)
    if hasattr(model, "record_status"):
        include_archived = str(args.get("include_archived", "")).lower() in ("1", "true", "yes")
        query = active_only(query, model, include_archived)
    if search_column is not None:
        query = search_filter(query, search_column, args.get("search"))
    if filters is not None:
        query = filters(query)
    query = query.order_by(*(order_by if order_by is not None else (model.id.desc(),)))
    return paginate(query, page=page, limit=limit)
