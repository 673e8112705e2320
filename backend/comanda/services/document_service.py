# Overview: Atomic per-restaurant document numbering for orders, sales and purchases.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from comanda.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


# document_type -> (prefix, period format, zero padding)
DOCUMENT_FORMATS = {
    "ORDER": ("ORD", "%Y%m%d", 3),
    "SALE": ("VENTA", "%Y%m%d", 3),
    "PURCHASE": ("COMP", "%Y", 4),
    "REGISTER": ("CAJA", "%Y%m%d", 2),
}


def _current_value(restaurant_id: int, document_type: str, period: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(restaurant_id=restaurant_id, document_type=document_type, period=period)
        .scalar()
    )


def allocate_sequence(*, restaurant_id: int, document_type: str, period: str) -> int:
    """
    Atomically allocate the next sequence value for (restaurant, type, period).

    The UPDATE ... SET next_number = next_number + 1 is a single statement,
    so two writers can never read the same value. The first allocation of a
    period inserts the counter row; if a concurrent writer inserted it
    first, the unique constraint fires and the increment is retried.

    Runs inside the caller's transaction and does not commit, so a number is
    consumed only if the document carrying it is committed.
    """
    if not restaurant_id:
        raise DocumentSequenceError("restaurant_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.restaurant_id == restaurant_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_value(restaurant_id, document_type, period) - 1

    seq = DocumentSequence(
        restaurant_id=restaurant_id,
        document_type=document_type,
        period=period,
        next_number=2,
    )
    try:
        with db.session.begin_nested():
            db.session.add(seq)
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate {document_type} number")
        return _current_value(restaurant_id, document_type, period) - 1


def next_document_number(
    *,
    restaurant_id: int,
    document_type: str,
    at: datetime | None = None,
) -> str:
    """
    Next human-readable number, e.g. ORD-20240501-007, COMP-2024-0042.

    The period is derived from `at` (default now, UTC), so numbering
    restarts each day for orders and sales and each year for purchases.
    """
    try:
        prefix, period_format, pad = DOCUMENT_FORMATS[document_type]
    except KeyError:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    period = (at or utcnow()).strftime(period_format)
    seq = allocate_sequence(restaurant_id=restaurant_id, document_type=document_type, period=period)
    return f"{prefix}-{period}-{seq:0{pad}d}"
