from __future__ import annotations

from ..extensions import db

RECORD_ACTIVE = "active"
RECORD_ARCHIVED = "archived"
RECORD_STATUSES = (RECORD_ACTIVE, RECORD_ARCHIVED)


class RecordStatusMixin:
    """
    Tombstone state for catalog rows.

    Deleting archives the row instead of removing it, so historical
    sales and purchases keep resolving their references. Stored as an
    enum-like string to leave room for more states.
    """
    record_status = db.Column(db.String(16), nullable=False, default=RECORD_ACTIVE, index=True)

    @property
    def is_active(self) -> bool:
        return self.record_status == RECORD_ACTIVE

    def archive(self) -> None:
        self.record_status = RECORD_ARCHIVED


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
