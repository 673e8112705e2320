from __future__ import annotations

from ..extensions import db
from comanda.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-restaurant, per-period document counters.

    WHY: Human-readable numbers (ORD-20240501-007) restart each day or
    year. A counter row per (restaurant, type, period) incremented with a
    single UPDATE avoids the count-then-insert race.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint(
            "restaurant_id", "document_type", "period",
            name="uq_doc_sequences_restaurant_type_period",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    period = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "document_type": self.document_type,
            "period": self.period,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
