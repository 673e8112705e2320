from __future__ import annotations

from ..extensions import db
from ..money import as_float
from comanda.time_utils import to_utc_z


class Restaurant(db.Model):
    """
    Multi-tenant root: every tenant is a Restaurant.

    WHY: Shared-database multi-tenancy with strict isolation.
    Every other table carries restaurant_id and every query filters on it.
    Settings live in plain columns because they feed calculations
    (tax_rate on orders, currency on reports).
    """
    __tablename__ = "restaurants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    currency = db.Column(db.String(8), nullable=False, default="USD")
    # Percentages, e.g. 16.00 means 16%
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    service_charge = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Restaurant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "settings": {
                "currency": self.currency,
                "tax_rate": as_float(self.tax_rate),
                "service_charge": as_float(self.service_charge),
                "timezone": self.timezone,
            },
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
