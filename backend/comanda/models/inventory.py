from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import as_float
from .mixins import RecordStatusMixin, TimestampMixin
from comanda.time_utils import to_utc_z

INGREDIENT_UNITS = ("kg", "g", "l", "ml", "unidad", "docena", "litro", "kilo")
INGREDIENT_CATEGORIES = (
    "carnes", "lacteos", "granos", "verduras", "frutas",
    "condimentos", "bebidas", "empaquetados", "otros",
)

STOCK_OK = "OK"
STOCK_LOW = "LOW_STOCK"
STOCK_OUT = "OUT_OF_STOCK"

PAYMENT_TERMS = ("contado", "15_dias", "30_dias", "45_dias", "60_dias")

MOVEMENT_SALE = "sale"
MOVEMENT_SALE_CANCEL = "sale_cancel"
MOVEMENT_PURCHASE_RECEIVE = "purchase_receive"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_REASONS = (MOVEMENT_SALE, MOVEMENT_SALE_CANCEL, MOVEMENT_PURCHASE_RECEIVE, MOVEMENT_ADJUSTMENT)


def classify_stock(current_stock, min_stock) -> str:
    """OUT_OF_STOCK at or below zero, LOW_STOCK at or below the minimum, else OK."""
    current = Decimal(str(current_stock or 0))
    minimum = Decimal(str(min_stock or 0))
    if current <= 0:
        return STOCK_OUT
    if current <= minimum:
        return STOCK_LOW
    return STOCK_OK


class Supplier(RecordStatusMixin, TimestampMixin, db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "name", name="uq_suppliers_restaurant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    business_name = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(32), nullable=True)
    contact_name = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    payment_terms = db.Column(db.String(16), nullable=False, default="contado")
    rating = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "business_name": self.business_name,
            "tax_id": self.tax_id,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "payment_terms": self.payment_terms,
            "rating": self.rating,
            "notes": self.notes,
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Ingredient(RecordStatusMixin, TimestampMixin, db.Model):
    """
    Raw good with authoritative stock level and unit cost.

    WHY: Leaf of every cost roll-up and target of every stock debit/credit.
    current_stock is a stored quantity; StockMovement rows record each
    change applied to it so sale cancellations can be reversed exactly.

    unit_cost follows last-write-wins: receiving a purchase overwrites it
    with the latest purchase price.
    """
    __tablename__ = "ingredients"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "name", name="uq_ingredients_restaurant_name"),
        db.CheckConstraint("current_stock >= 0", name="ck_ingredients_stock_non_negative"),
        db.Index("ix_ingredients_restaurant_category", "restaurant_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(16), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="otros")

    current_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    last_purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("ingredients", lazy=True))

    @property
    def stock_status(self) -> str:
        return classify_stock(self.current_stock, self.min_stock)

    @property
    def stock_value(self) -> Decimal:
        return Decimal(str(self.current_stock or 0)) * Decimal(str(self.unit_cost or 0))

    def __repr__(self) -> str:
        return f"<Ingredient id={self.id} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "category": self.category,
            "current_stock": as_float(self.current_stock),
            "min_stock": as_float(self.min_stock),
            "unit_cost": as_float(self.unit_cost),
            "stock_status": self.stock_status,
            "stock_value": round(float(self.stock_value), 2),
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "last_purchase_date": to_utc_z(self.last_purchase_date),
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every stock change applied to an ingredient.

    quantity_delta is the change actually applied after clamping, so a
    debit that hit zero records only what was available. Sale cancellation
    credits back exactly the recorded deltas for that sale.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_source", "source_type", "source_id"),
        db.Index("ix_stock_movements_ingredient_time", "ingredient_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False)

    reason = db.Column(db.String(32), nullable=False)
    quantity_requested = db.Column(db.Numeric(12, 3), nullable=False)
    quantity_delta = db.Column(db.Numeric(12, 3), nullable=False)
    resulting_stock = db.Column(db.Numeric(12, 3), nullable=False)

    source_type = db.Column(db.String(32), nullable=True)
    source_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    ingredient = db.relationship("Ingredient", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient.name if self.ingredient else None,
            "reason": self.reason,
            "quantity_requested": as_float(self.quantity_requested),
            "quantity_delta": as_float(self.quantity_delta),
            "resulting_stock": as_float(self.resulting_stock),
            "source_type": self.source_type,
            "source_id": self.source_id,
            "note": self.note,
            "user_id": self.user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
