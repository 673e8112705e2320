from __future__ import annotations

from ..extensions import db
from ..money import as_float
from comanda.time_utils import to_utc_z

PURCHASE_PENDING = "pending"
PURCHASE_RECEIVED = "received"
PURCHASE_PARTIAL = "partial"
PURCHASE_CANCELLED = "cancelled"
PURCHASE_STATUSES = (PURCHASE_PENDING, PURCHASE_RECEIVED, PURCHASE_PARTIAL, PURCHASE_CANCELLED)

PURCHASE_PAYMENT_METHODS = ("cash", "card", "transfer", "credit", "check")


class Purchase(db.Model):
    """
    Supplier purchase order.

    Receiving credits ingredient stock and overwrites each ingredient's
    unit_cost with the purchase line cost (last-write-wins costing).
    Number format COMP-YYYY-NNNN, unique per restaurant.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "number", name="uq_purchases_restaurant_number"),
        db.Index("ix_purchases_restaurant_date", "restaurant_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    number = db.Column(db.String(32), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_PENDING)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(16), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    lines = db.relationship(
        "PurchaseLine",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseLine.id",
    )

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} number={self.number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "number": self.number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": as_float(self.subtotal),
            "tax": as_float(self.tax),
            "total": as_float(self.total),
            "purchase_date": to_utc_z(self.purchase_date),
            "delivery_date": to_utc_z(self.delivery_date),
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "invoice_number": self.invoice_number,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "received_by_user_id": self.received_by_user_id,
            "received_at": to_utc_z(self.received_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseLine(db.Model):
    __tablename__ = "purchase_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    received_quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit = db.Column(db.String(16), nullable=True)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False)
    batch_number = db.Column(db.String(64), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    purchase = db.relationship("Purchase", back_populates="lines")
    ingredient = db.relationship("Ingredient")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient.name if self.ingredient else None,
            "quantity": as_float(self.quantity),
            "received_quantity": as_float(self.received_quantity),
            "unit": self.unit,
            "unit_cost": as_float(self.unit_cost),
            "total_cost": as_float(self.total_cost),
            "batch_number": self.batch_number,
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
        }
