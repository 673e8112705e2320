from __future__ import annotations

from ..extensions import db
from ..money import as_float
from comanda.time_utils import to_utc_z

SALE_ACTIVE = "active"
SALE_COMPLETED = "completed"
SALE_CANCELLED = "cancelled"
SALE_STATUSES = (SALE_ACTIVE, SALE_COMPLETED, SALE_CANCELLED)

ITEM_RECIPE = "recipe"
ITEM_PRODUCT = "product"
SALE_ITEM_TYPES = (ITEM_RECIPE, ITEM_PRODUCT)

PAYMENT_METHODS = ("cash", "card", "transfer", "credit", "mixed")
PAYMENT_STATUSES = ("pending", "paid", "partial")


class Sale(db.Model):
    """
    Point-of-sale ticket.

    LIFECYCLE:
    - active: recorded, stock untouched
    - completed: stock debited once (stock_updated guards re-entry)
    - cancelled: debited stock credited back from the movement ledger

    total = subtotal - discount_amount + tax_amount
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "number", name="uq_sales_restaurant_number"),
        db.Index("ix_sales_restaurant_date", "restaurant_id", "sale_date"),
        db.Index("ix_sales_restaurant_status", "restaurant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    number = db.Column(db.String(32), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    payment_status = db.Column(db.String(16), nullable=False, default="paid")

    order_type = db.Column(db.String(16), nullable=False, default="dine_in")
    table_number = db.Column(db.Integer, nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    customer_name = db.Column(db.String(120), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_ACTIVE)
    stock_updated = db.Column(db.Boolean, nullable=False, default=False)
    low_stock_alerts = db.Column(db.JSON, nullable=False, default=list)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "SaleLine",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def __repr__(self) -> str:
        return f"<Sale id={self.id} number={self.number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "number": self.number,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": as_float(self.subtotal),
            "discount_amount": as_float(self.discount_amount),
            "tax_amount": as_float(self.tax_amount),
            "total": as_float(self.total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "order_type": self.order_type,
            "table_number": self.table_number,
            "order_id": self.order_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "status": self.status,
            "stock_updated": self.stock_updated,
            "low_stock_alerts": list(self.low_stock_alerts or []),
            "sale_date": to_utc_z(self.sale_date),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by.name if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleLine(db.Model):
    """Sold item: a recipe or a product, discriminated by item_type."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint(
            "(recipe_id IS NULL) <> (product_id IS NULL)",
            name="ck_sale_lines_one_item",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_type = db.Column(db.String(16), nullable=False)
    recipe_id = db.Column(db.Integer, db.ForeignKey("recipes.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    item_name = db.Column(db.String(120), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    sale = db.relationship("Sale", back_populates="lines")
    recipe = db.relationship("Recipe")
    product = db.relationship("Product")

    @property
    def item(self):
        return self.recipe if self.item_type == ITEM_RECIPE else self.product

    @property
    def item_id(self):
        return self.recipe_id if self.item_type == ITEM_RECIPE else self.product_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": as_float(self.quantity),
            "unit_price": as_float(self.unit_price),
            "discount": as_float(self.discount),
            "total_price": as_float(self.total_price),
            "notes": self.notes,
        }
