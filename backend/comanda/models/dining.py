from __future__ import annotations

from ..extensions import db
from ..money import as_float
from .mixins import RecordStatusMixin, TimestampMixin
from comanda.time_utils import to_utc_z

TABLE_AVAILABLE = "available"
TABLE_OCCUPIED = "occupied"
TABLE_RESERVED = "reserved"
TABLE_CLEANING = "cleaning"
TABLE_STATUSES = (TABLE_AVAILABLE, TABLE_OCCUPIED, TABLE_RESERVED, TABLE_CLEANING)
TABLE_LOCATIONS = ("interior", "terraza", "bar", "privado")

ORDER_ACTIVE = "active"
ORDER_COMPLETED = "completed"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_ACTIVE, ORDER_COMPLETED, ORDER_CANCELLED)
ORDER_TYPES = ("dine_in", "takeout", "delivery")
ORDER_LINE_STATUSES = ("pending", "preparing", "ready", "delivered", "cancelled")


class Client(RecordStatusMixin, TimestampMixin, db.Model):
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_restaurant_name", "restaurant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Table(RecordStatusMixin, TimestampMixin, db.Model):
    """
    Dining table.

    Status follows the order lifecycle: an order occupies its table,
    completing it leaves the table in cleaning, cancelling frees it.
    Staff can also set status directly (reserved, cleaned).
    """
    __tablename__ = "dining_tables"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "number", name="uq_dining_tables_restaurant_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=4)
    location = db.Column(db.String(16), nullable=False, default="interior")
    status = db.Column(db.String(16), nullable=False, default=TABLE_AVAILABLE, index=True)

    # use_alter breaks the orders <-> dining_tables FK cycle at DDL time
    current_order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", use_alter=True, name="fk_dining_tables_current_order"),
        nullable=True,
    )

    current_order = db.relationship("Order", foreign_keys=[current_order_id], post_update=True)

    def __repr__(self) -> str:
        return f"<Table id={self.id} number={self.number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "number": self.number,
            "capacity": self.capacity,
            "location": self.location,
            "status": self.status,
            "current_order_id": self.current_order_id,
            "current_order_number": self.current_order.number if self.current_order else None,
            "record_status": self.record_status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Order(TimestampMixin, db.Model):
    """
    Table or counter order.

    Number format ORD-YYYYMMDD-NNN, unique per restaurant. Totals are
    computed server-side from lines; tax defaults to the restaurant rate.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "number", name="uq_orders_restaurant_number"),
        db.Index("ix_orders_restaurant_status", "restaurant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    number = db.Column(db.String(32), nullable=False)

    table_id = db.Column(db.Integer, db.ForeignKey("dining_tables.id"), nullable=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    order_type = db.Column(db.String(16), nullable=False, default="dine_in")
    customer_name = db.Column(db.String(120), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=ORDER_ACTIVE)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    table = db.relationship("Table", foreign_keys=[table_id])
    client = db.relationship("Client")
    created_by = db.relationship("User")
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "number": self.number,
            "table_id": self.table_id,
            "table_number": self.table.number if self.table else None,
            "client_id": self.client_id,
            "order_type": self.order_type,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "notes": self.notes,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": as_float(self.subtotal),
            "tax_amount": as_float(self.tax_amount),
            "total": as_float(self.total),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by.name if self.created_by else None,
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderLine(db.Model):
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending")

    order = db.relationship("Order", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": as_float(self.unit_price),
            "total_price": as_float(self.total_price),
            "notes": self.notes,
            "status": self.status,
        }
