from __future__ import annotations

from ..extensions import db
from ..money import as_float
from comanda.time_utils import to_utc_z

REGISTER_ACTIVE = "active"
REGISTER_CLOSED = "closed"

TX_OPENING = "opening"
TX_SALE = "sale"
TX_EXPENSE = "expense"
TX_CLOSING = "closing"
TRANSACTION_TYPES = (TX_OPENING, TX_SALE, TX_EXPENSE, TX_CLOSING)


class CashRegister(db.Model):
    """
    Daily cash register shift.

    One active register per restaurant per business date. The rule is
    checked when opening rather than by a constraint, because closed
    registers for the same date are allowed to accumulate.

    expected_amount = opening_amount + total_sales - total_expenses
    difference = closing_amount - expected_amount
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "register_number", name="uq_cash_registers_restaurant_number"),
        db.Index("ix_cash_registers_restaurant_date", "restaurant_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    register_number = db.Column(db.String(32), nullable=False)
    business_date = db.Column(db.Date, nullable=False)

    opening_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    closing_amount = db.Column(db.Numeric(12, 2), nullable=True)
    expected_amount = db.Column(db.Numeric(12, 2), nullable=True)
    difference = db.Column(db.Numeric(12, 2), nullable=True)
    total_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_expenses = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=REGISTER_ACTIVE, index=True)
    notes = db.Column(db.Text, nullable=True)

    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])
    transactions = db.relationship(
        "CashTransaction",
        back_populates="register",
        cascade="all, delete-orphan",
        order_by="CashTransaction.id",
    )

    def __repr__(self) -> str:
        return f"<CashRegister id={self.id} number={self.register_number} status={self.status}>"

    def to_dict(self, include_transactions: bool = True) -> dict:
        data = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "register_number": self.register_number,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "opening_amount": as_float(self.opening_amount),
            "closing_amount": as_float(self.closing_amount),
            "expected_amount": as_float(self.expected_amount),
            "difference": as_float(self.difference),
            "total_sales": as_float(self.total_sales),
            "total_expenses": as_float(self.total_expenses),
            "status": self.status,
            "notes": self.notes,
            "opened_by_user_id": self.opened_by_user_id,
            "opened_by_name": self.opened_by.name if self.opened_by else None,
            "closed_by_user_id": self.closed_by_user_id,
            "closed_by_name": self.closed_by.name if self.closed_by else None,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
        }
        if include_transactions:
            data["transactions"] = [tx.to_dict() for tx in self.transactions]
        return data


class CashTransaction(db.Model):
    __tablename__ = "cash_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    transaction_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(16), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    register = db.relationship("CashRegister", back_populates="transactions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "register_id": self.register_id,
            "type": self.transaction_type,
            "amount": as_float(self.amount),
            "description": self.description,
            "payment_method": self.payment_method,
            "sale_id": self.sale_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
