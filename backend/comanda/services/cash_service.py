# Overview: Service-layer operations for cash registers and their transactions.

"""
Cash Register Service

One active register per restaurant per business date. The check runs
when opening, under the write lock, instead of as a database constraint:
closed registers for the same date are allowed to pile up.

Running totals are kept on the register as transactions are added:
- sale transactions add to total_sales
- expense transactions add to total_expenses
Closing computes expected = opening + sales - expenses and
difference = closing_amount - expected.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import CashRegister, CashTransaction, Sale
from ..models.cash import REGISTER_ACTIVE, REGISTER_CLOSED, TX_CLOSING, TX_EXPENSE, TX_OPENING, TX_SALE
from ..models.sales import PAYMENT_METHODS
from ..money import D, ZERO, money
from ..validation import ValidationError, require_non_negative, require_positive
from . import crud_service
from .concurrency import begin_write_transaction, lock_for_update
from .document_service import next_document_number
from .tenant_service import get_scoped_or_404, page_args, paginate, scoped_query
from comanda.time_utils import utcnow


class CashRegisterError(Exception):
    """Raised for cash register lifecycle violations."""
    pass


MANUAL_TRANSACTION_TYPES = (TX_SALE, TX_EXPENSE)


def _text(data: dict, key: str, limit: int = 255) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()[:limit] or None


def active_register_for(restaurant_id: int, business_date: date) -> CashRegister | None:
    return (
        scoped_query(CashRegister, restaurant_id)
        .filter(CashRegister.business_date == business_date, CashRegister.status == REGISTER_ACTIVE)
        .first()
    )


def open_register(restaurant_id: int, payload: dict, *, user_id: int) -> CashRegister:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    opening = money(require_non_negative(payload.get("opening_amount", 0), "opening_amount"))

    begin_write_transaction()
    now = utcnow()
    today = now.date()
    if active_register_for(restaurant_id, today) is not None:
        raise CashRegisterError("An active cash register already exists for today")

    number = _text(payload, "register_number", 32) or next_document_number(
        restaurant_id=restaurant_id, document_type="REGISTER", at=now,
    )
    register = CashRegister(
        restaurant_id=restaurant_id,
        register_number=number,
        business_date=today,
        opening_amount=opening,
        total_sales=ZERO,
        total_expenses=ZERO,
        status=REGISTER_ACTIVE,
        notes=_text(payload, "notes", 2000),
        opened_by_user_id=user_id,
        opened_at=now,
    )
    register.transactions.append(CashTransaction(
        transaction_type=TX_OPENING,
        amount=opening,
        description="Opening float",
        payment_method="cash",
        created_by_user_id=user_id,
        created_at=now,
    ))
    db.session.add(register)
    crud_service.commit_or_conflict(f"Register number {number} already exists")
    current_app.logger.info("Cash register %s opened (restaurant=%s)", register.register_number, restaurant_id)
    return register


def get_register(restaurant_id: int, register_id: int) -> CashRegister:
    return get_scoped_or_404(CashRegister, register_id, restaurant_id, "Cash register")


def _lock_active(restaurant_id: int, register_id: int) -> CashRegister:
    register = lock_for_update(
        scoped_query(CashRegister, restaurant_id).filter(CashRegister.id == register_id)
    ).first()
    if register is None:
        register = get_register(restaurant_id, register_id)
    if register.status != REGISTER_ACTIVE:
        raise CashRegisterError("Cash register is already closed")
    return register


def list_active(restaurant_id: int) -> list[CashRegister]:
    return (
        scoped_query(CashRegister, restaurant_id)
        .filter(CashRegister.status == REGISTER_ACTIVE)
        .order_by(CashRegister.business_date.desc(), CashRegister.id.desc())
        .all()
    )


def close_register(restaurant_id: int, register_id: int, payload: dict, *, user_id: int) -> CashRegister:
    if not isinstance(payload, dict) or payload.get("closing_amount") is None:
        raise ValidationError("closing_amount is required")
    closing = money(require_non_negative(payload["closing_amount"], "closing_amount"))

    register = _lock_active(restaurant_id, register_id)
    now = utcnow()
    expected = money(D(register.opening_amount) + D(register.total_sales) - D(register.total_expenses))

    register.closing_amount = closing
    register.expected_amount = expected
    register.difference = money(closing - expected)
    register.status = REGISTER_CLOSED
    register.closed_by_user_id = user_id
    register.closed_at = now
    notes = _text(payload, "notes", 2000)
    if notes:
        register.notes = notes
    register.transactions.append(CashTransaction(
        transaction_type=TX_CLOSING,
        amount=closing,
        description=notes or "Register closing",
        payment_method="cash",
        created_by_user_id=user_id,
        created_at=now,
    ))
    db.session.commit()

    current_app.logger.info(
        "Cash register %s closed (restaurant=%s expected=%s counted=%s difference=%s)",
        register.register_number, restaurant_id, expected, closing, register.difference,
    )
    return register


def add_transaction(restaurant_id: int, register_id: int, payload: dict, *, user_id: int) -> CashRegister:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    tx_type = payload.get("type", payload.get("transaction_type"))
    if tx_type not in MANUAL_TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MANUAL_TRANSACTION_TYPES)}")
    amount = money(require_positive(payload.get("amount"), "amount"))
    payment_method = payload.get("payment_method")
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    sale_id = payload.get("sale_id")
    if sale_id is not None:
        sale_id = get_scoped_or_404(Sale, sale_id, restaurant_id, "Sale").id

    register = _lock_active(restaurant_id, register_id)
    register.transactions.append(CashTransaction(
        transaction_type=tx_type,
        amount=amount,
        description=_text(payload, "description"),
        payment_method=payment_method,
        sale_id=sale_id,
        created_by_user_id=user_id,
        created_at=utcnow(),
    ))
    if tx_type == TX_SALE:
        register.total_sales = money(D(register.total_sales) + amount)
    else:
        register.total_expenses = money(D(register.total_expenses) + amount)
    db.session.commit()
    return register


def _history_query(restaurant_id: int, args):
    query = scoped_query(CashRegister, restaurant_id)
    for key, op in (("start_date", "ge"), ("end_date", "le")):
        raw = args.get(key)
        if raw:
            try:
                day = date.fromisoformat(raw.strip()[:10])
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 date")
            column = CashRegister.business_date
            query = query.filter(column >= day if op == "ge" else column <= day)
    status = args.get("status")
    if status:
        if status not in (REGISTER_ACTIVE, REGISTER_CLOSED):
            raise ValidationError("status must be 'active' or 'closed'")
        query = query.filter(CashRegister.status == status)
    return query


def history(restaurant_id: int, args) -> tuple[list[CashRegister], dict]:
    page, limit = page_args(args)
    query = _history_query(restaurant_id, args).order_by(
        CashRegister.business_date.desc(), CashRegister.id.desc(),
    )
    return paginate(query, page=page, limit=limit)


def summary(restaurant_id: int, args) -> dict:
    registers = _history_query(restaurant_id, args).all()
    totals = {
        "total_opening": ZERO,
        "total_closing": ZERO,
        "total_sales": ZERO,
        "total_expenses": ZERO,
        "total_difference": ZERO,
    }
    for register in registers:
        totals["total_opening"] += D(register.opening_amount)
        totals["total_closing"] += D(register.closing_amount)
        totals["total_sales"] += D(register.total_sales)
        totals["total_expenses"] += D(register.total_expenses)
        totals["total_difference"] += D(register.difference)
    data = {key: float(money(value)) for key, value in totals.items()}
    data["register_count"] = len(registers)
    data["active_count"] = sum(1 for r in registers if r.status == REGISTER_ACTIVE)
    return data
