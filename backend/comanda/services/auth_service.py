# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

WHY: Every action must be attributable. Uses bcrypt for password hashing
and validates password strength.

MULTI-TENANT: Registering creates a Restaurant (the tenant) together with
its first admin user. Later users are created inside an existing
restaurant. Email is the login identifier and is globally unique.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, mixed case, a digit and a special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Restaurant, User
from ..models.auth import ROLES, ROLE_ADMIN
from comanda.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class RegistrationError(ValueError):
    """Raised when a restaurant or user cannot be created."""
    pass


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw is timing-safe. A malformed stored hash verifies as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise RegistrationError("A valid email is required")
    return email


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug[:48] or "restaurant"


def _unique_slug(name: str) -> str:
    base = _slugify(name)
    slug = base
    suffix = 2
    while db.session.query(Restaurant.id).filter_by(slug=slug).first() is not None:
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def _email_taken(email: str) -> bool:
    return db.session.query(User.id).filter(func.lower(User.email) == email).first() is not None


def create_user(
    *,
    restaurant_id: int,
    email: str,
    name: str,
    password: str,
    role: str = "waiter",
    commit: bool = True,
) -> User:
    """
    Create a user inside an existing restaurant.

    Raises:
        RegistrationError: unknown role, duplicate email, missing restaurant
        PasswordValidationError: weak password
    """
    if role not in ROLES:
        raise RegistrationError(f"role must be one of: {', '.join(ROLES)}")
    if not name or not str(name).strip():
        raise RegistrationError("name is required")

    email = normalize_email(email)
    if _email_taken(email):
        raise RegistrationError("Email already registered")

    restaurant = db.session.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise RegistrationError("Restaurant not found")

    user = User(
        restaurant_id=restaurant_id,
        email=email,
        name=str(name).strip(),
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    return user


def register_restaurant(
    *,
    restaurant_name: str,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    address: str | None = None,
) -> tuple[Restaurant, User]:
    """
    Create a tenant and its first admin user in one transaction.
    """
    if not restaurant_name or not str(restaurant_name).strip():
        raise RegistrationError("restaurant_name is required")

    email = normalize_email(email)
    if _email_taken(email):
        raise RegistrationError("Email already registered")
    validate_password_strength(password)

    restaurant = Restaurant(
        name=str(restaurant_name).strip(),
        slug=_unique_slug(str(restaurant_name)),
        email=email,
        phone=phone,
        address=address,
    )
    db.session.add(restaurant)
    db.session.flush()

    user = create_user(
        restaurant_id=restaurant.id,
        email=email,
        name=name,
        password=password,
        role=ROLE_ADMIN,
        commit=False,
    )
    db.session.commit()
    return restaurant, user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns User if credentials valid and the restaurant is active, None
    otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        func.lower(User.email) == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if not user.restaurant or not user.restaurant.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
