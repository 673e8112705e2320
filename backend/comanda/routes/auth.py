# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

POST /register creates a restaurant (tenant) with its first admin user and
logs that user in. Every other endpoint in the API takes the returned
token as "Authorization: Bearer <token>".
"""

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..responses import created, error_response, ok
from ..services import auth_service, session_service
from comanda.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _client_info() -> dict:
    return {
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }


def _session_payload(user, session, token: str) -> dict:
    return {
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
        "restaurant": user.restaurant.to_dict() if user.restaurant else None,
    }


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    restaurant_name = data.get("restaurant_name") or data.get("restaurantName")
    if not all([restaurant_name, data.get("name"), data.get("email"), data.get("password")]):
        return error_response("restaurant_name, name, email and password are required", 400)

    restaurant, user = auth_service.register_restaurant(
        restaurant_name=restaurant_name,
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        phone=data.get("phone"),
        address=data.get("address"),
    )
    session, token = session_service.create_session(user.id, **_client_info())
    return created(_session_payload(user, session, token), "Restaurant registered")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and open a session.

    SECURITY: unknown email, wrong password, inactive user and inactive
    restaurant all produce the same 401.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not all([email, password]):
        return error_response("email and password are required", 400)

    user = auth_service.authenticate(email, password)
    if not user:
        return error_response("Invalid credentials", 401)

    session, token = session_service.create_session(user.id, **_client_info())
    return ok(_session_payload(user, session, token), message="Login successful")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return ok(None, message="Logged out")


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return ok({
        "user": user.to_dict(),
        "restaurant": user.restaurant.to_dict() if user.restaurant else None,
        "role": g.role,
        "session_expires_at": to_utc_z(g.session_context.session.expires_at),
    })


@auth_bp.post("/renew")
@require_auth
def renew_route():
    renewed = session_service.renew_session(g.token, **_client_info())
    if renewed is None:
        return error_response("Invalid or expired token", 403)
    session, token = renewed
    return ok(_session_payload(g.current_user, session, token))
