# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import g, request

from .responses import error_response
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.restaurant_id: The tenant every service call is scoped to
    - g.role: Role snapshot captured when the session was created
    - g.session_context: The full SessionContext object

    SECURITY:
    - 401 when no bearer token is sent
    - 403 when the token is unknown, expired, revoked or idle
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return error_response("Access token required", 401)

        context = session_service.validate_session(token)
        if not context:
            return error_response("Invalid or expired token", 403)

        g.current_user = context.user
        g.restaurant_id = context.restaurant_id
        g.role = context.role
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the session role to be one of roles. Use after @require_auth.
    """
    allowed = set(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return error_response("Access token required", 401)
            if g.role not in allowed:
                return error_response("Insufficient permissions", 403)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_admin = require_role("admin")
