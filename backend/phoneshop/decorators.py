# Overview: Request decorators for API routes (authentication, role gates) and service-error translation.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .validation import ConflictError, InvalidStateError, NotFoundError, ValidationError


# Exceptions a service may raise on purpose; anything else is a 500.
SERVICE_ERRORS = (ValidationError, InvalidStateError, ConflictError, NotFoundError)


def error_response(exc: Exception):
    """Translate a service exception into (JSON body, status)."""
    if isinstance(exc, ValidationError):
        return jsonify(exc.to_dict()), 400
    if isinstance(exc, InvalidStateError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, ConflictError):
        body = {"error": str(exc)}
        duplicates = getattr(exc, "duplicates", None)
        if duplicates:
            body["duplicates"] = duplicates
        return jsonify(body), 409
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    raise exc


def _request_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get("token") or None


def require_auth(f):
    """
    Require a valid session token.

    The token is read from "Authorization: Bearer <token>" or, failing that,
    the http-only "token" cookie set at login.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the full SessionContext

    SECURITY: Returns 401 if the token is missing, unknown, expired, revoked,
    or belongs to an account that is no longer ACTIVE.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _request_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of `roles` (e.g. "ADMIN").

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if user.role not in roles:
                return jsonify({"error": "Forbidden: Insufficient permissions"}), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_admin = require_role("ADMIN")
