# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication Routes

SECURITY NOTES:
- Login responds with the same message for unknown phones, wrong passwords
  and inactive accounts.
- The plaintext token is returned once (body + http-only cookie); only its
  hash is stored.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

TOKEN_COOKIE = "token"


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with phone and password.

    Request body:
    {
        "phone": "09123456789",
        "password": "password123"
    }

    Returns:
        {token, user} and sets the "token" cookie
    """
    data = request.get_json(silent=True) or {}
    phone = data.get("phone")
    password = data.get("password")

    if not phone or not password:
        return jsonify({"error": "Phone and password are required"}), 400

    try:
        user = auth_service.authenticate(phone, password)
        if not user:
            return jsonify({"error": "Invalid phone or password"}), 401

        _, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        response = jsonify({"token": token, "user": user.to_dict()})
        response.set_cookie(
            TOKEN_COOKIE,
            token,
            httponly=True,
            secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
            samesite="Lax",
            max_age=current_app.config.get("SESSION_ABSOLUTE_HOURS", 24) * 3600,
        )
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session and clear the cookie."""
    try:
        session_service.revoke_session(g.session_token, reason="User logout")
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500

    response = jsonify({"message": "Logged out successfully"})
    response.delete_cookie(TOKEN_COOKIE)
    return response, 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})
