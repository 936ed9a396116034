# Overview: Service-layer operations for auth; password hashing and credential checks.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing; staff log in with their phone number.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 6 characters, no Myanmar-script characters (keyboard-layout slips)
- Only ACTIVE users may authenticate
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from phoneshop.phone_utils import normalize_phone
from phoneshop.time_utils import utcnow
from phoneshop.validation import ValidationError


MIN_PASSWORD_LENGTH = 6
MYANMAR_SCRIPT_RE = re.compile("[\\u1000-\\u109F]")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet requirements."""

    def __init__(self, message: str):
        super().__init__(message, field="password")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets requirements.

    Requirements:
    - Minimum 6 characters
    - No Myanmar-script characters

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if MYANMAR_SCRIPT_RE.search(password):
        raise PasswordValidationError("Password cannot contain Myanmar characters")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    WHY: Cost factor 12 provides good security/performance balance.
    Tests lower BCRYPT_ROUNDS to keep the suite fast.

    Password is validated before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    Malformed hashes never authenticate.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(phone: str, password: str) -> User | None:
    """
    Authenticate user with phone and password.

    Returns User if credentials valid and the account is ACTIVE, None otherwise.
    Updates last_login_at timestamp on successful authentication.

    WHY: Central authentication function. All login flows go through here.
    """
    normalized = normalize_phone(phone)
    user = db.session.query(User).filter(User.phone == normalized).first()

    if not user or not user.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
