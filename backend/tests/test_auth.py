"""
Authentication and session tests.

Verifies:
- phone + password login returns a token and sets an http-only cookie
- bad credentials and inactive accounts get the same 401
- logout revokes the session; password changes revoke every session
- cookie and bearer tokens are both accepted
"""

from datetime import timedelta

import pytest

from phoneshop.models import SessionToken
from phoneshop.services import auth_service, session_service, user_service


ADMIN_PHONE = "09123456789"
PASSWORD = "password123"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestPasswordHashing:

    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("wrong-password", hashed)

    @pytest.mark.parametrize("password", ["short", "ကခဂဃငစဆ"])
    def test_weak_passwords_rejected(self, app, password):
        with pytest.raises(auth_service.PasswordValidationError):
            auth_service.hash_password(password)

    def test_malformed_hash_never_verifies(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestLogin:

    def test_login_success(self, client, admin_user):
        resp = client.post("/auth/login", json={"phone": ADMIN_PHONE, "password": PASSWORD})

        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["role"] == "ADMIN"
        assert "password_hash" not in resp.json["user"]

        cookie = resp.headers["Set-Cookie"]
        assert cookie.startswith("token=")
        assert "HttpOnly" in cookie

    def test_login_accepts_international_format(self, client, admin_user):
        resp = client.post("/auth/login", json={"phone": "+95 9123456789", "password": PASSWORD})
        assert resp.status_code == 200

    def test_missing_fields(self, client, db_session):
        resp = client.post("/auth/login", json={"phone": ADMIN_PHONE})

        assert resp.status_code == 400
        assert resp.json["error"] == "Phone and password are required"

    @pytest.mark.parametrize("phone,password", [(ADMIN_PHONE, "wrong-password"), ("09111111111", PASSWORD)])
    def test_bad_credentials(self, client, admin_user, phone, password):
        resp = client.post("/auth/login", json={"phone": phone, "password": password})

        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid phone or password"

    def test_inactive_user_cannot_login(self, client, admin_user, db_session):
        admin_user.status = "INACTIVE"
        db_session.commit()

        resp = client.post("/auth/login", json={"phone": ADMIN_PHONE, "password": PASSWORD})
        assert resp.status_code == 401

    def test_login_stamps_last_login(self, client, admin_user):
        client.post("/auth/login", json={"phone": ADMIN_PHONE, "password": PASSWORD})
        resp = client.get("/auth/me")

        assert resp.status_code == 200
        assert resp.json["user"]["last_login_at"] is not None


class TestSessions:

    def test_me_with_bearer_token(self, client, admin_headers, admin_user):
        resp = client.get("/auth/me", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["user"]["id"] == admin_user.id

    def test_invalid_token(self, app, db_session):
        resp = app.test_client().get("/auth/me", headers=auth_headers("not-a-real-token"))

        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    def test_missing_token(self, app, db_session):
        resp = app.test_client().get("/auth/me")

        assert resp.status_code == 401
        assert resp.json["error"] == "Authentication required"

    def test_logout_revokes(self, app, admin_user, db_session):
        _, token = session_service.create_session(admin_user.id)
        client = app.test_client()

        assert client.post("/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/auth/me", headers=auth_headers(token)).status_code == 401

        row = db_session.query(SessionToken).filter_by(token_hash=session_service.hash_token(token)).one()
        assert row.is_revoked is True
        assert row.revoked_reason == "User logout"

    def test_only_hash_is_stored(self, admin_user):
        session, token = session_service.create_session(admin_user.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_password_change_revokes_sessions(self, app, seller_user):
        _, first = session_service.create_session(seller_user.id)
        _, second = session_service.create_session(seller_user.id)

        user_service.update_user(seller_user.id, {"password": "new-password"})

        assert session_service.validate_session(first) is None
        assert session_service.validate_session(second) is None

    def test_deactivation_revokes_sessions(self, seller_user):
        _, token = session_service.create_session(seller_user.id)
        user_service.update_user(seller_user.id, {"status": "SUSPENDED"})
        assert session_service.validate_session(token) is None

    def test_idle_session_expires(self, app, admin_user, db_session):
        session, token = session_service.create_session(admin_user.id)
        idle = timedelta(hours=app.config.get("SESSION_IDLE_HOURS", 2), minutes=1)
        session.last_used_at = session.last_used_at - idle
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"
