"""
tests/test_auth_routes.py -- Integration tests for /api/v1/auth/*.

These tests exercise the full stack: FastAPI routing -> auth dependency ->
AuthService -> UserStore -> response serialization, including the error
envelope rendered by api/main.py.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pyotp

from auth import totp
from auth.models import Role

LOGIN = "/api/v1/auth/login"


def _login(api, **body):
    payload = {"email": "alice@x.com", "password": "secret1"}
    payload.update(body)
    return api.client.post(LOGIN, json=payload)


def _enable_2fa(api, user_id: int) -> str:
    headers = api.headers_for(user_id)
    secret = api.client.post("/api/v1/auth/2fa/setup", headers=headers).json()["secret"]
    resp = api.client.post("/api/v1/auth/2fa/verify", headers=headers, json={"token": pyotp.TOTP(secret).now()})
    assert resp.status_code == 200
    return secret


def _wrong_code(secret: str) -> str:
    now = datetime.now(timezone.utc)
    window = {totp.current_code(secret, now + timedelta(seconds=30 * n)) for n in range(-3, 4)}
    return "000000" if "000000" not in window else "999999"


class TestLogin:
    def test_admin_login(self, api, admin_id) -> None:
        resp = _login(api)
        assert resp.status_code == 200
        data = resp.json()
        assert data["accessToken"]
        assert data["refreshToken"]
        assert data["expiresIn"] == 3600
        assert data["user"]["id"] == admin_id
        assert data["user"]["email"] == "alice@x.com"
        assert data["user"]["role"] == "admin"
        assert data["user"]["twoFactorEnabled"] is False
        assert resp.headers["Cache-Control"] == "no-store"

    def test_response_never_contains_secrets(self, api, admin_id) -> None:
        _enable_2fa(api, admin_id)
        body = api.client.get("/api/v1/auth/me", headers=api.headers_for(admin_id)).text
        assert "hashed_password" not in body and "hashedPassword" not in body
        assert "two_factor_secret" not in body and "twoFactorSecret" not in body

    def test_wrong_password(self, api, admin_id) -> None:
        resp = _login(api, password="nope-nope")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_credentials"

    def test_unknown_email_same_error(self, api, admin_id) -> None:
        unknown = _login(api, email="ghost@x.com").json()
        wrong = _login(api, password="nope-nope").json()
        assert unknown == wrong

    def test_missing_fields_is_400(self, api, admin_id) -> None:
        resp = api.client.post(LOGIN, json={"email": "alice@x.com"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_two_factor_flow(self, api, admin_id) -> None:
        secret = _enable_2fa(api, admin_id)

        challenge = _login(api)
        assert challenge.status_code == 200
        assert challenge.json()["requiresTwoFactor"] is True
        assert "accessToken" not in challenge.json()

        bad = _login(api, twoFactorCode=_wrong_code(secret))
        assert bad.status_code == 401
        assert bad.json()["error"]["code"] == "invalid_two_factor_code"

        good = _login(api, twoFactorCode=pyotp.TOTP(secret).now())
        assert good.status_code == 200
        assert good.json()["user"]["twoFactorEnabled"] is True


class TestRefresh:
    def test_refresh_returns_new_pair(self, api, admin_id) -> None:
        tokens = _login(api).json()
        resp = api.client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["accessToken"] and data["refreshToken"]
        assert data["expiresIn"] == 3600

    def test_access_token_rejected(self, api, admin_id) -> None:
        tokens = _login(api).json()
        resp = api.client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["accessToken"]})
        assert resp.status_code == 401

    def test_missing_token_is_400(self, api) -> None:
        assert api.client.post("/api/v1/auth/refresh", json={}).status_code == 400


class TestSession:
    def test_me(self, api, admin_id) -> None:
        resp = api.client.get("/api/v1/auth/me", headers=api.headers_for(admin_id))
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_me_without_token(self, api) -> None:
        resp = api.client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Authentication token not provided."

    def test_malformed_header(self, api, admin_id) -> None:
        resp = api.client.get("/api/v1/auth/me", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401

    def test_invalid_token(self, api) -> None:
        resp = api.client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid token."

    def test_token_for_deleted_user(self, api, admin_id) -> None:
        headers = api.headers_for(admin_id)
        api.users.delete_user(admin_id)
        resp = api.client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 401

    def test_logout_does_not_revoke(self, api, admin_id) -> None:
        headers = api.headers_for(admin_id)
        assert api.client.post("/api/v1/auth/logout", headers=headers).json()["success"] is True
        assert api.client.get("/api/v1/auth/me", headers=headers).status_code == 200


class TestTwoFactorRoutes:
    def test_setup_payload(self, api, admin_id) -> None:
        resp = api.client.post("/api/v1/auth/2fa/setup", headers=api.headers_for(admin_id))
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["secret"]) == 32
        assert data["enrollmentURI"].startswith("otpauth://totp/")
        assert data["qrCode"].startswith("data:image/png;base64,")
        assert resp.headers["Cache-Control"] == "no-store"
        assert api.users.get_by_id(admin_id).two_factor_enabled is False

    def test_verify_with_wrong_code_is_400(self, api, admin_id) -> None:
        headers = api.headers_for(admin_id)
        secret = api.client.post("/api/v1/auth/2fa/setup", headers=headers).json()["secret"]
        resp = api.client.post("/api/v1/auth/2fa/verify", headers=headers, json={"token": _wrong_code(secret)})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_code"

    def test_verify_without_setup_is_400(self, api, admin_id) -> None:
        resp = api.client.post("/api/v1/auth/2fa/verify", headers=api.headers_for(admin_id), json={"token": "123456"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "no_pending_secret"

    def test_setup_while_enabled_is_400(self, api, admin_id) -> None:
        _enable_2fa(api, admin_id)
        resp = api.client.post("/api/v1/auth/2fa/setup", headers=api.headers_for(admin_id))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "two_factor_already_enabled"

    def test_disable(self, api, admin_id) -> None:
        _enable_2fa(api, admin_id)
        headers = api.headers_for(admin_id)
        wrong = api.client.post("/api/v1/auth/2fa/disable", headers=headers, json={"password": "nope-nope"})
        assert wrong.status_code == 401
        ok = api.client.post("/api/v1/auth/2fa/disable", headers=headers, json={"password": "secret1"})
        assert ok.status_code == 200
        assert _login(api).json()["accessToken"]


class TestExpiredAccess:
    def test_expired_token_on_role_gated_endpoint(self, api, admin_id) -> None:
        user = api.users.get_by_id(admin_id)
        expired = api.issuer.issue_access_token(user, now=datetime.now(timezone.utc) - timedelta(hours=2))
        resp = api.client.get("/api/v1/users", headers={"Authorization": f"Bearer {expired}"})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Token expired."

    def test_role_read_live_not_from_token(self, api, admin_id) -> None:
        headers = api.headers_for(admin_id)
        api.users.update_user(admin_id, role=Role.responsible)
        assert api.client.get("/api/v1/users", headers=headers).status_code == 403
