"""
Auth Unit & Integration Tests

Tests cover:
  - Password hashing (bcrypt) and vault encryption (Fernet)
  - JWT token generation / verification
  - Auth API: register, login, refresh, logout, me
  - Profile and password change
  - Blocked accounts and the platform admin guard
"""

import jwt as pyjwt
import pytest
from cryptography.fernet import InvalidToken

from app.models import db
from app.models.auth import Session
from app.services.jwt_service import decode_access_token, decode_refresh_token, generate_token_pair
from app.utils.crypto import (
    decrypt_secret,
    encrypt_secret,
    generate_token,
    hash_password,
    sha256_hex,
    verify_password,
)


def _login(client, email="agency@example.com", password="Secret123!"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


# ═══════════════════════════════════════════════════════════════
# Crypto
# ═══════════════════════════════════════════════════════════════

class TestCrypto:
    def test_hash_and_verify(self):
        h = hash_password("hunter22")
        assert h.startswith("$2b$")
        assert verify_password("hunter22", h)
        assert not verify_password("hunter23", h)

    def test_verify_rejects_empty_hash(self):
        assert not verify_password("x", "")
        assert not verify_password(None, "$2b$12$abc")

    def test_encrypt_roundtrip_and_tamper(self):
        token = encrypt_secret("sk-live-123")
        assert token != "sk-live-123"
        assert decrypt_secret(token) == "sk-live-123"
        with pytest.raises(InvalidToken):
            decrypt_secret(token[:-4] + "AAAA")

    def test_encrypt_requires_key(self, monkeypatch):
        monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
        with pytest.raises(RuntimeError):
            encrypt_secret("x")

    def test_tokens(self):
        assert len(generate_token(16)) == 32
        assert sha256_hex("abc") == sha256_hex("abc")


# ═══════════════════════════════════════════════════════════════
# JWT
# ═══════════════════════════════════════════════════════════════

class TestJWT:
    def test_token_pair_payloads(self):
        pair = generate_token_pair(42, "user")
        access = decode_access_token(pair["access_token"])
        refresh = decode_refresh_token(pair["refresh_token"])
        assert access["sub"] == "42"
        assert access["role"] == "user"
        assert refresh["type"] == "refresh"
        assert pair["token_type"] == "Bearer"

    def test_access_token_is_not_a_refresh_token(self):
        pair = generate_token_pair(1, "user")
        with pytest.raises(pyjwt.InvalidTokenError):
            decode_refresh_token(pair["access_token"])


# ═══════════════════════════════════════════════════════════════
# Register / login / refresh / logout
# ═══════════════════════════════════════════════════════════════

class TestAuthAPI:
    def test_register_returns_tokens(self, client):
        res = client.post("/api/v1/auth/register", json={
            "email": "New@Example.com", "password": "abcdef", "first_name": "Nina",
        })
        assert res.status_code == 201
        body = res.get_json()
        assert body["access_token"] and body["refresh_token"]
        assert body["user"]["email"] == "new@example.com"
        assert "password_hash" not in body["user"]

    def test_register_duplicate_email(self, client, user):
        res = client.post("/api/v1/auth/register", json={"email": user.email, "password": "abcdef"})
        assert res.status_code == 400

    def test_register_short_password(self, client):
        res = client.post("/api/v1/auth/register", json={"email": "x@example.com", "password": "123"})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"password": "too_short"}

    def test_register_missing_fields(self, client):
        res = client.post("/api/v1/auth/register", json={"email": "x@example.com"})
        assert res.status_code == 400

    def test_login_success(self, client, user):
        res = _login(client)
        assert res.status_code == 200
        assert res.get_json()["user"]["id"] == user.id
        assert Session.query.filter_by(user_id=user.id).count() == 1

    def test_login_wrong_password(self, client, user):
        res = _login(client, password="wrong-pass")
        assert res.status_code == 401

    def test_login_blocked_user(self, client, user):
        user.is_blocked = True
        db.session.commit()
        res = _login(client)
        assert res.status_code == 403

    def test_refresh_rotates_token(self, client, user):
        refresh_token = _login(client).get_json()["refresh_token"]
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 200
        new_refresh = res.get_json()["refresh_token"]
        assert new_refresh != refresh_token

        # the old refresh token is revoked by rotation
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 401

    def test_refresh_with_garbage(self, client):
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": "not.a.jwt"})
        assert res.status_code == 401

    def test_logout_revokes_session(self, client, user):
        refresh_token = _login(client).get_json()["refresh_token"]
        res = client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token})
        assert res.status_code == 200
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert res.status_code == 401

    def test_me_requires_token(self, client):
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_me_with_token(self, client, user, auth_headers):
        res = client.get("/api/v1/auth/me", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["email"] == "agency@example.com"

    def test_blocked_user_token_rejected(self, client, user, auth_headers):
        user.is_blocked = True
        db.session.commit()
        assert client.get("/api/v1/auth/me", headers=auth_headers).status_code == 403

    def test_invalid_bearer_is_unauthenticated(self, client):
        res = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert res.status_code == 401


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════

class TestProfile:
    def test_update_profile(self, client, auth_headers):
        res = client.put("/api/v1/profile", json={"job_title": "Founder", "linkedin": "ana-lima"},
                         headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["job_title"] == "Founder"
        assert body["linkedin"] == "ana-lima"

    def test_change_password(self, client, user, auth_headers):
        res = client.put("/api/v1/profile/password",
                         json={"current_password": "Secret123!", "new_password": "NewSecret1"},
                         headers=auth_headers)
        assert res.status_code == 200
        assert _login(client, password="NewSecret1").status_code == 200

    def test_change_password_wrong_current(self, client, auth_headers):
        res = client.put("/api/v1/profile/password",
                         json={"current_password": "nope-nope", "new_password": "NewSecret1"},
                         headers=auth_headers)
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════
# Request guards
# ═══════════════════════════════════════════════════════════════

class TestRequestGuards:
    def test_non_json_body_rejected(self, client, auth_headers):
        res = client.post("/api/v1/clients", data="name=x", headers={
            **auth_headers, "Content-Type": "text/plain",
        })
        assert res.status_code == 415

    def test_unknown_api_path_is_json_404(self, client):
        res = client.get("/api/v1/does-not-exist")
        assert res.status_code == 404
        assert res.get_json()["path"] == "/api/v1/does-not-exist"

    def test_security_headers_present(self, client):
        res = client.get("/api/v1/health/live")
        assert res.headers.get("X-Content-Type-Options") == "nosniff"
