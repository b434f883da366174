"""Tests for authentication: password hashing, JWT tokens, login and logout."""

from datetime import datetime, timedelta, timezone

import jwt

from stockledger.core.rbac import UserRole
from stockledger.core.security import (
    blacklist_token,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from stockledger.models.user import User

API = "/api/v1"


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = get_password_hash("s3cret-pass")
        assert verify_password("s3cret-pass", hashed)

    def test_wrong_password_rejected(self):
        hashed = get_password_hash("s3cret-pass")
        assert not verify_password("other-pass", hashed)

    def test_hash_is_unique(self):
        assert get_password_hash("same") != get_password_hash("same")

    def test_invalid_hash_returns_false(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")


class TestJWTTokens:
    def test_create_and_decode(self):
        token = create_access_token({"sub": "7", "email": "a@b.com", "role": "staff"})
        payload = decode_access_token(token)
        assert payload["sub"] == "7"
        assert payload["email"] == "a@b.com"
        assert payload["jti"]
        assert payload["exp"] > payload["iat"]

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "7"}, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_foreign_signature_rejected(self):
        token = jwt.encode(
            {"sub": "7", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "some-other-secret-key-that-is-long-enough",
            algorithm="HS256",
        )
        assert decode_access_token(token) is None

    def test_blacklisted_token_rejected(self):
        token = create_access_token({"sub": "8", "email": "x@y.com", "role": "staff"})
        assert blacklist_token(token) is True
        assert decode_access_token(token) is None


class TestLoginEndpoint:
    def test_successful_login(self, client, test_user):
        response = client.post(
            f"{API}/auth/login",
            json={"email": "test@example.com", "password": "testpass123"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        payload = decode_access_token(body["access_token"])
        assert payload["sub"] == str(test_user.id)
        assert payload["role"] == "owner"

    def test_wrong_password_401(self, client, test_user):
        response = client.post(
            f"{API}/auth/login",
            json={"email": "test@example.com", "password": "wrong"},
        )
        assert response.status_code == 401

    def test_unknown_email_401(self, client):
        response = client.post(
            f"{API}/auth/login",
            json={"email": "nobody@example.com", "password": "whatever"},
        )
        assert response.status_code == 401

    def test_inactive_user_401(self, client, db_session):
        db_session.add(User(
            email="gone@example.com",
            password_hash=get_password_hash("gonepass1"),
            role=UserRole.STAFF,
            is_active=False,
        ))
        db_session.commit()
        response = client.post(
            f"{API}/auth/login",
            json={"email": "gone@example.com", "password": "gonepass1"},
        )
        assert response.status_code == 401


class TestCurrentUser:
    def test_me(self, client, auth_headers, test_user):
        response = client.get(f"{API}/auth/me", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == test_user.id
        assert body["role"] == "owner"
        assert body["first_name"] == "Test"

    def test_me_with_cookie(self, client, auth_token):
        client.cookies.set("access_token", auth_token)
        try:
            assert client.get(f"{API}/auth/me").status_code == 200
        finally:
            client.cookies.clear()

    def test_deactivated_user_token_rejected(self, client, db_session, auth_headers, test_user):
        test_user.is_active = False
        db_session.commit()
        response = client.get(f"{API}/auth/me", headers=auth_headers)
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, auth_headers):
        response = client.post(f"{API}/auth/logout", headers=auth_headers)
        assert response.status_code == 200
        assert client.get(f"{API}/auth/me", headers=auth_headers).status_code == 401


class TestPublicEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["checks"]["database"] == "healthy"
        assert body["checks"]["redis"] == "not configured"

    def test_root(self, client):
        assert client.get("/").json()["message"] == "Stock Ledger API"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
