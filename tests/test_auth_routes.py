"""HTTP tests for /api/auth and /api/users."""

from datetime import timedelta

import pytest

from cyclofit.shared.auth.database import User, utcnow

from conftest import PASSWORD, auth_headers, create_user

REGISTRATION = {
    "first_name": "Eddy",
    "last_name": "Rider",
    "email": "Eddy@Example.com",
    "password": "long-enough-password",
}


def reload(db, email):
    db.expire_all()
    return db.query(User).filter(User.email == email).one()


class TestRegister:
    """POST /api/auth/register"""

    def test_creates_unverified_user(self, client, db):
        response = client.post("/api/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["dev"] is True
        assert body["user"]["email"] == "eddy@example.com"
        assert body["user"]["is_email_verified"] is False

        stored = reload(db, "eddy@example.com")
        assert stored.password_hash != REGISTRATION["password"]
        assert stored.email_verification_token

    def test_duplicate_email(self, client, user):
        response = client.post("/api/auth/register", json={**REGISTRATION, "email": user.email})
        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists"

    @pytest.mark.parametrize("field,value", [("password", "short"), ("email", "not-an-email"), ("first_name", "  ")])
    def test_validation(self, client, field, value):
        assert client.post("/api/auth/register", json={**REGISTRATION, field: value}).status_code == 422


class TestVerifyEmail:
    """GET /api/auth/verify-email"""

    def test_verifies(self, client, db):
        client.post("/api/auth/register", json=REGISTRATION)
        token = reload(db, "eddy@example.com").email_verification_token

        response = client.get("/api/auth/verify-email", params={"token": token})
        assert response.status_code == 200
        assert response.json()["user"]["is_email_verified"] is True
        assert reload(db, "eddy@example.com").email_verification_token is None

    def test_missing_token(self, client):
        assert client.get("/api/auth/verify-email").status_code == 400

    def test_expired_token(self, client, db):
        rider = create_user(db, email="late@example.com", verified=False,
                            email_verification_token="old-token",
                            email_verification_expires=utcnow() - timedelta(minutes=1))
        response = client.get("/api/auth/verify-email", params={"token": "old-token"})
        assert response.status_code == 400
        assert reload(db, rider.email).is_email_verified is False

    def test_resend(self, client, db):
        create_user(db, email="late@example.com", verified=False)
        response = client.post("/api/auth/resend-verification", json={"email": "late@example.com"})
        assert response.status_code == 200
        assert reload(db, "late@example.com").email_verification_token

    def test_resend_already_verified(self, client, user):
        assert client.post("/api/auth/resend-verification", json={"email": user.email}).status_code == 400

    def test_resend_unknown(self, client):
        assert client.post("/api/auth/resend-verification", json={"email": "ghost@example.com"}).status_code == 404


class TestLogin:
    """POST /api/auth/login"""

    def test_success(self, client, user, db):
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200
        token = response.json()["token"]
        assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).json()["user"]["id"] == user.id
        assert reload(db, user.email).last_login_at is not None

    def test_wrong_password(self, client, user):
        response = client.post("/api/auth/login", json={"email": user.email, "password": "wrong-password"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid credentials"

    def test_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert response.status_code == 400

    def test_unverified(self, client, db):
        create_user(db, email="new@example.com", verified=False)
        response = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
        assert response.status_code == 403
        assert response.json()["needs_verification"] is True
        assert response.json()["email"] == "new@example.com"

    def test_deactivated(self, client, db):
        create_user(db, email="gone@example.com", active=False)
        response = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_rate_limited(self, client, user):
        """The eleventh attempt inside the window is refused."""
        for _ in range(10):
            client.post("/api/auth/login", json={"email": user.email, "password": "wrong-password"})
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "rate_limit_exceeded"


class TestPasswordReset:
    """forgot-password then reset-password."""

    def test_reset_flow(self, client, db, user):
        assert client.post("/api/auth/forgot-password", json={"email": user.email}).status_code == 200
        token = reload(db, user.email).password_reset_token

        response = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-password"})
        assert response.status_code == 200

        login = client.post("/api/auth/login", json={"email": user.email, "password": "brand-new-password"})
        assert login.status_code == 200
        assert reload(db, user.email).password_reset_token is None

    def test_forgot_unknown_email(self, client):
        assert client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"}).status_code == 404

    def test_invalid_token(self, client):
        response = client.post("/api/auth/reset-password", json={"token": "nope", "password": "brand-new-password"})
        assert response.status_code == 400


class TestTokens:
    """Bearer token handling on protected routes."""

    def test_missing(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_garbage(self, client):
        assert client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"}).status_code == 401

    def test_deactivated_user_token(self, client, db, settings):
        rider = create_user(db, email="gone@example.com", active=False)
        assert client.get("/api/auth/me", headers=auth_headers(rider, settings)).status_code == 401


class TestProfile:
    """GET/PUT /api/users/me"""

    def test_get(self, client, headers, user):
        body = client.get("/api/users/me", headers=headers).json()
        assert body["success"] is True
        assert body["user"]["full_name"] == "Test Rider"

    def test_partial_update(self, client, headers, db, user):
        response = client.put("/api/users/me", headers=headers, json={"height": 182, "bike_type": "Gravel"})
        assert response.status_code == 200

        stored = reload(db, user.email)
        assert stored.height == 182
        assert stored.bike_type == "Gravel"
        assert stored.first_name == "Test"

    @pytest.mark.parametrize("payload", [
        {"height": 90},
        {"weight": 250},
        {"bike_type": "Penny Farthing"},
        {"experience": "Legend"},
        {"bio": "x" * 501},
    ])
    def test_rejects_out_of_range(self, client, headers, payload):
        assert client.put("/api/users/me", headers=headers, json=payload).status_code == 422
