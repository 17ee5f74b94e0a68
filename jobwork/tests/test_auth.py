"""
Tests for registration, login and the Auth Gate.
"""
from datetime import timedelta

import pytest

from jobwork.core.config import settings
from jobwork.core.security import create_access_token

from conftest import PASSWORD


def register_body(**overrides):
    body = {
        "email": "new.buyer@example.com",
        "password": "Secret1234",
        "name": "New Buyer",
        "role": "buyer",
        "companyName": "New Buyer Pvt Ltd",
    }
    body.update(overrides)
    return body


class TestRegistration:
    """Public self-registration for buyers and suppliers."""

    def test_register_returns_token_and_creates_company(self, client, storage):
        """Registering creates the company first and links the user to it."""
        response = client.post("/api/auth/register", json=register_body())
        assert response.status_code == 201
        data = response.json()
        assert data["access_token"]
        assert data["user"]["role"] == "buyer"
        assert "hashed_password" not in data["user"]

        user = storage.get_user_by_email("new.buyer@example.com")
        assert user.company_id is not None
        assert storage.get_company(user.company_id).name == "New Buyer Pvt Ltd"

    @pytest.mark.parametrize("role", ["admin", "owner", ""])
    def test_register_rejects_roles_outside_buyer_supplier(self, client, role):
        """Only buyer and supplier can self-register."""
        response = client.post("/api/auth/register", json=register_body(role=role))
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"
        assert any(d["field"] == "role" for d in response.json()["details"])

    def test_register_requires_company_name(self, client):
        body = register_body()
        del body["companyName"]
        response = client.post("/api/auth/register", json=body)
        assert response.status_code == 400

    def test_duplicate_email_is_conflict_case_insensitively(self, client):
        assert client.post("/api/auth/register", json=register_body()).status_code == 201
        response = client.post("/api/auth/register", json=register_body(email="NEW.Buyer@example.com"))
        assert response.status_code == 409
        assert response.json() == {"error": "Email already registered"}

    def test_registration_can_be_disabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_PUBLIC_REGISTRATION", False)
        response = client.post("/api/auth/register", json=register_body())
        assert response.status_code == 403


class TestLogin:
    """Password login."""

    def test_login_success(self, client, buyer):
        response = client.post("/api/auth/login", json={"email": "buyer@example.com", "password": PASSWORD})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == buyer.id

    def test_login_email_is_case_insensitive(self, client, buyer):
        response = client.post("/api/auth/login", json={"email": "BUYER@example.com", "password": PASSWORD})
        assert response.status_code == 200

    def test_wrong_password_and_unknown_email_look_the_same(self, client, buyer):
        """Both failures return 401 with an identical message."""
        wrong = client.post("/api/auth/login", json={"email": "buyer@example.com", "password": "nope-nope"})
        unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert wrong.status_code == 401
        assert unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"error": "Invalid email or password"}

    def test_login_writes_audit_entry(self, client, storage, buyer):
        client.post("/api/auth/login", json={"email": "buyer@example.com", "password": PASSWORD})
        actions = [e.action for e in storage.list_audit_logs(entity_type="user", entity_id=buyer.id)]
        assert "login" in actions


class TestAuthGate:
    """Bearer token verification and role gates."""

    def test_missing_credentials(self, client):
        response = client.get("/api/protected/rfqs")
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    def test_malformed_token(self, client):
        response = client.get("/api/protected/rfqs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_expired_token(self, client, buyer):
        token = create_access_token({"sub": buyer.id, "email": buyer.user.email},
                                    expires_delta=timedelta(minutes=-5))
        response = client.get("/api/protected/rfqs", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json() == {"error": "Token expired"}

    def test_token_for_unknown_user(self, client):
        token = create_access_token({"sub": "missing-id", "email": "ghost@example.com"})
        response = client.get("/api/protected/rfqs", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json() == {"error": "User not found"}

    def test_email_claim_must_match_stored_user(self, client, buyer):
        token = create_access_token({"sub": buyer.id, "email": "someone.else@example.com"})
        response = client.get("/api/protected/rfqs", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_role_claim_in_token_is_ignored(self, client, buyer):
        """A buyer cannot become admin by forging the role claim."""
        token = create_access_token({"sub": buyer.id, "email": buyer.user.email, "role": "admin"})
        response = client.get("/api/protected/admin/metrics", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403
        assert response.json() == {"error": "Insufficient permissions"}

    def test_role_mismatch_is_forbidden(self, client, supplier):
        response = client.post("/api/protected/rfqs", json={}, headers=supplier.headers)
        assert response.status_code == 403

    def test_me_returns_user_and_company(self, client, buyer):
        response = client.get("/api/protected/auth/me", headers=buyer.headers)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "buyer@example.com"
        assert response.json()["company"]["name"] == "Buyer Industries"

    def test_legacy_email_header_disabled_by_default(self, client, buyer):
        response = client.get("/api/protected/rfqs", headers={"X-User-Email": "buyer@example.com"})
        assert response.status_code == 401

    def test_legacy_email_header_when_enabled(self, client, buyer, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_LEGACY_EMAIL_HEADER", True)
        response = client.get("/api/protected/auth/me", headers={"X-User-Email": "Buyer@Example.com"})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == buyer.id
