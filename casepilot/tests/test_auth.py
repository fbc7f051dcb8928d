"""
Identity & Session Tests
========================

Registration, login, token verification, revocation and profiles.
"""

from datetime import datetime, timedelta

import jwt
import pytest

from casepilot.auth import (
    AuthService, MAX_PASSWORD_BYTES, create_access_token, decode_token,
    get_password_hash, is_password_too_long, parse_bearer, verify_password,
)
from casepilot.config import get_settings
from casepilot.db.models import Role
from casepilot.errors import Conflict, InvalidToken, TokenExpired, Unauthenticated, ValidationError
from casepilot.tests.factories import DEFAULT_PASSWORD, bearer, register
from casepilot.token_blacklist import (
    add_to_blacklist, is_blacklisted, remove_expired_blacklist_entries, sync_to_redis,
)


# =============================================================================
# Unit: passwords and tokens
# =============================================================================

class TestPasswordHashing:
    """bcrypt hashing through passlib"""

    def test_hash_and_verify(self):
        hashed = get_password_hash("correct horse battery")
        assert hashed != "correct horse battery"
        assert verify_password("correct horse battery", hashed)
        assert not verify_password("wrong", hashed)

    def test_rejects_password_over_72_bytes(self):
        long_password = "a" * (MAX_PASSWORD_BYTES + 1)
        assert is_password_too_long(long_password)
        with pytest.raises(ValidationError):
            get_password_hash(long_password)

    def test_multibyte_password_counts_bytes(self):
        # 25 three-byte characters = 75 bytes
        assert is_password_too_long("€" * 25)


class TestTokens:
    """JWT signing and verification"""

    def test_roundtrip_claims(self):
        token = create_access_token("abc-123", Role.LAWYER)
        claims = decode_token(token)
        assert claims.principal_id == "abc-123"
        assert claims.role == Role.LAWYER
        assert claims.jti

    def test_each_token_has_unique_jti(self):
        a = decode_token(create_access_token("abc", Role.CITIZEN))
        b = decode_token(create_access_token("abc", Role.CITIZEN))
        assert a.jti != b.jti

    def test_expired_token(self):
        token = create_access_token("abc", Role.CITIZEN, expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenExpired):
            decode_token(token)

    def test_wrong_signature(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "abc", "role": "citizen", "jti": "x", "type": "access",
             "exp": datetime.utcnow() + timedelta(days=1)},
            "some-other-secret-that-is-long-enough",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidToken):
            decode_token(token)

    def test_unknown_role_claim(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "abc", "role": "admin", "jti": "x", "type": "access",
             "exp": datetime.utcnow() + timedelta(days=1)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidToken):
            decode_token(token)

    def test_garbage_token(self):
        with pytest.raises(InvalidToken):
            decode_token("not-a-token")

    def test_parse_bearer(self):
        assert parse_bearer("Bearer abc") == "abc"
        for header in (None, "", "abc", "Basic abc", "Bearer "):
            with pytest.raises(Unauthenticated):
                parse_bearer(header)


# =============================================================================
# API: registration and login
# =============================================================================

class TestRegistration:
    """POST /api/v1/auth/register"""

    def test_register_citizen(self, client):
        user = register(client, "citizen", name="Ada Citizen", email="ada@example.com")
        assert user["user"]["role"] == "citizen"
        assert user["user"]["email"] == "ada@example.com"
        assert "password" not in user["user"]
        assert "passwordHash" not in user["user"]

    def test_register_lawyer_requires_specialization(self, client):
        response = client.post("/api/v1/auth/register", json={
            "role": "lawyer", "name": "No Spec", "email": "nospec@example.com",
            "password": DEFAULT_PASSWORD,
        })
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_register_lawyer(self, client):
        lawyer = register(client, "lawyer", specialization="family", licenseNumber="LIC-1")
        assert lawyer["user"]["specialization"] == "family"
        assert lawyer["user"]["licenseNumber"] == "LIC-1"

    def test_duplicate_email_same_role(self, client):
        register(client, "citizen", email="dup@example.com")
        response = client.post("/api/v1/auth/register", json={
            "role": "citizen", "name": "Again", "email": "dup@example.com", "password": DEFAULT_PASSWORD,
        })
        assert response.status_code == 400
        assert "already exists" in response.json()["message"]

    def test_same_email_in_other_role_is_allowed(self, client):
        register(client, "citizen", email="both@example.com")
        register(client, "lawyer", email="both@example.com")

    def test_duplicate_license_number(self, client):
        register(client, "lawyer", licenseNumber="LIC-9")
        response = client.post("/api/v1/auth/register", json={
            "role": "lawyer", "name": "Copy", "email": "copy@example.com",
            "password": DEFAULT_PASSWORD, "specialization": "civil", "licenseNumber": "LIC-9",
        })
        assert response.status_code == 400

    def test_short_password(self, client):
        response = client.post("/api/v1/auth/register", json={
            "role": "citizen", "name": "Short", "email": "short@example.com", "password": "abc",
        })
        assert response.status_code == 400

    def test_unknown_role(self, client):
        response = client.post("/api/v1/auth/register", json={
            "role": "admin", "name": "Root", "email": "root@example.com", "password": DEFAULT_PASSWORD,
        })
        assert response.status_code == 400


class TestLogin:
    """POST /api/v1/auth/login"""

    def test_login_success(self, client):
        register(client, "citizen", email="login@example.com")
        response = client.post("/api/v1/auth/login", json={
            "email": "login@example.com", "password": DEFAULT_PASSWORD, "role": "citizen",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token"]

    def test_login_email_is_case_insensitive(self, client):
        register(client, "citizen", email="mixed@example.com")
        response = client.post("/api/v1/auth/login", json={
            "email": "MIXED@example.com", "password": DEFAULT_PASSWORD, "role": "citizen",
        })
        assert response.status_code == 200

    def test_login_wrong_password(self, client):
        register(client, "citizen", email="wrongpw@example.com")
        response = client.post("/api/v1/auth/login", json={
            "email": "wrongpw@example.com", "password": "nope-nope-nope", "role": "citizen",
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid credentials"

    def test_login_unknown_email(self, client):
        response = client.post("/api/v1/auth/login", json={
            "email": "ghost@example.com", "password": DEFAULT_PASSWORD, "role": "citizen",
        })
        assert response.status_code == 404

    def test_login_wrong_role_store(self, client):
        register(client, "citizen", email="onlycitizen@example.com")
        response = client.post("/api/v1/auth/login", json={
            "email": "onlycitizen@example.com", "password": DEFAULT_PASSWORD, "role": "lawyer",
        })
        assert response.status_code == 404


# =============================================================================
# API: session guard
# =============================================================================

class TestSessionGuard:
    """Bearer token checks on protected endpoints"""

    def test_missing_header(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "No token, authorization denied"}

    def test_malformed_header(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers=bearer("abc.def.ghi"))
        assert response.status_code == 401

    def test_expired_token(self, client):
        user = register(client, "citizen")
        token = create_access_token(user["user"]["id"], Role.CITIZEN, expires_delta=timedelta(seconds=-1))
        response = client.get("/api/v1/auth/me", headers=bearer(token))
        assert response.status_code == 401
        assert response.json()["message"] == "Token is expired"

    def test_principal_must_exist_in_claimed_store(self, client):
        citizen = register(client, "citizen")
        # A citizen id presented with a lawyer role claim
        forged = create_access_token(citizen["user"]["id"], Role.LAWYER)
        response = client.get("/api/v1/auth/me", headers=bearer(forged))
        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    def test_me(self, client):
        lawyer = register(client, "lawyer", name="Lee Lawyer")
        response = client.get("/api/v1/auth/me", headers=lawyer["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Lee Lawyer"

    def test_logout_revokes_token(self, client):
        user = register(client, "citizen")
        response = client.post("/api/v1/auth/logout", headers=user["headers"])
        assert response.status_code == 200

        response = client.get("/api/v1/auth/me", headers=user["headers"])
        assert response.status_code == 401

    def test_logout_leaves_other_tokens_valid(self, client):
        register(client, "citizen", email="two@example.com")
        login = lambda: client.post("/api/v1/auth/login", json={
            "email": "two@example.com", "password": DEFAULT_PASSWORD, "role": "citizen",
        }).json()["data"]["token"]
        first, second = login(), login()

        client.post("/api/v1/auth/logout", headers=bearer(first))
        assert client.get("/api/v1/auth/me", headers=bearer(first)).status_code == 401
        assert client.get("/api/v1/auth/me", headers=bearer(second)).status_code == 200


class TestAuthService:
    """Service-level behaviour without HTTP"""

    def test_revoked_token_fails_authentication(self, db_session):
        service = AuthService(db_session)
        token, _ = service.register(Role.CITIZEN, "Svc", "svc@example.com", DEFAULT_PASSWORD)
        principal = service.authenticate(f"Bearer {token}")
        service.logout(principal)
        with pytest.raises(InvalidToken):
            service.authenticate(f"Bearer {token}")

    def test_concurrent_registration_is_a_conflict(self, db_session, monkeypatch):
        service = AuthService(db_session)
        service.register(Role.CITIZEN, "First", "race@example.com", DEFAULT_PASSWORD)

        # The second registration passed its email check before the first committed
        monkeypatch.setattr("casepilot.auth.find_identity_by_email", lambda db, role, email: None)
        with pytest.raises(Conflict):
            service.register(Role.CITIZEN, "Second", "race@example.com", DEFAULT_PASSWORD)

        monkeypatch.undo()
        assert service.login("race@example.com", DEFAULT_PASSWORD, Role.CITIZEN)[1].name == "First"

    def test_concurrent_registration_over_http(self, client, monkeypatch):
        register(client, "citizen", email="race-http@example.com")
        monkeypatch.setattr("casepilot.auth.find_identity_by_email", lambda db, role, email: None)
        response = client.post("/api/v1/auth/register", json={
            "role": "citizen", "name": "Late", "email": "race-http@example.com", "password": DEFAULT_PASSWORD,
        })
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "already exists" in response.json()["message"]

    def test_expired_blacklist_entries_are_pruned(self, db_session):
        now = datetime.utcnow()
        add_to_blacklist(db_session, "old-jti", "someone", now - timedelta(hours=1))
        add_to_blacklist(db_session, "live-jti", "someone", now + timedelta(hours=1))

        assert remove_expired_blacklist_entries(db_session) == 1
        assert not is_blacklisted(db_session, "old-jti")
        assert is_blacklisted(db_session, "live-jti")
        # No Redis configured
        assert sync_to_redis(db_session) == 0


# =============================================================================
# API: profiles
# =============================================================================

class TestProfiles:
    """/citizens/me and /lawyers/me"""

    def test_citizen_profile_update(self, client):
        citizen = register(client, "citizen")
        response = client.put("/api/v1/citizens/me", json={"name": "New Name", "phone": "555-9999"},
                              headers=citizen["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "New Name"
        assert data["phone"] == "555-9999"

    def test_email_change_conflict(self, client):
        register(client, "citizen", email="taken@example.com")
        citizen = register(client, "citizen")
        response = client.put("/api/v1/citizens/me", json={"email": "taken@example.com"},
                              headers=citizen["headers"])
        assert response.status_code == 400

    def test_lawyer_cannot_use_citizen_profile(self, client):
        lawyer = register(client, "lawyer")
        response = client.get("/api/v1/citizens/me", headers=lawyer["headers"])
        assert response.status_code == 403

    def test_lawyer_specialization_update(self, client):
        lawyer = register(client, "lawyer", specialization="civil")
        response = client.put("/api/v1/lawyers/me", json={"specialization": "family"},
                              headers=lawyer["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["specialization"] == "family"
