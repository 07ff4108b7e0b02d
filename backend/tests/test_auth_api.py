"""Integration tests for the authentication API."""

import logging
from dataclasses import replace

import pytest

from accounts_gate.models.account import Role
from accounts_gate.services.accounts import AccountRecord
from tests.conftest import (
    ACCOUNTANT_ID,
    ADMIN_ID,
    CONTACT_ID,
    INACTIVE_ID,
    epoch_now,
    utc_from_epoch,
)


class TestMe:
    """Tests for GET /api/auth/me."""

    @pytest.mark.asyncio
    async def test_returns_account(self, client, auth_headers):
        response = await client.get("/api/auth/me", headers=auth_headers(ACCOUNTANT_ID))

        assert response.status_code == 200
        assert response.json() == {
            "id": ACCOUNTANT_ID,
            "email": "books@example.com",
            "name": "Bo Books",
            "role": "Accountant",
            "is_active": True,
        }

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Access token required",
            "code": "TOKEN_MISSING",
        }
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_non_bearer_scheme(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.json()["code"] == "TOKEN_MISSING"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kwargs", "code"),
        [
            ({"expires_in": -1}, "TOKEN_EXPIRED"),
            ({"not_before": 4_000_000_000}, "TOKEN_NOT_ACTIVE"),
            ({"secret": "a-completely-different-secret-value-here"}, "TOKEN_INVALID"),
        ],
    )
    async def test_rejected_tokens(self, client, auth_headers, kwargs, code):
        response = await client.get("/api/auth/me", headers=auth_headers(CONTACT_ID, **kwargs))

        assert response.status_code == 401
        assert response.json()["code"] == code

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401
        assert response.json()["code"] == "TOKEN_INVALID"

    @pytest.mark.asyncio
    async def test_unknown_and_inactive_accounts(self, client, auth_headers):
        unknown = await client.get("/api/auth/me", headers=auth_headers("ghost"))
        inactive = await client.get("/api/auth/me", headers=auth_headers(INACTIVE_ID))

        assert unknown.json()["code"] == "USER_NOT_FOUND"
        assert inactive.json()["code"] == "ACCOUNT_DEACTIVATED"

    @pytest.mark.asyncio
    async def test_token_outdated_after_password_change(self, client, account_store, auth_headers):
        now = epoch_now()
        headers = auth_headers(CONTACT_ID, issued_at=now - 3600)
        account = account_store.records[CONTACT_ID]
        account_store.add(replace(account, password_changed_at=utc_from_epoch(now - 60)))

        response = await client.get("/api/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["code"] == "TOKEN_OUTDATED"

    @pytest.mark.asyncio
    async def test_store_failure_is_generic_500(self, client, account_store, auth_headers):
        account_store.error = ConnectionError("password=hunter2 host=db")

        response = await client.get("/api/auth/me", headers=auth_headers(CONTACT_ID))

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Authentication error",
            "code": "AUTH_ERROR",
        }
        assert "hunter2" not in response.text


class TestLogout:
    """Tests for POST /api/auth/logout."""

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, client, revocation_store, auth_headers, caplog):
        headers = auth_headers(ACCOUNTANT_ID)

        with caplog.at_level(logging.INFO, logger="accounts_gate.security"):
            response = await client.post("/api/auth/logout", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully"}
        assert await revocation_store.count() == 1
        events = [getattr(r, "security_event", None) for r in caplog.records]
        assert any(e and e["event"] == "logout" and e["account_id"] == ACCOUNTANT_ID for e in events)

        for _ in range(2):
            again = await client.get("/api/auth/me", headers=headers)
            assert again.status_code == 401
            assert again.json()["code"] == "TOKEN_REVOKED"

    @pytest.mark.asyncio
    async def test_other_tokens_survive_logout(self, client, auth_headers):
        first = auth_headers(CONTACT_ID, issued_at=epoch_now() - 10)
        second = auth_headers(CONTACT_ID)

        await client.post("/api/auth/logout", headers=first)

        assert (await client.get("/api/auth/me", headers=second)).status_code == 200

    @pytest.mark.asyncio
    async def test_logout_requires_token(self, client):
        response = await client.post("/api/auth/logout")

        assert response.status_code == 401


class TestSessionStatus:
    """Tests for GET /api/auth/session (optional authentication)."""

    @pytest.mark.asyncio
    async def test_anonymous(self, client):
        response = await client.get("/api/auth/session")

        assert response.status_code == 200
        assert response.json() == {"authenticated": False, "account": None}

    @pytest.mark.asyncio
    async def test_invalid_token_is_anonymous(self, client, auth_headers):
        response = await client.get("/api/auth/session", headers=auth_headers(INACTIVE_ID))

        assert response.status_code == 200
        assert response.json()["authenticated"] is False

    @pytest.mark.asyncio
    async def test_authenticated(self, client, auth_headers):
        response = await client.get("/api/auth/session", headers=auth_headers(ADMIN_ID))

        assert response.json()["authenticated"] is True
        assert response.json()["account"]["role"] == "Admin"

    @pytest.mark.asyncio
    async def test_store_failure_is_anonymous(self, client, account_store, auth_headers):
        account_store.error = RuntimeError("db down")

        response = await client.get("/api/auth/session", headers=auth_headers(ADMIN_ID))

        assert response.status_code == 200
        assert response.json() == {"authenticated": False, "account": None}


class TestUsers:
    """Tests for GET /api/users/{user_id}."""

    @pytest.mark.asyncio
    async def test_own_profile(self, client, auth_headers):
        response = await client.get(f"/api/users/{CONTACT_ID}", headers=auth_headers(CONTACT_ID))

        assert response.status_code == 200
        assert response.json()["id"] == CONTACT_ID

    @pytest.mark.asyncio
    async def test_other_profile_denied(self, client, auth_headers):
        response = await client.get(f"/api/users/{ADMIN_ID}", headers=auth_headers(ACCOUNTANT_ID))

        assert response.status_code == 403
        assert response.json()["code"] == "ACCESS_DENIED"
        assert response.json()["required"] == ["Admin"]
        assert response.json()["current"] == "Accountant"

    @pytest.mark.asyncio
    async def test_admin_reads_any_profile(self, client, auth_headers):
        response = await client.get(f"/api/users/{ACCOUNTANT_ID}", headers=auth_headers(ADMIN_ID))

        assert response.status_code == 200
        assert response.json()["role"] == "Accountant"

    @pytest.mark.asyncio
    async def test_admin_missing_profile(self, client, auth_headers):
        response = await client.get("/api/users/ghost", headers=auth_headers(ADMIN_ID))

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "User not found", "code": "NOT_FOUND"}


class TestAdminSecurity:
    """Tests for the /api/admin/security endpoints."""

    @pytest.mark.asyncio
    async def test_stats(self, client, auth_headers):
        await client.post("/api/auth/logout", headers=auth_headers(CONTACT_ID))

        response = await client.get("/api/admin/security/stats", headers=auth_headers(ADMIN_ID))

        assert response.status_code == 200
        data = response.json()
        assert data["revocation_backend"] == "InMemoryRevocationRegistry"
        assert data["revoked_tokens"] == 1
        assert data["admission"]["general:127.0.0.1"]["hits"] >= 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("account_id", [ACCOUNTANT_ID, CONTACT_ID])
    async def test_non_admins_forbidden(self, client, auth_headers, account_id):
        response = await client.get("/api/admin/security/stats", headers=auth_headers(account_id))

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    @pytest.mark.asyncio
    async def test_sweep(self, client, account_store, revocation_store, auth_headers):
        revocation_store.max_entries = 1
        await revocation_store.add("a")
        await revocation_store.add("b")

        response = await client.post(
            "/api/admin/security/revocations/sweep", headers=auth_headers(ADMIN_ID)
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "removed": 2}


class TestErrorHandling:
    """Tests for the error body format."""

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found", "code": "NOT_FOUND"}

    @pytest.mark.asyncio
    async def test_unhandled_error_hides_stack_outside_development(self, app, client, auth_headers):
        @app.get("/api/explode")
        async def explode():
            raise RuntimeError("secret internals")

        response = await client.get("/api/explode")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
        }

    @pytest.mark.asyncio
    async def test_stack_only_in_development(self, app, client, monkeypatch):
        from accounts_gate.core.config import settings

        monkeypatch.setattr(settings, "environment", "development")

        @app.get("/api/explode")
        async def explode():
            raise RuntimeError("secret internals")

        response = await client.get("/api/explode")

        assert response.status_code == 500
        assert "secret internals" in response.json()["stack"]

    @pytest.mark.asyncio
    async def test_security_headers_on_api_responses(self, client):
        response = await client.get("/api/auth/session")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-RateLimit-Limit" in response.headers


def test_account_response_never_has_password_fields():
    from accounts_gate.schemas.auth import AccountResponse

    record = AccountRecord(id="x", role=Role.CONTACT)
    assert "password_hash" not in AccountResponse.model_validate(record, from_attributes=True).model_dump()
