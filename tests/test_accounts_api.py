"""
tests/test_accounts_api.py -- Registration, password change, account management, health.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, SUPER_EMAIL, SUPER_PASSWORD, login


def _registration(**overrides) -> dict:
    body = {
        "name": "Clínica Nova",
        "email": "contato@clinicanova.com",
        "phone": "11988887777",
        "serviceType": "clinica",
        "password": "segredo1",
        "confirmPassword": "segredo1",
    }
    body.update(overrides)
    return body


class TestRegister:
    def test_register_then_login(self, client: TestClient) -> None:
        resp = client.post("/api/auth/register", json=_registration())
        assert resp.status_code == 201
        created = resp.json()["client"]
        assert created["email"] == "contato@clinicanova.com"
        assert created["role"] == "admin"
        assert created["isActive"] is True
        assert "password_hash" not in created and "passwordHash" not in created

        logged_in = login(client, "contato@clinicanova.com", "segredo1")
        assert logged_in.status_code == 200
        assert logged_in.json()["user"]["role"] == "admin"

    def test_custom_service_type(self, client: TestClient) -> None:
        resp = client.post(
            "/api/auth/register",
            json=_registration(serviceType="outro", customServiceType="pet shop"),
        )
        assert resp.status_code == 201
        assert resp.json()["client"]["serviceType"] == "pet shop"

    def test_duplicate_email(self, client: TestClient) -> None:
        resp = client.post("/api/auth/register", json=_registration(email=ADMIN_EMAIL))
        assert resp.status_code == 409
        assert resp.json()["code"] == "CONFLICT"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"confirmPassword": "outra-senha"},
            {"password": "123", "confirmPassword": "123"},
            {"email": "sem-arroba"},
            {"phone": "123"},
            {"serviceType": "outro"},
        ],
    )
    def test_invalid_registration(self, client: TestClient, overrides: dict) -> None:
        resp = client.post("/api/auth/register", json=_registration(**overrides))
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_DATA"
        assert resp.json()["errors"]


class TestChangePassword:
    def test_change_password(self, client: TestClient) -> None:
        login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        resp = client.post(
            "/api/auth/change-password",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "nova-senha"},
        )
        assert resp.status_code == 200
        client.cookies.clear()
        assert login(client, ADMIN_EMAIL, ADMIN_PASSWORD).status_code == 401
        assert login(client, ADMIN_EMAIL, "nova-senha").status_code == 200

    def test_wrong_current_password(self, client: TestClient) -> None:
        login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
        resp = client.post(
            "/api/auth/change-password",
            json={"currentPassword": "errada", "newPassword": "nova-senha"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_CURRENT_PASSWORD"

    def test_requires_login(self, client: TestClient) -> None:
        resp = client.post(
            "/api/auth/change-password",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "nova-senha"},
        )
        assert resp.status_code == 401


class TestAccountManagement:
    def test_super_admin_lists_accounts(self, client: TestClient) -> None:
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.get("/api/auth/accounts")
        assert resp.status_code == 200
        emails = {a["email"] for a in resp.json()}
        assert {ADMIN_EMAIL, SUPER_EMAIL} <= emails
        assert all("passwordHash" not in a for a in resp.json())

    def test_deactivate_blocks_login(self, client: TestClient, seeded_store) -> None:
        _store, ids = seeded_store
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.patch(f"/api/auth/accounts/{ids['admin']}", json={"isActive": False})
        assert resp.status_code == 200
        assert resp.json()["isActive"] is False
        client.cookies.clear()
        assert login(client, ADMIN_EMAIL, ADMIN_PASSWORD).status_code == 401

    def test_change_role(self, client: TestClient, seeded_store) -> None:
        _store, ids = seeded_store
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.patch(f"/api/auth/accounts/{ids['admin']}", json={"role": "super_admin"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "super_admin"

    def test_cannot_deactivate_self(self, client: TestClient, seeded_store) -> None:
        _store, ids = seeded_store
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.patch(f"/api/auth/accounts/{ids['super']}", json={"isActive": False})
        assert resp.status_code == 400
        assert resp.json()["code"] == "SELF_DEACTIVATION"

    def test_empty_patch(self, client: TestClient, seeded_store) -> None:
        _store, ids = seeded_store
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.patch(f"/api/auth/accounts/{ids['admin']}", json={})
        assert resp.status_code == 400
        assert resp.json()["code"] == "NO_CHANGES"

    def test_unknown_account(self, client: TestClient) -> None:
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.patch("/api/auth/accounts/does-not-exist", json={"isActive": True})
        assert resp.status_code == 404

    def test_invalid_role_value(self, client: TestClient, seeded_store) -> None:
        _store, ids = seeded_store
        login(client, SUPER_EMAIL, SUPER_PASSWORD)
        resp = client.patch(f"/api/auth/accounts/{ids['admin']}", json={"role": "root"})
        assert resp.status_code == 400


class TestHealthAndErrors:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["environment"] == "test"
        assert body["components"] == {"account_store": "ok"}

    def test_unknown_api_route_uses_envelope(self, client: TestClient) -> None:
        resp = client.get("/api/nao-existe")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
        assert resp.json()["code"] == "NOT_FOUND"
        assert resp.json()["message"] == "Recurso não encontrado"

    def test_wrong_method_uses_portuguese_envelope(self, client: TestClient) -> None:
        resp = client.get("/api/auth/logout")
        assert resp.status_code == 405
        assert resp.json() == {
            "success": False,
            "message": "Método não permitido",
            "code": "METHOD_NOT_ALLOWED",
        }

    def test_untrusted_host_rejected(self, client: TestClient) -> None:
        resp = client.get("/api/health", headers={"Host": "evil.example.com"})
        assert resp.status_code == 400
