"""
tests/conftest.py -- Shared test fixtures for SempreCheio auth tests.

This module provides:
  - seeded_store: InMemoryAccountStore with one company admin, one super admin
                  and one deactivated account
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - client:     TestClient for API tests (fresh cookie jar per test)
  - web_client: TestClient with follow_redirects=False for page guard tests
  - login():    helper that performs a real login through the API

APP_ENV and BCRYPT_ROUNDS must be set before any auth/core import so
get_settings() builds the test profile (auto-generated JWT secret, plaintext
login tolerated, rate limiter disabled) with cheap bcrypt hashing.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: must run before any auth/core import.
os.environ["APP_ENV"] = "test"
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.crypto import encrypt
from auth.models import Account
from auth.passwords import hash_password
from auth.store import InMemoryAccountStore

try:
    from web.routes import router as web_router

    app.include_router(web_router, tags=["Web"])
except Exception:
    pass  # Router already included

ADMIN_EMAIL = "admin@salon.com"
ADMIN_PASSWORD = "123456"
SUPER_EMAIL = "dono@semprecheio.com"
SUPER_PASSWORD = "super-secret"
INACTIVE_EMAIL = "inativo@salon.com"
INACTIVE_PASSWORD = "123456"


def _seed(store: InMemoryAccountStore) -> dict[str, str]:
    ids = {}
    ids["admin"] = store.create_account(
        Account(
            email=ADMIN_EMAIL,
            name="Salão Teste",
            password_hash=hash_password(ADMIN_PASSWORD),
            role="admin",
            service_type="salao",
            phone="11999990000",
        )
    )
    ids["super"] = store.create_account(
        Account(
            email=SUPER_EMAIL,
            name="Plataforma",
            password_hash=hash_password(SUPER_PASSWORD),
            role="super_admin",
        )
    )
    ids["inactive"] = store.create_account(
        Account(
            email=INACTIVE_EMAIL,
            name="Inativo",
            password_hash=hash_password(INACTIVE_PASSWORD),
            role="admin",
            is_active=False,
        )
    )
    return ids


def _patch_lifespan(store: InMemoryAccountStore):
    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def seeded_store() -> tuple[InMemoryAccountStore, dict[str, str]]:
    store = InMemoryAccountStore()
    return store, _seed(store)


@pytest.fixture
def client(seeded_store) -> Generator[TestClient, None, None]:
    """TestClient over the real app with an isolated, freshly seeded store."""
    store, _ids = seeded_store
    app.router.lifespan_context = _patch_lifespan(store)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def web_client(seeded_store) -> Generator[TestClient, None, None]:
    """follow_redirects=False so tests can assert on the Location header."""
    store, _ids = seeded_store
    app.router.lifespan_context = _patch_lifespan(store)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c


def login(client: TestClient, email: str, password: str, *, encrypted: bool = True, remember_me: bool = False):
    """POST /api/auth/login the way the frontend does. Cookies land in client's jar."""
    if encrypted:
        body = {"email": encrypt(email), "password": encrypt(password), "rememberMe": remember_me, "encrypted": True}
    else:
        body = {"email": email, "password": password, "rememberMe": remember_me}
    return client.post("/api/auth/login", json=body)


def set_cookie_headers(resp) -> list[str]:
    return resp.headers.get_list("set-cookie")
