"""
tests/conftest.py -- Shared test fixtures for SecurePass.

This module provides:
  - user_store / vault: isolated file-backed SQLite stores per test
  - client: TestClient wired to those stores through a patched lifespan
  - enroll / auth_headers: helpers that drive the register -> verify-2fa ->
    login flow over HTTP
  - wrong_code: a 6-digit code guaranteed not to match the current window

Design: stores use a SQLite file under tmp_path rather than :memory:.
TestClient and the concurrency tests run store calls from several threads;
plain :memory: gives every thread its own blank database.

Environment variables must be set before any auth/core import:
  DEBUG=true              -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4         -- minimum cost, keeps hashing fast in tests
  AUTH_RATE_LIMIT         -- high enough that the suite never trips it;
                             TestRateLimit lowers it per test
  ALLOWED_HOSTS           -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_RATE_LIMIT", "10000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pyotp
import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from vault.store import VaultStore

# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store(tmp_path) -> Generator[UserStore, None, None]:
    """Fresh UserStore backed by a throwaway SQLite file."""
    store = UserStore(db_url=f"sqlite:///{tmp_path / 'auth.db'}")
    yield store
    store.close()


@pytest.fixture
def vault(user_store: UserStore) -> VaultStore:
    return VaultStore(user_store)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, vault: VaultStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the production database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.vault = vault
        yield

    return test_lifespan


@pytest.fixture
def client(user_store: UserStore, vault: VaultStore) -> Generator[TestClient, None, None]:
    """TestClient against the real app with isolated stores."""
    app.router.lifespan_context = _patch_lifespan(user_store, vault)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def enroll(client: TestClient) -> Callable[[str, str], str]:
    """Register and confirm 2FA for a user over HTTP. Returns the TOTP secret."""

    def _enroll(username: str, password: str) -> str:
        resp = client.post("/api/register", json={"username": username, "password": password})
        assert resp.status_code == 201, resp.text
        secret = resp.json()["secretBase32"]
        resp = client.post("/api/verify-2fa", json={"username": username, "code": pyotp.TOTP(secret).now()})
        assert resp.status_code == 200, resp.text
        return secret

    return _enroll


@pytest.fixture
def auth_headers(client: TestClient, enroll) -> Callable[[str, str], dict[str, str]]:
    """Enroll a user, log in, and return Authorization headers for them."""

    def _auth_headers(username: str, password: str = "password123") -> dict[str, str]:
        secret = enroll(username, password)
        resp = client.post(
            "/api/login",
            json={"username": username, "password": password, "code": pyotp.TOTP(secret).now()},
        )
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['sessionToken']}"}

    return _auth_headers


# ---------------------------------------------------------------------------
# TOTP helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def wrong_code() -> Callable[[str], str]:
    """Return a code that matches none of the steps near now for the given secret.

    Steps -2..+2 are excluded so a step rollover between picking the code
    and verifying it cannot turn it into a valid one.
    """

    def _wrong_code(secret: str) -> str:
        totp = pyotp.TOTP(secret)
        now = int(time.time())
        nearby = {totp.at(now + offset * 30) for offset in range(-2, 3)}
        for candidate in range(1_000_000):
            code = f"{candidate:06d}"
            if code not in nearby:
                return code
        raise AssertionError("unreachable")

    return _wrong_code
