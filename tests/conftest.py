"""
tests/conftest.py -- Shared test fixtures for AuthGate unit and integration tests.

This module provides:
  - FakeClock: a settable UTC clock handed to TokenIssuer so tests can move
    time forward instead of sleeping through token lifetimes
  - hasher / issuer / user_store / auth_service: fresh domain objects per test
  - _patch_lifespan(): wires test objects into app.state, bypassing real startup
  - api: an ApiContext (TestClient + the objects behind it + an admin token)

The env vars must be set before any api/ or core/ import:
  DEBUG=true               -- get_settings() auto-generates SECRET_KEY instead of raising
  BCRYPT_ROUNDS=4          -- minimum work factor; keeps hashing in the millisecond range
  RATE_LIMIT_ENABLED=false -- every TestClient request shares one client address
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

# CRITICAL: Set these before any auth/core/api import so get_settings() and
# the module-level limiter pick them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from catalog.store import ProductStore

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
ACCESS_TTL = 900
REFRESH_TTL = 7 * 24 * 3600

STRONG_PASSWORD = "Passw0rd!"
ADMIN_PASSWORD = "Admin123!"


class FakeClock:
    """Callable clock returning a fixed aware UTC datetime until advanced."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(
        secret_key=TEST_SECRET,
        access_expire_seconds=ACCESS_TTL,
        refresh_expire_seconds=REFRESH_TTL,
        clock=clock,
    )


@pytest.fixture
def user_store(hasher: PasswordHasher) -> UserStore:
    return UserStore(hasher)


@pytest.fixture
def auth_service(user_store: UserStore, issuer: TokenIssuer) -> AuthService:
    return AuthService(user_store, issuer)


def user_data(**overrides) -> dict:
    """Valid create/register payload (snake_case) with optional overrides."""
    data = {
        "name": "Test User",
        "email": "test@example.com",
        "password": STRONG_PASSWORD,
        "age": 30,
        "city": "Boston",
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(issuer: TokenIssuer, user_store: UserStore, product_store: ProductStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see a
    controllable clock and isolated stores rather than the production ones.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.token_issuer = issuer
        app.state.user_store = user_store
        app.state.auth_service = AuthService(user_store, issuer)
        app.state.product_store = product_store
        app.state.started_at = time.monotonic()
        yield

    return test_lifespan


@dataclass
class ApiContext:
    client: TestClient
    clock: FakeClock
    issuer: TokenIssuer
    user_store: UserStore
    product_store: ProductStore
    admin: User
    admin_token: str

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def register(self, **overrides) -> dict:
        """POST /api/auth/register and return the JSON body (asserts 201)."""
        resp = self.client.post("/api/auth/register", json=user_data(**overrides))
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        return resp.json()

    def login(self, email: str, password: str = STRONG_PASSWORD) -> dict:
        resp = self.client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        return resp.json()


@pytest.fixture
def api(clock: FakeClock, issuer: TokenIssuer, user_store: UserStore) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by fresh stores and a fake clock.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, middleware and exception handlers. An admin user
    exists before the client starts; admin_token is a valid access token for it.
    """
    product_store = ProductStore()
    admin = asyncio.run(
        user_store.create(user_data(name="Admin", email="admin@example.com", password=ADMIN_PASSWORD, role="admin"))
    )
    admin_token = issuer.issue_access_token(admin)

    app.router.lifespan_context = _patch_lifespan(issuer, user_store, product_store)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield ApiContext(
            client=client,
            clock=clock,
            issuer=issuer,
            user_store=user_store,
            product_store=product_store,
            admin=admin,
            admin_token=admin_token,
        )
