"""
tests/conftest.py -- Shared test fixtures for the Assets API tests.

This module provides:
  - stores:       isolated in-memory InventoryStore + UserStore pair
  - issuer:       TokenIssuer with throwaway, distinct signing secrets
  - auth_service: AuthService over the test stores and issuer
  - api:          ApiEnv wrapping a TestClient whose app.state holds the above
  - admin_id:     the seeded admin (alice@x.com / secret1)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
Each test gets its own database name so state never leaks between tests.

DEBUG, BCRYPT_ROUNDS and ALLOWED_HOSTS must be set before any app import so
get_settings() auto-generates the JWT secrets, hashes cheaply, and accepts
TestClient's "testserver" Host header.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer
from inventory.store import InventoryStore

ACCESS_SECRET = "test-access-secret-0123456789abcdef0123456789"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012345678"

ADMIN_EMAIL = "alice@x.com"
ADMIN_PASSWORD = "secret1"


# ---------------------------------------------------------------------------
# Store / issuer helpers
# ---------------------------------------------------------------------------


def make_test_stores() -> tuple[InventoryStore, UserStore]:
    """Create an InventoryStore and a department-aware UserStore on one fresh in-memory DB."""
    db_url = f"sqlite:///file:test_assets_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    inventory = InventoryStore(db_url)
    users = UserStore(db_url, departments=inventory)
    return inventory, users


def make_issuer(**overrides) -> TokenIssuer:
    config = {"access_secret": ACCESS_SECRET, "refresh_secret": REFRESH_SECRET}
    config.update(overrides)
    return TokenIssuer(TokenConfig(**config))


def _patch_lifespan(inventory: InventoryStore, users: UserStore, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.inventory = inventory
        app.state.user_store = users
        app.state.token_issuer = issuer
        app.state.auth_service = AuthService(users, issuer)
        yield

    return test_lifespan


@dataclass
class ApiEnv:
    """Everything an integration test needs to drive the app and inspect state."""

    client: TestClient
    inventory: InventoryStore
    users: UserStore
    issuer: TokenIssuer

    def headers_for(self, user_id: int) -> dict[str, str]:
        """Authorization header with a fresh access token for user_id."""
        token = self.issuer.issue_access_token(self.users.get_by_id(user_id))
        return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[InventoryStore, UserStore], None, None]:
    inventory, users = make_test_stores()
    yield inventory, users
    users.close()
    inventory.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return make_issuer()


@pytest.fixture
def auth_service(stores, issuer) -> AuthService:
    _inventory, users = stores
    return AuthService(users, issuer)


@pytest.fixture
def admin_id(stores) -> int:
    _inventory, users = stores
    return users.create_user("alice", ADMIN_EMAIL, ADMIN_PASSWORD, role=Role.admin)


@pytest.fixture
def api(stores, issuer) -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv over the real FastAPI app with a patched lifespan."""
    inventory, users = stores
    app.router.lifespan_context = _patch_lifespan(inventory, users, issuer)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(client=client, inventory=inventory, users=users, issuer=issuer)
