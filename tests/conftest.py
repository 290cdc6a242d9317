"""
tests/conftest.py -- Shared test fixtures for Gridgate unit and integration tests.

This module provides:
  - store / hasher / tokens / graph / users / resolver / auth_service:
    unit fixtures over a fresh in-memory RbacStore per test
  - _make_test_store(): creates an isolated named shared-memory DB
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api_client: TestClient over the real app with a seeded database and a
    superadmin token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and BCRYPT_ROUNDS must be set before any core/auth/api import so
get_settings() auto-generates SECRET_KEY in dev mode instead of raising
ValueError, and every bcrypt call uses the minimum cost factor.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_services
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.tokens import TokenService
from core.config import get_settings
from rbac.graph import RoleGraphManager
from rbac.resolver import PermissionResolver
from rbac.seed import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, seed_defaults
from rbac.store import RbacStore
from rbac.users import UserManager

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

# ---------------------------------------------------------------------------
# Unit fixtures -- one fresh in-memory database per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> Generator[RbacStore, None, None]:
    s = RbacStore("sqlite://")
    yield s
    s.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService(TEST_SECRET, expire_seconds=3600)


@pytest.fixture()
def graph(store: RbacStore) -> RoleGraphManager:
    return RoleGraphManager(store)


@pytest.fixture()
def users(store: RbacStore, hasher: PasswordHasher) -> UserManager:
    return UserManager(store, hasher)


@pytest.fixture()
def resolver(store: RbacStore) -> PermissionResolver:
    return PermissionResolver(store)


@pytest.fixture()
def auth_service(store: RbacStore, hasher: PasswordHasher, tokens: TokenService) -> AuthService:
    return AuthService(store, hasher, tokens)


# ---------------------------------------------------------------------------
# Integration helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> RbacStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   never share state.
    """
    return RbacStore(f"sqlite:///file:test_rbac_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: RbacStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test store into app.state through the same
    attach_services() the real lifespan uses, so routes see exactly the
    production wiring over an isolated database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, store, get_settings())
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The database is seeded with the default permissions, roles and
    superadmin account. The token is obtained through the real login route,
    so it is signed with the same key the app verifies with.
    """
    store = _make_test_store(uuid.uuid4().hex[:8])
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=True) as client:
        seed_defaults(store, app.state.graph, app.state.users)
        resp = client.post(
            "/api/v1/auth/login",
            json={"email": DEFAULT_ADMIN_EMAIL, "password": DEFAULT_ADMIN_PASSWORD},
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        yield client, body["token"], body["user"]["id"]

    store.close()