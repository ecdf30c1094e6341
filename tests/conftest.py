"""
tests/conftest.py -- Shared test fixtures for Lost & Found integration tests.

This module provides:
  - _make_test_stores(): isolated in-memory DBs for credentials + items
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient in CNIC mode with a bootstrap admin and allow-list
  - password_client: TestClient in username/password mode
  - login(): log in and return the raw session token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format shares one in-memory instance across all
connections in the same process.

The DEBUG env var must be set before any core/auth import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.

Tests pass the session token as a Bearer header and clear the client's
cookie jar after each login, so one test's session never leaks into another.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any core/auth import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.policy import AuthorizationPolicy
from auth.sessions import MemorySessionStore, SessionManager
from auth.store import CredentialStore
from core.config import AuthMode, get_settings
from items.store import ItemStore

# Login is rate limited; the whole suite logs in far more than 10 times a minute.
limiter.enabled = False

ADMIN_CNIC = "9999999999999"
ADMIN_USERNAME = "rootadmin"
ADMIN_PASSWORD = "adminpass123"

MEMBER_CNIC = "1111111111111"
OTHER_MEMBER_CNIC = "2222222222222"
UNLISTED_CNIC = "3333333333333"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _make_test_stores(prefix: str) -> tuple[CredentialStore, ItemStore]:
    """Create isolated named shared-memory SQLite stores for test isolation."""
    url = _memory_url(prefix)
    return CredentialStore(url), ItemStore(url)


def _patch_lifespan(credential_store: CredentialStore, item_store: ItemStore, mode: AuthMode):
    """Return an async context manager that replaces the real lifespan.

    Sessions live in a MemorySessionStore. The purge_task is a long-sleeping
    coroutine so shutdown can cancel a real asyncio.Task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        session_store = MemorySessionStore()
        app.state.credential_store = credential_store
        app.state.item_store = item_store
        app.state.session_store = session_store
        app.state.policy = AuthorizationPolicy(credential_store, mode)
        app.state.session_manager = SessionManager(
            session_store,
            credential_store,
            get_settings().secret_key,
            ttl_seconds=3600,
        )
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _seed(store: CredentialStore) -> User:
    """Create the bootstrap admin and allow-list the two member CNICs."""
    admin = store.create_admin(
        User(cnic=ADMIN_CNIC, username=ADMIN_USERNAME, hashed_password=hash_password(ADMIN_PASSWORD))
    )
    store.authorize_cnic(MEMBER_CNIC, added_by=admin.id)
    store.authorize_cnic(OTHER_MEMBER_CNIC, added_by=admin.id)
    return admin


def login(client: TestClient, **body) -> str:
    """POST /api/login and return the session token from the Set-Cookie header."""
    resp = client.post("/api/login", json=body)
    assert resp.status_code == 200, f"login failed: {resp.status_code} {resp.text}"
    token = resp.cookies.get("session_id")
    client.cookies.clear()
    assert token, "login response did not set session_id"
    return token


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, CredentialStore], None, None]:
    """Yield (client, credential_store) for an app running in CNIC mode."""
    credential_store, item_store = _make_test_stores("cnic")
    _seed(credential_store)

    app.router.lifespan_context = _patch_lifespan(credential_store, item_store, AuthMode.cnic)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, credential_store

    item_store.close()
    credential_store.close()


@pytest.fixture(scope="module")
def password_client() -> Generator[tuple[TestClient, CredentialStore], None, None]:
    """Yield (client, credential_store) for an app running in password mode."""
    credential_store, item_store = _make_test_stores("password")
    _seed(credential_store)

    app.router.lifespan_context = _patch_lifespan(credential_store, item_store, AuthMode.password)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, credential_store

    item_store.close()
    credential_store.close()


@pytest.fixture
def fresh_client() -> Generator[tuple[TestClient, CredentialStore], None, None]:
    """Function-scoped client over an empty database (no admin yet)."""
    credential_store, item_store = _make_test_stores("fresh")

    app.router.lifespan_context = _patch_lifespan(credential_store, item_store, AuthMode.cnic)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, credential_store

    item_store.close()
    credential_store.close()


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    """Bare in-memory CredentialStore for unit tests."""
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()
