"""
tests/conftest.py -- Shared test fixtures for inventory service integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + products
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - _issue_token(): starts a session directly in the store, returns the raw token
  - app_harness: one TestClient per test module with admin + viewer sessions
  - api: the same harness with the client cookie jar emptied before each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any api/auth/core import:
  DEBUG=true            -> get_settings() auto-generates SECRET_KEY
  ALLOWED_HOSTS         -> TrustedHostMiddleware must accept "testserver"
  LOGIN_RATE_LIMIT      -> high enough that login tests never trip it
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# CRITICAL: Set these before any api/auth/core import. Settings are read once
# and cached, and the login rate limit is bound when api.routes.auth loads.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("DATABASE_URL", "sqlite:///file:test_inventory_default?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Session, SessionUser, User
from auth.store import UserStore
from auth.tokens import generate_session_token, hash_password, hash_session_token, session_expiry
from inventory.store import ProductStore

ADMIN_USERNAME = "testadmin"
ADMIN_PASSWORD = "testpass123"
VIEWER_USERNAME = "testviewer"
VIEWER_PASSWORD = "viewpass123"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ProductStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Both stores point at the same in-memory database, as they do in
    production. db_suffix keeps test modules from sharing state.
    """
    url = f"sqlite:///file:test_inventory_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), ProductStore(db_url=url)


def _patch_lifespan(user_store: UserStore, product_store: ProductStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown can .cancel() a
    real asyncio.Task exactly as the production lifespan does.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.product_store = product_store
        app.state.started_at = time.monotonic()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _issue_token(user_store: UserStore, user_id: int, username: str, role: str) -> str:
    """Persist a session for the given user and return the raw bearer token."""
    token = generate_session_token()
    user_store.create_session(
        Session(
            token_hash=hash_session_token(token),
            user=SessionUser(id=user_id, username=username, role=role),
            expires_at=session_expiry(3600),
        )
    )
    return token


class ApiHarness(NamedTuple):
    client: TestClient
    admin_token: str
    viewer_token: str
    user_store: UserStore
    product_store: ProductStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def app_harness(request: pytest.FixtureRequest) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and middleware but use isolated in-memory stores.
    An admin and a viewer are created before the client starts, each with a
    live session for Authorization headers.
    """
    user_store, product_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])

    admin_id = user_store.create_user(
        User(username=ADMIN_USERNAME, role="admin", hashed_password=hash_password(ADMIN_PASSWORD))
    )
    viewer_id = user_store.create_user(
        User(username=VIEWER_USERNAME, role="viewer", hashed_password=hash_password(VIEWER_PASSWORD))
    )
    admin_token = _issue_token(user_store, admin_id, ADMIN_USERNAME, "admin")
    viewer_token = _issue_token(user_store, viewer_id, VIEWER_USERNAME, "viewer")

    app.router.lifespan_context = _patch_lifespan(user_store, product_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client, admin_token, viewer_token, user_store, product_store)

    product_store.close()
    user_store.close()


@pytest.fixture
def api(app_harness: ApiHarness) -> ApiHarness:
    """app_harness with an empty cookie jar, so a login in one test never
    authenticates the next one."""
    app_harness.client.cookies.clear()
    return app_harness
