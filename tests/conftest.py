"""
tests/conftest.py -- Shared test fixtures for FitApp.

This module provides:
  - store:        fresh in-memory UserStore per test (unit tests)
  - make_user():  helper that inserts a credentials user with a real hash
  - app_client:   module-scoped TestClient over the full ASGI app (API + web)
  - client:       the same client with its cookie jar emptied before each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
app client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment must be prepared before any project import: DEBUG lets
get_settings() auto-generate SECRET_KEY, the OAuth client ids register both
providers, rate limiting is switched off, and bcrypt runs at its minimum cost.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite:///file:fitapp_default?mode=memory&cache=shared&uri=true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-google-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-google-secret")
os.environ.setdefault("FACEBOOK_CLIENT_ID", "test-facebook-id")
os.environ.setdefault("FACEBOOK_CLIENT_SECRET", "test-facebook-secret")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.models import SignupProvider, User
from auth.store import UserStore
from auth.tokens import hash_password

RUNNER_EMAIL = "runner@example.com"
RUNNER_PASSWORD = "correct-horse-1"


def make_user(store: UserStore, email: str = RUNNER_EMAIL, password: str | None = RUNNER_PASSWORD, **fields) -> int:
    """Insert a user directly through the store and return its id."""
    user = User(
        email=email,
        first_name=fields.pop("first_name", "Rita"),
        last_name=fields.pop("last_name", "Runner"),
        hashed_password=hash_password(password) if password else None,
        provider=fields.pop("provider", SignupProvider.credentials),
        **fields,
    )
    return store.create_user(user)


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires the test store into app.state.

    The OAuth registry is a MagicMock so no test ever reaches a real provider;
    tests configure create_client() per case.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.oauth = MagicMock()
        yield

    return test_lifespan


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="module")
def app_client(request) -> Generator[TestClient, None, None]:
    """TestClient over the real app with an isolated store per test module.

    follow_redirects=False so tests can assert on redirect locations. The
    store is pre-seeded with one credentials user (RUNNER_EMAIL).
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(f"sqlite:///file:test_users_{suffix}?mode=memory&cache=shared&uri=true")
    make_user(user_store)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c

    user_store.close()


@pytest.fixture
def client(app_client: TestClient) -> TestClient:
    app_client.cookies.clear()
    return app_client
