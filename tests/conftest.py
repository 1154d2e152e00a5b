"""
tests/conftest.py -- Shared test fixtures for the auth service tests.

This module provides:
  - _make_test_store(): isolated in-memory AuthStore
  - _patch_lifespan(): wires the test store, token issuer and session manager
    into app.state, bypassing real startup
  - store / sessions / issuer: unit-level fixtures
  - api_client: TestClient against the real app with a patched lifespan
  - sign(): helper that builds the three signature headers for a request

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.sessions import SessionManager
from auth.signatures import compute_signature
from auth.store import AuthStore
from auth.tokens import TokenIssuer

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> AuthStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so tests don't share state.
    """
    return AuthStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: AuthStore, issuer: TokenIssuer, sessions: SessionManager):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.token_issuer = issuer
        app.state.sessions = sessions
        yield

    return test_lifespan


def sign(
    public_key: str,
    secret_key: str,
    method: str,
    path: str,
    body: bytes = b"",
    timestamp: str = "1700000000000",
) -> dict[str, str]:
    """Return X-Public-Key / X-Timestamp / X-Signature headers for a request."""
    return {
        "X-Public-Key": public_key,
        "X-Timestamp": timestamp,
        "X-Signature": compute_signature(secret_key, timestamp, method, path, body),
    }


def signed_json(public_key: str, secret_key: str, method: str, path: str, payload: dict) -> dict:
    """Encode payload once and sign the exact bytes that will be sent.

    Returns kwargs for client.request(): content + headers.
    """
    body = json.dumps(payload).encode("utf-8")
    headers = sign(public_key, secret_key, method, path, body)
    headers["Content-Type"] = "application/json"
    return {"content": body, "headers": headers}


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AuthStore, None, None]:
    s = _make_test_store(uuid.uuid4().hex)
    yield s
    s.close()


@pytest.fixture
def sessions(store: AuthStore) -> SessionManager:
    return SessionManager(store)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET)


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient on the real app wired to an isolated in-memory store."""
    store = _make_test_store(uuid.uuid4().hex)
    issuer = TokenIssuer(TEST_SECRET)
    sessions = SessionManager(store)

    app.router.lifespan_context = _patch_lifespan(store, issuer, sessions)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    store.close()


# ---------------------------------------------------------------------------
# Scenario helpers -- small flows reused across integration tests
# ---------------------------------------------------------------------------


def register_developer(client: TestClient, email: str | None = None, password: str = "pw123456") -> str:
    """Register a fresh developer and return its bearer token."""
    email = email or f"dev-{uuid.uuid4().hex[:8]}@example.com"
    resp = client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["token"]


def create_application(client: TestClient, token: str, name: str = "Demo") -> dict:
    """Create an application for the developer behind token and return its data."""
    resp = client.post(
        "/api/applications",
        json={"name": name, "domain": "demo.example.com"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
