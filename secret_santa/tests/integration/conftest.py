"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing") with the
    JSON file record store pointed at a temporary directory, so requests go
    through the same read-modify-write path as production.
  - Sessions use the in-memory backend.
  - Between tests, both collections and all sessions are dropped so tests are
    isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)     → dict with user + token
  - login(client, ...)        → dict with user + token
  - auth_headers(token)       → {"Authorization": "Bearer <token>"}
  - make_group(client, ...)   → {"id", "code", "name", "invite_link"}
  - join(client, ...)         → HTTP response
  - set_wishlist(client, ...) → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest

from secret_santa.app import create_app


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Creates the Flask application in 'testing' mode once for the entire test session."""
    data_dir = tmp_path_factory.mktemp("data")
    flask_app = create_app("testing", {
        "RECORD_STORE_BACKEND": "json",
        "DATA_DIR": str(data_dir),
        "PUBLIC_BASE_URL": "http://santa.test",
        "DEFAULT_MAX_PARTICIPANTS": 20,
        "WISHLIST_STRICT": False,
    })
    yield flask_app


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_store(app):
    """Drops every collection and every session after each test."""
    yield
    app.extensions["record_store"].clear()
    app.extensions["session_store"].clear()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    name: str = "Alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Registers a new user and returns the full response data dict.
    Returns: {"user": {...}, "token": "..."}
    """
    if email is None:
        email = f"{name.lower()}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    """Logs in a user and returns {"user": {...}, "token": "..."}."""
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_group(client, token: str, name: str = "Test Group", **fields) -> dict:
    """
    Creates a group and returns the creation data dict.
    The caller (token owner) becomes the organizer and first participant.
    """
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name, **fields},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join(client, token: str, code: str, password: str | None = None):
    """Joins a group by code. Returns the HTTP response."""
    payload: dict = {"code": code}
    if password is not None:
        payload["password"] = password
    return client.post(
        "/api/v1/groups/join",
        json=payload,
        headers=auth_headers(token),
    )


def set_wishlist(client, token: str, group_id: str, items):
    """Replaces the caller's wishlist. Returns the HTTP response."""
    return client.put(
        f"/api/v1/groups/{group_id}/wishlist",
        json={"items": items},
        headers=auth_headers(token),
    )
