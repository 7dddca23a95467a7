"""
services/auth_service.py — Registration, login and logout.

Responsibilities:
  - User registration and credential validation
  - Password hashing (bcrypt) and verification
  - Issuing / revoking bearer tokens through the injected SessionStore

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes beyond AppError
  - The RecordStore and SessionStore are parameters; the route resolves them
    from the running app.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS, default 12)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import logging

import bcrypt

from secret_santa.app.errors import AppError, ErrorCode
from secret_santa.app.models.user import (
    find_user,
    find_user_by_email,
    new_user_record,
    public_user,
)
from secret_santa.app.storage.record_store import USERS, RecordStore
from secret_santa.app.storage.session_store import SessionStore

logger = logging.getLogger(__name__)


def register_user(
        name: str,
        email: str,
        password: str,
        store: RecordStore,
        sessions: SessionStore,
        bcrypt_rounds: int = 12,
) -> dict:
    """
    Creates a new user account and issues a session token.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered (case-insensitive)

    Returns: {"user": {...}, "token": "..."}
    """
    email = email.strip().lower()

    snapshot = store.load_snapshot(USERS)
    if find_user_by_email(snapshot.records, email) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    password_hash = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=bcrypt_rounds),
    ).decode("utf-8")

    user = new_user_record(name=name.strip(), email=email, password_hash=password_hash)
    snapshot.records.append(user)
    store.save(USERS, snapshot.records, expected_version=snapshot.version)

    logger.info("Registered user %s", user["id"])

    identity = public_user(user)
    return {
        "user": identity,
        "token": sessions.issue(identity),
    }


def login_user(
        email: str,
        password: str,
        store: RecordStore,
        sessions: SessionStore,
) -> dict:
    """
    Validates credentials and issues a new session token.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — email not found or password wrong.
      Uses the same error for both to avoid account enumeration.

    Returns: {"user": {...}, "token": "..."}
    """
    user = find_user_by_email(store.load(USERS), email)

    # bcrypt.checkpw compares in constant time.
    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user["password_hash"].encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
            401,
        )

    identity = public_user(user)
    return {
        "user": identity,
        "token": sessions.issue(identity),
    }


def logout_user(token: str, sessions: SessionStore) -> None:
    """Revokes the token; later requests with it get 401 TOKEN_INVALID."""
    sessions.revoke(token)


def get_current_user(user_id: str, store: RecordStore) -> dict:
    """
    Returns the profile of the currently authenticated user.

    Raises:
      AppError(USER_NOT_FOUND, 404) — the session outlived its user record
    """
    user = find_user(store.load(USERS), user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return {
        **public_user(user),
        "groups": list(user.get("groups", [])),
        "created_at": user["created_at"],
    }
