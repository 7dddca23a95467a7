"""
middleware/auth_middleware.py — Bearer token authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Resolves the token through the app's SessionStore
  3. Attaches the identity dict to flask.g.user and the raw token to flask.g.token
  4. Raises the appropriate 401 error if any step fails

Strict responsibility boundary:
  - This middleware authenticates (401) only. It does NOT check group
    membership or organizer rights; services raise 403 for those.
  - Services receive the identity as a plain dict, with no knowledge of
    tokens or HTTP headers.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, unknown or revoked token
  TOKEN_EXPIRED  (401) — raised by the "jwt" session backend
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import g, request

from secret_santa.app.errors import AppError, ErrorCode
from secret_santa.app.storage.session_store import current_session_store


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces bearer-token authentication.

    Usage:
        @groups_bp.route("/<group_id>")
        @require_auth
        def get_group(group_id):
            user = g.user  # {"id", "name", "email"}
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def bearer_token() -> str | None:
    """The token from "Authorization: Bearer <token>", or None if absent/malformed."""
    parts = request.headers.get("Authorization", "").split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _authenticate_request() -> None:
    """
    Resolves the bearer token and sets flask.g.user / flask.g.token.

    Raises AppError on any authentication failure (never returns a response
    directly — error propagates to the global Flask error handler).
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    raw_token = bearer_token()
    if raw_token is None:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    identity = current_session_store().resolve(raw_token)
    if identity is None:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The session token is invalid or has been revoked.",
            401,
        )

    g.user = identity
    g.token = raw_token
