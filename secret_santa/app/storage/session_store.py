"""
storage/session_store.py — Bearer token issue / resolve / revoke.

Business logic never sees tokens. The auth middleware resolves the bearer
token to an identity dict ({"id", "name", "email"}) and hands that to the
services.

Backends (SESSION_BACKEND):
  memory  random opaque tokens in a process-wide map. A restart invalidates
          every session.
  jwt     HS256-signed tokens carrying the identity. Nothing is stored except
          the jti of revoked tokens, kept until their expiry.
"""

from __future__ import annotations

import secrets
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

import jwt

from secret_santa.app.errors import AppError, ErrorCode


class SessionStore(ABC):

    @abstractmethod
    def issue(self, identity: dict) -> str:
        """Returns a new bearer token for `identity`."""

    @abstractmethod
    def resolve(self, token: str) -> dict | None:
        """Returns the identity behind `token`, or None if it is unknown."""

    @abstractmethod
    def revoke(self, token: str) -> None:
        """Invalidates `token`. Revoking an unknown token is a no-op."""

    @staticmethod
    def _identity(identity: dict) -> dict:
        return {
            "id": identity["id"],
            "name": identity["name"],
            "email": identity["email"],
        }


class InMemorySessionStore(SessionStore):

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self._ttl = ttl_seconds
        self._sessions: dict[str, tuple[dict, float | None]] = {}
        self._lock = threading.Lock()

    def issue(self, identity: dict) -> str:
        token = secrets.token_urlsafe(32)
        expires_at = time.monotonic() + self._ttl if self._ttl else None
        with self._lock:
            self._sessions[token] = (self._identity(identity), expires_at)
        return token

    def resolve(self, token: str) -> dict | None:
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            identity, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._sessions[token]
                return None
            return dict(identity)

    def revoke(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


class JwtSessionStore(SessionStore):

    def __init__(self, secret_key: str, ttl_seconds: int, algorithm: str = "HS256") -> None:
        self._secret = secret_key
        self._ttl = timedelta(seconds=ttl_seconds)
        self._algorithm = algorithm
        self._revoked: dict[str, float] = {}  # jti -> exp (epoch seconds)
        self._lock = threading.Lock()

    def issue(self, identity: dict) -> str:
        now = datetime.now(timezone.utc)
        identity = self._identity(identity)
        payload = {
            "sub": identity["id"],
            "name": identity["name"],
            "email": identity["email"],
            "iat": now,
            "exp": now + self._ttl,
            # Guarantees each issued token is unique even if generated in the same second.
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str, verify_exp: bool = True) -> dict | None:
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError:
            raise AppError(
                ErrorCode.TOKEN_EXPIRED,
                "The session has expired. Please log in again.",
                401,
            )
        except jwt.InvalidTokenError:
            return None

    def resolve(self, token: str) -> dict | None:
        payload = self._decode(token)
        if payload is None or not payload.get("sub"):
            return None
        with self._lock:
            if payload.get("jti") in self._revoked:
                return None
        return {
            "id": payload["sub"],
            "name": payload.get("name", ""),
            "email": payload.get("email", ""),
        }

    def revoke(self, token: str) -> None:
        payload = self._decode(token, verify_exp=False)
        if payload is None or "jti" not in payload:
            return
        now = time.time()
        with self._lock:
            # Expired entries can never resolve again; drop them.
            self._revoked = {jti: exp for jti, exp in self._revoked.items() if exp > now}
            self._revoked[payload["jti"]] = float(payload.get("exp", now))


def create_session_store(config) -> SessionStore:
    """Builds the backend named by config["SESSION_BACKEND"]."""
    backend = config.get("SESSION_BACKEND", "memory")
    if backend == "memory":
        return InMemorySessionStore(ttl_seconds=config.get("SESSION_TTL"))
    if backend == "jwt":
        return JwtSessionStore(
            secret_key=config["JWT_SECRET_KEY"],
            ttl_seconds=config.get("SESSION_TTL", 7 * 86400),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )
    raise ValueError(f"Unknown SESSION_BACKEND {backend!r}.")


def current_session_store() -> SessionStore:
    """The SessionStore attached to the running Flask app."""
    from flask import current_app
    return current_app.extensions["session_store"]
