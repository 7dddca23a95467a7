"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Return the standard response envelope: {"data": {...}, "warnings": []}

No business logic here. AppError propagates to the global error handler in
app/__init__.py — routes never catch it.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  POST   /auth/logout    → 200
  GET    /auth/me        → 200
  GET    /auth/check     → 200  (no auth required; reports whether the token is live)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from secret_santa.app.middleware.auth_middleware import bearer_token, require_auth
from secret_santa.app.schemas.auth_schema import LoginSchema, RegisterSchema
from secret_santa.app.services import auth_service
from secret_santa.app.storage.record_store import current_record_store
from secret_santa.app.storage.session_store import current_session_store

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return a token. (No auth required.)"""
    data = RegisterSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.register_user(
        name=data["name"],
        email=data["email"],
        password=data["password"],
        store=current_record_store(),
        sessions=current_session_store(),
        bcrypt_rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12),
    )
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return a token. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        store=current_record_store(),
        sessions=current_session_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /auth/logout — Revoke the current token. (Auth required.)"""
    auth_service.logout_user(token=g.token, sessions=current_session_store())
    return jsonify({"data": {"message": "Logged out successfully."}, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return current user profile. (Auth required.)"""
    result = auth_service.get_current_user(
        user_id=g.user["id"],
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/check", methods=["GET"])
def check():
    """GET /auth/check — {"authenticated": bool, "user": {...} | None}."""
    token = bearer_token()
    identity = current_session_store().resolve(token) if token else None
    return jsonify({
        "data": {"authenticated": identity is not None, "user": identity},
        "warnings": [],
    }), 200
