"""
models/user.py — User record shape.

Users are stored as plain dicts in the "users" collection. These helpers
build and find them. No business logic. No imports from services or routes.
"""

from __future__ import annotations

import uuid

from secret_santa.app.models.timestamps import utcnow_iso


def new_user_record(name: str, email: str, password_hash: str) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "name": name,
        "email": email,
        "password_hash": password_hash,
        "groups": [],
        "created_at": utcnow_iso(),
    }


def find_user(users: list[dict], user_id: str) -> dict | None:
    return next((u for u in users if u.get("id") == user_id), None)


def find_user_by_email(users: list[dict], email: str) -> dict | None:
    email = email.strip().lower()
    return next((u for u in users if u.get("email", "").lower() == email), None)


def public_user(user: dict) -> dict:
    """The fields of a user record that may leave the server."""
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
    }
