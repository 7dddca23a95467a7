"""
models/group.py — Group and Participant record shapes.

Groups are stored as plain dicts in the "groups" collection. Participants are
embedded in their group, never stored on their own.

  group["participants"]  ordered list, a user appears at most once
  group["assignments"]   {} until the draw; then giver_id → {user_id, name, wishlist}
  group["status"]        "active" → "completed" (one way)

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import uuid

from secret_santa.app.models.timestamps import utcnow_iso


class GroupStatus:
    ACTIVE    = "active"
    COMPLETED = "completed"


# 33 symbols; I, O, 0 and 1 are left out because they are easy to misread.
JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH = 6

MIN_PARTICIPANTS_FOR_DRAW = 2
MAX_PARTICIPANTS_LIMIT = 100


def new_participant_record(user: dict, is_organizer: bool = False) -> dict:
    return {
        "user_id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "joined_at": utcnow_iso(),
        "is_organizer": is_organizer,
        "wishlist": [],
    }


def new_group_record(
        code: str,
        name: str,
        organizer: dict,
        description: str = "",
        password_hash: str | None = None,
        is_public: bool = False,
        max_participants: int = 20,
) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "code": code,
        "name": name,
        "description": description or "",
        "password_hash": password_hash,
        "is_public": bool(is_public),
        "max_participants": max_participants,
        "organizer_id": organizer["id"],
        "organizer_name": organizer["name"],
        "participants": [new_participant_record(organizer, is_organizer=True)],
        "assignments": {},
        "status": GroupStatus.ACTIVE,
        "created_at": utcnow_iso(),
        "drawn_at": None,
    }


def find_group(groups: list[dict], group_id: str) -> dict | None:
    return next((g for g in groups if g.get("id") == group_id), None)


def find_group_by_code(groups: list[dict], code: str) -> dict | None:
    code = code.strip().upper()
    return next((g for g in groups if g.get("code") == code), None)


def find_participant(group: dict, user_id: str) -> dict | None:
    return next(
        (p for p in group.get("participants", []) if p.get("user_id") == user_id),
        None,
    )


def is_full(group: dict) -> bool:
    return len(group.get("participants", [])) >= group["max_participants"]
