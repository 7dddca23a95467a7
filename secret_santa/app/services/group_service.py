"""
services/group_service.py — Group lifecycle, membership and wishlist logic.

Invariants enforced here:
  - join codes are unique across all groups
  - a user appears in a group's participant list at most once
  - len(participants) <= max_participants after any join
  - assignments is non-empty iff status == "completed"

Authorization rules:
  - Reading a group, its wishlists or the receiver: participants only (403)
  - Drawing and the full assignment report: organizer only (403)
  - get_group_by_code: no identity required, public summary only

Every mutation is load snapshot → modify → save(expected_version=...).
A concurrent writer in between raises STALE_WRITE (409) from the store.
Group and user saves are independent; the group save always goes first and
a lost race on the users save is retried, never surfaced.

Layer rules:
  - No Flask imports. Plain dicts in, plain dicts out. The RecordStore is a
    parameter, the acting user is an identity dict {"id", "name", "email"}.
"""

from __future__ import annotations

import logging
import random
import secrets

import bcrypt

from secret_santa.app.errors import AppError, ErrorCode
from secret_santa.app.models.group import (
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
    MIN_PARTICIPANTS_FOR_DRAW,
    GroupStatus,
    find_group,
    find_group_by_code,
    find_participant,
    is_full,
    new_group_record,
    new_participant_record,
)
from secret_santa.app.models.user import find_user
from secret_santa.app.services import draw_service
from secret_santa.app.storage.record_store import GROUPS, USERS, RecordStore

logger = logging.getLogger(__name__)

USER_SAVE_ATTEMPTS = 3


# ── Private helpers ────────────────────────────────────────────────────────

def _generate_join_code() -> str:
    return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def _unique_join_code(groups: list[dict]) -> str:
    """Samples codes until one is not used by any group in `groups`."""
    taken = {g.get("code") for g in groups}
    code = _generate_join_code()
    while code in taken:
        code = _generate_join_code()
    return code


def _hash_password(password: str, rounds: int) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _get_group_or_404(groups: list[dict], group_id: str) -> dict:
    """Returns the group record or raises GROUP_NOT_FOUND (404)."""
    group = find_group(groups, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def _require_participant(group: dict, user_id: str) -> dict:
    """Returns the caller's participant entry or raises FORBIDDEN (403)."""
    participant = find_participant(group, user_id)
    if participant is None:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You are not a participant of this group.",
            403,
        )
    return participant


def _require_organizer(group: dict, user_id: str, action: str) -> None:
    if group["organizer_id"] != user_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"Only the organizer can {action}.",
            403,
        )


def _require_completed(group: dict) -> None:
    if group["status"] != GroupStatus.COMPLETED:
        raise AppError(
            ErrorCode.DRAW_NOT_COMPLETED,
            "The draw has not taken place yet.",
            409,
        )


def _add_group_to_user(user_id: str, group_id: str, store: RecordStore) -> None:
    """
    Records membership on the user record (second, independent save).

    The group save has already been committed when this runs, so a lost
    race on the users collection is retried on a fresh snapshot and never
    reported to the caller.
    """
    for attempt in range(1, USER_SAVE_ATTEMPTS + 1):
        snapshot = store.load_snapshot(USERS)
        user = find_user(snapshot.records, user_id)
        if user is None:
            logger.warning("User %s vanished before group %s could be recorded", user_id, group_id)
            return
        user_groups = user.setdefault("groups", [])
        if group_id in user_groups:
            return
        user_groups.append(group_id)
        try:
            store.save(USERS, snapshot.records, expected_version=snapshot.version)
            return
        except AppError as err:
            if err.code != ErrorCode.STALE_WRITE:
                raise
            logger.info(
                "Users save for group %s lost a race (attempt %d/%d)",
                group_id,
                attempt,
                USER_SAVE_ATTEMPTS,
            )

    logger.warning(
        "Group %s was saved but could not be recorded on user %s after %d attempts",
        group_id,
        user_id,
        USER_SAVE_ATTEMPTS,
    )


def _group_summary(group: dict) -> dict:
    """Public summary used by search and lookup-by-code."""
    return {
        "id": group["id"],
        "code": group["code"],
        "name": group["name"],
        "description": group.get("description", ""),
        "participants_count": len(group["participants"]),
        "max_participants": group["max_participants"],
        "is_password_protected": bool(group.get("password_hash")),
        "organizer_name": group.get("organizer_name", ""),
    }


def _participant_view(participant: dict) -> dict:
    """Participant as other participants see it: no email, no wishlist contents."""
    wishlist = participant.get("wishlist") or []
    return {
        "user_id": participant["user_id"],
        "name": participant["name"],
        "is_organizer": bool(participant.get("is_organizer")),
        "has_wishlist": len(wishlist) > 0,
        "wishlist_count": len(wishlist),
    }


def _receiver_for(group: dict, user_id: str) -> dict | None:
    """
    {name, wishlist} of the user's receiver, or None before the draw.

    The receiver's current wishlist is used so edits made after the draw are
    still seen by their Santa. If the receiver's participant entry is gone,
    the name and wishlist copied into the assignment at draw time are used.
    """
    if group["status"] != GroupStatus.COMPLETED:
        return None
    assignment = (group.get("assignments") or {}).get(user_id)
    if assignment is None:
        return None
    receiver = find_participant(group, assignment["user_id"])
    if receiver is None:
        return {"name": assignment["name"], "wishlist": assignment.get("wishlist") or []}
    return {"name": receiver["name"], "wishlist": receiver.get("wishlist") or []}


# ── Public service functions ───────────────────────────────────────────────

def create_group(
        owner: dict,
        name: str,
        store: RecordStore,
        description: str = "",
        password: str | None = None,
        max_participants: int = 20,
        is_public: bool = False,
        bcrypt_rounds: int = 12,
        base_url: str = "",
) -> dict:
    """
    Creates a group with the owner as its only, organizer-flagged participant.

    Raises:
      AppError(MISSING_FIELD, 400) — name is blank

    Returns: {"id", "code", "name", "invite_link"}
    """
    if not name or not name.strip():
        raise AppError(
            ErrorCode.MISSING_FIELD,
            "A group name is required.",
            400,
            field="name",
        )

    snapshot = store.load_snapshot(GROUPS)
    groups = snapshot.records

    group = new_group_record(
        code=_unique_join_code(groups),
        name=name.strip(),
        organizer=owner,
        description=(description or "").strip(),
        password_hash=_hash_password(password, bcrypt_rounds) if password else None,
        is_public=is_public,
        max_participants=max_participants,
    )
    groups.append(group)
    store.save(GROUPS, groups, expected_version=snapshot.version)

    _add_group_to_user(owner["id"], group["id"], store)

    logger.info("Group %s (%s) created by user %s", group["id"], group["code"], owner["id"])

    return {
        "id": group["id"],
        "code": group["code"],
        "name": group["name"],
        "invite_link": f"{base_url.rstrip('/')}/join-group.html?code={group['code']}",
    }


def search_groups(requester: dict, store: RecordStore, query: str | None = None) -> list[dict]:
    """
    Public, active, non-full groups the requester has not joined.
    `query` filters by case-insensitive substring of name or code.
    """
    needle = (query or "").strip().lower()
    results = []
    for group in store.load(GROUPS):
        if not group.get("is_public"):
            continue
        if group["status"] != GroupStatus.ACTIVE or is_full(group):
            continue
        if find_participant(group, requester["id"]) is not None:
            continue
        if needle and needle not in group["name"].lower() and needle not in group["code"].lower():
            continue
        results.append(_group_summary(group))
    return results


def join_group(
        requester: dict,
        code: str,
        store: RecordStore,
        password: str | None = None,
) -> dict:
    """
    Adds the requester to the group with join code `code`.

    Checks run in this order:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(PASSWORD_REQUIRED, 400)       — group has a password, none given
      AppError(INVALID_GROUP_PASSWORD, 403)  — password does not match
      AppError(ALREADY_MEMBER, 409)
      AppError(GROUP_FULL, 409)
      AppError(GROUP_CLOSED, 409)            — draw already done

    Returns: {"id", "code", "name"}
    """
    snapshot = store.load_snapshot(GROUPS)
    group = find_group_by_code(snapshot.records, code or "")
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"No group uses the code '{code}'.",
            404,
            field="code",
        )

    password_hash = group.get("password_hash")
    if password_hash:
        if not password:
            raise AppError(
                ErrorCode.PASSWORD_REQUIRED,
                "This group is password protected.",
                400,
                field="password",
            )
        if not bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8")):
            raise AppError(
                ErrorCode.INVALID_GROUP_PASSWORD,
                "The group password is incorrect.",
                403,
                field="password",
            )

    if find_participant(group, requester["id"]) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            "You are already a participant of this group.",
            409,
        )

    if is_full(group):
        raise AppError(
            ErrorCode.GROUP_FULL,
            f"The group is full ({group['max_participants']} participants).",
            409,
        )

    if group["status"] != GroupStatus.ACTIVE:
        raise AppError(
            ErrorCode.GROUP_CLOSED,
            "The group is closed for new participants.",
            409,
        )

    group["participants"].append(new_participant_record(requester))
    store.save(GROUPS, snapshot.records, expected_version=snapshot.version)

    _add_group_to_user(requester["id"], group["id"], store)

    logger.info("User %s joined group %s", requester["id"], group["id"])

    return {
        "id": group["id"],
        "code": group["code"],
        "name": group["name"],
    }


def list_my_groups(requester: dict, store: RecordStore) -> list[dict]:
    """Every group the requester participates in, in creation order."""
    return [
        {
            "id": g["id"],
            "code": g["code"],
            "name": g["name"],
            "description": g.get("description", ""),
            "participants": [_participant_view(p) for p in g["participants"]],
            "participants_count": len(g["participants"]),
            "max_participants": g["max_participants"],
            "is_organizer": g["organizer_id"] == requester["id"],
            "status": g["status"],
            "created_at": g["created_at"],
        }
        for g in store.load(GROUPS)
        if find_participant(g, requester["id"]) is not None
    ]


def get_group(requester: dict, group_id: str, store: RecordStore) -> dict:
    """
    Participant-safe view of a group.

    Other participants' wishlists are never included. `my_receiver` holds the
    requester's receiver (name + wishlist) once the draw is completed.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — requester is not a participant
    """
    group = _get_group_or_404(store.load(GROUPS), group_id)
    _require_participant(group, requester["id"])

    return {
        "id": group["id"],
        "code": group["code"],
        "name": group["name"],
        "description": group.get("description", ""),
        "participants": [_participant_view(p) for p in group["participants"]],
        "participants_count": len(group["participants"]),
        "max_participants": group["max_participants"],
        "is_organizer": group["organizer_id"] == requester["id"],
        "is_public": bool(group.get("is_public")),
        "status": group["status"],
        "drawn_at": group.get("drawn_at"),
        "my_receiver": _receiver_for(group, requester["id"]),
        "created_at": group["created_at"],
    }


def get_group_by_code(code: str, store: RecordStore) -> dict:
    """Public summary by join code. No identity required."""
    group = find_group_by_code(store.load(GROUPS), code or "")
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"No group uses the code '{code}'.",
            404,
        )
    return {**_group_summary(group), "status": group["status"]}


def set_wishlist(
        requester: dict,
        group_id: str,
        items,
        store: RecordStore,
        strict: bool = False,
) -> list:
    """
    Replaces the requester's wishlist in the group.

    Anything that is not a list becomes [] unless `strict` is set, in which
    case it raises INVALID_WISHLIST (400).

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(INVALID_WISHLIST, 400) — strict mode only
    """
    if not isinstance(items, list):
        if strict:
            raise AppError(
                ErrorCode.INVALID_WISHLIST,
                "The wishlist must be a list of items.",
                400,
                field="items",
            )
        items = []

    snapshot = store.load_snapshot(GROUPS)
    group = _get_group_or_404(snapshot.records, group_id)
    participant = _require_participant(group, requester["id"])

    participant["wishlist"] = items
    store.save(GROUPS, snapshot.records, expected_version=snapshot.version)

    logger.info(
        "Wishlist of user %s in group %s updated (%d items)",
        requester["id"],
        group_id,
        len(items),
    )
    return items


def get_wishlist(requester: dict, group_id: str, store: RecordStore) -> list:
    """The requester's own wishlist in the group."""
    group = _get_group_or_404(store.load(GROUPS), group_id)
    participant = _require_participant(group, requester["id"])
    return participant.get("wishlist") or []


def draw(
        requester: dict,
        group_id: str,
        store: RecordStore,
        rng: random.Random | None = None,
        max_attempts: int = draw_service.DEFAULT_MAX_ATTEMPTS,
) -> dict:
    """
    Runs the draw and completes the group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)                — requester is not the organizer
      AppError(GROUP_CLOSED, 409)             — draw already done
      AppError(NOT_ENOUGH_PARTICIPANTS, 400)  — fewer than 2 participants
      AppError(DRAW_FAILED, 503)              — retry budget exhausted; nothing saved

    Returns: {"results": {giver_name: receiver_name}}
    """
    snapshot = store.load_snapshot(GROUPS)
    group = _get_group_or_404(snapshot.records, group_id)
    _require_organizer(group, requester["id"], "run the draw")

    if group["status"] != GroupStatus.ACTIVE:
        raise AppError(
            ErrorCode.GROUP_CLOSED,
            "The draw for this group has already taken place.",
            409,
        )

    if len(group["participants"]) < MIN_PARTICIPANTS_FOR_DRAW:
        raise AppError(
            ErrorCode.NOT_ENOUGH_PARTICIPANTS,
            f"A draw needs at least {MIN_PARTICIPANTS_FOR_DRAW} participants.",
            400,
        )

    drawn = draw_service.run_draw(group, rng=rng, max_attempts=max_attempts)

    records = [drawn if g["id"] == group_id else g for g in snapshot.records]
    store.save(GROUPS, records, expected_version=snapshot.version)

    logger.info(
        "Draw completed for group %s with %d participants",
        group_id,
        len(drawn["participants"]),
    )
    return {"results": _assignment_names(drawn)}


def _assignment_names(group: dict) -> dict:
    names = {p["user_id"]: p["name"] for p in group["participants"]}
    return {
        names.get(giver_id, giver_id): assignment["name"]
        for giver_id, assignment in group["assignments"].items()
    }


def get_my_receiver(requester: dict, group_id: str, store: RecordStore) -> dict:
    """
    The requester's receiver: {"name", "wishlist"}.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403)
      AppError(DRAW_NOT_COMPLETED, 409)
      AppError(RECEIVER_NOT_FOUND, 404)
    """
    group = _get_group_or_404(store.load(GROUPS), group_id)
    _require_participant(group, requester["id"])
    _require_completed(group)

    receiver = _receiver_for(group, requester["id"])
    if receiver is None:
        raise AppError(
            ErrorCode.RECEIVER_NOT_FOUND,
            "No receiver is assigned to you in this group.",
            404,
        )
    return receiver


def get_all_assignments(requester: dict, group_id: str, store: RecordStore) -> dict:
    """Organizer-only report: {giver_name: receiver_name}."""
    group = _get_group_or_404(store.load(GROUPS), group_id)
    _require_organizer(group, requester["id"], "see all assignments")
    _require_completed(group)
    return _assignment_names(group)
