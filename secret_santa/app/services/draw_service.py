"""
services/draw_service.py — Secret Santa draw: random derangement + assignment map.

Given the participant ids of a group, pick a permutation with no fixed point
(nobody draws themselves) by rejection sampling:

  shuffle a copy of the ids (Fisher–Yates via rng.shuffle)
  accept if no position maps to itself, otherwise reshuffle
  give up after max_attempts and raise DRAW_FAILED (503)

A uniform permutation is a derangement with probability ≈ 1/e, so about
2.7 shuffles are needed on average. For N=2 the only derangement is the swap
and each shuffle finds it with probability 1/2.

Preconditions (organizer check, at least 2 participants, group still active)
belong to group_service.draw(). This module never touches storage: run_draw()
returns a new group dict and the caller decides whether to save it.
"""

from __future__ import annotations

import copy
import logging
import random
from datetime import datetime
from typing import Hashable, Sequence

from secret_santa.app.errors import AppError, ErrorCode
from secret_santa.app.models.group import GroupStatus
from secret_santa.app.models.timestamps import utcnow_iso

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100

_system_random = random.SystemRandom()


def derange(
        ids: Sequence[Hashable],
        rng: random.Random | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> dict:
    """
    Returns {giver: receiver} forming a permutation of `ids` with no fixed point.

    Raises:
      ValueError                  — fewer than 2 ids, or duplicate ids
      AppError(DRAW_FAILED, 503)  — no derangement found within max_attempts
    """
    givers = list(ids)
    if len(givers) < 2:
        raise ValueError("A derangement needs at least 2 ids.")
    if len(set(givers)) != len(givers):
        raise ValueError("Ids must be unique.")

    rng = rng or _system_random
    receivers = list(givers)

    for attempt in range(1, max_attempts + 1):
        rng.shuffle(receivers)
        if all(giver != receiver for giver, receiver in zip(givers, receivers)):
            logger.debug("Derangement of %d ids found on attempt %d", len(givers), attempt)
            return dict(zip(givers, receivers))

    logger.warning(
        "No derangement of %d ids found in %d attempts",
        len(givers),
        max_attempts,
    )
    raise AppError(
        ErrorCode.DRAW_FAILED,
        "The draw could not be completed. Please try again.",
        503,
    )


def build_assignments(participants: list[dict], mapping: dict) -> dict:
    """
    Turns {giver_id: receiver_id} into the stored assignment map:
      giver_id → {user_id, name, wishlist}
    The wishlist is a copy of the receiver's wishlist at draw time.
    """
    by_id = {p["user_id"]: p for p in participants}
    assignments = {}
    for giver_id, receiver_id in mapping.items():
        receiver = by_id[receiver_id]
        assignments[giver_id] = {
            "user_id": receiver_id,
            "name": receiver["name"],
            "wishlist": copy.deepcopy(receiver.get("wishlist") or []),
        }
    return assignments


def run_draw(
        group: dict,
        rng: random.Random | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        now: datetime | None = None,
) -> dict:
    """
    Returns a copy of `group` with assignments, status and drawn_at set together.

    `group` itself is left untouched, so a DRAW_FAILED leaves nothing behind.
    """
    participants = group["participants"]
    mapping = derange([p["user_id"] for p in participants], rng=rng, max_attempts=max_attempts)

    drawn = copy.deepcopy(group)
    drawn["assignments"] = build_assignments(participants, mapping)
    drawn["status"] = GroupStatus.COMPLETED
    drawn["drawn_at"] = utcnow_iso(now)
    return drawn

