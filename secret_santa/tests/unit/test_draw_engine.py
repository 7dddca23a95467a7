"""
tests/unit/test_draw_engine.py — Unit tests for draw_service.

What this file proves:
  - derange() returns a bijection with no fixed point for every N >= 2
  - N=2 always yields the swap
  - an exhausted retry budget raises DRAW_FAILED and returns nothing
  - run_draw() sets assignments, status and drawn_at together and does not
    mutate the input group
  - assignment entries carry the receiver's name and a wishlist snapshot

No Flask, no store.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone

import pytest

from secret_santa.app.errors import AppError, ErrorCode
from secret_santa.app.models.group import GroupStatus
from secret_santa.app.services import draw_service


class _IdentityShuffle(random.Random):
    """A shuffle that never moves anything: every attempt is all fixed points."""

    def shuffle(self, x, *args, **kwargs):
        return None


def _assert_derangement(ids: list, mapping: dict) -> None:
    assert set(mapping) == set(ids)
    assert sorted(mapping.values()) == sorted(ids)
    assert all(giver != receiver for giver, receiver in mapping.items())


def _group(n: int) -> dict:
    return {
        "id": "g1",
        "participants": [
            {"user_id": f"u{i}", "name": f"User {i}", "wishlist": [{"name": f"gift {i}"}]}
            for i in range(n)
        ],
        "assignments": {},
        "status": GroupStatus.ACTIVE,
        "drawn_at": None,
    }


# ── derange ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("n", [2, 3, 4, 5, 8, 13, 30])
def test_derange_has_no_fixed_points(n):
    ids = [f"u{i}" for i in range(n)]
    rng = random.Random(n)

    for _ in range(50):
        _assert_derangement(ids, draw_service.derange(ids, rng=rng))


def test_two_participants_always_swap():
    for seed in range(20):
        mapping = draw_service.derange(["a", "b"], rng=random.Random(seed))
        assert mapping == {"a": "b", "b": "a"}


def test_default_rng_produces_derangement():
    ids = ["a", "b", "c", "d"]
    _assert_derangement(ids, draw_service.derange(ids))


def test_derange_does_not_mutate_input():
    ids = ["a", "b", "c"]
    draw_service.derange(ids, rng=random.Random(1))
    assert ids == ["a", "b", "c"]


def test_derange_spreads_over_all_derangements_of_three():
    # The two derangements of {a, b, c} are the two 3-cycles.
    rng = random.Random(7)
    seen = {
        tuple(sorted(draw_service.derange(["a", "b", "c"], rng=rng).items()))
        for _ in range(200)
    }
    assert seen == {
        (("a", "b"), ("b", "c"), ("c", "a")),
        (("a", "c"), ("b", "a"), ("c", "b")),
    }


def test_exhausted_budget_raises_draw_failed():
    with pytest.raises(AppError) as exc_info:
        draw_service.derange(["a", "b", "c"], rng=_IdentityShuffle(), max_attempts=5)

    err = exc_info.value
    assert err.code == ErrorCode.DRAW_FAILED
    assert err.http_status == 503


@pytest.mark.parametrize("ids", [[], ["solo"]])
def test_fewer_than_two_ids_is_rejected(ids):
    with pytest.raises(ValueError):
        draw_service.derange(ids)


def test_duplicate_ids_are_rejected():
    with pytest.raises(ValueError):
        draw_service.derange(["a", "a", "b"])


# ── build_assignments / run_draw ───────────────────────────────────────────

def test_build_assignments_annotates_receiver():
    participants = _group(2)["participants"]
    assignments = draw_service.build_assignments(participants, {"u0": "u1", "u1": "u0"})

    assert assignments["u0"] == {
        "user_id": "u1",
        "name": "User 1",
        "wishlist": [{"name": "gift 1"}],
    }
    # Snapshot, not a shared reference.
    assert assignments["u0"]["wishlist"] is not participants[1]["wishlist"]


def test_run_draw_completes_a_copy_of_the_group():
    group = _group(4)
    drawn_at = datetime(2026, 12, 1, tzinfo=timezone.utc)

    drawn = draw_service.run_draw(group, rng=random.Random(3), now=drawn_at)

    assert drawn["status"] == GroupStatus.COMPLETED
    assert drawn["drawn_at"] == drawn_at.isoformat()
    _assert_derangement(
        [p["user_id"] for p in group["participants"]],
        {giver: a["user_id"] for giver, a in drawn["assignments"].items()},
    )

    # Input untouched.
    assert group["status"] == GroupStatus.ACTIVE
    assert group["assignments"] == {}
    assert group["drawn_at"] is None


def test_run_draw_failure_leaves_group_untouched():
    group = _group(3)

    with pytest.raises(AppError):
        draw_service.run_draw(group, rng=_IdentityShuffle(), max_attempts=3)

    assert group["status"] == GroupStatus.ACTIVE
    assert group["assignments"] == {}
