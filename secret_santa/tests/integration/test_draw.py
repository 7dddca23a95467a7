"""
tests/integration/test_draw.py — Draw, receiver and assignment report endpoints.

Endpoints covered:
  POST /groups/:id/draw          → 200 (organizer only)
  GET  /groups/:id/receiver      → 200 (after the draw)
  GET  /groups/:id/assignments   → 200 (organizer only, after the draw)

What this file proves:
  - a two-person draw swaps the two participants and completes the group
  - every participant gives exactly once and receives exactly once, never to self
  - a one-participant draw is rejected and changes nothing
  - only the organizer draws; a completed group cannot be drawn again
  - each participant sees only their own receiver, with the receiver's wishlist
"""

from __future__ import annotations

from .conftest import auth_headers, join, make_group, register, set_wishlist


def _draw(client, token, group_id):
    return client.post(f"/api/v1/groups/{group_id}/draw", headers=auth_headers(token))


def _group(client, token, group_id) -> dict:
    return client.get(f"/api/v1/groups/{group_id}", headers=auth_headers(token)).get_json()["data"]


def _setup(client, names):
    """Registers `names`, the first one creates a group, the rest join it."""
    users = [register(client, name=name) for name in names]
    group = make_group(client, users[0]["token"], name="Secret Santa")
    for user in users[1:]:
        assert join(client, user["token"], group["code"]).status_code == 200
    return users, group


class TestDraw:

    def test_two_person_draw(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])

        resp = _draw(client, alice["token"], group["id"])

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"results": {"Alice": "Bob", "Bob": "Alice"}}
        data = _group(client, alice["token"], group["id"])
        assert data["status"] == "completed"
        assert data["drawn_at"] is not None

    def test_every_participant_gives_and_receives_once(self, client):
        names = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank"]
        users, group = _setup(client, names)

        results = _draw(client, users[0]["token"], group["id"]).get_json()["data"]["results"]

        assert sorted(results) == sorted(names)
        assert sorted(results.values()) == sorted(names)
        assert all(giver != receiver for giver, receiver in results.items())

    def test_one_participant_is_rejected(self, client):
        alice = register(client)
        group = make_group(client, alice["token"])

        resp = _draw(client, alice["token"], group["id"])

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "NOT_ENOUGH_PARTICIPANTS"
        data = _group(client, alice["token"], group["id"])
        assert data["status"] == "active"
        assert data["drawn_at"] is None

    def test_non_organizer_is_forbidden(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])

        resp = _draw(client, bob["token"], group["id"])

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"
        assert _group(client, alice["token"], group["id"])["status"] == "active"

    def test_second_draw_is_rejected(self, client):
        (alice, bob, carol), group = _setup(client, ["Alice", "Bob", "Carol"])
        first = _draw(client, alice["token"], group["id"]).get_json()["data"]

        resp = _draw(client, alice["token"], group["id"])

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "GROUP_CLOSED"
        report = client.get(
            f"/api/v1/groups/{group['id']}/assignments",
            headers=auth_headers(alice["token"]),
        ).get_json()["data"]
        assert report == first["results"]

    def test_unknown_group_returns_404(self, client):
        alice = register(client)
        resp = _draw(client, alice["token"], "missing")
        assert resp.status_code == 404


class TestReceiver:

    def test_receiver_before_draw_returns_409(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])

        resp = client.get(f"/api/v1/groups/{group['id']}/receiver", headers=auth_headers(bob["token"]))

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DRAW_NOT_COMPLETED"

    def test_receiver_comes_with_wishlist(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])
        set_wishlist(client, bob["token"], group["id"], [{"name": "Socks"}])
        _draw(client, alice["token"], group["id"])

        resp = client.get(f"/api/v1/groups/{group['id']}/receiver", headers=auth_headers(alice["token"]))

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["name"] == "Bob"
        assert [item["name"] for item in data["wishlist"]] == ["Socks"]
        assert _group(client, alice["token"], group["id"])["my_receiver"] == data

    def test_group_view_shows_only_own_receiver(self, client):
        (alice, bob, carol), group = _setup(client, ["Alice", "Bob", "Carol"])
        results = _draw(client, alice["token"], group["id"]).get_json()["data"]["results"]

        for name, user in (("Alice", alice), ("Bob", bob), ("Carol", carol)):
            data = _group(client, user["token"], group["id"])
            assert data["my_receiver"]["name"] == results[name]

    def test_outsider_cannot_see_receiver(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])
        mallory = register(client, name="Mallory")
        _draw(client, alice["token"], group["id"])

        resp = client.get(f"/api/v1/groups/{group['id']}/receiver", headers=auth_headers(mallory["token"]))

        assert resp.status_code == 403


class TestAssignments:

    def test_organizer_sees_full_report(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])
        _draw(client, alice["token"], group["id"])

        resp = client.get(f"/api/v1/groups/{group['id']}/assignments", headers=auth_headers(alice["token"]))

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"Alice": "Bob", "Bob": "Alice"}

    def test_participant_cannot_see_report(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])
        _draw(client, alice["token"], group["id"])

        resp = client.get(f"/api/v1/groups/{group['id']}/assignments", headers=auth_headers(bob["token"]))

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_report_before_draw_returns_409(self, client):
        (alice, bob), group = _setup(client, ["Alice", "Bob"])

        resp = client.get(f"/api/v1/groups/{group['id']}/assignments", headers=auth_headers(alice["token"]))

        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "DRAW_NOT_COMPLETED"
