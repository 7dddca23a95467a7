"""
routes/groups.py — Group, membership, wishlist and draw route handlers.

Layer rules:
  - Parse, validate, call ONE service, return envelope.
  - No business logic. No record lookups.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups/                  → 201  create group
  GET    /groups/search?query=     → 200  joinable public groups
  POST   /groups/join              → 200  join by code (+ password)
  GET    /groups/code/:code        → 200  public summary, no auth
  GET    /groups/:id               → 200  participant view
  PUT    /groups/:id/wishlist      → 200  replace own wishlist
  GET    /groups/:id/wishlist      → 200  own wishlist
  POST   /groups/:id/draw          → 200  organizer only
  GET    /groups/:id/receiver      → 200  own receiver after the draw
  GET    /groups/:id/assignments   → 200  organizer only, names → names
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from secret_santa.app.middleware.auth_middleware import require_auth
from secret_santa.app.schemas.group_schema import (
    CreateGroupSchema,
    JoinGroupSchema,
    SearchGroupsSchema,
    WishlistSchema,
)
from secret_santa.app.services import group_service
from secret_santa.app.storage.record_store import current_record_store

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a group. Caller becomes organizer and first participant."""
    data = CreateGroupSchema().load(request.get_json(force=True, silent=True) or {})
    max_participants = data["max_participants"]
    if max_participants is None:
        max_participants = current_app.config.get("DEFAULT_MAX_PARTICIPANTS", 20)

    result = group_service.create_group(
        owner=g.user,
        name=data["name"],
        description=data["description"],
        password=data["password"],
        max_participants=max_participants,
        is_public=data["is_public"],
        store=current_record_store(),
        bcrypt_rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12),
        base_url=current_app.config.get("PUBLIC_BASE_URL", ""),
    )
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/search", methods=["GET"])
@require_auth
def search_groups():
    """GET /groups/search — Public, active, non-full groups the caller has not joined."""
    data = SearchGroupsSchema().load(request.args.to_dict())
    result = group_service.search_groups(
        requester=g.user,
        query=data["query"],
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/join", methods=["POST"])
@require_auth
def join_group():
    """POST /groups/join — Join by code; password required for protected groups."""
    data = JoinGroupSchema().load(request.get_json(force=True, silent=True) or {})
    result = group_service.join_group(
        requester=g.user,
        code=data["code"],
        password=data["password"],
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/code/<string:code>", methods=["GET"])
def get_group_by_code(code: str):
    """GET /groups/code/:code — Public summary for the join page. (No auth required.)"""
    result = group_service.get_group_by_code(code=code, store=current_record_store())
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<string:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: str):
    """GET /groups/:id — Group details. Caller must be a participant."""
    result = group_service.get_group(
        requester=g.user,
        group_id=group_id,
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<string:group_id>/wishlist", methods=["PUT"])
@require_auth
def set_wishlist(group_id: str):
    """PUT /groups/:id/wishlist — Replace the caller's wishlist in this group."""
    items = WishlistSchema().load_items(request.get_json(force=True, silent=True) or {})
    result = group_service.set_wishlist(
        requester=g.user,
        group_id=group_id,
        items=items,
        store=current_record_store(),
        strict=current_app.config.get("WISHLIST_STRICT", False),
    )
    return jsonify({"data": {"wishlist": result}, "warnings": []}), 200


@groups_bp.route("/<string:group_id>/wishlist", methods=["GET"])
@require_auth
def get_wishlist(group_id: str):
    """GET /groups/:id/wishlist — The caller's own wishlist in this group."""
    result = group_service.get_wishlist(
        requester=g.user,
        group_id=group_id,
        store=current_record_store(),
    )
    return jsonify({"data": {"wishlist": result}, "warnings": []}), 200


@groups_bp.route("/<string:group_id>/draw", methods=["POST"])
@require_auth
def draw(group_id: str):
    """POST /groups/:id/draw — Run the draw. Organizer only."""
    result = group_service.draw(
        requester=g.user,
        group_id=group_id,
        store=current_record_store(),
        max_attempts=current_app.config.get("DRAW_MAX_ATTEMPTS", 100),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<string:group_id>/receiver", methods=["GET"])
@require_auth
def get_my_receiver(group_id: str):
    """GET /groups/:id/receiver — Who the caller gives a gift to."""
    result = group_service.get_my_receiver(
        requester=g.user,
        group_id=group_id,
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<string:group_id>/assignments", methods=["GET"])
@require_auth
def get_all_assignments(group_id: str):
    """GET /groups/:id/assignments — Full giver → receiver report. Organizer only."""
    result = group_service.get_all_assignments(
        requester=g.user,
        group_id=group_id,
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200
