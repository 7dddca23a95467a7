# secret_santa/app/routes/users.py
from flask import Blueprint, g, jsonify

from secret_santa.app.middleware.auth_middleware import require_auth
from secret_santa.app.services import group_service
from secret_santa.app.storage.record_store import current_record_store

users_bp = Blueprint("users", __name__)


@users_bp.route("/me/groups", methods=["GET"])
@require_auth
def list_my_groups():
    result = group_service.list_my_groups(
        requester=g.user,
        store=current_record_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200
