"""
Requests Blueprint — modeling requests for users and the admin Kanban board.

  GET   /api/v1/user/requests               — Caller's own requests
  POST  /api/v1/user/requests               — Submit a request
  GET   /api/v1/admin/requests              — All requests (ADMIN)
  GET   /api/v1/admin/requests/board        — Kanban columns (ADMIN)
  GET   /api/v1/admin/requests/stats        — Dashboard totals (ADMIN)
  GET   /api/v1/admin/requests/<id>         — One request (ADMIN)
  PATCH /api/v1/admin/requests/status       — Move a card / set status (ADMIN)
  PATCH /api/v1/admin/requests/notes        — Admin notes (ADMIN)
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_auth, require_role
from app.models.auth import ROLE_ADMIN
from app.services import request_service
from app.utils.helpers import parse_id

requests_bp = Blueprint("requests_bp", __name__, url_prefix="/api/v1")


# ── User side ────────────────────────────────────────────────────────────────

@requests_bp.route("/user/requests", methods=["GET"])
@require_auth
def list_own_requests():
    identity = current_identity()
    reqs = request_service.list_requests(user_id=identity.user_id)
    return jsonify([r.to_dict() for r in reqs])


@requests_bp.route("/user/requests", methods=["POST"])
@require_auth
def create_request():
    """
    Body: { "title", "description", "priority"?, "filters"? }
    ``filters`` may be an object or a JSON string.
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    req = request_service.create_request(
        identity.user_id,
        data.get("title"),
        data.get("description"),
        priority=data.get("priority"),
        filters=data.get("filters"),
    )
    return jsonify(req.to_dict()), 201


# ── Admin side ───────────────────────────────────────────────────────────────

@requests_bp.route("/admin/requests", methods=["GET"])
@require_role(ROLE_ADMIN)
def list_all_requests():
    return jsonify([r.to_dict(include_user=True) for r in request_service.list_requests()])


@requests_bp.route("/admin/requests/board", methods=["GET"])
@require_role(ROLE_ADMIN)
def board():
    return jsonify({"columns": request_service.get_board()})


@requests_bp.route("/admin/requests/stats", methods=["GET"])
@require_role(ROLE_ADMIN)
def request_stats():
    return jsonify(request_service.request_counts())


@requests_bp.route("/admin/requests/<int:request_id>", methods=["GET"])
@require_role(ROLE_ADMIN)
def get_request(request_id):
    return jsonify(request_service.get_request(request_id).to_dict(include_user=True))


@requests_bp.route("/admin/requests/status", methods=["PATCH"])
@require_role(ROLE_ADMIN)
def update_status():
    """
    Body: { "requestId": 1, "status": "IN_PROGRESS" }
    Same call for a dropdown change and a drag-drop onto a board column.
    """
    data = request.get_json(silent=True) or {}
    req = request_service.move_request(parse_id(data.get("requestId"), "requestId"),
                                       data.get("status"))
    return jsonify(req.to_dict(include_user=True))


@requests_bp.route("/admin/requests/notes", methods=["PATCH"])
@require_role(ROLE_ADMIN)
def update_notes():
    """Body: { "requestId": 1, "adminNotes": "..." }"""
    data = request.get_json(silent=True) or {}
    req = request_service.set_admin_notes(parse_id(data.get("requestId"), "requestId"),
                                          data.get("adminNotes"))
    return jsonify(req.to_dict(include_user=True))
