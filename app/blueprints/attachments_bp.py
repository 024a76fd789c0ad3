"""
Attachments Blueprint — subtask files and their comment threads.

Open to IT_SPECIALIST and QUALITY_EVALUATOR.

  GET    /api/v1/attachments?subtaskId=          — Newest first
  POST   /api/v1/attachments                     — Upload (base64 data URL)
  DELETE /api/v1/attachments?id=                 — Uploader role only
  GET    /api/v1/attachment-comments?attachmentId=
  POST   /api/v1/attachment-comments
  PATCH  /api/v1/attachment-comments             — Author only
  DELETE /api/v1/attachment-comments?id=         — Author only
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_role
from app.models.auth import ROLE_IT_SPECIALIST, ROLE_QUALITY_EVALUATOR
from app.services import attachment_service
from app.utils.helpers import parse_id

attachments_bp = Blueprint("attachments_bp", __name__, url_prefix="/api/v1")

_ROLES = (ROLE_IT_SPECIALIST, ROLE_QUALITY_EVALUATOR)


def _optional_id(value, field):
    return None if value in (None, "") else parse_id(value, field)


@attachments_bp.route("/attachments", methods=["GET"])
@require_role(*_ROLES)
def list_attachments():
    subtask_id = parse_id(request.args.get("subtaskId"), "subtaskId")
    return jsonify([a.to_dict() for a in attachment_service.list_attachments(subtask_id)])


@attachments_bp.route("/attachments", methods=["POST"])
@require_role(*_ROLES)
def upload_attachment():
    """
    Body: { "subtaskId", "fileName", "fileUrl", "fileSize", "fileType" }
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    attachment = attachment_service.create_attachment(
        _optional_id(data.get("subtaskId"), "subtaskId"),
        identity.role,
        data.get("fileName"),
        data.get("fileUrl"),
        data.get("fileSize"),
        data.get("fileType"),
    )
    return jsonify(attachment.to_dict()), 201


@attachments_bp.route("/attachments", methods=["DELETE"])
@require_role(*_ROLES)
def delete_attachment():
    identity = current_identity()
    attachment_service.delete_attachment(parse_id(request.args.get("id"), "id"), identity.role)
    return jsonify({"success": True})


# ── Comments ─────────────────────────────────────────────────────────────────

@attachments_bp.route("/attachment-comments", methods=["GET"])
@require_role(*_ROLES)
def list_comments():
    attachment_id = parse_id(request.args.get("attachmentId"), "attachmentId")
    return jsonify([c.to_dict() for c in attachment_service.list_comments(attachment_id)])


@attachments_bp.route("/attachment-comments", methods=["POST"])
@require_role(*_ROLES)
def add_comment():
    """Body: { "attachmentId", "comment" }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    comment = attachment_service.add_comment(
        _optional_id(data.get("attachmentId"), "attachmentId"),
        data.get("comment"),
        identity.role,
        identity.name,
    )
    return jsonify(comment.to_dict()), 201


@attachments_bp.route("/attachment-comments", methods=["PATCH"])
@require_role(*_ROLES)
def update_comment():
    """Body: { "id", "comment" }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    comment = attachment_service.update_comment(
        parse_id(data.get("id"), "id"), data.get("comment"), identity.role, identity.name,
    )
    return jsonify(comment.to_dict())


@attachments_bp.route("/attachment-comments", methods=["DELETE"])
@require_role(*_ROLES)
def delete_comment():
    identity = current_identity()
    attachment_service.delete_comment(
        parse_id(request.args.get("id"), "id"), identity.role, identity.name,
    )
    return jsonify({"success": True})
