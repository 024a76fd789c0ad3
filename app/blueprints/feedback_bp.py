"""
Feedback Blueprint — satisfaction ratings.

  GET  /api/v1/feedback    — Caller's latest feedback, or null
  POST /api/v1/feedback    — Submit ten 1-10 ratings and an optional comment
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_auth
from app.services import feedback_service

feedback_bp = Blueprint("feedback_bp", __name__, url_prefix="/api/v1/feedback")


@feedback_bp.route("", methods=["GET"])
@require_auth
def get_feedback():
    identity = current_identity()
    feedback = feedback_service.latest_feedback(identity.user_id)
    return jsonify({"feedback": feedback.to_dict() if feedback else None})


@feedback_bp.route("", methods=["POST"])
@require_auth
def submit_feedback():
    """
    Body: { "easeOfUse": 8, "speed": 7, ..., "communication": 9, "comment"? }
    """
    identity = current_identity()
    feedback = feedback_service.submit_feedback(identity.user_id, request.get_json(silent=True) or {})
    return jsonify({"feedback": feedback.to_dict()}), 201
