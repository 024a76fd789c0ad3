"""
Quality Evaluator Blueprint — read-only oversight views.

  GET /api/v1/quality-evaluator/tasks              — Every task with owner
  GET /api/v1/quality-evaluator/feedbacks          — All feedback with averages
  GET /api/v1/quality-evaluator/users?segment=     — User segmentation
"""

from flask import Blueprint, jsonify, request

from app.auth import require_role
from app.models.auth import ROLE_QUALITY_EVALUATOR
from app.services import feedback_service, segment_service, task_service

quality_bp = Blueprint("quality_bp", __name__, url_prefix="/api/v1/quality-evaluator")


@quality_bp.route("/tasks", methods=["GET"])
@require_role(ROLE_QUALITY_EVALUATOR)
def all_tasks():
    return jsonify([t.to_dict(include_user=True) for t in task_service.list_all_tasks()])


@quality_bp.route("/feedbacks", methods=["GET"])
@require_role(ROLE_QUALITY_EVALUATOR)
def all_feedbacks():
    return jsonify(feedback_service.list_feedbacks_with_stats())


@quality_bp.route("/users", methods=["GET"])
@require_role(ROLE_QUALITY_EVALUATOR)
def user_segments():
    return jsonify(segment_service.segment_users(request.args.get("segment")))
