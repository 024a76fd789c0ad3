"""
Surveys Blueprint — authoring (IT_SPECIALIST), answering and results.

  GET    /api/v1/surveys                 — Author: all; others: active & unanswered
  POST   /api/v1/surveys                 — Create (IT_SPECIALIST)
  GET    /api/v1/surveys/<id>            — One survey with questions
  PATCH  /api/v1/surveys/<id>            — { "isActive": bool } (author)
  DELETE /api/v1/surveys/<id>            — Author only
  POST   /api/v1/surveys/<id>/respond    — { "answers": [{questionId, answer}] }
  GET    /api/v1/surveys/<id>/results    — Per-question statistics (staff)
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_auth, require_role
from app.models.auth import STAFF_ROLES
from app.services import survey_service

surveys_bp = Blueprint("surveys_bp", __name__, url_prefix="/api/v1/surveys")


@surveys_bp.route("", methods=["GET"])
@require_auth
def list_surveys():
    identity = current_identity()
    surveys = survey_service.list_surveys(identity.user_id, identity.role)
    return jsonify([s.to_dict() for s in surveys])


@surveys_bp.route("", methods=["POST"])
@require_auth
def create_survey():
    """
    Body: { "title", "description"?, "questions": [
              { "question", "type", "options"?, "required"? } ] }
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    survey = survey_service.create_survey(
        identity.user_id, identity.role,
        data.get("title"), data.get("description"), data.get("questions"),
    )
    return jsonify(survey.to_dict()), 201


@surveys_bp.route("/<int:survey_id>", methods=["GET"])
@require_auth
def get_survey(survey_id):
    return jsonify(survey_service.get_survey(survey_id).to_dict())


@surveys_bp.route("/<int:survey_id>", methods=["PATCH"])
@require_auth
def update_survey(survey_id):
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    survey = survey_service.set_active(survey_id, identity.user_id, data.get("isActive"))
    return jsonify(survey.to_dict())


@surveys_bp.route("/<int:survey_id>", methods=["DELETE"])
@require_auth
def delete_survey(survey_id):
    identity = current_identity()
    survey_service.delete_survey(survey_id, identity.user_id)
    return jsonify({"success": True})


@surveys_bp.route("/<int:survey_id>/respond", methods=["POST"])
@require_auth
def respond(survey_id):
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    response = survey_service.submit_response(survey_id, identity.user_id, data.get("answers"))
    return jsonify(response.to_dict()), 201


@surveys_bp.route("/<int:survey_id>/results", methods=["GET"])
@require_role(*STAFF_ROLES)
def results(survey_id):
    return jsonify(survey_service.compute_results(survey_id))
