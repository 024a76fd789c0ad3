"""
Analytics Blueprint — draft funnel beacons, session heartbeats and stats.

  POST  /api/v1/analytics/request-draft    — Form opened → { draftId }
  PATCH /api/v1/analytics/request-draft    — Auto-save { draftId, formData }
  PUT   /api/v1/analytics/request-draft    — Finish { draftId, completed?, abandoned? }
  POST  /api/v1/analytics/feedback-draft   — Form opened → { draftId }
  PUT   /api/v1/analytics/feedback-draft   — Finish
  POST  /api/v1/analytics/session          — Login → { sessionId }
  PATCH /api/v1/analytics/session          — Heartbeat { sessionId }
  PUT   /api/v1/analytics/session          — Logout { sessionId }
  GET   /api/v1/analytics/stats?period=7   — Dashboard (QUALITY_EVALUATOR, ADMIN)
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_auth, require_role
from app.middleware.rate_limiter import client_ip
from app.models.auth import ROLE_ADMIN, ROLE_QUALITY_EVALUATOR
from app.services import analytics_service

analytics_bp = Blueprint("analytics_bp", __name__, url_prefix="/api/v1/analytics")


def _finish(kind):
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    draft = analytics_service.finish_draft(
        kind, data.get("draftId"), identity.user_id,
        completed=data.get("completed"),
        abandoned=data.get("abandoned"),
    )
    return jsonify(draft.to_dict())


# ── Request form funnel ──────────────────────────────────────────────────────

@analytics_bp.route("/request-draft", methods=["POST"])
@require_auth
def start_request_draft():
    identity = current_identity()
    draft = analytics_service.start_draft("request", identity.user_id)
    return jsonify({"draftId": draft.id, "startedAt": draft.to_dict()["startedAt"]}), 201


@analytics_bp.route("/request-draft", methods=["PATCH"])
@require_auth
def autosave_request_draft():
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    draft = analytics_service.autosave_request_draft(
        data.get("draftId"), identity.user_id, data.get("formData"),
    )
    return jsonify(draft.to_dict())


@analytics_bp.route("/request-draft", methods=["PUT"])
@require_auth
def finish_request_draft():
    return _finish("request")


# ── Feedback form funnel ─────────────────────────────────────────────────────

@analytics_bp.route("/feedback-draft", methods=["POST"])
@require_auth
def start_feedback_draft():
    identity = current_identity()
    draft = analytics_service.start_draft("feedback", identity.user_id)
    return jsonify({"draftId": draft.id, "startedAt": draft.to_dict()["startedAt"]}), 201


@analytics_bp.route("/feedback-draft", methods=["PUT"])
@require_auth
def finish_feedback_draft():
    return _finish("feedback")


# ── Sessions ─────────────────────────────────────────────────────────────────

@analytics_bp.route("/session", methods=["POST"])
@require_auth
def start_session():
    identity = current_identity()
    session = analytics_service.start_session(
        identity.user_id, client_ip(), request.headers.get("User-Agent"),
    )
    return jsonify({"sessionId": session.id}), 201


@analytics_bp.route("/session", methods=["PATCH"])
@require_auth
def touch_session():
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    session = analytics_service.touch_session(data.get("sessionId"), identity.user_id)
    return jsonify(session.to_dict())


@analytics_bp.route("/session", methods=["PUT"])
@require_auth
def end_session():
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    session = analytics_service.end_session(data.get("sessionId"), identity.user_id)
    return jsonify(session.to_dict())


# ── Dashboard ────────────────────────────────────────────────────────────────

@analytics_bp.route("/stats", methods=["GET"])
@require_role(ROLE_QUALITY_EVALUATOR, ROLE_ADMIN)
def stats():
    days = analytics_service.parse_period(request.args.get("period"))
    return jsonify(analytics_service.compute_stats(days))
