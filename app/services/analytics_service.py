"""
Analytics Service — draft funnel tracking, session tracking and the
aggregated statistics shown on the analytics dashboards.

Funnel definitions (per draft kind, within the lookback window by started_at):
  abandoned    drafts with abandoned = True
  completed    drafts with completed_at set, abandoned = False, duration set
  avgDuration  round_half_up(mean(duration) of completed), 0 if none
  conversion   round_half_up(100 * completed / (completed + abandoned)), 0 if none

Drafts still open (never reported by the client) fall in neither bucket,
so they do not lower the conversion rate. No server-side sweep closes them.

Every figure is recomputed from the store on each call; nothing is cached.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy import select

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.analytics import FeedbackDraft, RequestDraft
from app.models.auth import User, UserSession
from app.models.feedback import FEEDBACK_METRICS, Feedback
from app.services.activity_service import log_activity
from app.utils.helpers import parse_bool, round2, round_half_up, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 7
RECENT_ABANDONED_LIMIT = 10

DRAFT_KINDS = {
    "request": (RequestDraft, "REQUEST"),
    "feedback": (FeedbackDraft, "FEEDBACK"),
}


def _draft_model(kind: str):
    try:
        return DRAFT_KINDS[kind]
    except KeyError:
        raise ValidationError(f"Unknown draft kind: {kind!r}")


def _owned_draft(kind: str, draft_id, user_id: int):
    model, _prefix = _draft_model(kind)
    if draft_id in (None, ""):
        raise ValidationError("draftId is required", details={"draftId": "required"})
    try:
        draft = db.session.get(model, int(draft_id))
    except (TypeError, ValueError):
        draft = None
    if draft is None or draft.user_id != user_id:
        raise NotFoundError(model.__name__, draft_id)
    return draft


# ── Drafts ────────────────────────────────────────────────────────────────────


def start_draft(kind: str, user_id: int, now: datetime | None = None):
    model, _prefix = _draft_model(kind)
    draft = model(user_id=user_id, started_at=now or utcnow())
    db.session.add(draft)
    db.session.commit()
    return draft


def autosave_request_draft(draft_id, user_id: int, form_data) -> RequestDraft:
    """Store the latest form snapshot. Each call overwrites the previous one."""
    draft = _owned_draft("request", draft_id, user_id)
    draft.form_data = form_data
    db.session.commit()
    return draft


def finish_draft(
    kind: str,
    draft_id,
    user_id: int,
    *,
    completed: bool | None = None,
    abandoned: bool = False,
    now: datetime | None = None,
):
    """Close a draft as submitted or abandoned and log the outcome.

    Duration is whole seconds (floored) since ``started_at``. A draft that
    is already closed is returned unchanged, so a late abandon beacon after
    a submit does not overwrite the outcome.
    """
    completed = parse_bool(completed, "completed")
    abandoned = parse_bool(abandoned, "abandoned", default=False)
    draft = _owned_draft(kind, draft_id, user_id)
    if draft.is_finished:
        logger.debug("%s draft %s already finished", kind, draft.id)
        return draft

    now = now or utcnow()
    if completed is None:
        completed = not abandoned
    draft.completed_at = now
    draft.duration = max(0, int((now - draft.started_at).total_seconds()))
    draft.abandoned = abandoned
    db.session.commit()

    _model, prefix = _draft_model(kind)
    action = f"{prefix}_COMPLETED" if completed else f"{prefix}_ABANDONED"
    log_activity(user_id, action, entity_type=type(draft).__name__, entity_id=draft.id,
                 details={"duration": draft.duration})
    return draft


# ── Sessions ──────────────────────────────────────────────────────────────────


def start_session(user_id: int, ip_address: str | None, user_agent: str | None) -> UserSession:
    session = UserSession(
        user_id=user_id,
        ip_address=(ip_address or "")[:64] or None,
        user_agent=(user_agent or "")[:500] or None,
    )
    db.session.add(session)
    db.session.commit()
    log_activity(user_id, "LOGIN", entity_type="UserSession", entity_id=session.id,
                 details={"ipAddress": session.ip_address})
    return session


def _owned_session(session_id, user_id: int) -> UserSession:
    if session_id in (None, ""):
        raise ValidationError("sessionId is required", details={"sessionId": "required"})
    try:
        session = db.session.get(UserSession, int(session_id))
    except (TypeError, ValueError):
        session = None
    if session is None or session.user_id != user_id:
        raise NotFoundError("UserSession", session_id)
    return session


def touch_session(session_id, user_id: int, now: datetime | None = None) -> UserSession:
    """Heartbeat: bump last_active."""
    session = _owned_session(session_id, user_id)
    session.last_active = now or utcnow()
    db.session.commit()
    return session


def end_session(session_id, user_id: int, now: datetime | None = None) -> UserSession:
    session = _owned_session(session_id, user_id)
    now = now or utcnow()
    session.end_time = now
    session.last_active = now
    session.duration = max(0, int((now - session.start_time).total_seconds()))
    db.session.commit()
    log_activity(user_id, "LOGOUT", entity_type="UserSession", entity_id=session.id,
                 details={"sessionId": session.id, "duration": session.duration})
    return session


# ── Statistics ────────────────────────────────────────────────────────────────


def parse_period(raw) -> int:
    """Lookback window in days from a query value; default 7."""
    if raw in (None, ""):
        return DEFAULT_PERIOD_DAYS
    try:
        days = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("period must be a positive integer", details={"period": "invalid"})
    if days <= 0:
        raise ValidationError("period must be a positive integer", details={"period": "invalid"})
    return days


def conversion_rate(completed: int, abandoned: int) -> int:
    total = completed + abandoned
    if total == 0:
        return 0
    return round_half_up(100 * completed / total)


def _mean_duration(drafts) -> int:
    if not drafts:
        return 0
    return round_half_up(sum(d.duration for d in drafts) / len(drafts))


def _user_block(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def _funnel(model, start: datetime) -> dict:
    abandoned = list(db.session.execute(
        select(model)
        .where(model.started_at >= start, model.abandoned.is_(True))
        .order_by(model.started_at.desc(), model.id.desc())
    ).scalars())
    completed = list(db.session.execute(
        select(model).where(
            model.started_at >= start,
            model.completed_at.is_not(None),
            model.abandoned.is_(False),
            model.duration.is_not(None),
        )
    ).scalars())
    recent = []
    for draft in abandoned[:RECENT_ABANDONED_LIMIT]:
        item = draft.to_dict()
        item["user"] = _user_block(draft.user)
        recent.append(item)
    return {
        "abandoned": abandoned,
        "completed": completed,
        "totalAbandoned": len(abandoned),
        "completedCount": len(completed),
        "avgDuration": _mean_duration(completed),
        "conversionRate": conversion_rate(len(completed), len(abandoned)),
        "recentAbandoned": recent,
    }


def _per_user_request_stats(completed: list[RequestDraft]) -> list[dict]:
    grouped: dict[int, list[RequestDraft]] = defaultdict(list)
    for draft in completed:
        grouped[draft.user_id].append(draft)
    stats = []
    for user_id, drafts in grouped.items():
        entry = _user_block(db.session.get(User, user_id)) or {"id": user_id}
        entry["avgDuration"] = _mean_duration(drafts)
        entry["requestCount"] = len(drafts)
        stats.append(entry)
    stats.sort(key=lambda s: s["id"])
    return stats


def rating_stats(feedbacks: list[Feedback]) -> dict:
    """Per-metric means (2 dp), best/worst metric and the equal-weight overall mean."""
    if not feedbacks:
        return {"bestMetric": None, "worstMetric": None, "overallAverage": 0,
                "totalFeedbacks": 0, "metrics": []}
    averages = []
    for key, attr, label in FEEDBACK_METRICS:
        total = sum(getattr(f, attr) or 0 for f in feedbacks)
        averages.append({"key": key, "label": label, "average": round2(total / len(feedbacks))})
    ranked = sorted(averages, key=lambda m: m["average"], reverse=True)
    overall = round2(sum(m["average"] for m in averages) / len(averages))
    return {
        "bestMetric": ranked[0],
        "worstMetric": ranked[-1],
        "overallAverage": overall,
        "totalFeedbacks": len(feedbacks),
        "metrics": ranked,
    }


def _active_users_count(start: datetime) -> int:
    request_users = select(RequestDraft.user_id).where(RequestDraft.started_at >= start)
    feedback_users = select(FeedbackDraft.user_id).where(FeedbackDraft.started_at >= start)
    ids = set(db.session.execute(request_users).scalars())
    ids.update(db.session.execute(feedback_users).scalars())
    return len(ids)


def compute_stats(days: int = DEFAULT_PERIOD_DAYS, now: datetime | None = None) -> dict:
    """Funnel, duration, rating and activity figures for the last ``days`` days."""
    now = now or utcnow()
    start = now - timedelta(days=days)

    req = _funnel(RequestDraft, start)
    fb = _funnel(FeedbackDraft, start)
    feedbacks = list(db.session.execute(
        select(Feedback).where(Feedback.created_at >= start)
    ).scalars())

    return {
        "requestMetrics": {
            "totalAbandoned": req["totalAbandoned"],
            "avgRequestDuration": req["avgDuration"],
            "completedCount": req["completedCount"],
            "conversionRate": req["conversionRate"],
            "userStats": _per_user_request_stats(req["completed"]),
            "recentAbandoned": req["recentAbandoned"],
        },
        "feedbackMetrics": {
            "totalAbandoned": fb["totalAbandoned"],
            "avgFeedbackDuration": fb["avgDuration"],
            "completedCount": fb["completedCount"],
            "conversionRate": fb["conversionRate"],
            "recentAbandoned": fb["recentAbandoned"],
            "ratings": rating_stats(feedbacks),
        },
        "activeUsersCount": _active_users_count(start),
        "period": days,
    }
