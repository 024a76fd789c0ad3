"""
Request Lifecycle Service — modeling requests and the admin Kanban board.

Statuses:  PENDING, IN_PROGRESS, COMPLETED, REJECTED
Priority:  LOW, MEDIUM, HIGH, URGENT

Transitions are unrestricted: an admin may move a request from any status
to any other (e.g. PENDING straight to COMPLETED). Only the target value is
validated. Concurrent updates are last-writer-wins.

Rules:
  - db.session.commit() happens only in this file.
  - Callers pass identities explicitly; nothing is read from flask.g.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select

from app.core.exceptions import InvalidStatusError, NotFoundError, ValidationError
from app.models import db
from app.models.request import REQUEST_PRIORITIES, REQUEST_STATUSES, Request, RequestFilters
from app.services.activity_service import log_activity
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)


def _get(request_id: int) -> Request:
    req = db.session.get(Request, request_id)
    if req is None:
        raise NotFoundError("Request", request_id)
    return req


def _newest_first(stmt):
    return stmt.order_by(Request.created_at.desc(), Request.id.desc())


# ── Create / read ─────────────────────────────────────────────────────────────


def create_request(
    user_id: int,
    title: str | None,
    description: str | None,
    priority: str | None = None,
    filters=None,
) -> Request:
    """Submit a new modeling request in PENDING status.

    Args:
        user_id:     Owner.
        title:       Required, stripped.
        description: Required, stripped.
        priority:    One of REQUEST_PRIORITIES, default MEDIUM.
        filters:     Dict, JSON string or None; normalised via RequestFilters.

    Raises:
        ValidationError: Empty title/description or unknown priority.
    """
    title = (title or "").strip()
    description = (description or "").strip()
    missing = {k: "required" for k, v in (("title", title), ("description", description)) if not v}
    if missing:
        raise ValidationError("Title and description are required", details=missing)

    priority = (priority or "MEDIUM").upper()
    if priority not in REQUEST_PRIORITIES:
        raise ValidationError(
            f"priority must be one of: {', '.join(REQUEST_PRIORITIES)}",
            details={"priority": "invalid"},
        )

    req = Request(
        user_id=user_id,
        title=title,
        description=description,
        priority=priority,
        status="PENDING",
        filters=RequestFilters.from_raw(filters).to_dict(),
    )
    db.session.add(req)
    db.session.commit()
    logger.info("Request created id=%s user_id=%s priority=%s", req.id, user_id, priority)

    log_activity(user_id, "REQUEST_CREATED", entity_type="request", entity_id=req.id)
    return req


def list_requests(user_id: int | None = None) -> list[Request]:
    """All requests newest first; restricted to one owner when ``user_id`` is given."""
    stmt = select(Request)
    if user_id is not None:
        stmt = stmt.where(Request.user_id == user_id)
    return list(db.session.execute(_newest_first(stmt)).scalars())


def get_request(request_id: int) -> Request:
    return _get(request_id)


# ── Admin mutations ───────────────────────────────────────────────────────────


def set_status(request_id: int, new_status: str | None) -> Request:
    """Overwrite the status. Any status may follow any other.

    Raises:
        InvalidStatusError: ``new_status`` is not one of REQUEST_STATUSES.
        NotFoundError: Unknown request.
    """
    if new_status not in REQUEST_STATUSES:
        raise InvalidStatusError(new_status, REQUEST_STATUSES)
    req = _get(request_id)
    old_status = req.status
    req.status = new_status
    db.session.commit()
    logger.info("Request %s status %s -> %s", request_id, old_status, new_status)
    return req


def set_admin_notes(request_id: int, notes: str | None) -> Request:
    req = _get(request_id)
    req.admin_notes = notes
    db.session.commit()
    return req


# ── Kanban board ──────────────────────────────────────────────────────────────


def get_board() -> list[dict]:
    """Requests grouped into the four status columns, in board order."""
    columns = {status: [] for status in REQUEST_STATUSES}
    for req in list_requests():
        columns.setdefault(req.status, []).append(req.to_dict(include_user=True))
    return [
        {"status": status, "count": len(columns[status]), "requests": columns[status]}
        for status in REQUEST_STATUSES
    ]


def move_request(request_id: int, to_column: str | None) -> Request:
    """Drag-and-drop contract: dropping a card into a column sets that status.

    Dropping onto the card's own column changes nothing.
    """
    req = _get(request_id)
    if to_column == req.status:
        return req
    return set_status(request_id, to_column)


def request_counts(now: datetime | None = None) -> dict:
    """Dashboard totals: all time and created within the last 7/14/30 days."""
    now = now or utcnow()

    def _since(days: int) -> int:
        return db.session.execute(
            select(func.count(Request.id)).where(Request.created_at >= now - timedelta(days=days))
        ).scalar_one()

    return {
        "total": db.session.execute(select(func.count(Request.id))).scalar_one(),
        "last7Days": _since(7),
        "last14Days": _since(14),
        "last30Days": _since(30),
    }
