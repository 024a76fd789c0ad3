"""
User segmentation for the quality evaluator.

Segments, checked in priority order over USER accounts:
  VIP        5 or more requests ever
  AKTYVUS    1 to 4 requests
  NAUJAS     no requests and the account is at most 7 days old
  NEAKTYVUS  everything else (no requests, older than 7 days)
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select

from app.core.exceptions import ValidationError
from app.models import db
from app.models.auth import ROLE_USER, User
from app.models.request import Request
from app.utils.helpers import isoformat, utcnow

SEGMENTS = ("VIP", "AKTYVUS", "NAUJAS", "NEAKTYVUS")

VIP_MIN_REQUESTS = 5
NEW_ACCOUNT_DAYS = 7
RECENT_DAYS = 30


def classify(total_requests: int, account_age: timedelta) -> str:
    if total_requests >= VIP_MIN_REQUESTS:
        return "VIP"
    if total_requests >= 1:
        return "AKTYVUS"
    if account_age <= timedelta(days=NEW_ACCOUNT_DAYS):
        return "NAUJAS"
    return "NEAKTYVUS"


def segment_users(segment: str | None = None, now: datetime | None = None) -> dict:
    """Classify every USER; ``segment`` narrows the list but never the counts."""
    wanted = segment.strip().upper() if segment else None
    if wanted and wanted not in SEGMENTS:
        raise ValidationError(
            f"segment must be one of: {', '.join(SEGMENTS)}", details={"segment": "invalid"},
        )
    now = now or utcnow()
    recent_start = now - timedelta(days=RECENT_DAYS)

    users = list(db.session.execute(
        select(User).where(User.role == ROLE_USER).order_by(User.created_at.desc(), User.id.desc())
    ).scalars())
    created_by_user: dict[int, list[datetime]] = {u.id: [] for u in users}
    for user_id, created_at in db.session.execute(
        select(Request.user_id, Request.created_at).where(Request.user_id.in_(list(created_by_user)))
    ):
        created_by_user[user_id].append(created_at)

    rows = []
    for user in users:
        dates = created_by_user[user.id]
        total = len(dates)
        rows.append({
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "createdAt": isoformat(user.created_at),
            "segment": classify(total, now - user.created_at),
            "stats": {
                "totalRequests": total,
                "recentRequests": sum(1 for d in dates if d >= recent_start),
                "lastRequestDate": isoformat(max(dates)) if dates else None,
            },
        })

    counts = {name: sum(1 for r in rows if r["segment"] == name) for name in SEGMENTS}
    counts["TOTAL"] = len(rows)
    return {
        "users": [r for r in rows if wanted is None or r["segment"] == wanted],
        "counts": counts,
    }
