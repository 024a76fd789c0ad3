"""
Feedback Service — satisfaction ratings.

Each submission carries all ten metrics as integers 1-10. Users may submit
more than once; "their" feedback is simply the most recent row.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import ValidationError
from app.models import db
from app.models.feedback import FEEDBACK_METRICS, METRIC_MAX, METRIC_MIN, Feedback
from app.utils.helpers import round2

logger = logging.getLogger(__name__)


def _metric_value(key: str, raw) -> int:
    if isinstance(raw, bool):
        raw = None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = None
    if value is None or (isinstance(raw, float) and raw != value) or not METRIC_MIN <= value <= METRIC_MAX:
        raise ValidationError(
            f"All metrics must be whole numbers from {METRIC_MIN} to {METRIC_MAX}",
            details={key: "out_of_range"},
        )
    return value


def submit_feedback(user_id: int, data: dict) -> Feedback:
    """Validate and store one feedback row.

    Raises:
        ValidationError: Any of the ten metrics is missing or outside 1-10.
    """
    values = {attr: _metric_value(key, data.get(key)) for key, attr, _label in FEEDBACK_METRICS}
    comment = (data.get("comment") or "").strip() or None
    feedback = Feedback(user_id=user_id, comment=comment, **values)
    db.session.add(feedback)
    db.session.commit()
    logger.info("Feedback %s submitted by user %s", feedback.id, user_id)
    return feedback


def latest_feedback(user_id: int) -> Feedback | None:
    return db.session.execute(
        select(Feedback)
        .where(Feedback.user_id == user_id)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def list_feedbacks_with_stats() -> dict:
    """All feedback newest first, per-metric averages and the flat overall mean.

    ``overall`` averages every individual metric value (count * 10 values),
    unlike the dashboard's equal-weight mean of metric means.
    """
    feedbacks = list(db.session.execute(
        select(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc())
    ).scalars())
    count = len(feedbacks)
    averages: dict = {}
    grand_total = 0
    for key, attr, _label in FEEDBACK_METRICS:
        total = sum(getattr(f, attr) for f in feedbacks)
        grand_total += total
        averages[key] = round2(total / count) if count else 0
    averages["overall"] = round2(grand_total / (count * len(FEEDBACK_METRICS))) if count else 0
    return {
        "feedbacks": [f.to_dict(include_user=True) for f in feedbacks],
        "stats": averages,
        "count": count,
    }
