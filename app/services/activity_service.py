"""
Activity trail writer.

Activity rows are best-effort: they are written after the primary
operation has committed, in their own commit. A failure here is logged and
rolled back, and never propagates to the caller.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.models.auth import ACTIVITY_ACTIONS, UserActivity

logger = logging.getLogger(__name__)


def log_activity(
    user_id: int,
    action: str,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: dict | None = None,
) -> UserActivity | None:
    """Append one activity row; returns None if the write failed."""
    if action not in ACTIVITY_ACTIONS:
        logger.warning("Unknown activity action %r for user %s", action, user_id)
    activity = UserActivity(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or None,
    )
    try:
        db.session.add(activity)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Activity log write failed action=%s user_id=%s", action, user_id)
        return None
    return activity
