"""
Pharmacoeconomic Request Workflow
Funnel tracking models.

Models:
    - RequestDraft: one fill of the new-request form, from open to submit or
      navigation away. Carries the auto-saved form data.
    - FeedbackDraft: the same for the feedback form (no form data).

A draft is terminal once ``completed_at`` is set. Drafts the client never
reported on stay open forever and are excluded from conversion rates.
"""

from app.models import db
from app.utils.helpers import isoformat, utcnow


class _DraftMixin:
    id = db.Column(db.Integer, primary_key=True)
    started_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    completed_at = db.Column(db.DateTime)
    duration = db.Column(db.Integer)  # whole seconds between start and finish
    abandoned = db.Column(db.Boolean, nullable=False, default=False)

    @property
    def is_finished(self) -> bool:
        return self.completed_at is not None

    def _base_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "startedAt": isoformat(self.started_at),
            "completedAt": isoformat(self.completed_at),
            "duration": self.duration,
            "abandoned": self.abandoned,
        }


class RequestDraft(_DraftMixin, db.Model):
    __tablename__ = "request_drafts"

    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    form_data = db.Column(db.JSON)

    __table_args__ = (
        db.Index("ix_request_drafts_user_started", "user_id", "started_at"),
    )

    user = db.relationship("User")

    def to_dict(self):
        d = self._base_dict()
        d["formData"] = self.form_data
        return d


class FeedbackDraft(_DraftMixin, db.Model):
    __tablename__ = "feedback_drafts"

    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )

    __table_args__ = (
        db.Index("ix_feedback_drafts_user_started", "user_id", "started_at"),
    )

    user = db.relationship("User")

    def to_dict(self):
        return self._base_dict()
