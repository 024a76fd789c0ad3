"""
Pharmacoeconomic Request Workflow
Satisfaction feedback model.

Models:
    - Feedback: ten 1-10 ratings plus an optional free-text comment.
"""

from app.models import db
from app.utils.helpers import isoformat, utcnow

# (API key, column attribute, display label) for the ten rating metrics.
FEEDBACK_METRICS = (
    ("easeOfUse", "ease_of_use", "Paprastumas naudotis"),
    ("speed", "speed", "Greitis"),
    ("colorPalette", "color_palette", "Spalvų paletė"),
    ("fontStyle", "font_style", "Šrifto stilius"),
    ("fontReadability", "font_readability", "Šrifto skaitomumas"),
    ("contentClarity", "content_clarity", "Turinio aiškumas"),
    ("contentAmount", "content_amount", "Turinio kiekis"),
    ("tone", "tone", "Tonas"),
    ("reliability", "reliability", "Patikimumas"),
    ("communication", "communication", "Komunikacija"),
)

METRIC_MIN = 1
METRIC_MAX = 10


class Feedback(db.Model):
    __tablename__ = "feedbacks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    ease_of_use = db.Column(db.Integer, nullable=False)
    speed = db.Column(db.Integer, nullable=False)
    color_palette = db.Column(db.Integer, nullable=False)
    font_style = db.Column(db.Integer, nullable=False)
    font_readability = db.Column(db.Integer, nullable=False)
    content_clarity = db.Column(db.Integer, nullable=False)
    content_amount = db.Column(db.Integer, nullable=False)
    tone = db.Column(db.Integer, nullable=False)
    reliability = db.Column(db.Integer, nullable=False)
    communication = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_feedbacks_user_created", "user_id", "created_at"),
    )

    user = db.relationship("User")

    def metric_values(self) -> dict[str, int]:
        return {key: getattr(self, attr) for key, attr, _label in FEEDBACK_METRICS}

    def to_dict(self, include_user=False):
        d = {"id": self.id, "userId": self.user_id}
        d.update(self.metric_values())
        d["comment"] = self.comment
        d["createdAt"] = isoformat(self.created_at)
        if include_user and self.user is not None:
            d["user"] = {"name": self.user.name, "email": self.user.email}
        return d
