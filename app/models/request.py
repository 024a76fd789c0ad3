"""
Pharmacoeconomic Request Workflow
Modeling request domain model.

Models:
    - Request: a user-submitted pharmacoeconomic modeling request tracked on
      the admin Kanban board.

Value types:
    - RequestFilters: the seven PICO-style filter fields attached to a request.
"""

import json
import logging
from dataclasses import dataclass, field

from app.models import db
from app.utils.helpers import isoformat, utcnow

logger = logging.getLogger(__name__)

# Kanban column order; also the full set of accepted statuses.
REQUEST_STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED", "REJECTED")
REQUEST_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")


def _as_str_list(value) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and str(v) != ""]
    return [str(value)]


def _as_str(value) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass
class RequestFilters:
    """Structured filter block of a modeling request.

    Stored as a camelCase JSON object. ``from_raw`` also reads the legacy
    shape where clients posted ``JSON.stringify(filters)`` as a string, and
    snake_case keys. Unknown keys are dropped.
    """

    population: list[str] = field(default_factory=list)
    intervention: list[str] = field(default_factory=list)
    comparator: list[str] = field(default_factory=list)
    outcome: list[str] = field(default_factory=list)
    time_horizon: str = ""
    perspective: str = ""
    discount_rate: str = ""

    @classmethod
    def from_raw(cls, raw) -> "RequestFilters":
        if raw is None or raw == "":
            return cls()
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                logger.warning("Unparseable request filters string ignored")
                return cls()
        if not isinstance(raw, dict):
            return cls()

        def pick(camel, snake):
            return raw.get(camel, raw.get(snake))

        return cls(
            population=_as_str_list(raw.get("population")),
            intervention=_as_str_list(raw.get("intervention")),
            comparator=_as_str_list(raw.get("comparator")),
            outcome=_as_str_list(raw.get("outcome")),
            time_horizon=_as_str(pick("timeHorizon", "time_horizon")),
            perspective=_as_str(raw.get("perspective")),
            discount_rate=_as_str(pick("discountRate", "discount_rate")),
        )

    def to_dict(self) -> dict:
        return {
            "population": list(self.population),
            "intervention": list(self.intervention),
            "comparator": list(self.comparator),
            "outcome": list(self.outcome),
            "timeHorizon": self.time_horizon,
            "perspective": self.perspective,
            "discountRate": self.discount_rate,
        }


class Request(db.Model):
    __tablename__ = "requests"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    priority = db.Column(db.String(20), nullable=False, default="MEDIUM")
    filters = db.Column(db.JSON)
    admin_notes = db.Column(db.Text)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_requests_user_id", "user_id"),
        db.Index("ix_requests_status", "status"),
        db.Index("ix_requests_created_at", "created_at"),
    )

    user = db.relationship("User", back_populates="requests")

    @property
    def structured_filters(self) -> RequestFilters:
        return RequestFilters.from_raw(self.filters)

    def to_dict(self, include_user=False):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "filters": self.structured_filters.to_dict(),
            "adminNotes": self.admin_notes,
            "userId": self.user_id,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if include_user and self.user is not None:
            d["user"] = {"name": self.user.name, "email": self.user.email}
        return d

    def __repr__(self):
        return f"<Request {self.id}: {self.title[:40]} [{self.status}]>"
