"""
Pharmacoeconomic Request Workflow
Identity domain models.

Models:
    - User: account with one of the four fixed roles and an optional chat PIN.
    - UserSession: browser session tracked for analytics (start, heartbeat, end).
    - UserActivity: append-only activity trail (login, draft outcomes, ...).
"""

from app.models import db
from app.utils.helpers import isoformat, utcnow

# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"
ROLE_IT_SPECIALIST = "IT_SPECIALIST"
ROLE_QUALITY_EVALUATOR = "QUALITY_EVALUATOR"

ROLES = frozenset({ROLE_ADMIN, ROLE_USER, ROLE_IT_SPECIALIST, ROLE_QUALITY_EVALUATOR})

# Staff roles share the EMPLOYEE chat room.
STAFF_ROLES = frozenset({ROLE_ADMIN, ROLE_IT_SPECIALIST, ROLE_QUALITY_EVALUATOR})

# ── Activity actions ─────────────────────────────────────────────────────────

ACTIVITY_ACTIONS = {
    "LOGIN",
    "LOGOUT",
    "REQUEST_CREATED",
    "REQUEST_COMPLETED",
    "REQUEST_ABANDONED",
    "FEEDBACK_COMPLETED",
    "FEEDBACK_ABANDONED",
}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200))
    email = db.Column(db.String(200), nullable=False, unique=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(30), nullable=False, default=ROLE_USER)
    chat_pin = db.Column(db.String(4))  # only USER accounts set one
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.Index("ix_users_role", "role"),
    )

    requests = db.relationship(
        "Request", back_populates="user", lazy="dynamic", cascade="all, delete-orphan",
    )
    tasks = db.relationship(
        "Task", back_populates="user", lazy="dynamic", cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "hasChatPin": bool(self.chat_pin),
            "createdAt": isoformat(self.created_at),
        }

    def to_summary(self):
        """Compact author/owner block embedded in other payloads."""
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"


class UserSession(db.Model):
    __tablename__ = "user_sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(500))
    start_time = db.Column(db.DateTime, default=utcnow, nullable=False)
    last_active = db.Column(db.DateTime, default=utcnow, nullable=False)
    end_time = db.Column(db.DateTime)
    duration = db.Column(db.Integer)  # seconds, set on end

    __table_args__ = (
        db.Index("ix_user_sessions_user_id", "user_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "startTime": isoformat(self.start_time),
            "lastActive": isoformat(self.last_active),
            "endTime": isoformat(self.end_time),
            "duration": self.duration,
        }


class UserActivity(db.Model):
    """Append-only activity trail. Rows are never updated."""

    __tablename__ = "user_activities"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    action = db.Column(db.String(50), nullable=False)
    entity_type = db.Column(db.String(50))
    entity_id = db.Column(db.Integer)
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_user_activities_user_action", "user_id", "action"),
        db.Index("ix_user_activities_created_at", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "details": self.details or {},
            "createdAt": isoformat(self.created_at),
        }
