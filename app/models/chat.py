"""
Pharmacoeconomic Request Workflow
PIN-gated chat models.

Models:
    - ChatRoom: EMPLOYEE (single, staff-wide) or ADMIN_USER (one per USER).
    - ChatAccess: persisted PIN lockout state per (user, room). Survives
      logins so reloading the client cannot reset a block.
    - ChatMessage: immutable chat message.
"""

from app.models import db
from app.utils.helpers import isoformat, utcnow

ROOM_TYPE_EMPLOYEE = "EMPLOYEE"
ROOM_TYPE_ADMIN_USER = "ADMIN_USER"
ROOM_TYPES = (ROOM_TYPE_EMPLOYEE, ROOM_TYPE_ADMIN_USER)


class ChatRoom(db.Model):
    __tablename__ = "chat_rooms"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    pin = db.Column(db.String(4), nullable=False)
    # Set only for ADMIN_USER rooms: the paired USER.
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_chat_rooms_user_id"),
        db.Index("ix_chat_rooms_type", "type"),
        # At most one EMPLOYEE room.
        db.Index(
            "uq_chat_rooms_employee", "type", unique=True,
            sqlite_where=db.text("type = 'EMPLOYEE'"),
            postgresql_where=db.text("type = 'EMPLOYEE'"),
        ),
    )

    user = db.relationship("User")

    def to_dict(self):
        """Public room metadata. The PIN is never serialized."""
        d = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "userId": self.user_id,
        }
        if self.user is not None:
            d["user"] = {"id": self.user.id, "name": self.user.name, "email": self.user.email}
        return d


class ChatAccess(db.Model):
    __tablename__ = "chat_access"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    room_id = db.Column(
        db.Integer, db.ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False,
    )
    attempts = db.Column(db.Integer, nullable=False, default=0)
    blocked_until = db.Column(db.DateTime)
    last_attempt_at = db.Column(db.DateTime)

    __table_args__ = (
        db.UniqueConstraint("user_id", "room_id", name="uq_chat_access_user_room"),
    )

    def is_blocked(self, now) -> bool:
        return self.blocked_until is not None and self.blocked_until > now

    def to_dict(self):
        return {
            "userId": self.user_id,
            "roomId": self.room_id,
            "attempts": self.attempts,
            "blockedUntil": isoformat(self.blocked_until),
            "lastAttemptAt": isoformat(self.last_attempt_at),
        }


class ChatMessage(db.Model):
    __tablename__ = "chat_messages"

    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    room_id = db.Column(
        db.Integer, db.ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_chat_messages_room_created", "room_id", "created_at"),
    )

    user = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "content": self.content,
            "userId": self.user_id,
            "roomId": self.room_id,
            "createdAt": isoformat(self.created_at),
            "user": self.user.to_summary() if self.user is not None else None,
        }
