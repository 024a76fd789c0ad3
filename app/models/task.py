"""
Pharmacoeconomic Request Workflow
IT specialist work-tracking models.

Models:
    - Task: a scheduled piece of work owned by one IT specialist. Its
      ``progress`` is derived from subtask completion and is never written
      directly by API callers.
    - Subtask: checklist item of a task, kept in insertion order.
    - Attachment: file attached to a subtask (payload is an opaque blob
      reference, usually a base64 data URL).
    - AttachmentComment: discussion thread on an attachment.
"""

from app.models import db
from app.utils.helpers import isoformat, utcnow

TASK_STATUSES = ("TODO", "IN_PROGRESS", "DONE")
TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
DEFAULT_TASK_COLOR = "#2c3e50"


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="TODO")
    priority = db.Column(db.String(20), nullable=False, default="MEDIUM")
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    progress = db.Column(db.Integer, nullable=False, default=0)
    color = db.Column(db.String(20), nullable=False, default=DEFAULT_TASK_COLOR)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_tasks_user_start", "user_id", "start_date"),
    )

    user = db.relationship("User", back_populates="tasks")
    subtasks = db.relationship(
        "Subtask", back_populates="task", cascade="all, delete-orphan",
        order_by="Subtask.order",
    )

    def to_dict(self, include_subtasks=True, include_user=False):
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "startDate": isoformat(self.start_date),
            "endDate": isoformat(self.end_date),
            "progress": self.progress,
            "color": self.color,
            "userId": self.user_id,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if include_subtasks:
            d["subtasks"] = [s.to_dict() for s in self.subtasks]
        if include_user and self.user is not None:
            d["user"] = {"name": self.user.name, "email": self.user.email}
        return d


class Subtask(db.Model):
    __tablename__ = "subtasks"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False,
    )
    title = db.Column(db.String(300), nullable=False)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)
    order = db.Column("sort_order", db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_subtasks_task_order", "task_id", "sort_order"),
    )

    task = db.relationship("Task", back_populates="subtasks")
    attachments = db.relationship(
        "Attachment", back_populates="subtask", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "taskId": self.task_id,
            "title": self.title,
            "completed": self.completed,
            "completedAt": isoformat(self.completed_at),
            "order": self.order,
            "createdAt": isoformat(self.created_at),
        }


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)
    subtask_id = db.Column(
        db.Integer, db.ForeignKey("subtasks.id", ondelete="CASCADE"), nullable=False,
    )
    file_name = db.Column(db.String(255), nullable=False)
    file_url = db.Column(db.Text, nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    file_type = db.Column(db.String(100), nullable=False)
    uploaded_by = db.Column(db.String(30), nullable=False)  # role name, not user id
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_attachments_subtask_id", "subtask_id"),
    )

    subtask = db.relationship("Subtask", back_populates="attachments")
    comments = db.relationship(
        "AttachmentComment", back_populates="attachment", cascade="all, delete-orphan",
        order_by="AttachmentComment.created_at",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "subtaskId": self.subtask_id,
            "fileName": self.file_name,
            "fileUrl": self.file_url,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "uploadedBy": self.uploaded_by,
            "createdAt": isoformat(self.created_at),
        }


class AttachmentComment(db.Model):
    __tablename__ = "attachment_comments"

    id = db.Column(db.Integer, primary_key=True)
    attachment_id = db.Column(
        db.Integer, db.ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False,
    )
    comment = db.Column(db.Text, nullable=False)
    author_role = db.Column(db.String(30), nullable=False)
    author_name = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_attachment_comments_attachment_id", "attachment_id"),
    )

    attachment = db.relationship("Attachment", back_populates="comments")

    def to_dict(self):
        return {
            "id": self.id,
            "attachmentId": self.attachment_id,
            "comment": self.comment,
            "authorRole": self.author_role,
            "authorName": self.author_name,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
