"""
Attachment Service — subtask files and their comment threads.

Ownership is role-based, not user-based:
  - An attachment may be deleted only by the role that uploaded it
    (IT_SPECIALIST or QUALITY_EVALUATOR).
  - A comment may be edited/deleted only by a requester whose
    (author_role, author_name) pair equals the stored pair. Two users with
    the same role and display name can therefore edit each other's
    comments; this matches the existing data, which has no author id.

File payloads are opaque blob references (typically base64 data URLs).
The only content check is size against ATTACHMENT_MAX_BYTES.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import select

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.models import db
from app.models.task import Attachment, AttachmentComment, Subtask

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Nežinomas"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


def _max_bytes() -> int:
    return current_app.config.get("ATTACHMENT_MAX_BYTES", DEFAULT_MAX_BYTES)


def estimate_payload_bytes(file_url: str) -> int:
    """Decoded size of a ``data:...;base64,`` URL; 0 for other references."""
    if not file_url.startswith("data:") or ";base64," not in file_url:
        return 0
    encoded = file_url.split(";base64,", 1)[1].strip()
    padding = encoded[-2:].count("=")
    return max(0, (len(encoded) * 3) // 4 - padding)


def _get_attachment(attachment_id: int) -> Attachment:
    attachment = db.session.get(Attachment, attachment_id)
    if attachment is None:
        raise NotFoundError("Attachment", attachment_id)
    return attachment


# ── Attachments ───────────────────────────────────────────────────────────────


def list_attachments(subtask_id: int) -> list[Attachment]:
    """Attachments of a subtask, newest first."""
    return list(db.session.execute(
        select(Attachment)
        .where(Attachment.subtask_id == subtask_id)
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
    ).scalars())


def create_attachment(
    subtask_id: int | None,
    uploader_role: str,
    file_name: str | None,
    file_url: str | None,
    file_size,
    file_type: str | None,
) -> Attachment:
    """Store a file reference on a subtask.

    Raises:
        ValidationError: A field is missing, the size is not a number, or
            the declared or decoded size exceeds ATTACHMENT_MAX_BYTES.
        NotFoundError: The subtask does not exist.
    """
    missing = {
        key: "required"
        for key, value in (
            ("subtaskId", subtask_id), ("fileName", file_name), ("fileUrl", file_url),
            ("fileSize", file_size), ("fileType", file_type),
        )
        if value is None or value == ""
    }
    if missing:
        raise ValidationError("Missing required fields", details=missing)
    try:
        size = int(file_size)
    except (TypeError, ValueError):
        raise ValidationError("fileSize must be an integer", details={"fileSize": "invalid"})

    limit = _max_bytes()
    if size < 0 or size > limit or estimate_payload_bytes(file_url) > limit:
        raise ValidationError(
            f"File exceeds the {limit // (1024 * 1024)} MB limit",
            details={"fileSize": "too_large", "maxBytes": limit},
        )

    if db.session.get(Subtask, subtask_id) is None:
        raise NotFoundError("Subtask", subtask_id)

    attachment = Attachment(
        subtask_id=subtask_id,
        file_name=file_name,
        file_url=file_url,
        file_size=size,
        file_type=file_type,
        uploaded_by=uploader_role,
    )
    db.session.add(attachment)
    db.session.commit()
    logger.info("Attachment %s added to subtask %s by %s", attachment.id, subtask_id, uploader_role)
    return attachment


def delete_attachment(attachment_id: int, requester_role: str) -> None:
    attachment = _get_attachment(attachment_id)
    if attachment.uploaded_by != requester_role:
        raise ForbiddenError("You can only delete attachments uploaded by your role")
    db.session.delete(attachment)
    db.session.commit()


# ── Comments ──────────────────────────────────────────────────────────────────


def list_comments(attachment_id: int) -> list[AttachmentComment]:
    """Comments of an attachment, oldest first."""
    return list(db.session.execute(
        select(AttachmentComment)
        .where(AttachmentComment.attachment_id == attachment_id)
        .order_by(AttachmentComment.created_at.asc(), AttachmentComment.id.asc())
    ).scalars())


def _clean_text(comment: str | None) -> str:
    text = (comment or "").strip()
    if not text:
        raise ValidationError("Comment cannot be empty", details={"comment": "required"})
    return text


def _owned_comment(comment_id: int, role: str, name: str | None) -> AttachmentComment:
    comment = db.session.get(AttachmentComment, comment_id)
    if comment is None:
        raise NotFoundError("Comment", comment_id)
    if comment.author_role != role or comment.author_name != (name or UNKNOWN_AUTHOR):
        raise ForbiddenError("You can only modify your own comments")
    return comment


def add_comment(attachment_id: int | None, text: str | None, role: str, name: str | None) -> AttachmentComment:
    if attachment_id is None:
        raise ValidationError("attachmentId is required", details={"attachmentId": "required"})
    text = _clean_text(text)
    _get_attachment(attachment_id)
    comment = AttachmentComment(
        attachment_id=attachment_id,
        comment=text,
        author_role=role,
        author_name=name or UNKNOWN_AUTHOR,
    )
    db.session.add(comment)
    db.session.commit()
    return comment


def update_comment(comment_id: int, text: str | None, role: str, name: str | None) -> AttachmentComment:
    text = _clean_text(text)
    comment = _owned_comment(comment_id, role, name)
    comment.comment = text
    db.session.commit()
    return comment


def delete_comment(comment_id: int, role: str, name: str | None) -> None:
    comment = _owned_comment(comment_id, role, name)
    db.session.delete(comment)
    db.session.commit()
