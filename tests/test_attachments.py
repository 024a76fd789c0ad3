"""
Pharmacoeconomic Request Workflow
Tests — Subtask attachments and comment threads.

Covers:
    - Size limit on declared and decoded payload size
    - Role-based delete (uploader role only)
    - Comment ordering and (role, name) ownership
    - Role gate on the attachment endpoints
"""

import base64

import pytest

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.services import attachment_service, task_service
from app.services.attachment_service import estimate_payload_bytes


@pytest.fixture()
def subtask(it_specialist):
    task = task_service.create_task(it_specialist.id, {
        "title": "Model build", "startDate": "2026-01-05", "endDate": "2026-01-30",
    })
    return task_service.create_subtask(task.id, it_specialist.id, "Upload inputs")


def _data_url(raw: bytes, mime="text/csv"):
    return f"data:{mime};base64,{base64.b64encode(raw).decode()}"


def _upload(subtask, role="IT_SPECIALIST", payload=b"a,b\n1,2\n", size=None):
    return attachment_service.create_attachment(
        subtask.id, role, "inputs.csv", _data_url(payload),
        len(payload) if size is None else size, "text/csv",
    )


# ═════════════════════════════════════════════════════════════════════════════
# ATTACHMENTS
# ═════════════════════════════════════════════════════════════════════════════

class TestAttachments:
    def test_payload_estimate(self):
        assert estimate_payload_bytes(_data_url(b"hello")) == 5
        assert estimate_payload_bytes("https://files.example.com/a.pdf") == 0

    def test_upload_and_list_newest_first(self, subtask):
        first = _upload(subtask)
        second = _upload(subtask, role="QUALITY_EVALUATOR")
        listed = attachment_service.list_attachments(subtask.id)
        assert [a.id for a in listed] == [second.id, first.id]
        assert listed[0].uploaded_by == "QUALITY_EVALUATOR"

    def test_declared_size_over_limit(self, app, subtask):
        with pytest.raises(ValidationError):
            _upload(subtask, size=app.config["ATTACHMENT_MAX_BYTES"] + 1)

    def test_decoded_size_over_limit_even_if_declared_small(self, app, subtask):
        old = app.config["ATTACHMENT_MAX_BYTES"]
        app.config["ATTACHMENT_MAX_BYTES"] = 10
        try:
            with pytest.raises(ValidationError):
                _upload(subtask, payload=b"x" * 64, size=1)
        finally:
            app.config["ATTACHMENT_MAX_BYTES"] = old

    def test_missing_fields(self, subtask):
        with pytest.raises(ValidationError) as exc:
            attachment_service.create_attachment(subtask.id, "IT_SPECIALIST", "", None, 10, "text/csv")
        assert set(exc.value.details) == {"fileName", "fileUrl"}

    def test_unknown_subtask(self):
        with pytest.raises(NotFoundError):
            attachment_service.create_attachment(999, "IT_SPECIALIST", "a.csv", "data:,x", 1, "text/csv")

    def test_only_uploader_role_deletes(self, subtask):
        att = _upload(subtask)
        with pytest.raises(ForbiddenError):
            attachment_service.delete_attachment(att.id, "QUALITY_EVALUATOR")
        attachment_service.delete_attachment(att.id, "IT_SPECIALIST")
        assert attachment_service.list_attachments(subtask.id) == []


# ═════════════════════════════════════════════════════════════════════════════
# COMMENTS
# ═════════════════════════════════════════════════════════════════════════════

class TestComments:
    def test_thread_oldest_first(self, subtask):
        att = _upload(subtask)
        c1 = attachment_service.add_comment(att.id, " Looks right ", "QUALITY_EVALUATOR", "Kostas")
        c2 = attachment_service.add_comment(att.id, "Thanks", "IT_SPECIALIST", "Ieva")
        assert c1.comment == "Looks right"
        assert [c.id for c in attachment_service.list_comments(att.id)] == [c1.id, c2.id]

    def test_missing_name_falls_back(self, subtask):
        att = _upload(subtask)
        comment = attachment_service.add_comment(att.id, "hi", "IT_SPECIALIST", None)
        assert comment.author_name == "Nežinomas"

    def test_empty_comment_rejected(self, subtask):
        att = _upload(subtask)
        with pytest.raises(ValidationError):
            attachment_service.add_comment(att.id, "   ", "IT_SPECIALIST", "Ieva")

    def test_only_author_pair_may_edit_or_delete(self, subtask):
        att = _upload(subtask)
        comment = attachment_service.add_comment(att.id, "draft", "IT_SPECIALIST", "Ieva")
        with pytest.raises(ForbiddenError):
            attachment_service.update_comment(comment.id, "edit", "QUALITY_EVALUATOR", "Ieva")
        with pytest.raises(ForbiddenError):
            attachment_service.delete_comment(comment.id, "IT_SPECIALIST", "Someone else")
        assert attachment_service.update_comment(comment.id, "final", "IT_SPECIALIST", "Ieva").comment == "final"
        attachment_service.delete_comment(comment.id, "IT_SPECIALIST", "Ieva")
        assert attachment_service.list_comments(att.id) == []

    def test_deleting_attachment_removes_comments(self, subtask):
        att = _upload(subtask)
        attachment_service.add_comment(att.id, "note", "IT_SPECIALIST", "Ieva")
        attachment_service.delete_attachment(att.id, "IT_SPECIALIST")
        assert attachment_service.list_comments(att.id) == []


# ═════════════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════════════

class TestAttachmentAPI:
    def test_upload_comment_flow(self, client, subtask, quality_evaluator, auth_headers):
        h = auth_headers(quality_evaluator)
        res = client.post("/api/v1/attachments", json={
            "subtaskId": subtask.id, "fileName": "report.txt",
            "fileUrl": _data_url(b"report", "text/plain"), "fileSize": 6, "fileType": "text/plain",
        }, headers=h)
        assert res.status_code == 201
        att_id = res.get_json()["id"]

        res = client.post("/api/v1/attachment-comments",
                          json={"attachmentId": att_id, "comment": "Checked"}, headers=h)
        assert res.status_code == 201
        assert res.get_json()["authorName"] == quality_evaluator.name

        res = client.get(f"/api/v1/attachment-comments?attachmentId={att_id}", headers=h)
        assert [c["comment"] for c in res.get_json()] == ["Checked"]

        res = client.get(f"/api/v1/attachments?subtaskId={subtask.id}", headers=h)
        assert res.get_json()[0]["uploadedBy"] == "QUALITY_EVALUATOR"

    def test_user_role_rejected(self, client, subtask, user, auth_headers):
        res = client.get(f"/api/v1/attachments?subtaskId={subtask.id}", headers=auth_headers(user))
        assert res.status_code == 403

    def test_non_numeric_id_is_400(self, client, it_specialist, auth_headers):
        res = client.delete("/api/v1/attachments?id=abc", headers=auth_headers(it_specialist))
        assert res.status_code == 400
