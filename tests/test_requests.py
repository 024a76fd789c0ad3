"""
Pharmacoeconomic Request Workflow
Tests — Request lifecycle and the admin Kanban board.

Covers:
    - Create validation, defaults and structured filters
    - Unconditional status overwrite (any -> any), invalid status
    - Board grouping and drag-drop moves
    - Dashboard counts over 7/14/30 days
    - Role gates on user/admin endpoints
"""

import json
from datetime import timedelta

import pytest

from app.core.exceptions import InvalidStatusError, NotFoundError, ValidationError
from app.models import db
from app.models.auth import UserActivity
from app.models.request import Request, RequestFilters
from app.services import request_service
from app.utils.helpers import utcnow


def _create(user, **kw):
    data = {"title": "ICER for drug X", "description": "Compare X vs standard of care"}
    data.update(kw)
    return request_service.create_request(user.id, data.pop("title"), data.pop("description"), **data)


# ═════════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═════════════════════════════════════════════════════════════════════════════

class TestRequestLifecycle:
    def test_new_request_is_pending_medium(self, user):
        req = _create(user)
        assert req.status == "PENDING"
        assert req.priority == "MEDIUM"

    def test_create_logs_activity(self, user):
        req = _create(user)
        activity = UserActivity.query.filter_by(user_id=user.id, action="REQUEST_CREATED").one()
        assert activity.entity_id == req.id

    @pytest.mark.parametrize("title,description", [("", "desc"), ("title", "   "), (None, None)])
    def test_title_and_description_required(self, user, title, description):
        with pytest.raises(ValidationError):
            request_service.create_request(user.id, title, description)

    def test_unknown_priority_rejected(self, user):
        with pytest.raises(ValidationError):
            _create(user, priority="CRITICAL")

    def test_pending_to_completed_directly(self, user):
        req = _create(user)
        assert request_service.set_status(req.id, "COMPLETED").status == "COMPLETED"
        assert request_service.set_status(req.id, "PENDING").status == "PENDING"

    def test_invalid_status(self, user):
        req = _create(user)
        with pytest.raises(InvalidStatusError):
            request_service.set_status(req.id, "ARCHIVED")
        assert db.session.get(Request, req.id).status == "PENDING"

    def test_notes_on_missing_request(self):
        with pytest.raises(NotFoundError):
            request_service.set_admin_notes(999, "note")

    def test_list_is_newest_first_and_scoped(self, user, make_user):
        other = make_user("USER")
        first = _create(user, title="first")
        second = _create(user, title="second")
        _create(other, title="foreign")
        own = request_service.list_requests(user_id=user.id)
        assert [r.id for r in own] == [second.id, first.id]
        assert len(request_service.list_requests()) == 3


class TestRequestFilters:
    def test_json_string_and_snake_case_accepted(self, user):
        raw = json.dumps({"population": ["adults"], "time_horizon": "10y", "bogus": 1})
        req = _create(user, filters=raw)
        assert req.filters == {
            "population": ["adults"],
            "intervention": [],
            "comparator": [],
            "outcome": [],
            "timeHorizon": "10y",
            "perspective": "",
            "discountRate": "",
        }

    def test_from_raw_tolerates_garbage(self):
        assert RequestFilters.from_raw("not json").to_dict()["population"] == []
        assert RequestFilters.from_raw(None).to_dict()["discountRate"] == ""


# ═════════════════════════════════════════════════════════════════════════════
# KANBAN BOARD
# ═════════════════════════════════════════════════════════════════════════════

class TestBoard:
    def test_columns_in_fixed_order(self, user):
        a = _create(user)
        b = _create(user)
        request_service.set_status(b.id, "REJECTED")
        board = request_service.get_board()
        assert [c["status"] for c in board] == ["PENDING", "IN_PROGRESS", "COMPLETED", "REJECTED"]
        assert board[0]["count"] == 1 and board[0]["requests"][0]["id"] == a.id
        assert board[3]["requests"][0]["user"]["email"] == user.email

    def test_drop_into_same_column_is_noop(self, user):
        req = _create(user)
        before = req.updated_at
        moved = request_service.move_request(req.id, "PENDING")
        assert moved.status == "PENDING"
        assert moved.updated_at == before

    def test_drop_into_new_column_sets_status(self, user):
        req = _create(user)
        assert request_service.move_request(req.id, "IN_PROGRESS").status == "IN_PROGRESS"


class TestRequestCounts:
    def test_windows(self, user):
        now = utcnow()
        for days_ago in (1, 10, 20, 40):
            req = _create(user)
            req.created_at = now - timedelta(days=days_ago)
        db.session.commit()
        assert request_service.request_counts(now) == {
            "total": 4, "last7Days": 1, "last14Days": 2, "last30Days": 3,
        }


# ═════════════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════════════

class TestRequestAPI:
    def test_user_creates_and_lists(self, client, user, auth_headers):
        h = auth_headers(user)
        res = client.post("/api/v1/user/requests", json={
            "title": "Budget impact", "description": "5-year horizon", "priority": "HIGH",
            "filters": {"population": ["elderly"], "discountRate": "3%"},
        }, headers=h)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "PENDING"
        assert body["filters"]["discountRate"] == "3%"
        assert len(client.get("/api/v1/user/requests", headers=h).get_json()) == 1

    def test_validation_error_shape(self, client, user, auth_headers):
        res = client.post("/api/v1/user/requests", json={"title": ""}, headers=auth_headers(user))
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "error" in body

    def test_admin_board_and_status(self, client, admin, user, auth_headers):
        req = _create(user)
        h = auth_headers(admin)
        res = client.patch("/api/v1/admin/requests/status",
                           json={"requestId": req.id, "status": "COMPLETED"}, headers=h)
        assert res.status_code == 200
        assert res.get_json()["status"] == "COMPLETED"

        res = client.patch("/api/v1/admin/requests/status",
                           json={"requestId": req.id, "status": "DONE"}, headers=h)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_INVALID_STATUS"

        columns = client.get("/api/v1/admin/requests/board", headers=h).get_json()["columns"]
        assert columns[2]["count"] == 1

    def test_admin_notes(self, client, admin, user, auth_headers):
        req = _create(user)
        res = client.patch("/api/v1/admin/requests/notes",
                           json={"requestId": req.id, "adminNotes": "Need PSA"},
                           headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["adminNotes"] == "Need PSA"

    def test_user_cannot_use_admin_endpoints(self, client, user, auth_headers):
        res = client.get("/api/v1/admin/requests", headers=auth_headers(user))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_missing_request_is_404(self, client, admin, auth_headers):
        res = client.get("/api/v1/admin/requests/4242", headers=auth_headers(admin))
        assert res.status_code == 404
