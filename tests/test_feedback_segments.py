"""
Pharmacoeconomic Request Workflow
Tests — Satisfaction feedback and user segmentation.

Covers:
    - Metric validation (1-10 whole numbers, all ten required)
    - Latest-feedback lookup and quality evaluator averages
    - Segment rules, counts and the segment filter
"""

from datetime import timedelta

import pytest

from app.core.exceptions import ValidationError
from app.models import db
from app.services import feedback_service, request_service, segment_service
from app.services.segment_service import classify
from app.utils.helpers import utcnow


def _ratings(value=8, **overrides):
    data = {
        "easeOfUse": value, "speed": value, "colorPalette": value, "fontStyle": value,
        "fontReadability": value, "contentClarity": value, "contentAmount": value,
        "tone": value, "reliability": value, "communication": value,
    }
    data.update(overrides)
    return data


# ═════════════════════════════════════════════════════════════════════════════
# FEEDBACK
# ═════════════════════════════════════════════════════════════════════════════

class TestFeedback:
    def test_submit_trims_comment(self, user):
        fb = feedback_service.submit_feedback(user.id, _ratings(comment="  Puiku  "))
        assert fb.comment == "Puiku"
        assert fb.to_dict()["easeOfUse"] == 8

    def test_blank_comment_stored_as_null(self, user):
        assert feedback_service.submit_feedback(user.id, _ratings(comment="   ")).comment is None

    @pytest.mark.parametrize("bad", [0, 11, None, "abc", 7.5, True])
    def test_metric_out_of_range(self, user, bad):
        with pytest.raises(ValidationError) as exc:
            feedback_service.submit_feedback(user.id, _ratings(tone=bad))
        assert exc.value.details == {"tone": "out_of_range"}

    def test_missing_metric(self, user):
        data = _ratings()
        del data["communication"]
        with pytest.raises(ValidationError):
            feedback_service.submit_feedback(user.id, data)

    def test_numeric_strings_accepted(self, user):
        assert feedback_service.submit_feedback(user.id, _ratings(speed="10")).speed == 10

    def test_latest_wins(self, user):
        assert feedback_service.latest_feedback(user.id) is None
        feedback_service.submit_feedback(user.id, _ratings(3))
        second = feedback_service.submit_feedback(user.id, _ratings(9))
        assert feedback_service.latest_feedback(user.id).id == second.id

    def test_stats_for_quality_evaluator(self, user, make_user):
        feedback_service.submit_feedback(user.id, _ratings(8, speed=4))
        feedback_service.submit_feedback(make_user().id, _ratings(9, speed=7))
        result = feedback_service.list_feedbacks_with_stats()
        assert result["count"] == 2
        assert result["stats"]["speed"] == 5.5
        assert result["stats"]["tone"] == 8.5
        assert result["stats"]["overall"] == 8.2  # (8 * 9 + 4 + 9 * 9 + 7) / 20
        assert result["feedbacks"][0]["user"]["name"]

    def test_stats_empty(self):
        result = feedback_service.list_feedbacks_with_stats()
        assert result["count"] == 0
        assert result["feedbacks"] == []
        assert result["stats"]["overall"] == 0


class TestFeedbackAPI:
    def test_submit_and_fetch(self, client, user, auth_headers):
        h = auth_headers(user)
        assert client.get("/api/v1/feedback", headers=h).get_json() == {"feedback": None}
        res = client.post("/api/v1/feedback", json=_ratings(6), headers=h)
        assert res.status_code == 201
        assert client.get("/api/v1/feedback", headers=h).get_json()["feedback"]["tone"] == 6

    def test_out_of_range_is_400(self, client, user, auth_headers):
        res = client.post("/api/v1/feedback", json=_ratings(speed=12), headers=auth_headers(user))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_quality_feedbacks_role_gate(self, client, user, quality_evaluator, auth_headers):
        assert client.get("/api/v1/quality-evaluator/feedbacks",
                          headers=auth_headers(user)).status_code == 403
        res = client.get("/api/v1/quality-evaluator/feedbacks", headers=auth_headers(quality_evaluator))
        assert res.get_json()["count"] == 0


# ═════════════════════════════════════════════════════════════════════════════
# SEGMENTS
# ═════════════════════════════════════════════════════════════════════════════

class TestClassify:
    @pytest.mark.parametrize("total,age_days,expected", [
        (5, 100, "VIP"),
        (12, 1, "VIP"),
        (4, 100, "AKTYVUS"),
        (1, 0, "AKTYVUS"),
        (0, 7, "NAUJAS"),
        (0, 0, "NAUJAS"),
        (0, 8, "NEAKTYVUS"),
    ])
    def test_rules(self, total, age_days, expected):
        assert classify(total, timedelta(days=age_days)) == expected


class TestSegmentUsers:
    def _requests(self, owner, count):
        for i in range(count):
            request_service.create_request(owner.id, f"Request {i}", "Budget impact model")

    def test_counts_and_filter(self, make_user, admin):
        vip, active, new, idle = (make_user() for _ in range(4))
        self._requests(vip, 5)
        self._requests(active, 2)
        idle.created_at = utcnow() - timedelta(days=30)
        db.session.commit()

        result = segment_service.segment_users()
        assert result["counts"] == {"VIP": 1, "AKTYVUS": 1, "NAUJAS": 1, "NEAKTYVUS": 1, "TOTAL": 4}
        by_id = {u["id"]: u for u in result["users"]}
        assert admin.id not in by_id
        assert by_id[vip.id]["stats"]["totalRequests"] == 5
        assert by_id[vip.id]["stats"]["recentRequests"] == 5
        assert by_id[new.id]["stats"]["lastRequestDate"] is None

        filtered = segment_service.segment_users("aktyvus")
        assert [u["id"] for u in filtered["users"]] == [active.id]
        assert filtered["counts"]["TOTAL"] == 4

    def test_old_requests_not_recent(self, user):
        self._requests(user, 1)
        later = utcnow() + timedelta(days=31)
        row = segment_service.segment_users(now=later)["users"][0]
        assert row["segment"] == "AKTYVUS"
        assert row["stats"]["recentRequests"] == 0

    def test_unknown_segment(self):
        with pytest.raises(ValidationError):
            segment_service.segment_users("GOLD")

    def test_endpoint(self, client, quality_evaluator, user, auth_headers):
        res = client.get("/api/v1/quality-evaluator/users?segment=NAUJAS",
                         headers=auth_headers(quality_evaluator))
        assert res.status_code == 200
        assert res.get_json()["users"][0]["email"] == user.email
        res = client.get("/api/v1/quality-evaluator/users?segment=bogus",
                         headers=auth_headers(quality_evaluator))
        assert res.status_code == 400
