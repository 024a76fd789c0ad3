"""
Pharmacoeconomic Request Workflow
Tests — Chat access controller and messaging.

Covers:
    - PIN lockout: 3 wrong attempts block for 10 minutes, even for the right PIN
    - Block expiry and counter reset
    - Room visibility per role, one private room per USER
    - User chat PIN setup/change and its effect on the room PIN
    - Message ordering and the API error bodies
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    BlockedError,
    ForbiddenError,
    InvalidPinError,
    TooManyAttemptsError,
    ValidationError,
)
from app.models import db
from app.models.chat import ROOM_TYPE_ADMIN_USER, ROOM_TYPE_EMPLOYEE, ChatRoom
from app.services import chat_service
from app.utils.helpers import utcnow


# ═════════════════════════════════════════════════════════════════════════════
# PIN LOCKOUT
# ═════════════════════════════════════════════════════════════════════════════

class TestPinLockout:
    def test_correct_pin_unlocks(self, admin):
        room = chat_service.get_or_create_employee_room()
        result = chat_service.verify_pin(admin.id, admin.role, room.id, "1234")
        assert result["success"] is True
        assert result["room"]["type"] == ROOM_TYPE_EMPLOYEE

    def test_three_wrong_attempts_block_even_correct_pin(self, admin):
        room = chat_service.get_or_create_employee_room()
        t0 = utcnow()

        with pytest.raises(InvalidPinError) as exc:
            chat_service.verify_pin(admin.id, admin.role, room.id, "0000", now=t0)
        assert exc.value.remaining_attempts == 2

        with pytest.raises(InvalidPinError) as exc:
            chat_service.verify_pin(admin.id, admin.role, room.id, "0000", now=t0)
        assert exc.value.remaining_attempts == 1

        with pytest.raises(TooManyAttemptsError) as exc:
            chat_service.verify_pin(admin.id, admin.role, room.id, "0000", now=t0)
        assert exc.value.remaining_minutes == 10

        with pytest.raises(BlockedError) as exc:
            chat_service.verify_pin(admin.id, admin.role, room.id, "1234",
                                    now=t0 + timedelta(minutes=1))
        assert exc.value.remaining_minutes == 9

    def test_block_expires(self, admin):
        room = chat_service.get_or_create_employee_room()
        t0 = utcnow()
        for _ in range(2):
            with pytest.raises(InvalidPinError):
                chat_service.verify_pin(admin.id, admin.role, room.id, "9999", now=t0)
        with pytest.raises(TooManyAttemptsError):
            chat_service.verify_pin(admin.id, admin.role, room.id, "9999", now=t0)

        later = t0 + timedelta(minutes=10, seconds=1)
        assert chat_service.verify_pin(admin.id, admin.role, room.id, "1234", now=later)["success"]
        state = chat_service.get_access_state(admin.id, room.id)
        assert state.attempts == 0
        assert state.blocked_until is None

    def test_attempts_during_block_neither_count_nor_extend_it(self, admin):
        room = chat_service.get_or_create_employee_room()
        t0 = utcnow()
        for _ in range(2):
            with pytest.raises(InvalidPinError):
                chat_service.verify_pin(admin.id, admin.role, room.id, "0000", now=t0)
        with pytest.raises(TooManyAttemptsError):
            chat_service.verify_pin(admin.id, admin.role, room.id, "0000", now=t0)
        blocked_until = chat_service.get_access_state(admin.id, room.id).blocked_until

        for minute, remaining in ((1, 9), (5, 5), (9, 1)):
            with pytest.raises(BlockedError) as exc:
                chat_service.verify_pin(admin.id, admin.role, room.id, "0000",
                                        now=t0 + timedelta(minutes=minute))
            assert exc.value.remaining_minutes == remaining
            state = chat_service.get_access_state(admin.id, room.id)
            assert state.blocked_until == blocked_until
            assert state.attempts == 0

        later = t0 + timedelta(minutes=10, seconds=1)
        assert chat_service.verify_pin(admin.id, admin.role, room.id, "1234", now=later)["success"]

    def test_remaining_minutes_rounds_up(self):
        now = utcnow()
        assert chat_service.remaining_minutes(now + timedelta(seconds=90), now) == 2
        assert chat_service.remaining_minutes(now + timedelta(seconds=1), now) == 1

    def test_lockout_is_per_user(self, admin, it_specialist):
        room = chat_service.get_or_create_employee_room()
        for _ in range(2):
            with pytest.raises(InvalidPinError):
                chat_service.verify_pin(admin.id, admin.role, room.id, "0000")
        with pytest.raises(TooManyAttemptsError):
            chat_service.verify_pin(admin.id, admin.role, room.id, "0000")
        assert chat_service.verify_pin(it_specialist.id, it_specialist.role, room.id, "1234")["success"]

    def test_blank_pin_is_validation_error(self, admin):
        room = chat_service.get_or_create_employee_room()
        with pytest.raises(ValidationError):
            chat_service.verify_pin(admin.id, admin.role, room.id, "")


# ═════════════════════════════════════════════════════════════════════════════
# ROOM VISIBILITY
# ═════════════════════════════════════════════════════════════════════════════

class TestRooms:
    def test_users_get_distinct_rooms_with_default_pin(self, make_user):
        a, b = make_user("USER"), make_user("USER")
        room_a = chat_service.list_rooms(a.id, a.role)
        room_b = chat_service.list_rooms(b.id, b.role)
        assert len(room_a) == len(room_b) == 1
        assert room_a[0].id != room_b[0].id
        assert room_a[0].type == ROOM_TYPE_ADMIN_USER
        assert room_a[0].pin == "5678"
        assert chat_service.verify_pin(a.id, a.role, room_a[0].id, "5678")["success"]

    def test_user_room_is_reused(self, user):
        first = chat_service.list_rooms(user.id, user.role)[0]
        again = chat_service.list_rooms(user.id, user.role)[0]
        assert first.id == again.id

    def test_employee_room_is_single(self):
        room = chat_service.get_or_create_employee_room()
        assert chat_service.get_or_create_employee_room().id == room.id
        db.session.add(ChatRoom(name="Second", type=ROOM_TYPE_EMPLOYEE, pin="0000"))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()
        assert ChatRoom.query.filter_by(type=ROOM_TYPE_EMPLOYEE).count() == 1

    def test_user_cannot_enter_other_user_room(self, make_user):
        a, b = make_user("USER"), make_user("USER")
        room_b = chat_service.list_rooms(b.id, b.role)[0]
        with pytest.raises(ForbiddenError):
            chat_service.verify_pin(a.id, a.role, room_b.id, "5678")

    def test_user_cannot_enter_employee_room(self, user):
        room = chat_service.get_or_create_employee_room()
        with pytest.raises(ForbiddenError):
            chat_service.list_messages(user.id, user.role, room.id)

    def test_admin_sees_employee_room_and_every_user_room(self, admin, make_user):
        for _ in range(2):
            u = make_user("USER")
            chat_service.list_rooms(u.id, u.role)
        types = [r.type for r in chat_service.list_rooms(admin.id, admin.role)]
        assert types.count(ROOM_TYPE_EMPLOYEE) == 1
        assert types.count(ROOM_TYPE_ADMIN_USER) == 2

    def test_it_specialist_sees_only_employee_room(self, it_specialist, user):
        chat_service.list_rooms(user.id, user.role)
        rooms = chat_service.list_rooms(it_specialist.id, it_specialist.role)
        assert [r.type for r in rooms] == [ROOM_TYPE_EMPLOYEE]


# ═════════════════════════════════════════════════════════════════════════════
# USER CHAT PIN
# ═════════════════════════════════════════════════════════════════════════════

class TestUserChatPin:
    def test_status_before_and_after_setup(self, user):
        assert chat_service.get_pin_status(user.id, user.role) == {"hasPin": False, "needsSetup": True}
        chat_service.setup_chat_pin(user.id, user.role, "4321", "4321")
        assert chat_service.get_pin_status(user.id, user.role) == {"hasPin": True, "needsSetup": False}

    def test_staff_never_need_setup(self, admin):
        assert chat_service.get_pin_status(admin.id, admin.role)["needsSetup"] is False

    def test_setup_sets_room_pin(self, user):
        chat_service.setup_chat_pin(user.id, user.role, "4321", "4321")
        room = chat_service.list_rooms(user.id, user.role)[0]
        assert room.pin == "4321"
        with pytest.raises(InvalidPinError):
            chat_service.verify_pin(user.id, user.role, room.id, "5678")

    @pytest.mark.parametrize("pin,confirm", [
        ("123", "123"),
        ("12a4", "12a4"),
        ("12345", "12345"),
        ("1234", "4321"),
    ])
    def test_invalid_pins_rejected(self, user, pin, confirm):
        with pytest.raises(ValidationError):
            chat_service.setup_chat_pin(user.id, user.role, pin, confirm)

    def test_setup_twice_rejected_but_change_allowed(self, user):
        chat_service.setup_chat_pin(user.id, user.role, "1111", "1111")
        with pytest.raises(ValidationError):
            chat_service.setup_chat_pin(user.id, user.role, "2222", "2222")
        chat_service.change_chat_pin(user.id, user.role, "2222", "2222")
        assert chat_service.list_rooms(user.id, user.role)[0].pin == "2222"

    def test_staff_cannot_set_pin(self, admin):
        with pytest.raises(ForbiddenError):
            chat_service.setup_chat_pin(admin.id, admin.role, "1111", "1111")


# ═════════════════════════════════════════════════════════════════════════════
# MESSAGES & API
# ═════════════════════════════════════════════════════════════════════════════

class TestMessages:
    def test_messages_oldest_first_and_trimmed(self, admin, it_specialist):
        room = chat_service.get_or_create_employee_room()
        chat_service.post_message(admin.id, admin.role, room.id, "  first  ")
        chat_service.post_message(it_specialist.id, it_specialist.role, room.id, "second")
        msgs = chat_service.list_messages(admin.id, admin.role, room.id)
        assert [m.content for m in msgs] == ["first", "second"]

    def test_empty_message_rejected(self, admin):
        room = chat_service.get_or_create_employee_room()
        with pytest.raises(ValidationError):
            chat_service.post_message(admin.id, admin.role, room.id, "   ")

    def test_message_limit_keeps_latest(self, app, admin):
        room = chat_service.get_or_create_employee_room()
        old_limit = app.config["CHAT_MESSAGE_LIMIT"]
        app.config["CHAT_MESSAGE_LIMIT"] = 3
        try:
            for i in range(5):
                chat_service.post_message(admin.id, admin.role, room.id, f"m{i}")
            msgs = chat_service.list_messages(admin.id, admin.role, room.id)
        finally:
            app.config["CHAT_MESSAGE_LIMIT"] = old_limit
        assert [m.content for m in msgs] == ["m2", "m3", "m4"]


class TestChatAPI:
    def test_verify_pin_error_bodies(self, client, admin, auth_headers):
        h = auth_headers(admin)
        rooms = client.get("/api/v1/chat/rooms", headers=h).get_json()
        room_id = next(r["id"] for r in rooms if r["type"] == ROOM_TYPE_EMPLOYEE)
        assert "pin" not in rooms[0]

        res = client.post("/api/v1/chat/verify-pin", json={"roomId": room_id, "pin": "0000"}, headers=h)
        assert res.status_code == 401
        body = res.get_json()
        assert body["attempts"] == 1
        assert body["remainingAttempts"] == 2

        client.post("/api/v1/chat/verify-pin", json={"roomId": room_id, "pin": "0000"}, headers=h)
        res = client.post("/api/v1/chat/verify-pin", json={"roomId": room_id, "pin": "0000"}, headers=h)
        assert res.status_code == 429
        assert res.get_json()["blocked"] is True
        assert res.get_json()["remainingMinutes"] == 10

        res = client.post("/api/v1/chat/verify-pin", json={"roomId": room_id, "pin": "1234"}, headers=h)
        assert res.status_code == 429
        assert res.get_json()["code"] == "ERR_PIN_BLOCKED"

        rooms = client.get("/api/v1/chat/rooms", headers=h).get_json()
        assert next(r for r in rooms if r["id"] == room_id)["blocked"] is True

    def test_post_and_read_messages(self, client, user, auth_headers):
        h = auth_headers(user)
        room_id = client.get("/api/v1/chat/rooms", headers=h).get_json()[0]["id"]
        res = client.post("/api/v1/chat/messages", json={"roomId": room_id, "content": "Labas"}, headers=h)
        assert res.status_code == 201
        res = client.get(f"/api/v1/chat/messages?roomId={room_id}", headers=h)
        body = res.get_json()
        assert body[0]["content"] == "Labas"
        assert body[0]["user"]["name"] == user.name

    def test_setup_pin_endpoints(self, client, user, auth_headers):
        h = auth_headers(user)
        assert client.get("/api/v1/user/check-chat-pin", headers=h).get_json()["needsSetup"] is True
        res = client.post("/api/v1/user/setup-chat-pin",
                          json={"pin": "2468", "confirmPin": "2468"}, headers=h)
        assert res.status_code == 200
        assert client.get("/api/v1/user/chat-pin", headers=h).get_json()["hasPin"] is True
        res = client.post("/api/v1/user/setup-chat-pin",
                          json={"pin": "1357", "confirmPin": "1357"}, headers=h)
        assert res.status_code == 400

    def test_chat_pin_status_is_user_only(self, client, admin, it_specialist, auth_headers):
        for staff in (admin, it_specialist):
            h = auth_headers(staff)
            assert client.get("/api/v1/user/chat-pin", headers=h).status_code == 403
            res = client.get("/api/v1/user/check-chat-pin", headers=h)
            assert res.status_code == 200
            assert res.get_json() == {"hasPin": True, "needsSetup": False}
