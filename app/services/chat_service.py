"""
Chat Service — room visibility, PIN lockout and messaging.

PIN lockout state machine, per (user, room), persisted in ChatAccess:

    LOCKED(n)  --correct PIN-->  unlocked (attempts=0, client keeps the unlock)
    LOCKED(n)  --wrong PIN, n+1 < MAX-->  LOCKED(n+1)        InvalidPinError
    LOCKED(n)  --wrong PIN, n+1 >= MAX-->  BLOCKED(now+BLOCK) TooManyAttemptsError
    BLOCKED(t) --any PIN before t-->  BLOCKED(t)             BlockedError

MAX = CHAT_PIN_MAX_ATTEMPTS (3), BLOCK = CHAT_PIN_BLOCK_MINUTES (10).
Entering a block resets the counter to 0, and attempts made while blocked
neither count nor extend the block.

The ChatAccess row is read and written under SELECT ... FOR UPDATE so two
simultaneous attempts from different devices are serialised.

Room visibility:
    EMPLOYEE room    ADMIN, IT_SPECIALIST, QUALITY_EVALUATOR
    ADMIN_USER room  any ADMIN, or the USER paired with the room
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    BlockedError,
    ForbiddenError,
    InvalidPinError,
    NotFoundError,
    TooManyAttemptsError,
    ValidationError,
)
from app.models import db
from app.models.auth import ROLE_ADMIN, ROLE_USER, STAFF_ROLES, User
from app.models.chat import (
    ROOM_TYPE_ADMIN_USER,
    ROOM_TYPE_EMPLOYEE,
    ChatAccess,
    ChatMessage,
    ChatRoom,
)
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r"^\d{4}$")
EMPLOYEE_ROOM_NAME = "Darbuotojų chat"


def _cfg(key: str, default):
    return current_app.config.get(key, default)


def remaining_minutes(blocked_until: datetime, now: datetime) -> int:
    """Whole minutes left in a block, rounded up (90 s -> 2)."""
    return max(0, math.ceil((blocked_until - now).total_seconds() / 60))


# ── Rooms ─────────────────────────────────────────────────────────────────────


def can_access_room(room: ChatRoom, user_id: int, role: str) -> bool:
    if room.type == ROOM_TYPE_EMPLOYEE:
        return role in STAFF_ROLES
    if room.type == ROOM_TYPE_ADMIN_USER:
        return role == ROLE_ADMIN or (role == ROLE_USER and room.user_id == user_id)
    return False


def _find_employee_room() -> ChatRoom | None:
    return db.session.execute(
        select(ChatRoom).where(ChatRoom.type == ROOM_TYPE_EMPLOYEE)
    ).scalar_one_or_none()


def get_or_create_employee_room() -> ChatRoom:
    """The single staff-wide room. A partial unique index on type keeps it single."""
    room = _find_employee_room()
    if room is not None:
        return room
    room = ChatRoom(
        name=EMPLOYEE_ROOM_NAME,
        type=ROOM_TYPE_EMPLOYEE,
        pin=_cfg("CHAT_EMPLOYEE_ROOM_PIN", "1234"),
    )
    db.session.add(room)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return _find_employee_room()
    logger.info("Employee chat room created id=%s", room.id)
    return room


def _find_user_room(user_id: int) -> ChatRoom | None:
    return db.session.execute(
        select(ChatRoom).where(
            ChatRoom.type == ROOM_TYPE_ADMIN_USER, ChatRoom.user_id == user_id,
        )
    ).scalar_one_or_none()


def get_or_create_user_room(user: User) -> ChatRoom:
    """The USER's private admin chat, created on first access.

    A new room takes the user's own chat PIN when one is set, else
    CHAT_DEFAULT_USER_ROOM_PIN. The unique user_id constraint guarantees
    one room per user even when two requests race to create it.
    """
    room = _find_user_room(user.id)
    if room is not None:
        return room
    room = ChatRoom(
        name=f"Chat su {user.display_name}",
        type=ROOM_TYPE_ADMIN_USER,
        pin=user.chat_pin or _cfg("CHAT_DEFAULT_USER_ROOM_PIN", "5678"),
        user_id=user.id,
    )
    db.session.add(room)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("User chat room for user %s created concurrently", user.id)
        return _find_user_room(user.id)
    logger.info("User chat room created id=%s user_id=%s", room.id, user.id)
    return room


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def list_rooms(user_id: int, role: str) -> list[ChatRoom]:
    """Rooms visible to the caller, creating the default ones on demand."""
    rooms: list[ChatRoom] = []
    if role in STAFF_ROLES:
        rooms.append(get_or_create_employee_room())
    if role == ROLE_USER:
        rooms.append(get_or_create_user_room(_get_user(user_id)))
    elif role == ROLE_ADMIN:
        rooms.extend(db.session.execute(
            select(ChatRoom)
            .where(ChatRoom.type == ROOM_TYPE_ADMIN_USER)
            .order_by(ChatRoom.created_at.asc(), ChatRoom.id.asc())
        ).scalars())
    return rooms


def _accessible_room(room_id, user_id: int, role: str) -> ChatRoom:
    try:
        room = db.session.get(ChatRoom, int(room_id))
    except (TypeError, ValueError):
        room = None
    if room is None:
        raise NotFoundError("ChatRoom", room_id)
    if not can_access_room(room, user_id, role):
        logger.warning("Chat room %s denied to user %s (%s)", room.id, user_id, role,
                       extra={"user_id": user_id, "role": role, "room_id": room.id,
                              "event_type": "chat_room_denied"})
        raise ForbiddenError("You do not have access to this chat room")
    return room


# ── PIN verification ──────────────────────────────────────────────────────────


def _find_access(user_id: int, room_id: int) -> ChatAccess | None:
    return db.session.execute(
        select(ChatAccess)
        .where(ChatAccess.user_id == user_id, ChatAccess.room_id == room_id)
        .with_for_update()
    ).scalar_one_or_none()


def _lock_access(user_id: int, room_id: int) -> ChatAccess:
    """Load-or-create the (user, room) access row, locked for this transaction."""
    access = _find_access(user_id, room_id)
    if access is not None:
        return access
    access = ChatAccess(user_id=user_id, room_id=room_id, attempts=0)
    db.session.add(access)
    try:
        db.session.flush()
    except IntegrityError:
        # another attempt created the row first; nothing else is pending here
        db.session.rollback()
        access = _find_access(user_id, room_id)
    return access


def verify_pin(user_id: int, role: str, room_id, candidate_pin, now: datetime | None = None) -> dict:
    """Check a PIN for a room and update the caller's lockout state.

    Returns:
        {"success": True, "room": {"id", "name", "type"}}

    Raises:
        ValidationError: roomId or pin missing.
        NotFoundError: Unknown room.
        ForbiddenError: Role may not see the room.
        BlockedError: Inside a lockout window (reports remaining minutes).
        TooManyAttemptsError: This attempt started a lockout window.
        InvalidPinError: Wrong PIN, attempts remain.
    """
    if room_id in (None, "") or candidate_pin in (None, ""):
        raise ValidationError("roomId and pin are required",
                              details={"roomId": "required", "pin": "required"})
    candidate = str(candidate_pin)
    room = _accessible_room(room_id, user_id, role)
    now = now or utcnow()
    max_attempts = _cfg("CHAT_PIN_MAX_ATTEMPTS", 3)
    block_minutes = _cfg("CHAT_PIN_BLOCK_MINUTES", 10)
    log_extra = {"user_id": user_id, "role": role, "room_id": room.id}

    access = _lock_access(user_id, room.id)

    if access.is_blocked(now):
        minutes = remaining_minutes(access.blocked_until, now)
        db.session.commit()
        raise BlockedError(minutes)

    access.last_attempt_at = now
    if candidate == room.pin:
        access.attempts = 0
        access.blocked_until = None
        db.session.commit()
        logger.info("Chat PIN accepted for room %s", room.id, extra=log_extra)
        return {"success": True, "room": {"id": room.id, "name": room.name, "type": room.type}}

    access.attempts = (access.attempts or 0) + 1
    if access.attempts >= max_attempts:
        access.blocked_until = now + timedelta(minutes=block_minutes)
        access.attempts = 0
        db.session.commit()
        logger.warning("Chat PIN lockout for %s min on room %s", block_minutes, room.id,
                       extra={**log_extra, "event_type": "chat_pin_lockout"})
        raise TooManyAttemptsError(block_minutes)

    attempts = access.attempts
    db.session.commit()
    logger.warning("Wrong chat PIN (%s/%s) on room %s", attempts, max_attempts, room.id,
                   extra={**log_extra, "event_type": "chat_pin_rejected"})
    raise InvalidPinError(attempts, max_attempts - attempts)


def get_access_state(user_id: int, room_id: int) -> ChatAccess | None:
    return db.session.execute(
        select(ChatAccess).where(ChatAccess.user_id == user_id, ChatAccess.room_id == room_id)
    ).scalar_one_or_none()


# ── Messages ──────────────────────────────────────────────────────────────────


def list_messages(user_id: int, role: str, room_id) -> list[ChatMessage]:
    """The most recent CHAT_MESSAGE_LIMIT messages, oldest first."""
    room = _accessible_room(room_id, user_id, role)
    limit = _cfg("CHAT_MESSAGE_LIMIT", 100)
    newest = list(db.session.execute(
        select(ChatMessage)
        .where(ChatMessage.room_id == room.id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
    ).scalars())
    newest.reverse()
    return newest


def post_message(user_id: int, role: str, room_id, content: str | None) -> ChatMessage:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty", details={"content": "required"})
    room = _accessible_room(room_id, user_id, role)
    message = ChatMessage(content=text, user_id=user_id, room_id=room.id)
    db.session.add(message)
    db.session.commit()
    return message


# ── User chat PIN ─────────────────────────────────────────────────────────────


def get_pin_status(user_id: int, role: str) -> dict:
    """Only USER accounts choose their own PIN; staff always report one."""
    if role != ROLE_USER:
        return {"hasPin": True, "needsSetup": False}
    has_pin = bool(_get_user(user_id).chat_pin)
    return {"hasPin": has_pin, "needsSetup": not has_pin}


def _validate_new_pin(pin, confirm_pin) -> str:
    if not isinstance(pin, str) or not pin:
        raise ValidationError("PIN is required", details={"pin": "required"})
    if not PIN_PATTERN.match(pin):
        raise ValidationError("PIN must be exactly 4 digits", details={"pin": "invalid"})
    if pin != confirm_pin:
        raise ValidationError("PINs do not match", details={"confirmPin": "mismatch"})
    return pin


def _store_pin(user: User, pin: str) -> None:
    room = get_or_create_user_room(user)
    user.chat_pin = pin
    room.pin = pin
    db.session.commit()


def setup_chat_pin(user_id: int, role: str, pin, confirm_pin) -> None:
    """First-time PIN setup for a USER. Also becomes their room's PIN."""
    if role != ROLE_USER:
        raise ForbiddenError("Only USER accounts set a chat PIN")
    pin = _validate_new_pin(pin, confirm_pin)
    user = _get_user(user_id)
    if user.chat_pin:
        raise ValidationError("Chat PIN is already set", details={"pin": "already_set"})
    _store_pin(user, pin)
    logger.info("Chat PIN set up for user %s", user_id)


def change_chat_pin(user_id: int, role: str, pin, confirm_pin) -> None:
    if role != ROLE_USER:
        raise ForbiddenError("Only USER accounts change a chat PIN")
    pin = _validate_new_pin(pin, confirm_pin)
    _store_pin(_get_user(user_id), pin)
    logger.info("Chat PIN changed for user %s", user_id)
