"""
Chat Blueprint — PIN-gated rooms, messages and the user's own chat PIN.

  GET  /api/v1/chat/rooms              — Rooms visible to the caller, with lockout state
  POST /api/v1/chat/verify-pin         — Unlock a room (rate limited per IP)
  GET  /api/v1/chat/messages?roomId=   — Latest messages, oldest first
  POST /api/v1/chat/messages           — Post a message
  GET  /api/v1/user/chat-pin           — PIN status (USER)
  POST /api/v1/user/chat-pin           — Change PIN (USER)
  POST /api/v1/user/setup-chat-pin     — First-time PIN (USER)
  GET  /api/v1/user/check-chat-pin     — Does the caller still need to set a PIN
"""

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_auth, require_role
from app.models.auth import ROLE_USER
from app.services import chat_service
from app.utils.helpers import parse_id, utcnow

chat_bp = Blueprint("chat_bp", __name__, url_prefix="/api/v1")


@chat_bp.route("/chat/rooms", methods=["GET"])
@require_auth
def list_rooms():
    identity = current_identity()
    now = utcnow()
    rooms = []
    for room in chat_service.list_rooms(identity.user_id, identity.role):
        d = room.to_dict()
        access = chat_service.get_access_state(identity.user_id, room.id)
        blocked = access is not None and access.is_blocked(now)
        d["blocked"] = blocked
        d["remainingMinutes"] = chat_service.remaining_minutes(access.blocked_until, now) if blocked else 0
        rooms.append(d)
    return jsonify(rooms)


@chat_bp.route("/chat/verify-pin", methods=["POST"])
@require_auth
def verify_pin():
    """
    Body: { "roomId": 1, "pin": "1234" }

    401 carries attempts/remainingAttempts; 429 carries blocked/remainingMinutes.
    """
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    result = chat_service.verify_pin(
        identity.user_id, identity.role, data.get("roomId"), data.get("pin"),
    )
    return jsonify(result)


@chat_bp.route("/chat/messages", methods=["GET"])
@require_auth
def list_messages():
    identity = current_identity()
    room_id = parse_id(request.args.get("roomId"), "roomId")
    messages = chat_service.list_messages(identity.user_id, identity.role, room_id)
    return jsonify([m.to_dict() for m in messages])


@chat_bp.route("/chat/messages", methods=["POST"])
@require_auth
def post_message():
    """Body: { "roomId": 1, "content": "..." }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    message = chat_service.post_message(
        identity.user_id, identity.role,
        parse_id(data.get("roomId"), "roomId"), data.get("content"),
    )
    return jsonify(message.to_dict()), 201


# ── User chat PIN ────────────────────────────────────────────────────────────

@chat_bp.route("/user/chat-pin", methods=["GET"])
@require_role(ROLE_USER)
def get_chat_pin():
    identity = current_identity()
    return jsonify(chat_service.get_pin_status(identity.user_id, identity.role))


@chat_bp.route("/user/check-chat-pin", methods=["GET"])
@require_auth
def check_chat_pin():
    identity = current_identity()
    return jsonify(chat_service.get_pin_status(identity.user_id, identity.role))


@chat_bp.route("/user/setup-chat-pin", methods=["POST"])
@require_auth
def setup_chat_pin():
    """Body: { "pin": "4321", "confirmPin": "4321" }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    chat_service.setup_chat_pin(identity.user_id, identity.role, data.get("pin"), data.get("confirmPin"))
    return jsonify({"success": True})


@chat_bp.route("/user/chat-pin", methods=["POST"])
@require_auth
def change_chat_pin():
    """Body: { "pin": "4321", "confirmPin": "4321" }"""
    identity = current_identity()
    data = request.get_json(silent=True) or {}
    chat_service.change_chat_pin(identity.user_id, identity.role, data.get("pin"), data.get("confirmPin"))
    return jsonify({"success": True})
