"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/register    — Self-service USER account → access token
  POST /api/v1/auth/login       — Email + password → access token
  GET  /api/v1/auth/me          — Current user profile
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from app.auth import current_identity, require_auth
from app.core.exceptions import ValidationError
from app.middleware.rate_limiter import check_rate_limit, client_ip
from app.services.jwt_service import token_response
from app.services.user_service import authenticate, get_user, register_user
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")

LOGIN_WINDOW_SECONDS = 300
LOGIN_MAX_ATTEMPTS = 10


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create a USER account. Staff accounts come from ``flask create-users``.

    Body: { "name": "...", "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    user = register_user(data.get("name"), data.get("email", ""), data.get("password", ""))
    return jsonify(token_response(user)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password are required",
                              details={"email": "required", "password": "required"})

    if current_app.config.get("RATELIMIT_ENABLED", True) and not check_rate_limit(
        f"login:{client_ip()}:{email}", LOGIN_WINDOW_SECONDS, LOGIN_MAX_ATTEMPTS,
    ):
        return api_error(E.RATE_LIMITED, "Too many login attempts, try again later", status=429)

    user = authenticate(email, password)
    logger.info("User %s logged in", user.id, extra={"user_id": user.id, "role": user.role})
    return jsonify(token_response(user)), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    identity = current_identity()
    return jsonify({"user": get_user(identity.user_id).to_dict()}), 200
