"""
JWT Auth Middleware — resolves the caller's identity for every API request.

Reads ``Authorization: Bearer <token>`` and sets:
  g.current_user_id    int | None
  g.current_user_role  one of the four roles, or None
  g.current_user_name  display name carried in the token, or None

A missing or invalid token leaves the identity empty; the route decorators
in app.auth decide whether that is acceptable.
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.models.auth import ROLES
from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that never carry an identity
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user_id = None
        g.current_user_role = None
        g.current_user_name = None

        path = request.path
        if not path.startswith("/api/v1/") or path.startswith(JWT_SKIP_PREFIXES):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        try:
            payload = decode_access_token(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected access token on %s: %s", path, exc)
            return

        role = payload.get("role")
        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return
        if role not in ROLES:
            return

        g.current_user_id = user_id
        g.current_user_role = role
        g.current_user_name = payload.get("name")
