"""
Pharmacoeconomic Request Workflow
Authentication & Authorization.

Provides:
    - ``current_identity()``: the caller's (user_id, role) as resolved by the
      JWT middleware.
    - ``require_auth`` / ``require_role(*roles)`` route decorators.
    - ``init_auth(app)``: CSRF-style guards for state-changing API requests
      (JSON content type, allowed Origin).

Security model:
    - Every /api/v1/* endpoint except login, register and health needs a
      bearer token.
    - The token's role is authoritative; the four roles are a closed set and
      each route names the roles it admits.
"""

import functools
import logging
from dataclasses import dataclass

from flask import current_app, g, jsonify, request

from app.core.exceptions import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str
    name: str | None = None


def current_identity() -> Identity:
    """Return the caller's identity or raise UnauthorizedError."""
    user_id = getattr(g, "current_user_id", None)
    role = getattr(g, "current_user_role", None)
    if user_id is None or role is None:
        raise UnauthorizedError()
    return Identity(user_id=user_id, role=role, name=getattr(g, "current_user_name", None))


# ── Route decorators ─────────────────────────────────────────────────────────

def require_auth(f):
    """Decorator: any authenticated role may call the endpoint."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        current_identity()
        return f(*args, **kwargs)
    return decorated


def require_role(*roles: str):
    """
    Decorator: only the listed roles may call the endpoint.

    Usage:
        @bp.route("/admin/requests")
        @require_role(ROLE_ADMIN)
        def list_all_requests(): ...
    """
    allowed = frozenset(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            identity = current_identity()
            if identity.role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access %s",
                    identity.role, request.path,
                    extra={"user_id": identity.user_id, "role": identity.role},
                )
                raise ForbiddenError()
            return f(*args, **kwargs)
        return decorated
    return decorator


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    State-changing requests with a body must be JSON. HTML forms cannot
    send application/json, so this doubles as a CSRF mitigation.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


def _check_origin():
    """Reject cross-site writes whose Origin is not an allowed CORS origin."""
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return None
    origin = request.headers.get("Origin")
    if not origin:
        return None
    allowed = current_app.config.get("CORS_ORIGINS", "*")
    if allowed == "*":
        return None
    host_url = request.host_url.rstrip("/")
    origins = {o.strip().rstrip("/") for o in allowed.split(",") if o.strip()}
    if origin.rstrip("/") == host_url or origin.rstrip("/") in origins:
        return None
    logger.warning("Blocked cross-origin %s %s from %s", request.method, request.path, origin)
    return jsonify({"error": "Cross-origin request blocked"}), 403


def init_auth(app):
    """Install the API request guards on the Flask app."""

    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        if request.path.startswith("/api/v1/health"):
            return None
        return _check_content_type() or _check_origin()
