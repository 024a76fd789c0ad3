"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Survey not found")
    return api_error(E.VALIDATION_REQUIRED, "roomId is required")

Domain exceptions raised by services are turned into the same body shape
by ``register_error_handlers``.
"""

from __future__ import annotations

import logging

from flask import jsonify

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Identity – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    INVALID_STATUS = "ERR_INVALID_STATUS"
    INACTIVE = "ERR_INACTIVE"

    # Chat PIN – HTTP 401 / 429
    INVALID_PIN = "ERR_INVALID_PIN"
    PIN_BLOCKED = "ERR_PIN_BLOCKED"
    PIN_TOO_MANY_ATTEMPTS = "ERR_PIN_TOO_MANY_ATTEMPTS"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Rate limiting – HTTP 429
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.INVALID_STATUS: 400,
    E.INACTIVE: 400,
    E.INVALID_PIN: 401,
    E.PIN_BLOCKED: 429,
    E.PIN_TOO_MANY_ATTEMPTS: 429,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the UI.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload. Its keys are also copied to the top level
        so clients can read e.g. ``remainingMinutes`` directly.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details
        for key, value in details.items():
            body.setdefault(key, value)

    return jsonify(body), http_status


def register_error_handlers(app):
    """Map domain exceptions and stray errors to JSON responses app-wide."""
    from werkzeug.exceptions import HTTPException

    from app.core.exceptions import AppError

    @app.errorhandler(AppError)
    def _handle_app_error(error: AppError):
        if error.status_code in (403, 429):
            logger.warning("%s: %s", type(error).__name__, error)
        return api_error(error.code, str(error), status=error.status_code, details=error.details)

    @app.errorhandler(HTTPException)
    def _handle_http_error(error: HTTPException):
        if error.code == 429:
            return api_error(E.RATE_LIMITED, "Too many requests", status=429,
                             details={"retryAfter": str(error.description)})
        return jsonify({"error": error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        from flask import request

        from app.models import db

        db.session.rollback()
        logger.exception("Unexpected error endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, "Internal server error", status=500)
