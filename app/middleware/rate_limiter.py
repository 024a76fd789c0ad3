"""
Rate limiting configuration.

Two layers share the storage configured by RATELIMIT_STORAGE_URI (Redis in
production, so every app instance sees the same counters):

  * Flask-Limiter limits applied per blueprint by ``init_rate_limits``:
      - API blueprints:    API_RATE_LIMIT   (default 100 per 15 minutes per IP)
      - chat_bp.verify_pin: PIN_RATE_LIMIT   (default 10 per minute per IP)
      - health:            exempt
  * ``check_rate_limit(key, window_seconds, max_count)`` for ad-hoc keys that
    are not tied to a route, e.g. login attempts per (IP, email).

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import current_app, request
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

_EXTENSION_KEY = "adhoc_rate_limiter"

# Blueprints that get the general API limit
_API_BLUEPRINTS = (
    "auth_bp", "requests_bp", "tasks_bp", "attachments_bp", "chat_bp",
    "analytics_bp", "feedback_bp", "quality_bp", "surveys_bp",
)


def client_ip() -> str:
    """First X-Forwarded-For hop, else the socket peer address."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply per-blueprint limits. Disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    api_limit = app.config["API_RATE_LIMIT"]
    for bp_name in _API_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(api_limit, key_func=client_ip)(bp)

    pin_view = app.view_functions.get("chat_bp.verify_pin")
    if pin_view is not None:
        app.view_functions["chat_bp.verify_pin"] = limiter.limit(
            app.config["PIN_RATE_LIMIT"], key_func=client_ip,
        )(pin_view)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — api: %s, verify-pin: %s",
                    api_limit, app.config["PIN_RATE_LIMIT"])


def _adhoc_limiter(app) -> FixedWindowRateLimiter:
    strategy = app.extensions.get(_EXTENSION_KEY)
    if strategy is None:
        storage = storage_from_string(app.config.get("RATELIMIT_STORAGE_URI", "memory://"))
        strategy = FixedWindowRateLimiter(storage)
        app.extensions[_EXTENSION_KEY] = strategy
    return strategy


def check_rate_limit(key: str, window_seconds: int, max_count: int) -> bool:
    """Count one hit for ``key``; False once ``max_count`` is exceeded in the window."""
    item = RateLimitItemPerSecond(max_count, window_seconds)
    allowed = _adhoc_limiter(current_app._get_current_object()).hit(item, "adhoc", key)
    if not allowed:
        logger.warning("Rate limit exceeded for key=%s", key)
    return allowed
