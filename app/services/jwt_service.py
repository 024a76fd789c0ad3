"""
JWT Service — access token generation and verification.

Access token lifetime: 24 hours (configurable via JWT_ACCESS_EXPIRES)
Algorithm:             HS256

Token payload:
{
    "sub": "<user_id>",       # string, as required by PyJWT >= 2.10
    "role": "IT_SPECIALIST",
    "name": "<display name>",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 86400
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def generate_access_token(user_id: int, role: str, name: str | None = None) -> str:
    """Sign an access token asserting the user's id and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> dict:
    """
    Decode and verify a JWT.

    Returns the payload dict on success.
    Raises jwt.InvalidTokenError subclasses on failure (expired, bad
    signature, wrong token type).
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")
    return payload


def decode_access_token(token: str) -> dict:
    return decode_token(token, expected_type="access")


def token_response(user) -> dict:
    """Login/register response body for a freshly authenticated user."""
    return {
        "access_token": generate_access_token(user.id, user.role, user.name),
        "token_type": "Bearer",
        "expires_in": _get_access_expires(),
        "user": user.to_dict(),
    }
