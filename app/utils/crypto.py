"""
Crypto utilities — bcrypt password hashing.

Supports both bcrypt ($2b$) hashes and werkzeug (scrypt/pbkdf2) hashes so
accounts imported from an earlier user store keep working.
"""

import bcrypt
from werkzeug.security import check_password_hash


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Check a plain-text password against a stored bcrypt or werkzeug hash."""
    if not password_hash or plain_password is None:
        return False
    if password_hash.startswith(("$2b$", "$2a$")):
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    return check_password_hash(password_hash, plain_password)
