"""
User Service — registration, login and staff account provisioning.
"""

import logging
import os

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import (
    DuplicateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.models import db
from app.models.auth import (
    ROLE_ADMIN,
    ROLE_IT_SPECIALIST,
    ROLE_QUALITY_EVALUATOR,
    ROLE_USER,
    ROLES,
    User,
)
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email: str | None) -> str:
    try:
        return validate_email((email or "").strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})


# ═══════════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════════
def create_user(name: str | None, email: str, password: str, role: str = ROLE_USER) -> User:
    """Create an account. Raises DuplicateError if the email is taken."""
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role!r}", details={"role": "invalid"})
    email = _normalize_email(email)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too_short"},
        )
    if User.query.filter_by(email=email).first():
        raise DuplicateError(f"User with email {email} already exists")

    user = User(
        name=(name or "").strip() or None,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User created id=%s role=%s", user.id, role)
    return user


def register_user(name: str | None, email: str, password: str) -> User:
    """Self-registration. New accounts always get the USER role."""
    return create_user(name, email, password, role=ROLE_USER)


def authenticate(email: str, password: str) -> User:
    """Return the user for valid credentials, else raise UnauthorizedError."""
    user = User.query.filter_by(email=(email or "").strip().lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", (email or "")[:3] + "***")
        raise UnauthorizedError("Invalid email or password")
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def ensure_user(name: str, email: str, password: str, role: str) -> tuple[User, bool]:
    """Idempotent provisioning used by the seed command. Returns (user, created)."""
    existing = User.query.filter_by(email=email.lower()).first()
    if existing:
        return existing, False
    return create_user(name, email, password, role=role), True


# (name, email, role, password env var, fallback password)
DEFAULT_ACCOUNTS = (
    ("Administratorius", "admin@example.com", ROLE_ADMIN, "SEED_ADMIN_PASSWORD", "admin123"),
    ("Kokybės vertintojas", "quality@example.com", ROLE_QUALITY_EVALUATOR,
     "SEED_QUALITY_PASSWORD", "quality123"),
    ("IT Specialistas", "it@example.com", ROLE_IT_SPECIALIST, "SEED_IT_PASSWORD", "it123456"),
    ("Testas Vartotojas", "user@example.com", ROLE_USER, "SEED_USER_PASSWORD", "user123"),
)


def seed_default_users() -> list[tuple[User, bool]]:
    """Provision one account per role for a fresh install."""
    return [
        ensure_user(name, email, os.getenv(env_var, fallback), role)
        for name, email, role, env_var, fallback in DEFAULT_ACCOUNTS
    ]
