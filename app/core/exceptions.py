"""
Application-wide exception hierarchy.

Services raise these types and never build HTTP responses themselves.
``app.utils.errors.register_error_handlers`` maps every ``AppError``
subclass to a structured JSON failure once, so each blueprint gets the
same status codes and body shape.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Task", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})
"""

from app.utils.errors import E


class AppError(Exception):
    """Base for all domain errors surfaced to API callers.

    Attributes:
        status_code: HTTP status used by the boundary handler.
        code: Machine-readable ``E.*`` constant.
        details: Extra structured payload merged into the response body.
    """

    status_code = 400
    code = E.VALIDATION_INVALID

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)


class UnauthorizedError(AppError):
    """No identity on the request."""

    status_code = 401
    code = E.UNAUTHORIZED

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    """Identity present, but role or ownership is insufficient."""

    status_code = 403
    code = E.FORBIDDEN

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    """Raised when a requested entity does not exist.

    Also used for subtask operations on another specialist's task, so the
    response does not confirm that the task exists.

    Args:
        resource: Human-readable entity name (e.g. "Task", "ChatRoom").
        resource_id: The key that was looked up. Kept for logs.
    """

    status_code = 404
    code = E.NOT_FOUND

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ValidationError(AppError):
    """Malformed or out-of-range input (empty title, non-4-digit PIN, ...)."""

    status_code = 400
    code = E.VALIDATION_INVALID


class InvalidStatusError(ValidationError):
    """A status value outside the accepted set."""

    code = E.INVALID_STATUS

    def __init__(self, status, allowed) -> None:
        self.status = status
        super().__init__(
            f"Invalid status: {status!r}",
            details={"allowed": list(allowed)},
        )


class InvalidPinError(AppError):
    """Wrong chat PIN; the caller may still retry."""

    status_code = 401
    code = E.INVALID_PIN

    def __init__(self, attempts: int, remaining_attempts: int) -> None:
        self.attempts = attempts
        self.remaining_attempts = remaining_attempts
        super().__init__(
            "Incorrect PIN",
            details={"attempts": attempts, "remainingAttempts": remaining_attempts},
        )


class BlockedError(AppError):
    """The (user, room) pair is inside a lockout window."""

    status_code = 429
    code = E.PIN_BLOCKED

    def __init__(self, remaining_minutes: int, message: str | None = None) -> None:
        self.remaining_minutes = remaining_minutes
        super().__init__(
            message or f"Too many failed attempts. Try again in {remaining_minutes} min.",
            details={"blocked": True, "remainingMinutes": remaining_minutes},
        )


class TooManyAttemptsError(BlockedError):
    """The attempt that just failed started a new lockout window."""

    code = E.PIN_TOO_MANY_ATTEMPTS

    def __init__(self, block_minutes: int) -> None:
        super().__init__(
            block_minutes,
            message=f"Too many failed attempts. Access blocked for {block_minutes} min.",
        )


class DuplicateError(AppError):
    """The operation may happen only once (e.g. answering a survey)."""

    status_code = 409
    code = E.CONFLICT_DUPLICATE


class InactiveError(AppError):
    """The target exists but is switched off (e.g. an inactive survey)."""

    status_code = 400
    code = E.INACTIVE


class ConflictError(AppError):
    """Reserved for optimistic-lock style conflicts."""

    status_code = 409
    code = E.CONFLICT_STATE
