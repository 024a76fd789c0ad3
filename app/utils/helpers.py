"""Shared utility functions used by services and blueprints.

utcnow:           naive UTC timestamp (every DateTime column stores naive UTC)
round_half_up:    integer rounding where .5 always goes up (33.5 -> 34, 12.5 -> 13)
round2:           two-decimal rounding for rating averages
parse_datetime:   ISO date / datetime parsing for task schedule fields
parse_id:         integer id from a JSON body or query string
"""
import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time without tzinfo.

    SQLite drops tzinfo on round-trip, so all stored timestamps are kept
    naive to make comparisons safe on every backend.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Python's round() uses banker's rounding (round(12.5) == 12); percentages
    and average durations here must round 12.5 to 13.
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round2(value: float) -> float:
    """Round to two decimals (half up), returned as float."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def parse_datetime(value):
    """Parse an ISO date or datetime string into a naive UTC datetime.

    Returns None for empty or invalid input. Aware datetimes are converted
    to UTC before the tzinfo is dropped. A trailing ``Z`` is accepted.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.combine(date.fromisoformat(text[:10]), datetime.min.time())
            except ValueError:
                return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def isoformat(value):
    """ISO string for a datetime or None; used by every to_dict()."""
    return value.isoformat() if value else None


def parse_id(value, field: str) -> int:
    """Coerce an id taken from a body or query string; ValidationError if absent or not numeric."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"})


def parse_bool(value, field: str, default=None):
    """A JSON boolean from a body. Absent (None) gives ``default``; strings such as "false" are rejected."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false", details={field: "invalid"})
    return value
