"""
Input Validation

Synchronous checks applied before anything touches storage:
date ranges, CLI date strings and identity (sender / mention) references.
"""

import re
from datetime import datetime, time, timezone
from typing import Tuple, Union

DateInput = Union[datetime, str, None]

ACCEPTED_IDENTITY_FORMATS = "@username, username, <@U123456>, or U123456"

# Bracket ID, bare uppercase ID, or an optionally @-prefixed name made of
# letters (any script), digits, dots, hyphens and underscores.
_IDENTITY_PATTERN = re.compile(r"^(<@[A-Z0-9]+>|[A-Z][A-Z0-9]+|@?[\w.-]+)$")
_DATE_STRING_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidRangeError(ValueError):
    """Raised when a date bound is not a valid instant or start > end."""

    pass


class MalformedIdentityReferenceError(ValueError):
    """Raised when an identity filter string matches none of the accepted shapes."""

    pass


class InvalidDateFormatError(ValueError):
    """Raised when a CLI date is not a real YYYY-MM-DD date."""

    pass


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_instant(value: DateInput, bound: str) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value.strip():
        try:
            return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            pass
    raise InvalidRangeError(f"Invalid {bound} date: {value!r}")


def validate_date_range(start: DateInput, end: DateInput) -> Tuple[datetime, datetime]:
    """
    Validate a date range and normalize both bounds to aware UTC datetimes.

    Args:
        start: Inclusive lower bound (datetime or ISO-8601 string)
        end: Inclusive upper bound (datetime or ISO-8601 string)

    Returns:
        Tuple of (start, end) as UTC datetimes

    Raises:
        InvalidRangeError: If a bound is not a valid instant or start > end
    """
    start_dt = _coerce_instant(start, "start")
    end_dt = _coerce_instant(end, "end")
    if start_dt > end_dt:
        raise InvalidRangeError("Start date must be before or equal to end date")
    return start_dt, end_dt


def validate_identity_reference(reference: str) -> str:
    """
    Validate a sender or mention reference and return it trimmed.

    Raises:
        MalformedIdentityReferenceError: If the reference is empty or malformed
    """
    if reference is None or not reference.strip():
        raise MalformedIdentityReferenceError("User mention cannot be empty")

    trimmed = reference.strip()
    if not _IDENTITY_PATTERN.match(trimmed):
        raise MalformedIdentityReferenceError(
            f'Invalid user mention format: "{trimmed}". '
            f"Expected formats: {ACCEPTED_IDENTITY_FORMATS}"
        )
    return trimmed


def parse_date_string(date_str: str, param_name: str, end_of_day: bool = False) -> datetime:
    """
    Parse a YYYY-MM-DD string into a UTC datetime.

    Args:
        date_str: The date string
        param_name: Name used in error messages (e.g. "start date")
        end_of_day: Return 23:59:59.999999 instead of midnight

    Raises:
        InvalidDateFormatError: If the string is not a valid date
    """
    if not _DATE_STRING_PATTERN.match(date_str or ""):
        raise InvalidDateFormatError(
            f'Invalid {param_name} format: "{date_str}". Expected format: YYYY-MM-DD'
        )
    try:
        day = datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError as e:
        raise InvalidDateFormatError(
            f'Invalid {param_name}: "{date_str}". Please use a valid date in YYYY-MM-DD format'
        ) from e

    clock = time.max if end_of_day else time.min
    return datetime.combine(day, clock, tzinfo=timezone.utc)
