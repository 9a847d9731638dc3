"""Canonical wire timestamp parsing.

Hey future me - the backend has been seen sending dates in TWO shapes:
    "2025-03-14T18:30:00Z"           <- ISO-8601, the canonical format
    [2025, 3, 14, 18, 30, 0]         <- Java LocalDateTime leaking through Jackson
The array form is a serialization bug on the backend side. We do NOT guess at it
(is it local time? which zone?) - it is rejected with a ValidationError that names
the field, so the bug gets fixed where it lives instead of at every call site.
"""

from datetime import UTC, datetime
from typing import Any

from eventy.domain.exceptions import ValidationError


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 wire timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC.

    Args:
        value: Raw JSON value
        field_name: Field name used in the error message

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValidationError: If the value is not an ISO-8601 string
    """
    if isinstance(value, list | tuple):
        raise ValidationError(
            f"{field_name}: array timestamps are not accepted, expected ISO-8601 string "
            f"(got {list(value)!r})"
        )
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name}: expected ISO-8601 string, got {value!r}")

    text = value.strip()
    # fromisoformat() only learned "Z" in 3.11; normalize anyway for clarity
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"{field_name}: invalid ISO-8601 timestamp {value!r}") from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def parse_optional_timestamp(value: Any, field_name: str = "timestamp") -> datetime | None:
    """Like parse_timestamp() but maps null / missing to None."""
    if value is None:
        return None
    return parse_timestamp(value, field_name)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")
