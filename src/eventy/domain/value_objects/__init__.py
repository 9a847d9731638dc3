"""Value objects."""

from eventy.domain.value_objects.timestamps import (
    format_timestamp,
    parse_optional_timestamp,
    parse_timestamp,
)

__all__ = ["format_timestamp", "parse_optional_timestamp", "parse_timestamp"]
