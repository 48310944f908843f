"""Parsers for provider-formatted scalar values."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from relcache.constants import PROVIDER_TIME_FORMAT
from relcache.errors import ParseError

TIME_FORMATS = (
    PROVIDER_TIME_FORMAT,
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
)


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the provider's minute-precision UTC format."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(PROVIDER_TIME_FORMAT)


def parse_timestamp(value: Any, field: str = "creationTime") -> int:
    """Parse a provider timestamp into epoch milliseconds.

    Raises:
        ParseError: If the value matches none of the known formats
    """
    if isinstance(value, datetime):
        parsed = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    if not isinstance(value, str):
        raise ParseError(field, value)
    for fmt in TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return int(parsed.timestamp() * 1000)
    raise ParseError(field, value)


def parse_int(value: Any, field: str) -> Optional[int]:
    """Parse an integer field; None stays None.

    Raises:
        ParseError: If the value is not an integer
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ParseError(field, value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ParseError(field, value)
