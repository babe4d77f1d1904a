"""DateTime normalization utilities for calendar invite generation.

All instants leave this module as timezone-aware UTC datetimes, and are
rendered in the RFC 5545 basic UTC form ``YYYYMMDDTHHMMSSZ``.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

BASIC_UTC_FORMAT = "%Y%m%dT%H%M%SZ"

_BASIC_UTC_RE = re.compile(r"^\d{8}T\d{6}Z$")

DateTimeInput = Union[datetime, str]


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def is_basic_utc(value: str) -> bool:
    """Check whether a string is already in basic UTC format."""
    return bool(_BASIC_UTC_RE.match(value))


def resolve_timezone(name: str) -> ZoneInfo:
    """Look up an IANA timezone.

    Raises:
        ValueError: If the name is not a known timezone
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name!r}") from e


def to_utc(value: DateTimeInput, default_timezone: str = "UTC") -> datetime:
    """Normalize a datetime or date/time string to an aware UTC datetime.

    Naive values are interpreted in ``default_timezone``. Sub-second precision
    is dropped because the basic format cannot carry it, and a CANCEL must
    reproduce the REQUEST instant exactly.

    Args:
        value: Aware or naive datetime, basic UTC string, or ISO-8601 string
        default_timezone: IANA timezone for naive values

    Returns:
        Aware UTC datetime with microseconds cleared

    Raises:
        ValueError: If the value cannot be parsed or the timezone is unknown
    """
    if isinstance(value, str):
        text = value.strip()
        if is_basic_utc(text):
            dt = datetime.strptime(text, BASIC_UTC_FORMAT).replace(tzinfo=UTC)
        else:
            try:
                dt = date_parser.isoparse(text)
            except (ValueError, OverflowError) as e:
                raise ValueError(f"Unparseable date/time: {value!r}") from e
    elif isinstance(value, datetime):
        dt = value
    else:
        raise ValueError(f"Expected datetime or string, got {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=resolve_timezone(default_timezone))
        logger.debug("Interpreted naive datetime %s in %s", dt, default_timezone)

    return dt.astimezone(UTC).replace(microsecond=0)


def format_utc(dt: datetime) -> str:
    """Format an aware datetime in basic UTC form.

    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime(BASIC_UTC_FORMAT)


def parse_basic_utc(value: str) -> datetime:
    """Parse a basic UTC string such as ``20241215T140000Z``.

    Raises:
        ValueError: If the string is not in basic UTC format
    """
    if not is_basic_utc(value):
        raise ValueError(f"Not a basic UTC date/time: {value!r}")
    return datetime.strptime(value, BASIC_UTC_FORMAT).replace(tzinfo=UTC)
