"""Read back rendered payloads with the icalendar library.

Used to check that what the serializer produced is understood by an
independent RFC 5545 parser, and to summarize payloads on the command line.
"""

import logging
from typing import Any, Optional

from icalendar import Calendar

from .datetime_utils import format_utc
from .exceptions import MalformedInputError
from .models import Attendee, AttendeeRole, ParticipationStatus
from .text import ensure_text

logger = logging.getLogger(__name__)


def parse_calendar(content: str | bytes) -> Calendar:
    """Parse a payload into an icalendar ``Calendar``.

    Raises:
        MalformedInputError: If the payload is not a parseable VCALENDAR
    """
    text = ensure_text(content)
    if "BEGIN:VCALENDAR" not in text or "END:VCALENDAR" not in text:
        raise MalformedInputError("Payload is not a VCALENDAR object")
    try:
        calendar = Calendar.from_ical(text)
    except Exception as e:
        raise MalformedInputError(f"Unparseable calendar payload: {e}") from e
    logger.debug("Parsed calendar payload: %d bytes", len(text.encode("utf-8")))
    return calendar


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _strip_mailto(value: Any) -> str:
    text = str(value)
    if text.lower().startswith("mailto:"):
        return text[len("mailto:") :]
    return text


def parse_attendee(prop: Any) -> Optional[Attendee]:
    """Convert an icalendar ATTENDEE property into an ``Attendee``.

    Unknown ROLE or PARTSTAT values fall back to required / needs-action.
    """
    email = _strip_mailto(prop)
    if not email:
        return None
    params = getattr(prop, "params", {})

    try:
        role = AttendeeRole(params.get("ROLE", AttendeeRole.REQUIRED.value))
    except ValueError:
        logger.debug("Unknown ROLE %r for %s", params.get("ROLE"), email)
        role = AttendeeRole.REQUIRED

    try:
        partstat = ParticipationStatus(params.get("PARTSTAT", ParticipationStatus.NEEDS_ACTION.value))
    except ValueError:
        logger.debug("Unknown PARTSTAT %r for %s", params.get("PARTSTAT"), email)
        partstat = ParticipationStatus.NEEDS_ACTION

    return Attendee(email=email, name=params.get("CN"), role=role, participation_status=partstat)


def summarize_calendar(content: str | bytes) -> dict[str, Any]:
    """Return the key properties of the first VEVENT of a payload.

    Raises:
        MalformedInputError: If the payload cannot be parsed or has no VEVENT
    """
    calendar = parse_calendar(content)
    events = [component for component in calendar.walk() if component.name == "VEVENT"]
    if not events:
        raise MalformedInputError("Calendar payload contains no VEVENT")
    event = events[0]

    organizer = event.get("ORGANIZER")
    attendees = [
        attendee
        for attendee in (parse_attendee(prop) for prop in _as_list(event.get("ATTENDEE")))
        if attendee is not None
    ]

    dtstart = event.get("DTSTART")
    dtend = event.get("DTEND")
    return {
        "method": str(calendar.get("METHOD", "")),
        "prodid": str(calendar.get("PRODID", "")),
        "uid": str(event.get("UID", "")),
        "sequence": int(event.get("SEQUENCE", 0)),
        "status": str(event.get("STATUS", "")),
        "summary": str(event.get("SUMMARY", "")),
        "description": str(event.get("DESCRIPTION", "")),
        "location": str(event.get("LOCATION", "")) if event.get("LOCATION") is not None else None,
        "dtstart": format_utc(dtstart.dt) if dtstart is not None else None,
        "dtend": format_utc(dtend.dt) if dtend is not None else None,
        "organizer": {
            "name": organizer.params.get("CN", "") if organizer is not None else "",
            "email": _strip_mailto(organizer) if organizer is not None else "",
        },
        "attendees": [attendee.model_dump(mode="json") for attendee in attendees],
        "event_count": len(events),
    }
