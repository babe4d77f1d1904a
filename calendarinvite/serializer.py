"""RFC 5545 serializer for REQUEST and CANCEL calendar payloads.

The output is byte-exact: CRLF line endings, no trailing blank line, every
content line folded at 75 octets, all instants in basic UTC form with no
TZID parameter. UID, DTSTART, DTEND and ORGANIZER are a pure function of the
event, so a CANCEL rendered from a cancelled copy of an event reproduces
those lines of the REQUEST exactly. Only DTSTAMP depends on the clock.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Optional

from .datetime_utils import format_utc, now_utc
from .exceptions import MalformedInputError
from .models import (
    DEFAULT_ORGANIZER,
    Attendee,
    AttendeeRole,
    CalendarEvent,
    CalendarInvite,
    InviteMethod,
    Organizer,
    ParticipationStatus,
)
from .text import (
    CRLF,
    escape_text,
    fold_line,
    quote_param_value,
    split_content_lines,
    unquote_param_value,
)

logger = logging.getLogger(__name__)

DEFAULT_PRODID = "-//CalendarInvite//Email Calendar//EN"
DEFAULT_CANCELLATION_NOTICE = "This meeting has been cancelled."
CANCELLED_SUFFIX = " (Cancelled)"

_RSVP_BY_ROLE = {
    AttendeeRole.REQUIRED: "TRUE",
    AttendeeRole.OPTIONAL: "FALSE",
    AttendeeRole.NON_PARTICIPANT: "FALSE",
}


def rsvp_for_role(role: AttendeeRole) -> str:
    """Return the RSVP parameter for a role.

    Optional and non-participants are not asked to respond.
    """
    try:
        return _RSVP_BY_ROLE[AttendeeRole(role)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unsupported attendee role: {role!r}") from e


def format_organizer_line(organizer: Organizer) -> str:
    """Return the unfolded ORGANIZER content line."""
    return f"ORGANIZER;CN={quote_param_value(organizer.name)}:mailto:{organizer.email}"


def format_attendee_line(attendee: Attendee) -> str:
    """Return the unfolded ATTENDEE content line."""
    partstat = attendee.participation_status or ParticipationStatus.NEEDS_ACTION
    return (
        f"ATTENDEE;CN={quote_param_value(attendee.display_name)}"
        f";ROLE={AttendeeRole(attendee.role).value}"
        f";RSVP={rsvp_for_role(attendee.role)}"
        f";PARTSTAT={ParticipationStatus(partstat).value}"
        f":mailto:{attendee.email}"
    )


def _split_params(params: str) -> list[str]:
    """Split a parameter section on semicolons that are not escaped or quoted.

    Backslash escapes only count outside double quotes.
    """
    parts = []
    current = []
    quoted = False
    i = 0
    while i < len(params):
        ch = params[i]
        if ch == "\\" and not quoted and i + 1 < len(params):
            current.append(params[i : i + 2])
            i += 2
            continue
        if ch == '"':
            quoted = not quoted
        if ch == ";" and not quoted:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    parts.append("".join(current))
    return parts


def parse_organizer_line(text: str) -> Organizer:
    """Recover the organizer from an ORGANIZER line or a whole payload.

    Folded input is unfolded first. The CN parameter is unquoted and its
    caret escapes decoded; when it is missing the name is empty.

    Raises:
        MalformedInputError: If no ORGANIZER line with a mailto address exists
    """
    line = next(
        (
            candidate
            for candidate in split_content_lines(text)
            if candidate.upper().startswith(("ORGANIZER;", "ORGANIZER:"))
        ),
        None,
    )
    if line is None:
        raise MalformedInputError("No ORGANIZER line found")

    idx = line.lower().rfind(":mailto:")
    if idx == -1:
        raise MalformedInputError(f"ORGANIZER line has no mailto address: {line!r}")
    email = line[idx + len(":mailto:") :]
    params = line[len("ORGANIZER") : idx]

    name = ""
    for param in _split_params(params.lstrip(";")):
        key, sep, value = param.partition("=")
        if sep and key.upper() == "CN":
            name = unquote_param_value(value)
            break
    return Organizer(name=name, email=email)


def invite_filename(summary: Optional[str]) -> str:
    """Derive an attachment filename from the summary."""
    stem = re.sub(r"[^A-Za-z0-9]", "", summary or "")
    return f"{stem or 'event'}.ics"


class IcsSerializer:
    """Render calendar events to RFC 5545 text.

    The serializer holds no mutable state and may be shared between threads.
    """

    def __init__(
        self,
        prodid: str = DEFAULT_PRODID,
        default_organizer: Optional[Organizer] = None,
        cancellation_notice: str = DEFAULT_CANCELLATION_NOTICE,
        clock: Callable[[], datetime] = now_utc,
    ):
        """Initialize serializer.

        Args:
            prodid: PRODID value emitted in every payload
            default_organizer: Organizer used when an event has none
            cancellation_notice: Paragraph prepended to CANCEL descriptions
            clock: Source of the DTSTAMP instant
        """
        self.prodid = prodid
        self.default_organizer = default_organizer or DEFAULT_ORGANIZER
        self.cancellation_notice = cancellation_notice
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], datetime]] = None) -> "IcsSerializer":
        """Build a serializer from ``InviteSettings``."""
        return cls(
            prodid=settings.prodid,
            default_organizer=Organizer(
                name=settings.organizer_name, email=settings.organizer_email
            ),
            cancellation_notice=settings.cancellation_notice,
            clock=clock or now_utc,
        )

    def _organizer_for(self, event: CalendarEvent) -> Organizer:
        if event.organizer is not None:
            return event.organizer
        logger.warning("Event %s has no organizer; using default organizer", event.uid)
        return self.default_organizer

    def organizer_line(self, event: CalendarEvent) -> str:
        """Return the unfolded ORGANIZER line the event renders with."""
        if event.organizer_line:
            return event.organizer_line
        return format_organizer_line(self._organizer_for(event))

    def _summary_text(self, event: CalendarEvent) -> str:
        summary = event.summary or ""
        if event.method == InviteMethod.CANCEL:
            return (summary + CANCELLED_SUFFIX).lstrip()
        return summary

    def _description_text(self, event: CalendarEvent) -> str:
        description = event.description or ""
        if event.method == InviteMethod.CANCEL:
            if description:
                return f"{self.cancellation_notice}\n\n{description}"
            return self.cancellation_notice
        return description

    def _attendee_lines(self, event: CalendarEvent) -> list[str]:
        if event.attendees:
            return [format_attendee_line(attendee) for attendee in event.attendees]

        # Some clients ignore a calendar object without any ATTENDEE
        if event.organizer is None and event.organizer_line:
            organizer = parse_organizer_line(event.organizer_line)
        else:
            organizer = self._organizer_for(event)
        logger.debug("Event %s has no attendees; adding organizer as attendee", event.uid)
        return [
            format_attendee_line(
                Attendee(
                    email=organizer.email,
                    name=organizer.name or None,
                    role=AttendeeRole.REQUIRED,
                    participation_status=ParticipationStatus.NEEDS_ACTION,
                )
            )
        ]

    def content_lines(self, event: CalendarEvent, dtstamp: Optional[datetime] = None) -> list[str]:
        """Return the unfolded content lines of the payload, in output order."""
        stamp = dtstamp or self.clock()
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{self.prodid}",
            "CALSCALE:GREGORIAN",
            f"METHOD:{InviteMethod(event.method).value}",
            "BEGIN:VEVENT",
            f"UID:{event.uid}",
            f"SEQUENCE:{event.sequence}",
            f"DTSTAMP:{format_utc(stamp)}",
            f"DTSTART:{format_utc(event.start)}",
            f"DTEND:{format_utc(event.end)}",
            f"SUMMARY:{escape_text(self._summary_text(event))}",
            f"DESCRIPTION:{escape_text(self._description_text(event))}",
        ]
        if event.location:
            lines.append(f"LOCATION:{escape_text(event.location)}")
        lines.append(self.organizer_line(event))
        lines.extend(self._attendee_lines(event))
        lines.extend(
            [
                f"STATUS:{event.status.value}",
                "END:VEVENT",
                "END:VCALENDAR",
            ]
        )
        return lines

    def render(self, event: CalendarEvent, dtstamp: Optional[datetime] = None) -> str:
        """Render an event to its folded, CRLF-joined payload."""
        payload = CRLF.join(fold_line(line) for line in self.content_lines(event, dtstamp))
        logger.debug(
            "Rendered %s for %s (SEQUENCE:%d, %d octets)",
            event.method.value,
            event.uid,
            event.sequence,
            len(payload.encode("utf-8")),
        )
        return payload

    def build_invite(self, event: CalendarEvent, dtstamp: Optional[datetime] = None) -> CalendarInvite:
        """Render an event into an attachment-ready invite."""
        method = InviteMethod(event.method)
        return CalendarInvite(
            filename=invite_filename(event.summary),
            content=self.render(event, dtstamp),
            content_type=f"text/calendar; method={method.value}; charset=UTF-8",
            method=method,
            uid=event.uid,
            sequence=event.sequence,
        )


_default_serializer = IcsSerializer()


def render_event(event: CalendarEvent, dtstamp: Optional[datetime] = None) -> str:
    """Render an event with the default serializer settings."""
    return _default_serializer.render(event, dtstamp)


def build_invite(event: CalendarEvent, dtstamp: Optional[datetime] = None) -> CalendarInvite:
    """Build an invite with the default serializer settings."""
    return _default_serializer.build_invite(event, dtstamp)
