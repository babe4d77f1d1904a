"""Validated construction of calendar events.

``create_event`` is the only supported way to build an event from raw form
input. It either returns a fully valid ``CalendarEvent`` or raises a
``ValidationError`` subclass naming the offending field.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Optional

import pydantic

from .config import InviteSettings
from .datetime_utils import DateTimeInput, to_utc
from .exceptions import (
    EmptyEmailError,
    InvalidDateTimeError,
    InvalidTimeRangeError,
    InvalidUidError,
    MalformedEmailError,
    MissingFieldError,
    MissingOrganizerEmailError,
    ValidationError,
)
from .models import (
    Attendee,
    AttendeeRole,
    CalendarEvent,
    EventStatus,
    InviteMethod,
    Organizer,
    ParticipationStatus,
    display_name_from_email,
)
from .text import ensure_text
from .uid import generate_uid, is_valid_uid

logger = logging.getLogger(__name__)


def check_email(value: Optional[str], field: str) -> str:
    """Validate an email address and return it stripped.

    Raises:
        EmptyEmailError: If the value is missing or blank
        MalformedEmailError: If the value is not ``local@domain``
    """
    email = (value or "").strip()
    if not email:
        raise EmptyEmailError(field, f"{field} is empty")
    if email.count("@") != 1:
        raise MalformedEmailError(field, f"{field} is not an email address: {email!r}")
    local, domain = email.split("@")
    if not local or not domain or any(ch.isspace() or ord(ch) < 32 for ch in email):
        raise MalformedEmailError(field, f"{field} is not an email address: {email!r}")
    return email


def _check_instant(value: Optional[DateTimeInput], field: str, default_timezone: str) -> datetime:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingFieldError(field, f"{field} is required")
    try:
        return to_utc(value, default_timezone)
    except ValueError as e:
        raise InvalidDateTimeError(field, f"Invalid {field}: {e}") from e


def _check_uid(uid: str) -> str:
    if not is_valid_uid(uid) or any(ch.isspace() or ord(ch) < 32 for ch in uid):
        raise InvalidUidError("uid", f"UID must contain exactly one '@': {uid!r}")
    return uid


def _build_attendees(
    emails: Optional[Sequence[str]],
    names: Optional[Sequence[Optional[str]]],
    role: AttendeeRole,
    field: str,
) -> list[Attendee]:
    attendees = []
    names = names or []
    for index, email in enumerate(emails or []):
        name = names[index] if index < len(names) else None
        attendees.append(
            Attendee(
                email=check_email(email, f"{field}[{index}].email"),
                name=name or None,
                role=role,
                participation_status=ParticipationStatus.NEEDS_ACTION,
            )
        )
    return attendees


def _resolve_organizer(
    name: Optional[str], email: Optional[str], settings: InviteSettings
) -> Organizer:
    if name is None and email is None:
        return Organizer(name=settings.organizer_name, email=settings.organizer_email)
    if email is None or not email.strip():
        raise MissingOrganizerEmailError("organizer.email", "Organizer email is required")
    email = check_email(email, "organizer.email")
    if not name:
        if email.lower() == settings.organizer_email.lower():
            name = settings.organizer_name
        else:
            name = display_name_from_email(email)
    return Organizer(name=name, email=email)


def _from_pydantic(exc: pydantic.ValidationError) -> ValidationError:
    """Convert the first pydantic error into a ValidationError naming its field."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "event"
    return ValidationError(field, first.get("msg", str(exc)))


def validate_event(event: CalendarEvent) -> CalendarEvent:
    """Check the invariants of an already constructed event.

    Returns:
        The same event

    Raises:
        ValidationError: On the first violated invariant
    """
    _check_uid(event.uid)
    if event.end <= event.start:
        raise InvalidTimeRangeError("end", "Event end must be after its start")
    if event.organizer is not None:
        if not event.organizer.email:
            raise MissingOrganizerEmailError("organizer.email", "Organizer email is required")
        check_email(event.organizer.email, "organizer.email")
    for index, attendee in enumerate(event.attendees):
        check_email(attendee.email, f"attendees[{index}].email")
    return event


def create_event(
    *,
    settings: InviteSettings,
    start: Optional[DateTimeInput],
    end: Optional[DateTimeInput],
    summary: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
    uid: Optional[str] = None,
    organizer_name: Optional[str] = None,
    organizer_email: Optional[str] = None,
    attendee_emails: Optional[Sequence[str]] = None,
    attendee_names: Optional[Sequence[Optional[str]]] = None,
    cc_emails: Optional[Sequence[str]] = None,
    cc_names: Optional[Sequence[Optional[str]]] = None,
    attendees: Optional[Iterable[Attendee]] = None,
    method: InviteMethod = InviteMethod.REQUEST,
    status: EventStatus = EventStatus.CONFIRMED,
    sequence: int = 0,
) -> CalendarEvent:
    """Build a validated calendar event from raw input.

    Direct recipients become required participants and CC recipients
    optional participants; explicit ``attendees`` come first. When neither
    organizer name nor email is given the configured sending identity is
    used. A UID is generated from the configured domain when absent.

    Raises:
        ValidationError: The specific subclass for the first invalid field
        MalformedInputError: If free text cannot be encoded as UTF-8
    """
    start_utc = _check_instant(start, "start", settings.default_timezone)
    end_utc = _check_instant(end, "end", settings.default_timezone)
    if end_utc <= start_utc:
        raise InvalidTimeRangeError(
            "end", f"Event end {end_utc.isoformat()} must be after start {start_utc.isoformat()}"
        )

    for text in (summary, description, location, organizer_name, *(attendee_names or ()), *(cc_names or ())):
        if text is not None:
            ensure_text(text)

    organizer = _resolve_organizer(organizer_name, organizer_email, settings)

    attendee_list: list[Attendee] = []
    for index, attendee in enumerate(attendees or []):
        email = check_email(attendee.email, f"attendees[{index}].email")
        attendee_list.append(attendee.model_copy(update={"email": email}))
    attendee_list.extend(
        _build_attendees(attendee_emails, attendee_names, AttendeeRole.REQUIRED, "attendee_emails")
    )
    attendee_list.extend(_build_attendees(cc_emails, cc_names, AttendeeRole.OPTIONAL, "cc_emails"))

    if uid is None:
        uid = generate_uid(settings.effective_uid_domain)
    else:
        uid = _check_uid(uid.strip())

    try:
        event = CalendarEvent(
            uid=uid,
            sequence=sequence,
            method=method,
            status=status,
            summary=summary,
            description=description,
            location=location,
            start=start_utc,
            end=end_utc,
            organizer=organizer,
            attendees=tuple(attendee_list),
        )
    except pydantic.ValidationError as e:
        raise _from_pydantic(e) from e

    logger.debug(
        "Created event %s (%d attendees, %s - %s)",
        uid,
        len(attendee_list),
        start_utc.isoformat(),
        end_utc.isoformat(),
    )
    return event
