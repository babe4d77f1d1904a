"""Lifecycle transitions: REQUEST -> REQUEST(n+1) -> CANCEL.

Transitions are pure; they return new events and never touch the original.
The one contract that matters most: a cancellation carries ``uid``,
``start``, ``end`` and the organizer identity of the event it cancels
unchanged, and bumps ``sequence`` by exactly one. Clients silently ignore a
CANCEL that breaks it.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

import pydantic

from .datetime_utils import to_utc
from .event_factory import check_email, validate_event
from .exceptions import InvalidDateTimeError, MalformedInputError, ValidationError
from .models import (
    DEFAULT_ORGANIZER,
    Attendee,
    AttendeeRole,
    CalendarEvent,
    EventSnapshot,
    EventStatus,
    InviteMethod,
    Organizer,
    ParticipationStatus,
)
from .serializer import parse_organizer_line

logger = logging.getLogger(__name__)

# Fields an update may change; uid, sequence and method are managed here.
_PATCHABLE_FIELDS = frozenset(
    {
        "summary",
        "description",
        "location",
        "start",
        "end",
        "status",
        "organizer",
        "attendees",
    }
)
_MANAGED_FIELDS = frozenset({"uid", "sequence", "method", "organizer_line"})


def _coerce_attendees(values: Iterable[Union[Attendee, str, Mapping[str, Any]]]) -> tuple[Attendee, ...]:
    attendees = []
    for value in values:
        if isinstance(value, Attendee):
            attendees.append(value)
        elif isinstance(value, str):
            attendees.append(Attendee(email=value))
        else:
            attendees.append(Attendee(**value))
    return tuple(attendees)


def update_event(
    original: CalendarEvent,
    patch: Optional[Mapping[str, Any]] = None,
    *,
    default_timezone: str = "UTC",
    **changes: Any,
) -> CalendarEvent:
    """Return an updated REQUEST for ``original``.

    Fields in ``patch`` (or keyword ``changes``) override the original.
    ``uid`` is never overridable and is ignored if present, as are
    ``sequence`` and ``method``: the result always has
    ``sequence = original.sequence + 1`` and ``method = REQUEST``. Updating
    a cancelled event reinstates it as CONFIRMED unless ``status`` is patched.

    Raises:
        ValidationError: If a patched field is unknown or the result is invalid
    """
    merged = dict(patch or {})
    merged.update(changes)

    update: dict[str, Any] = {}
    for key, value in merged.items():
        if key in _MANAGED_FIELDS:
            logger.debug("Ignoring managed field %r in update of %s", key, original.uid)
            continue
        if key not in _PATCHABLE_FIELDS:
            raise ValidationError(key, f"Unknown event field: {key!r}")
        if key in ("start", "end"):
            try:
                value = to_utc(value, default_timezone)
            except ValueError as e:
                raise InvalidDateTimeError(key, f"Invalid {key}: {e}") from e
        elif key == "attendees":
            try:
                value = _coerce_attendees(value or ())
            except pydantic.ValidationError as e:
                raise ValidationError(key, f"Invalid attendees: {e}") from e
        elif key == "organizer" and isinstance(value, Mapping):
            try:
                value = Organizer(**value)
            except pydantic.ValidationError as e:
                raise ValidationError(key, f"Invalid organizer: {e}") from e
        elif key == "status":
            try:
                value = EventStatus(value)
            except ValueError as e:
                raise ValidationError(key, f"Invalid status: {value!r}") from e
        update[key] = value

    if "organizer" in update and update["organizer"] != original.organizer:
        # a stored ORGANIZER line no longer describes the new organizer
        update["organizer_line"] = None

    if original.method == InviteMethod.CANCEL and "status" not in update:
        # a REQUEST after a CANCEL reinstates the meeting
        update["status"] = EventStatus.CONFIRMED
        logger.info("Reinstating cancelled event %s", original.uid)

    update["sequence"] = original.sequence + 1
    update["method"] = InviteMethod.REQUEST

    updated = validate_event(original.model_copy(update=update))
    logger.info("Updated event %s to SEQUENCE:%d", updated.uid, updated.sequence)
    return updated


def cancel_event(
    original: CalendarEvent, default_organizer: Optional[Organizer] = None
) -> CalendarEvent:
    """Return the CANCEL for ``original``.

    ``uid``, ``start``, ``end``, the organizer and any stored ORGANIZER line
    are copied verbatim. When the original has no organizer at all, the
    configured default organizer is substituted, because Outlook needs a
    populated ORGANIZER line.

    Args:
        original: Event being cancelled
        default_organizer: Sending identity, usually built from settings
    """
    organizer = original.organizer
    if organizer is None and not original.organizer_line:
        organizer = default_organizer or DEFAULT_ORGANIZER
        logger.warning(
            "Cancelling %s without a recorded organizer; using %s", original.uid, organizer.email
        )
    if original.method == InviteMethod.CANCEL:
        logger.warning("Event %s is already cancelled; issuing another CANCEL", original.uid)

    cancelled = original.model_copy(
        update={
            "method": InviteMethod.CANCEL,
            "status": EventStatus.CANCELLED,
            "sequence": original.sequence + 1,
            "organizer": organizer,
        }
    )
    logger.info("Cancelled event %s at SEQUENCE:%d", cancelled.uid, cancelled.sequence)
    return cancelled


def event_from_snapshot(
    snapshot: EventSnapshot,
    *,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    location: Optional[str] = None,
    attendees: Optional[Iterable[Union[Attendee, str]]] = None,
) -> CalendarEvent:
    """Rebuild the last known REQUEST from a stored snapshot.

    The stored ORGANIZER line is kept verbatim so that a CANCEL rendered from
    the result is byte-identical to the original on that line. Attendees and
    free text may be re-specified for the cancellation notice.

    Raises:
        InvalidDateTimeError: If the stored start/end cannot be parsed
        ValidationError: If the rebuilt event is invalid
    """
    try:
        start = to_utc(snapshot.dtstart)
        end = to_utc(snapshot.dtend)
    except ValueError as e:
        raise InvalidDateTimeError("dtstart", f"Stored date/time is invalid: {e}") from e

    organizer: Optional[Organizer] = None
    organizer_line = snapshot.organizer_line or None
    if organizer_line:
        try:
            organizer = parse_organizer_line(organizer_line)
        except MalformedInputError:
            logger.warning(
                "Stored ORGANIZER line for %s is unreadable; rendering default organizer",
                snapshot.uid,
            )
            organizer_line = None

    attendee_list = []
    for index, value in enumerate(attendees or ()):
        if isinstance(value, Attendee):
            attendee_list.append(value)
        else:
            attendee_list.append(
                Attendee(
                    email=check_email(value, f"attendees[{index}].email"),
                    role=AttendeeRole.REQUIRED,
                    participation_status=ParticipationStatus.NEEDS_ACTION,
                )
            )

    event = CalendarEvent(
        uid=snapshot.uid,
        sequence=snapshot.sequence,
        method=InviteMethod.REQUEST,
        status=EventStatus.CONFIRMED,
        summary=summary,
        description=description,
        location=location,
        start=start,
        end=end,
        organizer=organizer,
        attendees=tuple(attendee_list),
        organizer_line=organizer_line,
    )
    return validate_event(event)
