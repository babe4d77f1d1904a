"""Snapshots of rendered invites for later cancellation.

A snapshot keeps exactly what a CANCEL must reproduce: UID, DTSTART, DTEND,
the last SEQUENCE and the ORGANIZER line as emitted, unfolded.
"""

import logging
import re
from typing import Optional

from .datetime_utils import format_utc
from .exceptions import MalformedInputError
from .models import CalendarEvent, EventSnapshot
from .serializer import IcsSerializer
from .text import ensure_text, split_content_lines

logger = logging.getLogger(__name__)

_SEQUENCE_RE = re.compile(r"^\d+$")


def snapshot_from_event(
    event: CalendarEvent, serializer: Optional[IcsSerializer] = None
) -> EventSnapshot:
    """Build the snapshot of ``event`` as ``serializer`` renders it."""
    serializer = serializer or IcsSerializer()
    return EventSnapshot(
        uid=event.uid,
        dtstart=format_utc(event.start),
        dtend=format_utc(event.end),
        sequence=event.sequence,
        organizer_line=serializer.organizer_line(event),
    )


def _property_value(lines: list[str], name: str) -> Optional[str]:
    prefix = f"{name}:"
    for line in lines:
        if line.upper().startswith(prefix):
            return line[len(prefix) :].strip()
    return None


def extract_snapshot_from_ics(content: str | bytes) -> EventSnapshot:
    """Extract a snapshot from a rendered payload.

    Line endings are normalized and folded lines are joined before reading.
    A missing SEQUENCE counts as 0 and a missing ORGANIZER as an empty line.

    Raises:
        MalformedInputError: If UID, DTSTART or DTEND is missing, or
            SEQUENCE is not a non-negative integer
    """
    lines = split_content_lines(ensure_text(content))

    uid = _property_value(lines, "UID")
    dtstart = _property_value(lines, "DTSTART")
    dtend = _property_value(lines, "DTEND")
    if not uid or not dtstart or not dtend:
        logger.warning(
            "Payload is missing essential fields (uid=%r, dtstart=%r, dtend=%r)", uid, dtstart, dtend
        )
        raise MalformedInputError("Calendar payload lacks UID, DTSTART or DTEND")

    seq_text = _property_value(lines, "SEQUENCE")
    if seq_text is None:
        sequence = 0
    elif _SEQUENCE_RE.match(seq_text):
        sequence = int(seq_text)
    else:
        raise MalformedInputError(f"Invalid SEQUENCE value: {seq_text!r}")

    organizer_line = next(
        (line.strip() for line in lines if line.upper().startswith(("ORGANIZER;", "ORGANIZER:"))),
        "",
    )

    return EventSnapshot(
        uid=uid,
        dtstart=dtstart,
        dtend=dtend,
        sequence=sequence,
        organizer_line=organizer_line,
    )
