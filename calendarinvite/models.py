"""Data models for calendar invite generation."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class InviteMethod(str, Enum):
    """iTIP method a rendering represents."""

    REQUEST = "REQUEST"
    CANCEL = "CANCEL"


class EventStatus(str, Enum):
    """VEVENT STATUS values."""

    CONFIRMED = "CONFIRMED"
    TENTATIVE = "TENTATIVE"
    CANCELLED = "CANCELLED"


class AttendeeRole(str, Enum):
    """ATTENDEE ROLE parameter values."""

    REQUIRED = "REQ-PARTICIPANT"
    OPTIONAL = "OPT-PARTICIPANT"
    NON_PARTICIPANT = "NON-PARTICIPANT"


class ParticipationStatus(str, Enum):
    """ATTENDEE PARTSTAT parameter values."""

    NEEDS_ACTION = "NEEDS-ACTION"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    TENTATIVE = "TENTATIVE"
    DELEGATED = "DELEGATED"


def display_name_from_email(email: str) -> str:
    """Derive a display name from a mailbox, e.g. ``jane.doe@x`` -> ``Jane Doe``."""
    local = email.split("@", 1)[0]
    words = re.sub(r"[._]", " ", local)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), words)


class Organizer(BaseModel):
    """Meeting organizer; must be the authenticated sending identity."""

    name: str = Field(..., description="Organizer display name")
    email: str = Field(..., description="Organizer email address")

    model_config = ConfigDict(frozen=True)


DEFAULT_ORGANIZER = Organizer(name="Calendar Invite", email="calendar@example.com")


class Attendee(BaseModel):
    """Calendar event attendee."""

    email: str = Field(..., description="Attendee email address")
    name: Optional[str] = Field(default=None, description="Attendee display name")
    role: AttendeeRole = Field(default=AttendeeRole.REQUIRED, description="Participation role")
    participation_status: Optional[ParticipationStatus] = Field(
        default=ParticipationStatus.NEEDS_ACTION, description="PARTSTAT value"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        """Name used for the CN parameter."""
        if self.name:
            return self.name
        return display_name_from_email(self.email)


class CalendarEvent(BaseModel):
    """Canonical in-memory representation of a calendar event.

    Instances are immutable; lifecycle transitions return new events.
    ``organizer_line`` holds a stored ORGANIZER content line that must be
    re-emitted verbatim, and is only set for events rebuilt from a snapshot.
    """

    uid: str = Field(..., description="Globally unique event identifier")
    sequence: int = Field(default=0, ge=0, description="Revision counter")
    method: InviteMethod = Field(default=InviteMethod.REQUEST, description="iTIP method")
    status: EventStatus = Field(default=EventStatus.CONFIRMED, description="Display status")

    summary: Optional[str] = Field(default=None, description="Event title")
    description: Optional[str] = Field(default=None, description="Event description")
    location: Optional[str] = Field(default=None, description="Event location")

    start: datetime = Field(..., description="Start instant (aware UTC)")
    end: datetime = Field(..., description="End instant (aware UTC)")

    organizer: Optional[Organizer] = Field(default=None, description="Meeting organizer")
    attendees: tuple[Attendee, ...] = Field(default=(), description="Attendees in order")

    organizer_line: Optional[str] = Field(
        default=None, description="Verbatim ORGANIZER line carried from a snapshot"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_cancelled(self) -> bool:
        """Check whether this event renders as a cancellation."""
        return self.method == InviteMethod.CANCEL

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()


class EventSnapshot(BaseModel):
    """Durable subset of a rendered REQUEST needed to build a faithful CANCEL.

    The JSON record uses ``organizerLine`` as its key; Python code uses
    ``organizer_line``.
    """

    uid: str
    dtstart: str = Field(..., description="Start in basic UTC format")
    dtend: str = Field(..., description="End in basic UTC format")
    sequence: int = Field(default=0, ge=0)
    organizer_line: str = Field(default="", alias="organizerLine")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-compatible persisted record."""
        return self.model_dump(by_alias=True)


class CalendarInvite(BaseModel):
    """Rendered calendar payload ready to attach to an email."""

    filename: str
    content: str
    content_type: str
    method: InviteMethod
    uid: str
    sequence: int

    @property
    def content_bytes(self) -> bytes:
        """UTF-8 encoded payload; CRLF line endings are preserved."""
        return self.content.encode("utf-8")
