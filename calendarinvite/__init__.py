"""calendarinvite - iTIP REQUEST/CANCEL calendar invites for email clients.

Builds RFC 5545 payloads that Outlook, Gmail and Apple Calendar accept as
meeting requests, and cancels them later from a stored snapshot of the
original invite.
"""

__version__ = "0.1.0"

from .config import InviteSettings, load_settings
from .event_factory import create_event, validate_event
from .exceptions import (
    InviteError,
    MalformedInputError,
    NotFoundError,
    ValidationError,
    ValidationErrorKind,
)
from .lifecycle import cancel_event, event_from_snapshot, update_event
from .models import (
    Attendee,
    AttendeeRole,
    CalendarEvent,
    CalendarInvite,
    EventSnapshot,
    EventStatus,
    InviteMethod,
    Organizer,
    ParticipationStatus,
)
from .serializer import IcsSerializer, build_invite, render_event
from .service import InviteService
from .snapshot import extract_snapshot_from_ics, snapshot_from_event
from .store import InMemoryMetadataStore, JsonFileMetadataStore, MetadataStore, create_store

__all__ = [
    "Attendee",
    "AttendeeRole",
    "CalendarEvent",
    "CalendarInvite",
    "EventSnapshot",
    "EventStatus",
    "IcsSerializer",
    "InMemoryMetadataStore",
    "InviteError",
    "InviteMethod",
    "InviteService",
    "InviteSettings",
    "JsonFileMetadataStore",
    "MalformedInputError",
    "MetadataStore",
    "NotFoundError",
    "Organizer",
    "ParticipationStatus",
    "ValidationError",
    "ValidationErrorKind",
    "build_invite",
    "cancel_event",
    "create_event",
    "create_store",
    "event_from_snapshot",
    "extract_snapshot_from_ics",
    "load_settings",
    "render_event",
    "snapshot_from_event",
    "update_event",
    "validate_event",
]
