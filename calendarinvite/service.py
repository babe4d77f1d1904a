"""Invite service: render REQUEST/CANCEL payloads and keep snapshots current."""

import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from .config import InviteSettings
from .exceptions import NotFoundError
from .lifecycle import cancel_event, event_from_snapshot, update_event
from .models import Attendee, CalendarEvent, CalendarInvite, InviteMethod
from .serializer import IcsSerializer
from .snapshot import snapshot_from_event
from .store import MetadataStore, create_store

logger = logging.getLogger(__name__)


class InviteService:
    """Render invites and record what a later cancellation needs.

    A snapshot is stored right after every rendered REQUEST, and after every
    CANCEL so that the stored sequence never goes backwards. A payload older
    than the stored snapshot is rendered but not stored.
    """

    def __init__(
        self,
        settings: InviteSettings,
        store: Optional[MetadataStore] = None,
        serializer: Optional[IcsSerializer] = None,
    ):
        self.settings = settings
        self.store = store if store is not None else create_store(settings.store_path)
        self.serializer = serializer or IcsSerializer.from_settings(settings)

    def _stored_sequence(self, uid: str) -> Optional[int]:
        snapshot = self.store.get(uid)
        return snapshot.sequence if snapshot is not None else None

    def _rebase(self, event: CalendarEvent) -> CalendarEvent:
        """Return ``event`` carrying the latest stored sequence for its UID."""
        stored = self._stored_sequence(event.uid)
        if stored is None or stored <= event.sequence:
            return event
        logger.info(
            "Event %s is at SEQUENCE:%d but SEQUENCE:%d was already sent; continuing from %d",
            event.uid,
            event.sequence,
            stored,
            stored,
        )
        return event.model_copy(update={"sequence": stored})

    def _render_and_record(self, event: CalendarEvent) -> CalendarInvite:
        invite = self.serializer.build_invite(event)
        stored = self._stored_sequence(event.uid)
        if stored is not None and stored > event.sequence:
            logger.warning(
                "Not storing SEQUENCE:%d for %s; SEQUENCE:%d is already stored",
                event.sequence,
                event.uid,
                stored,
            )
        else:
            self.store.put(event.uid, snapshot_from_event(event, self.serializer))
        logger.info(
            "Rendered %s for %s (SEQUENCE:%d, %d attendees)",
            invite.method.value,
            event.uid,
            event.sequence,
            len(event.attendees),
        )
        return invite

    def send_request(self, event: CalendarEvent) -> CalendarInvite:
        """Render a REQUEST and store its snapshot."""
        if event.method != InviteMethod.REQUEST:
            raise ValueError(f"Expected a REQUEST event, got {event.method.value}")
        return self._render_and_record(event)

    def update(self, event: CalendarEvent, **patch: Any) -> tuple[CalendarEvent, CalendarInvite]:
        """Apply ``patch`` as a new revision and render it.

        The new sequence is one above the newer of ``event`` and the stored
        snapshot for its UID.
        """
        updated = update_event(self._rebase(event), patch, default_timezone=self.settings.default_timezone)
        return updated, self.send_request(updated)

    def cancel(self, event: CalendarEvent) -> tuple[CalendarEvent, CalendarInvite]:
        """Cancel an event held in memory and render the CANCEL.

        A stale copy of the event is cancelled at one above the latest stored
        sequence, so clients that saw later updates still honour the CANCEL.
        """
        cancelled = cancel_event(self._rebase(event), self.settings.default_organizer)
        return cancelled, self._render_and_record(cancelled)

    def cancel_by_uid(
        self,
        uid: str,
        attendees: Optional[Iterable[Union[Attendee, str]]] = None,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
    ) -> tuple[CalendarEvent, CalendarInvite]:
        """Cancel an event known only by its UID, using the stored snapshot.

        Raises:
            NotFoundError: If no snapshot exists for ``uid``
        """
        snapshot = self.store.get(uid)
        if snapshot is None:
            logger.warning("No stored metadata for UID %s; cannot cancel", uid)
            raise NotFoundError(uid)

        original = event_from_snapshot(
            snapshot,
            summary=summary,
            description=description,
            location=location,
            attendees=attendees,
        )
        return self.cancel(original)
