"""Metadata store bridge for invite snapshots.

The core only depends on the ``MetadataStore`` protocol (``get``/``put``
keyed by UID, last write wins). Two implementations are provided: an
in-memory store and a JSON file store with atomic writes.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Protocol

import pydantic

from .models import EventSnapshot

logger = logging.getLogger(__name__)


class MetadataStore(Protocol):
    """Protocol for invite snapshot storage."""

    def get(self, uid: str) -> Optional[EventSnapshot]:
        """Return the snapshot stored for ``uid``, or None if there is none."""
        ...

    def put(self, uid: str, snapshot: EventSnapshot) -> None:
        """Store ``snapshot`` under ``uid``, replacing any previous value."""
        ...


def _check_key(uid: str, snapshot: EventSnapshot) -> None:
    if not uid or not isinstance(uid, str):
        raise ValueError("uid must be a non-empty string")
    if snapshot.uid != uid:
        raise ValueError(f"Snapshot UID {snapshot.uid!r} does not match key {uid!r}")


class InMemoryMetadataStore:
    """Thread-safe in-process snapshot store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, EventSnapshot] = {}

    def get(self, uid: str) -> Optional[EventSnapshot]:
        with self._lock:
            return self._store.get(uid)

    def put(self, uid: str, snapshot: EventSnapshot) -> None:
        _check_key(uid, snapshot)
        with self._lock:
            self._store[uid] = snapshot

    def uids(self) -> list[str]:
        with self._lock:
            return sorted(self._store)


class JsonFileMetadataStore:
    """Snapshot store persisted as a JSON object mapping UID -> record.

    Records use the persisted snapshot shape
    ``{uid, dtstart, dtend, sequence, organizerLine}``. The file is re-read
    on every access so that several processes sharing it see each other's
    writes; concurrent writers to the same UID are last-write-wins.
    """

    def __init__(self, path: str | Path) -> None:
        """Create a JsonFileMetadataStore.

        Args:
            path: Path to the JSON file; its directory is created if needed.
        """
        self._path = Path(path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        """Read the raw mapping from disk; unreadable files count as empty."""
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read metadata store %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Metadata store %s root is not an object; ignoring it", self._path)
            return {}
        return data

    def _persist(self, data: dict[str, Any]) -> None:
        """Write the mapping atomically via a temp file in the same directory."""
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise

    def get(self, uid: str) -> Optional[EventSnapshot]:
        with self._lock:
            record = self._read().get(uid)
        if record is None:
            return None
        try:
            return EventSnapshot.model_validate(record)
        except pydantic.ValidationError as exc:
            logger.warning("Discarding malformed snapshot for %s: %s", uid, exc)
            return None

    def put(self, uid: str, snapshot: EventSnapshot) -> None:
        _check_key(uid, snapshot)
        with self._lock:
            data = self._read()
            data[uid] = snapshot.to_record()
            try:
                self._persist(data)
            except OSError as exc:
                logger.warning("Failed to persist snapshot for %s to %s: %s", uid, self._path, exc)
                raise
        logger.debug("Stored snapshot for %s (SEQUENCE:%d)", uid, snapshot.sequence)

    def uids(self) -> list[str]:
        with self._lock:
            return sorted(self._read())


def create_store(path: str | Path | None = None) -> MetadataStore:
    """Return a JSON file store for ``path``, or an in-memory store when None."""
    if path:
        return JsonFileMetadataStore(path)
    return InMemoryMetadataStore()
