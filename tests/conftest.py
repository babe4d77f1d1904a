"""Shared fixtures for calendarinvite tests."""

import os
from collections.abc import Generator
from datetime import UTC, datetime
from typing import Any, Callable

import pytest

from calendarinvite.config import InviteSettings
from calendarinvite.event_factory import create_event
from calendarinvite.models import CalendarEvent
from calendarinvite.serializer import IcsSerializer
from calendarinvite.service import InviteService
from calendarinvite.store import InMemoryMetadataStore

FIXED_NOW = datetime(2024, 12, 1, 9, 30, 0, tzinfo=UTC)


def pytest_configure(config: Any) -> None:
    """Register calendarinvite markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests spanning several modules")
    config.addinivalue_line("markers", "critical_path: Core functionality tests")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Keep CALENDARINVITE_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("CALENDARINVITE_"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def settings() -> InviteSettings:
    """Deterministic settings with a company sending identity."""
    return InviteSettings(
        organizer_name="Company Calendar",
        organizer_email="calendar@company.com",
        default_timezone="UTC",
    )


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that always returns FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def serializer(settings: InviteSettings, fixed_clock: Callable[[], datetime]) -> IcsSerializer:
    return IcsSerializer.from_settings(settings, clock=fixed_clock)


@pytest.fixture
def store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture
def service(
    settings: InviteSettings, store: InMemoryMetadataStore, serializer: IcsSerializer
) -> InviteService:
    return InviteService(settings, store=store, serializer=serializer)


@pytest.fixture
def sample_event(settings: InviteSettings) -> CalendarEvent:
    """The team-sync meeting used throughout the lifecycle tests."""
    return create_event(
        settings=settings,
        uid="test-meeting-12345@company.com",
        start="2024-12-15T14:00:00Z",
        end="2024-12-15T15:00:00Z",
        summary="Team Sync",
        description="Weekly sync; bring updates, blockers and questions.",
        location="Room 4, Building B",
        organizer_name="John Smith",
        organizer_email="john.smith@company.com",
        attendee_emails=["jane.doe@company.com", "bob.wilson@company.com"],
    )
