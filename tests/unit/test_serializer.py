"""Tests for the RFC 5545 serializer."""

import re
from datetime import UTC, datetime

import pytest
from icalendar import Calendar

from calendarinvite.exceptions import MalformedInputError
from calendarinvite.lifecycle import cancel_event
from calendarinvite.models import (
    Attendee,
    AttendeeRole,
    CalendarEvent,
    InviteMethod,
    Organizer,
    ParticipationStatus,
)
from calendarinvite.serializer import (
    CANCELLED_SUFFIX,
    IcsSerializer,
    build_invite,
    format_attendee_line,
    format_organizer_line,
    invite_filename,
    parse_organizer_line,
    render_event,
    rsvp_for_role,
)
from calendarinvite.text import CRLF, FOLD_LIMIT, split_content_lines, unfold_lines

pytestmark = pytest.mark.unit

PROPERTY_START = re.compile(r"^[A-Z][A-Z-]*[;:]")

STAMP_1 = datetime(2024, 12, 1, 9, 30, tzinfo=UTC)
STAMP_2 = datetime(2024, 12, 2, 10, 45, tzinfo=UTC)


def _lines_with(payload: str, name: str) -> list[str]:
    return [line for line in split_content_lines(payload) if line.split(";", 1)[0].split(":", 1)[0] == name]


def _event(**overrides) -> CalendarEvent:
    values = {
        "uid": "test-meeting-12345@company.com",
        "start": datetime(2024, 12, 15, 14, 0, tzinfo=UTC),
        "end": datetime(2024, 12, 15, 15, 0, tzinfo=UTC),
        "summary": "Team Sync",
        "organizer": Organizer(name="John Smith", email="john.smith@company.com"),
        "attendees": (
            Attendee(email="jane.doe@company.com"),
            Attendee(email="bob.wilson@company.com"),
        ),
    }
    values.update(overrides)
    return CalendarEvent(**values)


class TestRenderLayout:
    """Tests for line order and content of rendered payloads."""

    def test_render_when_request_then_lines_in_canonical_order(self, serializer, sample_event):
        lines = split_content_lines(serializer.render(sample_event))

        assert lines == [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "PRODID:-//CalendarInvite//Email Calendar//EN",
            "CALSCALE:GREGORIAN",
            "METHOD:REQUEST",
            "BEGIN:VEVENT",
            "UID:test-meeting-12345@company.com",
            "SEQUENCE:0",
            "DTSTAMP:20241201T093000Z",
            "DTSTART:20241215T140000Z",
            "DTEND:20241215T150000Z",
            "SUMMARY:Team Sync",
            "DESCRIPTION:Weekly sync\\; bring updates\\, blockers and questions.",
            "LOCATION:Room 4\\, Building B",
            "ORGANIZER;CN=John Smith:mailto:john.smith@company.com",
            "ATTENDEE;CN=Jane Doe;ROLE=REQ-PARTICIPANT;RSVP=TRUE;PARTSTAT=NEEDS-ACTION:mailto:jane.doe@company.com",
            "ATTENDEE;CN=Bob Wilson;ROLE=REQ-PARTICIPANT;RSVP=TRUE;PARTSTAT=NEEDS-ACTION:mailto:bob.wilson@company.com",
            "STATUS:CONFIRMED",
            "END:VEVENT",
            "END:VCALENDAR",
        ]

    def test_render_when_location_absent_then_line_omitted(self, serializer):
        payload = serializer.render(_event(location=None))
        assert _lines_with(payload, "LOCATION") == []

    def test_render_when_summary_and_description_absent_then_lines_still_present(self, serializer):
        payload = serializer.render(_event(summary=None, description=None))

        assert _lines_with(payload, "SUMMARY") == ["SUMMARY:"]
        assert _lines_with(payload, "DESCRIPTION") == ["DESCRIPTION:"]

    def test_render_when_offset_times_then_no_tzid_and_utc_form(self, serializer):
        payload = serializer.render(_event())

        assert "TZID" not in payload
        assert "DTSTART:20241215T140000Z" in payload
        assert "DTEND:20241215T150000Z" in payload

    def test_render_when_called_then_no_trailing_blank_line(self, serializer):
        payload = serializer.render(_event())

        assert payload.endswith("END:VEVENT" + CRLF + "END:VCALENDAR")
        assert not payload.endswith(CRLF)

    def test_render_when_non_ascii_names_then_utf8_text_preserved(self, serializer):
        event = _event(
            organizer=Organizer(name="Zoë Ångström", email="zoe@company.com"),
            summary="Café planning",
        )
        payload = serializer.render(event)

        assert "ORGANIZER;CN=Zoë Ångström:mailto:zoe@company.com" in split_content_lines(payload)
        assert "SUMMARY:Café planning" in split_content_lines(payload)


class TestRenderCancel:
    """Tests for CANCEL renderings."""

    def test_render_when_cancel_then_method_status_and_summary_marked(self, serializer, sample_event):
        payload = serializer.render(cancel_event(sample_event))

        assert "METHOD:CANCEL" in split_content_lines(payload)
        assert "STATUS:CANCELLED" in split_content_lines(payload)
        assert _lines_with(payload, "SUMMARY") == ["SUMMARY:Team Sync (Cancelled)"]

    def test_render_when_cancel_then_notice_prepended_to_description(self, serializer, sample_event):
        payload = serializer.render(cancel_event(sample_event))

        assert _lines_with(payload, "DESCRIPTION") == [
            "DESCRIPTION:This meeting has been cancelled.\\n\\n"
            "Weekly sync\\; bring updates\\, blockers and questions."
        ]

    def test_render_when_cancel_without_description_then_notice_only(self, serializer):
        payload = serializer.render(cancel_event(_event(description=None)))
        assert _lines_with(payload, "DESCRIPTION") == ["DESCRIPTION:This meeting has been cancelled."]

    def test_render_when_cancel_without_summary_then_suffix_only(self, serializer):
        payload = serializer.render(cancel_event(_event(summary=None)))
        assert _lines_with(payload, "SUMMARY") == ["SUMMARY:" + CANCELLED_SUFFIX.strip()]

    def test_render_when_summary_has_special_chars_then_suffix_added_before_escaping(self, serializer):
        payload = serializer.render(cancel_event(_event(summary="Q1, Q2; review")))
        assert _lines_with(payload, "SUMMARY") == ["SUMMARY:Q1\\, Q2\\; review (Cancelled)"]

    def test_render_when_custom_notice_then_used(self, settings, fixed_clock):
        custom = settings.model_copy(update={"cancellation_notice": "Called off."})
        serializer = IcsSerializer.from_settings(custom, clock=fixed_clock)
        payload = serializer.render(cancel_event(_event(description=None)))

        assert _lines_with(payload, "DESCRIPTION") == ["DESCRIPTION:Called off."]

    def test_render_concrete_scenario_request_then_cancel(self, settings, sample_event):
        """REQUEST and CANCEL share UID, DTSTART, DTEND and ORGANIZER lines."""
        serializer = IcsSerializer.from_settings(settings)
        request = serializer.render(sample_event, dtstamp=STAMP_1)
        cancel = serializer.render(cancel_event(sample_event), dtstamp=STAMP_2)

        for name in ("UID", "DTSTART", "DTEND", "ORGANIZER"):
            assert _lines_with(request, name) == _lines_with(cancel, name)
        assert _lines_with(request, "DTSTART") == ["DTSTART:20241215T140000Z"]
        assert _lines_with(request, "DTEND") == ["DTEND:20241215T150000Z"]
        assert _lines_with(request, "SEQUENCE") == ["SEQUENCE:0"]
        assert _lines_with(cancel, "SEQUENCE") == ["SEQUENCE:1"]
        assert _lines_with(request, "METHOD") == ["METHOD:REQUEST"]
        assert _lines_with(cancel, "METHOD") == ["METHOD:CANCEL"]


class TestRenderDeterminism:
    """DTSTAMP is the only clock-dependent line."""

    def test_render_when_rendered_twice_then_only_dtstamp_differs(self, settings, sample_event):
        serializer = IcsSerializer.from_settings(settings)
        first = split_content_lines(serializer.render(sample_event, dtstamp=STAMP_1))
        second = split_content_lines(serializer.render(sample_event, dtstamp=STAMP_2))

        differing = [(a, b) for a, b in zip(first, second) if a != b]
        assert len(first) == len(second)
        assert differing == [("DTSTAMP:20241201T093000Z", "DTSTAMP:20241202T104500Z")]

    def test_render_when_no_dtstamp_then_clock_used(self, settings, sample_event):
        serializer = IcsSerializer.from_settings(settings, clock=lambda: STAMP_2)
        assert _lines_with(serializer.render(sample_event), "DTSTAMP") == ["DTSTAMP:20241202T104500Z"]

    def test_render_event_when_default_serializer_then_default_prodid(self, sample_event):
        payload = render_event(sample_event, dtstamp=STAMP_1)
        assert "PRODID:-//CalendarInvite//Email Calendar//EN" in split_content_lines(payload)


LONG_EVENTS = {
    "long_ascii": _event(
        summary="Quarterly planning " * 10,
        description="Agenda item. " * 40,
        location="Conference Centre North Wing, Floor 12, Room 1207 " * 2,
    ),
    "multibyte": _event(
        summary="四半期計画会議 " * 12,
        description="Überprüfung der Ergebnisse – naïve café résumé " * 8,
        organizer=Organizer(name="Jürgen Müller-Lüdenscheidt Ölçü Ñandú " * 2, email="jm@company.com"),
    ),
    "escape_heavy": _event(
        summary="a,b;c\\d," * 20,
        description="line one\nline two; with, commas\\and slashes\n" * 6,
    ),
    "many_attendees": _event(
        attendees=tuple(
            Attendee(
                email=f"participant.number{i}@a-rather-long-subdomain.company-example.com",
                name=f"Participant Number {i} With A Long Display Name",
                role=AttendeeRole.OPTIONAL if i % 3 == 0 else AttendeeRole.REQUIRED,
            )
            for i in range(25)
        )
    ),
}


@pytest.mark.parametrize("event", LONG_EVENTS.values(), ids=list(LONG_EVENTS))
class TestRenderFolding:
    """Physical line properties hold for every rendered payload."""

    @pytest.mark.parametrize("method", [InviteMethod.REQUEST, InviteMethod.CANCEL])
    def test_render_when_long_values_then_every_physical_line_fits(self, serializer, event, method):
        source = cancel_event(event) if method == InviteMethod.CANCEL else event
        payload = serializer.render(source)

        for physical in payload.split(CRLF):
            assert len(physical.encode("utf-8")) <= FOLD_LIMIT, physical
            if not physical.startswith(" "):
                assert PROPERTY_START.match(physical), physical

    def test_render_when_long_values_then_no_bare_lf(self, serializer, event):
        payload = serializer.render(event)
        assert "\n" not in payload.replace(CRLF, "")
        assert "\r" not in payload.replace(CRLF, "")

    def test_render_when_long_values_then_unfolding_restores_logical_lines(self, serializer, event):
        payload = serializer.render(event)
        assert unfold_lines(payload).split(CRLF) == serializer.content_lines(event, dtstamp=serializer.clock())

    def test_render_when_long_values_then_mailto_never_split(self, serializer, event):
        payload = serializer.render(event)
        token = "mailto:"
        for cut in range(1, len(token)):
            assert token[:cut] + CRLF + " " + token[cut:] not in payload

    def test_render_when_long_values_then_no_escape_pair_split(self, serializer, event):
        payload = serializer.render(event)
        for physical in payload.split(CRLF):
            trailing = len(physical) - len(physical.rstrip("\\"))
            assert trailing % 2 == 0, physical

    def test_render_when_long_values_then_organizer_round_trips(self, serializer, event):
        assert parse_organizer_line(serializer.render(event)) == event.organizer


class TestAttendeeLines:
    """Tests for ATTENDEE line rendering."""

    @pytest.mark.parametrize(
        ("role", "rsvp"),
        [
            (AttendeeRole.REQUIRED, "TRUE"),
            (AttendeeRole.OPTIONAL, "FALSE"),
            (AttendeeRole.NON_PARTICIPANT, "FALSE"),
        ],
    )
    def test_rsvp_for_role(self, role, rsvp):
        assert rsvp_for_role(role) == rsvp

    def test_rsvp_for_role_when_unknown_then_raises(self):
        with pytest.raises(ValueError):
            rsvp_for_role("CHAIR")

    def test_format_attendee_line_when_optional_accepted_then_params_rendered(self):
        attendee = Attendee(
            email="amy@partner.org",
            name="Lee, Amy",
            role=AttendeeRole.OPTIONAL,
            participation_status=ParticipationStatus.ACCEPTED,
        )
        assert format_attendee_line(attendee) == (
            'ATTENDEE;CN="Lee, Amy";ROLE=OPT-PARTICIPANT;RSVP=FALSE;PARTSTAT=ACCEPTED:mailto:amy@partner.org'
        )

    def test_render_when_no_attendees_then_single_attendee_from_organizer(self, serializer):
        payload = serializer.render(_event(attendees=()))

        assert _lines_with(payload, "ATTENDEE") == [
            "ATTENDEE;CN=John Smith;ROLE=REQ-PARTICIPANT;RSVP=TRUE;PARTSTAT=NEEDS-ACTION"
            ":mailto:john.smith@company.com"
        ]

    def test_render_when_no_attendees_and_no_organizer_then_default_identity_used(self, serializer):
        payload = serializer.render(_event(attendees=(), organizer=None))

        assert _lines_with(payload, "ORGANIZER") == [
            "ORGANIZER;CN=Company Calendar:mailto:calendar@company.com"
        ]
        assert len(_lines_with(payload, "ATTENDEE")) == 1
        assert _lines_with(payload, "ATTENDEE")[0].endswith(":mailto:calendar@company.com")

    def test_render_when_attendees_then_one_line_each_in_order(self, serializer):
        event = LONG_EVENTS["many_attendees"]
        lines = _lines_with(serializer.render(event), "ATTENDEE")

        assert len(lines) == 25
        assert [line.rsplit(":mailto:", 1)[1] for line in lines] == [a.email for a in event.attendees]


class TestOrganizerLine:
    """Tests for ORGANIZER formatting and parsing."""

    @pytest.mark.parametrize(
        "organizer",
        [
            Organizer(name="John Smith", email="john.smith@company.com"),
            Organizer(name="Smith, John; PhD", email="js@company.com"),
            Organizer(name="Back\\Slash", email="bs@company.com"),
            Organizer(name="Søren Kierkegaard", email="soren@company.dk"),
            Organizer(name="A" * 120, email="long.name@company.com"),
            Organizer(name='"Boss"', email="boss@company.com"),
            Organizer(name='The "Real" Boss, Esq.', email="boss@company.com"),
            Organizer(name="Ops: Team, West", email="ops@company.com"),
            Organizer(name="Caret ^ Smith", email="caret@company.com"),
            Organizer(name="C:\\Users\\", email="path@company.com"),
        ],
    )
    def test_parse_organizer_line_when_rendered_then_organizer_recovered(self, serializer, organizer):
        payload = serializer.render(_event(organizer=organizer))
        assert parse_organizer_line(payload) == organizer

    def test_format_organizer_line_when_name_has_comma_then_quoted(self):
        organizer = Organizer(name="Smith, John", email="john.smith@company.com")
        assert format_organizer_line(organizer) == 'ORGANIZER;CN="Smith, John":mailto:john.smith@company.com'

    def test_format_organizer_line_when_name_has_dquote_then_caret_encoded(self):
        organizer = Organizer(name='"Boss"', email="boss@company.com")
        assert format_organizer_line(organizer) == "ORGANIZER;CN=^'Boss^':mailto:boss@company.com"

    @pytest.mark.parametrize("name", ["Ops: Team, West", "Smith, John; PhD", "Lee, Amy"])
    def test_render_when_name_has_delimiters_then_icalendar_reads_organizer(self, serializer, name):
        payload = serializer.render(_event(organizer=Organizer(name=name, email="ops@company.com")))
        vevent = next(c for c in Calendar.from_ical(payload).walk() if c.name == "VEVENT")

        assert str(vevent["ORGANIZER"]) == "mailto:ops@company.com"
        assert vevent["ORGANIZER"].params["CN"] == name

    def test_parse_organizer_line_when_legacy_backslash_escapes_then_unescaped(self):
        organizer = parse_organizer_line("ORGANIZER;CN=Smith\\, John:mailto:john.smith@company.com")
        assert organizer == Organizer(name="Smith, John", email="john.smith@company.com")

    def test_parse_organizer_line_when_quoted_cn_then_unquoted(self):
        organizer = parse_organizer_line('ORGANIZER;CN="Smith, John";SENT-BY="mailto:a@b.c":mailto:js@company.com')
        assert organizer == Organizer(name="Smith, John", email="js@company.com")

    def test_parse_organizer_line_when_no_cn_then_empty_name(self):
        assert parse_organizer_line("ORGANIZER:mailto:js@company.com") == Organizer(
            name="", email="js@company.com"
        )

    @pytest.mark.parametrize("text", ["SUMMARY:nothing here", "ORGANIZER;CN=X:js@company.com"])
    def test_parse_organizer_line_when_missing_then_raises(self, text):
        with pytest.raises(MalformedInputError):
            parse_organizer_line(text)

    def test_render_when_stored_organizer_line_then_emitted_verbatim(self, serializer):
        stored = "ORGANIZER;CN=John Smith;X-LEGACY=1:mailto:john.smith@company.com"
        payload = serializer.render(_event(organizer_line=stored))
        assert _lines_with(payload, "ORGANIZER") == [stored]


class TestBuildInvite:
    """Tests for attachment-ready invites."""

    def test_build_invite_when_request_then_metadata_set(self, serializer, sample_event):
        invite = serializer.build_invite(sample_event)

        assert invite.filename == "TeamSync.ics"
        assert invite.content_type == "text/calendar; method=REQUEST; charset=UTF-8"
        assert invite.method == InviteMethod.REQUEST
        assert invite.uid == sample_event.uid
        assert invite.sequence == 0
        assert invite.content_bytes == invite.content.encode("utf-8")
        assert b"\r\n" in invite.content_bytes

    def test_build_invite_when_cancel_then_content_type_matches_method(self, sample_event):
        invite = build_invite(cancel_event(sample_event))

        assert invite.content_type == "text/calendar; method=CANCEL; charset=UTF-8"
        assert "METHOD:CANCEL" in invite.content

    @pytest.mark.parametrize(
        ("summary", "filename"),
        [
            ("Team Sync", "TeamSync.ics"),
            ("Q1/Q2 Review: 2025!", "Q1Q2Review2025.ics"),
            ("Café planning", "Cafplanning.ics"),
            ("", "event.ics"),
            (None, "event.ics"),
            ("!!!", "event.ics"),
        ],
    )
    def test_invite_filename(self, summary, filename):
        assert invite_filename(summary) == filename
