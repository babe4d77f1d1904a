"""Command-line entry for calendarinvite.

Renders REQUEST and CANCEL payloads from the shell and inspects existing
ones. Snapshots needed for cancellation are kept in the JSON store named by
``--store`` or the ``store_path`` setting.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import InviteSettings, load_settings
from .event_factory import create_event
from .exceptions import InviteError, MalformedInputError, NotFoundError, ValidationError
from .inspection import summarize_calendar
from .logging_config import configure_logging
from .models import CalendarInvite
from .service import InviteService
from .snapshot import extract_snapshot_from_ics

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_NOT_FOUND = 2
EXIT_MALFORMED = 3


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for calendarinvite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendarinvite",
        description="Generate iTIP REQUEST/CANCEL calendar invites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  calendarinvite --store invites.json request --summary "Team Sync" \\
      --start 2024-12-15T14:00:00Z --end 2024-12-15T15:00:00Z --attendee jane.doe@company.com
  calendarinvite --store invites.json cancel --uid <UID> --attendee jane.doe@company.com
  calendarinvite inspect invite.ics
        """,
    )
    parser.add_argument("--config", type=Path, metavar="PATH", help="YAML or JSON settings file")
    parser.add_argument(
        "--store", type=Path, metavar="PATH", help="JSON snapshot store (overrides store_path)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    request_parser = subparsers.add_parser("request", help="Render a meeting REQUEST")
    request_parser.add_argument("--summary", required=True, help="Meeting title")
    request_parser.add_argument("--start", required=True, help="Start time (ISO-8601 or YYYYMMDDTHHMMSSZ)")
    request_parser.add_argument("--end", required=True, help="End time (ISO-8601 or YYYYMMDDTHHMMSSZ)")
    request_parser.add_argument("--description", help="Meeting description")
    request_parser.add_argument("--location", help="Meeting location")
    request_parser.add_argument("--uid", help="Reuse an existing UID (default: generated)")
    request_parser.add_argument("--sequence", type=int, default=0, help="Revision number (default: 0)")
    request_parser.add_argument("--organizer-name", help="Organizer display name")
    request_parser.add_argument("--organizer-email", help="Organizer email address")
    request_parser.add_argument(
        "--attendee", action="append", default=[], metavar="EMAIL", help="Required attendee (repeatable)"
    )
    request_parser.add_argument(
        "--cc", action="append", default=[], metavar="EMAIL", help="Optional attendee (repeatable)"
    )
    request_parser.add_argument("--output", type=Path, metavar="FILE", help="Write payload to FILE")

    cancel_parser = subparsers.add_parser("cancel", help="Render a CANCEL for a known UID")
    source = cancel_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--uid", help="UID of a previously rendered REQUEST")
    source.add_argument(
        "--from-ics", type=Path, metavar="FILE", help="Take UID, times and organizer from a payload"
    )
    cancel_parser.add_argument(
        "--attendee", action="append", default=[], metavar="EMAIL", help="Attendee to notify (repeatable)"
    )
    cancel_parser.add_argument("--summary", help="Original meeting title")
    cancel_parser.add_argument("--description", help="Original meeting description")
    cancel_parser.add_argument("--location", help="Original meeting location")
    cancel_parser.add_argument("--output", type=Path, metavar="FILE", help="Write payload to FILE")

    inspect_parser = subparsers.add_parser("inspect", help="Summarize a payload as JSON")
    inspect_parser.add_argument("file", help="Payload file, or '-' for stdin")

    return parser


def _emit(invite: CalendarInvite, output: Optional[Path]) -> None:
    if output is None:
        sys.stdout.write(invite.content)
        sys.stdout.flush()
        return
    output.write_bytes(invite.content_bytes)
    print(f"Wrote {invite.method.value} for {invite.uid} (SEQUENCE:{invite.sequence}) to {output}")


def _read_payload(name: str) -> bytes:
    if name == "-":
        return sys.stdin.buffer.read()
    return Path(name).read_bytes()


def _run_request(args: argparse.Namespace, settings: InviteSettings) -> int:
    event = create_event(
        settings=settings,
        start=args.start,
        end=args.end,
        summary=args.summary,
        description=args.description,
        location=args.location,
        uid=args.uid,
        sequence=args.sequence,
        organizer_name=args.organizer_name,
        organizer_email=args.organizer_email,
        attendee_emails=args.attendee,
        cc_emails=args.cc,
    )
    invite = InviteService(settings).send_request(event)
    _emit(invite, args.output)
    return EXIT_OK


def _run_cancel(args: argparse.Namespace, settings: InviteSettings) -> int:
    service = InviteService(settings)
    if args.from_ics is not None:
        snapshot = extract_snapshot_from_ics(args.from_ics.read_bytes())
        stored = service.store.get(snapshot.uid)
        if stored is None or stored.sequence < snapshot.sequence:
            service.store.put(snapshot.uid, snapshot)
        else:
            logger.info(
                "Store already holds SEQUENCE:%d for %s; ignoring SEQUENCE:%d from %s",
                stored.sequence,
                snapshot.uid,
                snapshot.sequence,
                args.from_ics,
            )
        uid = snapshot.uid
    else:
        uid = args.uid
        if settings.store_path is None:
            logger.warning("No snapshot store configured; use --store or store_path to cancel by UID")

    _, invite = service.cancel_by_uid(
        uid,
        attendees=args.attendee or None,
        summary=args.summary,
        description=args.description,
        location=args.location,
    )
    _emit(invite, args.output)
    return EXIT_OK


def _run_inspect(args: argparse.Namespace) -> int:
    summary = summarize_calendar(_read_payload(args.file))
    print(json.dumps(summary, indent=2))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Run the calendarinvite CLI and return its exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        settings = load_settings(args.config, store_path=args.store)
    except (ValueError, OSError) as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_VALIDATION

    configure_logging(settings.log_level, debug=args.debug)

    try:
        if args.command == "request":
            return _run_request(args, settings)
        if args.command == "cancel":
            return _run_cancel(args, settings)
        return _run_inspect(args)
    except ValidationError as exc:
        print(f"Error: invalid {exc.field}: {exc.message}", file=sys.stderr)
        return EXIT_VALIDATION
    except NotFoundError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except MalformedInputError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_MALFORMED
    except InviteError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return EXIT_VALIDATION
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_VALIDATION


if __name__ == "__main__":
    sys.exit(main())
