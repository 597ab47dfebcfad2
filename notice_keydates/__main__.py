"""
CLI entry point for notice-keydates.

Usage:
    python -m notice_keydates parse "~12.17까지"
    python -m notice_keydates derive qualification.json
    python -m notice_keydates add --notice 42 --title "장학금 신청" --start "11/3 23:59"
    python -m notice_keydates list --month 2025-11
    python -m notice_keydates sync notices.json
"""

import argparse
import json
import logging
import re
import sys
from datetime import datetime
from typing import Any

import structlog

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def setup_logging(level: str = "INFO", json_output: bool = False):
    """Configure structured logging (to stderr, stdout carries results)."""
    log_level = LOG_LEVELS.get(level.upper(), logging.INFO)

    if json_output:
        processors = [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="notice_keydates",
        description="Key-date extraction and personal calendar for university notices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resolve a date fragment
  python -m notice_keydates parse "2025년 11월 3일 오후 2시"

  # Derive key dates from qualification metadata (file or - for stdin)
  python -m notice_keydates derive qualification.json

  # Save a deadline to the local calendar
  python -m notice_keydates add --notice 42 --title "장학금 신청" --start "~12.17까지"

  # Reconcile notices carrying start_at_ai / end_at_ai
  python -m notice_keydates sync notices.json
        """,
    )

    parser.add_argument("--config", type=str, help="Path to settings YAML file")
    parser.add_argument("--storage-dir", type=str, help="Calendar storage directory (overrides config)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Output logs as JSON")
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    sub = parser.add_subparsers(dest="command")

    p_parse = sub.add_parser("parse", help="Parse a Korean date/time fragment")
    p_parse.add_argument("text")
    p_parse.add_argument("--label", help="Key-date label used as deadline context")

    p_derive = sub.add_parser("derive", help="Derive key dates from qualification metadata")
    p_derive.add_argument("file", help="JSON file, or - for stdin")

    p_add = sub.add_parser("add", help="Add a calendar event")
    p_add.add_argument("--notice", required=True, help="Notice id")
    p_add.add_argument("--title", required=True)
    p_add.add_argument("--start", required=True, help="ISO timestamp or Korean date text")
    p_add.add_argument("--end", help="ISO timestamp or Korean date text")

    p_remove = sub.add_parser("remove", help="Remove a calendar event")
    p_remove.add_argument("event_id")

    p_list = sub.add_parser("list", help="List calendar events")
    p_list.add_argument("--month", help="Only events overlapping YYYY-MM")

    p_sync = sub.add_parser("sync", help="Add auto events for a JSON list of notices")
    p_sync.add_argument("file", help="JSON file, or - for stdin")

    p_elig = sub.add_parser("eligibility", help="Map a backend eligibility payload")
    p_elig.add_argument("file", help="JSON file, or - for stdin")
    p_elig.add_argument("--notice", required=True, help="Notice id")

    return parser.parse_args(argv)


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _emit(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _resolve_when(text: str, settings) -> datetime:
    from .core.date_parser import parse_date_text, parse_iso_datetime

    when = parse_iso_datetime(text) or parse_date_text(text, options=settings.parser_options())
    if when is None:
        raise ValueError(f"Cannot resolve date: {text!r}")
    return when


def _open_store(args, settings):
    from .storage import CalendarEventStore, JsonFileStorage

    storage = JsonFileStorage(args.storage_dir or settings.storage_dir)
    return CalendarEventStore(
        storage,
        key=settings.storage_key,
        default_title=settings.default_event_title,
    )


def run_command(args, settings) -> int:
    """Dispatch a parsed command. Returns the process exit code."""
    from .core import CalendarEventInput, derive_key_dates, map_eligibility, parse_date_text
    from .core.date_parser import to_iso

    logger = structlog.get_logger(__name__)

    if args.command == "parse":
        result = parse_date_text(args.text, args.label, options=settings.parser_options())
        _emit({"text": args.text, "parsedDate": result.isoformat() if result else None,
               "iso": to_iso(result) if result else None})
        return 0

    if args.command == "derive":
        raw = _read_input(args.file)
        metadata: Any = raw
        try:
            decoded = json.loads(raw)
            if isinstance(decoded, dict) and "qualification_ai" in decoded:
                metadata = decoded["qualification_ai"]
        except json.JSONDecodeError:
            pass
        entries = derive_key_dates(
            metadata,
            options=settings.parser_options(),
            default_label=settings.default_key_date_label,
        )
        _emit([entry.to_dict() for entry in entries])
        return 0

    if args.command == "eligibility":
        payload = json.loads(_read_input(args.file))
        _emit(map_eligibility(payload, args.notice).to_dict())
        return 0

    with _open_store(args, settings) as store:
        if args.command == "add":
            result = store.add_event(CalendarEventInput(
                notice_id=args.notice,
                title=args.title,
                start_date=_resolve_when(args.start, settings),
                end_date=_resolve_when(args.end, settings) if args.end else None,
            ))
            _emit({"status": result.status.value, "event": result.event.to_dict()})
            return 0

        if args.command == "remove":
            store.remove_event(args.event_id)
            _emit({"removed": args.event_id})
            return 0

        if args.command == "list":
            if args.month:
                match = re.fullmatch(r"(\d{4})-(\d{1,2})", args.month)
                if not match or not 1 <= int(match.group(2)) <= 12:
                    raise ValueError(f"--month must be YYYY-MM, got {args.month!r}")
                events = store.events_in_month(int(match.group(1)), int(match.group(2)))
            else:
                events = store.list_events()
            _emit([event.to_dict() for event in events])
            return 0

        if args.command == "sync":
            notices = json.loads(_read_input(args.file))
            if not isinstance(notices, list):
                raise ValueError("sync expects a JSON list of notices")
            added = store.sync_notice_events(n for n in notices if isinstance(n, dict))
            logger.info("sync_complete", added=len(added))
            _emit([event.to_dict() for event in added])
            return 0

    return 1


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.version:
        from . import __version__
        print(f"notice-keydates {__version__}")
        sys.exit(0)

    setup_logging(args.log_level, args.json_logs)
    logger = structlog.get_logger(__name__)

    if not args.command:
        print("No command given; see --help", file=sys.stderr)
        sys.exit(1)

    try:
        from .config import load_settings

        settings = load_settings(args.config)
        sys.exit(run_command(args, settings))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except (ValueError, OSError) as e:
        # json.JSONDecodeError and ConfigError are ValueErrors
        logger.error("invalid_input", command=args.command, error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
