"""
Core layer - pure logic with no storage access.

Components:
- models: KeyDateEntry, CalendarEvent, EligibilityResult dataclasses
- date_parser: Korean date/time fragment parsing
- key_dates: Key-date derivation from qualification metadata
- eligibility: Backend eligibility payload mapping
"""

from .models import (
    AddEventResult,
    AddStatus,
    CalendarEvent,
    CalendarEventInput,
    CriteriaResults,
    Eligibility,
    EligibilityResult,
    EventSource,
    KeyDateEntry,
    Notice,
)
from .date_parser import (
    ParserOptions,
    has_deadline_keyword,
    parse_date_text,
    parse_iso_datetime,
    to_iso,
)
from .key_dates import derive_key_dates, normalize_candidates
from .eligibility import (
    map_eligibility,
    missing_profile_fields,
    needs_eligibility_check,
    outstanding_missing_info,
)

__all__ = [
    "AddEventResult",
    "AddStatus",
    "CalendarEvent",
    "CalendarEventInput",
    "CriteriaResults",
    "Eligibility",
    "EligibilityResult",
    "EventSource",
    "KeyDateEntry",
    "Notice",
    "ParserOptions",
    "has_deadline_keyword",
    "parse_date_text",
    "parse_iso_datetime",
    "to_iso",
    "derive_key_dates",
    "normalize_candidates",
    "map_eligibility",
    "missing_profile_fields",
    "needs_eligibility_check",
    "outstanding_missing_info",
]
