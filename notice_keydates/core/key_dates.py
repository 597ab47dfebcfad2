"""
Key-date derivation from AI-extracted qualification metadata.

The upstream extractor is inconsistent about shapes and field names, so
every payload goes through one normalization step producing RawKeyDate
candidates before labels, dedup and parsing are applied.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, Optional

import structlog

from .date_parser import ParserOptions, parse_date_text, parse_iso_datetime
from .models import KeyDateEntry

logger = structlog.get_logger(__name__)


DEFAULT_LABEL = "주요 일정"

# Alias lists are in fallback order: the first key present wins
LIST_KEYS = ("key_dates", "keyDates", "important_dates", "importantDates", "dates")
LABEL_KEYS = ("keyDateType", "key_date_type", "type", "label", "name")
TEXT_KEYS = ("keyDate", "key_date", "dateText", "date_text", "date", "text")
ISO_KEYS = ("isoDate", "iso_date", "iso", "datetime", "timestamp")

# Single deadline field the extractor sets on most notices
DEADLINE_KEY = "application_deadline"
DEADLINE_LABEL = "신청 마감"


@dataclass(frozen=True)
class RawKeyDate:
    """Canonical key-date candidate, before dedup and parsing."""
    label: Optional[str]
    text: Optional[str]
    iso: Any = None


def _first_present(mapping: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _first_list(mapping: dict) -> list:
    for key in LIST_KEYS:
        value = mapping.get(key)
        if isinstance(value, list) and value:
            return value
    return []


def _candidate(mapping: dict) -> RawKeyDate:
    return RawKeyDate(
        label=_as_text(_first_present(mapping, LABEL_KEYS)),
        text=_as_text(_first_present(mapping, TEXT_KEYS)),
        iso=_first_present(mapping, ISO_KEYS),
    )


def _decode(metadata: Any) -> Any:
    if isinstance(metadata, (bytes, bytearray)):
        metadata = metadata.decode("utf-8", errors="replace")
    if isinstance(metadata, str):
        if not metadata.strip():
            return None
        try:
            return json.loads(metadata)
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug("qualification_metadata_undecodable", error=str(e))
            return None
    return metadata


def normalize_candidates(metadata: Any) -> Iterator[RawKeyDate]:
    """
    Yield canonical candidates from any supported metadata shape.

    Order: entries of the list shape (top-level list or the first non-empty
    list under LIST_KEYS), then the flat single pair on the top-level
    object, then its application_deadline field.
    """
    payload = _decode(metadata)

    if isinstance(payload, list):
        entries, flat = payload, None
    elif isinstance(payload, dict):
        entries, flat = _first_list(payload), payload
    else:
        return

    for entry in entries:
        if isinstance(entry, dict):
            yield _candidate(entry)

    if flat is not None:
        yield _candidate(flat)

        deadline = _as_text(flat.get(DEADLINE_KEY))
        if deadline:
            # Usually ISO, sometimes free text
            yield RawKeyDate(label=DEADLINE_LABEL, text=deadline, iso=deadline)


def derive_key_dates(
    metadata: Any,
    now: Optional[datetime] = None,
    options: Optional[ParserOptions] = None,
    default_label: str = DEFAULT_LABEL,
) -> list[KeyDateEntry]:
    """
    Derive deduplicated key-date entries from qualification metadata.

    Args:
        metadata: Dict, list or JSON string from notice.qualification_ai
        now: Reference time for year inference
        options: Parser constants
        default_label: Label used when the entry has none

    Returns:
        Entries in first-seen order; empty list for unusable metadata
    """
    entries: list[KeyDateEntry] = []
    seen: set[str] = set()

    for candidate in normalize_candidates(metadata):
        text = (candidate.text or "").strip()
        if not text:
            continue
        label = (candidate.label or "").strip() or default_label

        entry_id = f"{label}|{text}"
        if entry_id in seen:
            continue
        seen.add(entry_id)

        parsed = parse_iso_datetime(candidate.iso)
        if parsed is None:
            parsed = parse_date_text(text, label, now=now, options=options)

        entries.append(KeyDateEntry(id=entry_id, type_label=label, date_text=text, parsed_date=parsed))

    return entries
