"""
Korean date/time parsing for AI-extracted notice text.

Handles:
- Partial dates (12.17, 11/3, 11월 3일) with year inference
- Ranges (~12.17, 11.1 ~ 11.5) and start markers (11.1부터)
- Times (23:59, 오후 2시 30분, 자정, 14시)
- Deadline-aware default times
"""

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


# Keywords marking a date as a deadline rather than a start/event time
DEADLINE_KEYWORDS = ("마감", "까지", "기한", "접수", "종료", "제출", "deadline")

# Inferred-year dates further in the past than this roll to next year
ROLLOVER_DAYS = 60


@dataclass(frozen=True)
class ParserOptions:
    """Tunable constants for parse_date_text."""
    rollover_days: int = ROLLOVER_DAYS
    deadline_keywords: tuple[str, ...] = DEADLINE_KEYWORDS
    deadline_time: tuple[int, int] = (23, 59)
    default_time: tuple[int, int] = (9, 0)


DEFAULT_OPTIONS = ParserOptions()

_WHITESPACE = re.compile(r"\s+")
_YEAR = re.compile(r"(?<!\d)(20\d{2})(?!\d)\s*(?:년|[./-])?\s*")

# Tried in order; the last valid match of the first pattern that has one wins
_MONTH_DAY_PATTERNS = (
    re.compile(r"(?<!\d)(\d{1,2})\s*(?:[./-]|월)\s*(\d{1,2})(?!\d)"),
    re.compile(r"(?<!\d)(\d{1,2})\s*월\s*(\d{1,2})\s*일"),
    re.compile(r"(?<!\d)(\d{1,2})\s+(\d{1,2})\s*일"),
)

_COLON_TIME = re.compile(r"(오전|오후)?\s*(?<!\d)(\d{1,2}):(\d{2})(?!\d)")
_MERIDIEM_TIME = re.compile(r"(오전|오후)\s*(\d{1,2})\s*시(?:\s*(\d{1,2})\s*분)?")
_HOUR_TIME = re.compile(r"(?<!\d)(\d{1,2})\s*시(?:\s*(\d{1,2})\s*분)?")
_MIDNIGHT = "자정"


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _to_24h(meridiem: Optional[str], hour: int) -> int:
    if meridiem == "오후" and hour < 12:
        return hour + 12
    if meridiem == "오전" and hour == 12:
        return 0
    return hour


def has_deadline_keyword(text: str, keywords: tuple[str, ...] = DEADLINE_KEYWORDS) -> bool:
    """Check whether text reads like a deadline ("까지", "마감", ...)."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _normalize(text: str) -> str:
    normalized = _WHITESPACE.sub(" ", text).strip()
    normalized = re.sub(r"^~\s*", "", normalized)
    if "~" in normalized:
        # Keep the "by" date of a range
        normalized = normalized.split("~")[-1].strip()
    if "부터" in normalized:
        normalized = normalized.split("부터")[0].strip()
    return normalized


def _extract_month_day(text: str) -> Optional[tuple[int, int]]:
    for pattern in _MONTH_DAY_PATTERNS:
        found = None
        for match in pattern.finditer(text):
            month, day = int(match.group(1)), int(match.group(2))
            if 1 <= month <= 12 and 1 <= day <= 31:
                found = (month, day)
        if found:
            return found
    return None


def _extract_time(text: str) -> Optional[tuple[int, int]]:
    match = _COLON_TIME.search(text)
    if match:
        return _to_24h(match.group(1), int(match.group(2))), int(match.group(3))

    match = _MERIDIEM_TIME.search(text)
    if match:
        minute = int(match.group(3)) if match.group(3) else 0
        return _to_24h(match.group(1), int(match.group(2))), minute

    if _MIDNIGHT in text:
        return 23, 59

    match = _HOUR_TIME.search(text)
    if match:
        minute = int(match.group(2)) if match.group(2) else 0
        return int(match.group(1)), minute

    return None


def _build(year: int, month: int, day: int, hour: int, minute: int) -> datetime:
    month = _clamp(month, 1, 12)
    day = _clamp(day, 1, calendar.monthrange(year, month)[1])
    return datetime(year, month, day, _clamp(hour, 0, 23), _clamp(minute, 0, 59))


def parse_date_text(
    text: Any,
    type_label: Optional[str] = None,
    now: Optional[datetime] = None,
    options: Optional[ParserOptions] = None,
) -> Optional[datetime]:
    """
    Parse a free-text Korean date fragment into a local datetime.

    Supported formats:
    - "~12.17까지" (range end, deadline -> 23:59)
    - "2025년 11월 3일 오후 2시" (explicit year, Korean AM/PM)
    - "11/3 23:59" (slash date, colon time)
    - "11.1부터" (start marker, text after it is ignored)

    Args:
        text: Date fragment, usually from qualification metadata
        type_label: Label of the key date, used as deadline context
        now: Reference time for year inference (defaults to datetime.now())
        options: Tunable constants

    Returns:
        Naive local datetime, or None when month or day cannot be determined
    """
    if not isinstance(text, str) or not text.strip():
        return None

    opts = options or DEFAULT_OPTIONS
    now = now or datetime.now()
    segment = _normalize(text)
    normalized = segment

    year_match = _YEAR.search(normalized)
    if year_match:
        year = int(year_match.group(1))
        year_inferred = False
        normalized = (normalized[:year_match.start()] + " " + normalized[year_match.end():]).strip()
    else:
        year = now.year
        year_inferred = True

    month_day = _extract_month_day(normalized)
    if month_day is None:
        logger.debug("date_text_unresolved", text=text)
        return None
    month, day = month_day

    time_of_day = _extract_time(normalized)
    if time_of_day is None:
        context = f"{segment} {type_label or ''}"
        if has_deadline_keyword(context, opts.deadline_keywords):
            time_of_day = opts.deadline_time
        else:
            time_of_day = opts.default_time
    hour, minute = time_of_day

    result = _build(year, month, day, hour, minute)

    if year_inferred and result < now - timedelta(days=opts.rollover_days):
        result = _build(year + 1, month, day, hour, minute)

    return result


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO timestamp into a naive local datetime.

    Accepts datetime objects and ISO strings, including the "Z" suffix.
    Aware values are converted to local time.

    Returns:
        datetime or None if the value is missing or invalid
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw[-1] in "Zz":
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def to_iso(value: datetime) -> str:
    """
    Format a datetime as a UTC ISO string with millisecond precision.

    Naive values are taken as local time: 2025-11-03 14:00 in KST
    becomes "2025-11-03T05:00:00.000Z".
    """
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
