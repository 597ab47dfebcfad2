"""
Data models for key dates, calendar events and eligibility results.

Persisted and display-facing shapes keep the camelCase / snake_case keys
the frontend and backend already exchange.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class EventSource(str, Enum):
    """How a calendar event was created."""
    MANUAL = "manual"  # Explicit user action
    AUTO = "auto"  # Bulk reconciliation from notice metadata


class AddStatus(str, Enum):
    """Outcome of adding a calendar event."""
    ADDED = "added"
    DUPLICATE = "duplicate"


class Eligibility(str, Enum):
    """Backend judgment of whether the user qualifies for a notice."""
    ELIGIBLE = "ELIGIBLE"
    BORDERLINE = "BORDERLINE"
    INELIGIBLE = "INELIGIBLE"


@dataclass(frozen=True)
class KeyDateEntry:
    """
    A dated entry derived from a notice's qualification metadata.

    date_text is always the verbatim fragment, even when parsed_date is None.
    """

    id: str
    type_label: str
    date_text: str
    parsed_date: Optional[datetime] = None

    @property
    def can_auto_save(self) -> bool:
        """True when the entry resolved to a concrete timestamp."""
        return self.parsed_date is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "typeLabel": self.type_label,
            "dateText": self.date_text,
            "parsedDate": self.parsed_date.isoformat() if self.parsed_date else None,
        }


# Serialized keys of CalendarEvent, in persisted order
EVENT_FIELDS = ("id", "noticeId", "title", "startDate", "endDate", "createdAt", "source")


@dataclass
class CalendarEvent:
    """A user-tracked event persisted in the local calendar store."""

    id: str
    notice_id: str
    title: str
    start_date: str  # UTC ISO string
    end_date: Optional[str] = None
    created_at: str = ""
    source: EventSource = EventSource.MANUAL

    # Unknown persisted fields, written back untouched
    extra: dict = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for duplicate detection."""
        return (self.notice_id, self.start_date)

    @classmethod
    def from_dict(cls, data: dict) -> "CalendarEvent":
        """
        Build an event from its persisted form.

        Raises:
            ValueError: If id, noticeId or startDate is missing
        """
        for required in ("id", "noticeId", "startDate"):
            if data.get(required) in (None, ""):
                raise ValueError(f"Missing required field: {required}")

        try:
            source = EventSource(data.get("source") or EventSource.MANUAL.value)
        except ValueError:
            source = EventSource.MANUAL

        return cls(
            id=str(data["id"]),
            notice_id=str(data["noticeId"]),
            title=str(data.get("title") or ""),
            start_date=str(data["startDate"]),
            end_date=data.get("endDate") or None,
            created_at=str(data.get("createdAt") or ""),
            source=source,
            extra={k: v for k, v in data.items() if k not in EVENT_FIELDS},
        )

    def to_dict(self) -> dict:
        """Convert to the persisted camelCase form."""
        return {
            **self.extra,
            "id": self.id,
            "noticeId": self.notice_id,
            "title": self.title,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "createdAt": self.created_at,
            "source": self.source.value,
        }


@dataclass
class CalendarEventInput:
    """Request to add a calendar event."""
    notice_id: Any
    title: str
    start_date: datetime
    end_date: Optional[datetime] = None
    source: EventSource = EventSource.MANUAL


@dataclass(frozen=True)
class AddEventResult:
    """Result of CalendarEventStore.add_event."""
    status: AddStatus
    event: CalendarEvent

    @property
    def added(self) -> bool:
        return self.status is AddStatus.ADDED


@dataclass
class Notice:
    """
    Notice record as returned by the notice-detail fetch.

    Only the fields this package reads are kept.
    """

    id: Any
    title: str = ""
    start_at_ai: Optional[str] = None
    end_at_ai: Optional[str] = None
    qualification_ai: Any = None
    hashtags_ai: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Notice":
        return cls(
            id=data.get("id"),
            title=data.get("title") or "",
            start_at_ai=data.get("start_at_ai"),
            end_at_ai=data.get("end_at_ai"),
            qualification_ai=data.get("qualification_ai"),
            hashtags_ai=data.get("hashtags_ai"),
        )


@dataclass
class CriteriaResults:
    """Per-criterion outcome lists."""
    pass_: list[str] = field(default_factory=list)
    fail: list[str] = field(default_factory=list)
    verify: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.pass_) + len(self.fail) + len(self.verify)

    def to_dict(self) -> dict:
        return {"pass": list(self.pass_), "fail": list(self.fail), "verify": list(self.verify)}


@dataclass
class EligibilityResult:
    """Display-ready eligibility verdict for one notice."""

    notice_id: str
    eligibility: Optional[Eligibility]
    checked_at: str
    reasons: list[str] = field(default_factory=list)
    criteria_results: CriteriaResults = field(default_factory=CriteriaResults)
    missing_info: list[str] = field(default_factory=list)
    reason_codes: list[str] = field(default_factory=list)
    raw: Any = None

    @property
    def is_info_notice(self) -> bool:
        """Informational notices carry no verdict worth displaying."""
        return "INFO_NOTICE" in self.reason_codes

    @property
    def pass_percentage(self) -> int:
        total = self.criteria_results.total
        if total == 0:
            return 0
        return int(len(self.criteria_results.pass_) * 100 / total + 0.5)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["eligibility"] = self.eligibility.value if self.eligibility else None
        data["criteria_results"] = self.criteria_results.to_dict()
        return data
