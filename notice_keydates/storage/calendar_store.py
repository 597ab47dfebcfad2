"""
Calendar event store backed by durable key-value storage.

The persisted event list is the single source of truth: every operation
re-reads it in full, mutates it in full and writes it back in one call.
Contexts sharing the storage converge through change notifications.

Known limitation: two contexts can both pass the duplicate check against
stale state and both write. No cross-context locking is attempted.
"""

import calendar
import json
import uuid
from datetime import datetime
from typing import Callable, Iterable, Optional, Union

import structlog

from notice_keydates.core.date_parser import parse_iso_datetime, to_iso
from notice_keydates.core.models import (
    AddEventResult,
    AddStatus,
    CalendarEvent,
    CalendarEventInput,
    EventSource,
    Notice,
)

from .backends import KeyValueStorage, StorageError

logger = structlog.get_logger(__name__)


STORAGE_KEY = "dice_calendar_events"
DEFAULT_EVENT_TITLE = "공지사항"

Observer = Callable[[list[CalendarEvent]], None]


def generate_event_id(now: datetime) -> str:
    """Locally unique event id, e.g. "event_1762146000000_3f9a1c2"."""
    return f"event_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:7]}"


def _notice_dates(notice: Notice) -> Optional[tuple[str, Optional[str]]]:
    raw_start = notice.start_at_ai if notice.start_at_ai else notice.end_at_ai
    start = parse_iso_datetime(raw_start)
    if start is None:
        return None
    end = parse_iso_datetime(notice.end_at_ai)
    return to_iso(start), to_iso(end) if end else None


class CalendarEventStore:
    """
    User calendar of notice events with idempotent add.

    Lifecycle: construction subscribes to storage notifications and
    hydrates; close() unsubscribes. Usable as a context manager.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = STORAGE_KEY,
        clock: Optional[Callable[[], datetime]] = None,
        default_title: str = DEFAULT_EVENT_TITLE,
    ):
        """
        Initialize the store.

        Args:
            storage: Durable storage shared with other contexts
            key: Storage key of the event list
            clock: Returns the current time (defaults to datetime.now)
            default_title: Title for auto events of untitled notices
        """
        self.storage = storage
        self.key = key
        self.default_title = default_title
        self._clock = clock or datetime.now
        self._events: list[CalendarEvent] = []
        self._observers: list[Observer] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.open()

    # Lifecycle

    def open(self) -> None:
        """Subscribe to storage changes and hydrate. Idempotent."""
        if self._unsubscribe is None:
            self._unsubscribe = self.storage.subscribe(self._on_storage_change, origin=self)
        self.hydrate()

    def close(self) -> None:
        """Stop listening to storage changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def closed(self) -> bool:
        return self._unsubscribe is None

    def __enter__(self) -> "CalendarEventStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Observation

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer called with the event list after every change.

        Returns:
            Callable that unregisters the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = list(self._events)
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception as e:
                logger.error("calendar_observer_failed", error=str(e))

    def _on_storage_change(self, key: str) -> None:
        if key == self.key:
            logger.debug("calendar_external_change", key=key)
            self.hydrate()

    # Persistence

    def _load(self) -> list[CalendarEvent]:
        try:
            raw = self.storage.get_item(self.key)
        except StorageError as e:
            logger.error("calendar_read_failed", key=self.key, error=str(e))
            return []

        if not raw:
            return []

        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("calendar_decode_failed", key=self.key, error=str(e))
            return []

        if not isinstance(rows, list):
            logger.error("calendar_payload_not_list", key=self.key, type=type(rows).__name__)
            return []

        events = []
        for row in rows:
            if not isinstance(row, dict):
                logger.warning("calendar_row_skipped", reason="not an object")
                continue
            try:
                events.append(CalendarEvent.from_dict(row))
            except ValueError as e:
                logger.warning("calendar_row_skipped", reason=str(e))
        return events

    def _commit(self, events: list[CalendarEvent]) -> None:
        payload = json.dumps([event.to_dict() for event in events], ensure_ascii=False)
        try:
            self.storage.set_item(self.key, payload, origin=self)
        except StorageError as e:
            # Not retried; memory keeps the optimistic state until next hydrate
            logger.error("calendar_write_failed", key=self.key, events=len(events), error=str(e))
        self._events = events
        self._notify()

    def hydrate(self) -> list[CalendarEvent]:
        """Re-read durable state into memory and notify observers."""
        self._events = self._load()
        self._notify()
        return list(self._events)

    # Operations

    def add_event(self, event_input: CalendarEventInput) -> AddEventResult:
        """
        Add an event unless one exists for the same notice and start time.

        Args:
            event_input: Notice id, title, start/end datetimes and source

        Returns:
            AddEventResult with status ADDED and the new event, or
            DUPLICATE and the already stored event (nothing is written)
        """
        existing = self._load()
        notice_id = str(event_input.notice_id)
        start_iso = to_iso(event_input.start_date)

        for event in existing:
            if event.notice_id == notice_id and event.start_date == start_iso:
                logger.info("calendar_event_duplicate", notice_id=notice_id, start=start_iso)
                return AddEventResult(status=AddStatus.DUPLICATE, event=event)

        now = self._clock()
        event = CalendarEvent(
            id=generate_event_id(now),
            notice_id=notice_id,
            title=event_input.title,
            start_date=start_iso,
            end_date=to_iso(event_input.end_date) if event_input.end_date else None,
            created_at=to_iso(now),
            source=EventSource(event_input.source),
        )
        self._commit(existing + [event])
        logger.info("calendar_event_added", event_id=event.id, notice_id=notice_id, start=start_iso)
        return AddEventResult(status=AddStatus.ADDED, event=event)

    def remove_event(self, event_id: str) -> None:
        """Remove an event by id. Unknown ids are ignored."""
        existing = self._load()
        remaining = [event for event in existing if event.id != event_id]
        self._commit(remaining)
        if len(remaining) != len(existing):
            logger.info("calendar_event_removed", event_id=event_id)

    def sync_notice_events(self, notices: Iterable[Union[Notice, dict]]) -> list[CalendarEvent]:
        """
        Add auto events for notices with AI-derived dates, in one write.

        Notices without a parseable start (or, when start is absent, end)
        timestamp are skipped, as are (notice, start) pairs already stored
        or already staged in this batch.

        Returns:
            Newly added events
        """
        notices = list(notices or [])
        if not notices:
            return []

        existing = self._load()
        keys = {event.key for event in existing}
        additions: list[CalendarEvent] = []
        now = self._clock()

        for item in notices:
            notice = Notice.from_dict(item) if isinstance(item, dict) else item
            if notice.id is None:
                continue
            dates = _notice_dates(notice)
            if dates is None:
                continue
            start_iso, end_iso = dates

            key = (str(notice.id), start_iso)
            if key in keys:
                continue
            keys.add(key)

            additions.append(CalendarEvent(
                id=generate_event_id(now),
                notice_id=str(notice.id),
                title=notice.title or self.default_title,
                start_date=start_iso,
                end_date=end_iso,
                created_at=to_iso(now),
                source=EventSource.AUTO,
            ))

        if not additions:
            return []

        self._commit(existing + additions)
        logger.info("calendar_notices_synced", added=len(additions), notices=len(notices))
        return additions

    # Queries

    def list_events(self) -> list[CalendarEvent]:
        """Events as of the last hydrate or local write."""
        return list(self._events)

    def events_between(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        """Events overlapping [start, end] (naive local datetimes)."""
        matched = []
        for event in self._events:
            event_start = parse_iso_datetime(event.start_date)
            if event_start is None:
                continue
            event_end = parse_iso_datetime(event.end_date) or event_start
            if (
                start <= event_start <= end
                or start <= event_end <= end
                or (event_start <= start and event_end >= end)
            ):
                matched.append(event)
        return matched

    def events_in_month(self, year: int, month: int) -> list[CalendarEvent]:
        """Events overlapping a calendar month (month is 1-12)."""
        last_day = calendar.monthrange(year, month)[1]
        return self.events_between(
            datetime(year, month, 1),
            datetime(year, month, last_day, 23, 59, 59, 999000),
        )

    def __len__(self) -> int:
        return len(self._events)
