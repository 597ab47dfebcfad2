"""
Storage layer - durable state for the user's calendar.

Components:
- backends: Key-value storage (memory, JSON files) with change notification
- calendar_store: CalendarEventStore with idempotent add and bulk sync
"""

from .backends import JsonFileStorage, KeyValueStorage, MemoryStorage, StorageError
from .calendar_store import STORAGE_KEY, CalendarEventStore, generate_event_id

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "StorageError",
    "STORAGE_KEY",
    "CalendarEventStore",
    "generate_event_id",
]
