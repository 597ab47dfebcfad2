"""
Integration tests for multiple calendar contexts sharing one storage.

Each CalendarEventStore stands in for a browser tab: writes reach the
other contexts through storage notifications, never the writer itself.
"""

from datetime import datetime

from notice_keydates.core.models import AddStatus, CalendarEventInput
from notice_keydates.storage import CalendarEventStore, JsonFileStorage, MemoryStorage


DEADLINE = datetime(2025, 12, 17, 23, 59)


def _event(notice_id, start=DEADLINE):
    return CalendarEventInput(notice_id=notice_id, title="t", start_date=start)


class TestSharedMemoryStorage:
    """Tests for contexts sharing a MemoryStorage."""

    def test_other_context_hydrates(self, memory_storage, clock):
        """Test a write in one context shows up in the other."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        tab_b = CalendarEventStore(memory_storage, clock=clock)

        event = tab_a.add_event(_event(1)).event

        assert tab_b.list_events() == [event]

    def test_writer_not_rehydrated(self, memory_storage, clock):
        """Test the writing context is not notified of its own write."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        tab_b = CalendarEventStore(memory_storage, clock=clock)
        seen_a, seen_b = [], []
        tab_a.subscribe(seen_a.append)
        tab_b.subscribe(seen_b.append)

        tab_a.add_event(_event(1))

        assert len(seen_a) == 1
        assert len(seen_b) == 1

    def test_duplicate_across_contexts(self, memory_storage, clock):
        """Test an add in one context blocks the same add in another."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        tab_b = CalendarEventStore(memory_storage, clock=clock)

        first = tab_a.add_event(_event(1))
        second = tab_b.add_event(_event(1))

        assert second.status is AddStatus.DUPLICATE
        assert second.event.id == first.event.id

    def test_remove_propagates(self, memory_storage, clock):
        """Test removals reach the other context."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        tab_b = CalendarEventStore(memory_storage, clock=clock)
        event = tab_a.add_event(_event(1)).event

        tab_b.remove_event(event.id)

        assert tab_a.list_events() == []

    def test_sync_propagates(self, memory_storage, clock):
        """Test a bulk sync reaches the other context in one notification."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        tab_b = CalendarEventStore(memory_storage, clock=clock)
        seen = []
        tab_b.subscribe(seen.append)

        tab_a.sync_notice_events([
            {"id": 1, "start_at_ai": "2025-11-01T00:00:00"},
            {"id": 2, "start_at_ai": "2025-11-02T00:00:00"},
        ])

        assert len(seen) == 1
        assert len(tab_b) == 2

    def test_closed_context_stops_listening(self, memory_storage, clock):
        """Test a closed context no longer follows other writes."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        with CalendarEventStore(memory_storage, clock=clock) as tab_b:
            pass

        tab_a.add_event(_event(1))

        assert tab_b.closed
        assert tab_b.list_events() == []
        assert memory_storage.listener_count == 1

    def test_reopen_hydrates(self, memory_storage, clock):
        """Test reopening a context picks up writes made while closed."""
        tab_a = CalendarEventStore(memory_storage, clock=clock)
        tab_b = CalendarEventStore(memory_storage, clock=clock)
        tab_b.close()
        tab_a.add_event(_event(1))

        tab_b.open()

        assert len(tab_b) == 1

    def test_other_keys_ignored(self, memory_storage, clock):
        """Test writes to unrelated keys do not trigger a hydrate."""
        tab = CalendarEventStore(memory_storage, clock=clock)
        seen = []
        tab.subscribe(seen.append)

        memory_storage.set_item("unrelated", "{}")

        assert seen == []


class TestFileStorageAcrossProcesses:
    """Tests for contexts in separate processes sharing a directory."""

    def test_poll_picks_up_external_write(self, tmp_path, clock):
        """Test poll() rehydrates a context after another process writes."""
        local = CalendarEventStore(JsonFileStorage(str(tmp_path)), clock=clock)
        remote = CalendarEventStore(JsonFileStorage(str(tmp_path)), clock=clock)

        event = remote.add_event(_event(1)).event
        assert local.list_events() == []

        local.storage.poll()

        assert local.list_events() == [event]

    def test_state_survives_restart(self, tmp_path, clock):
        """Test a new context reads what an earlier one wrote."""
        with CalendarEventStore(JsonFileStorage(str(tmp_path)), clock=clock) as first:
            first.add_event(_event(1))
            first.add_event(_event(2))

        with CalendarEventStore(JsonFileStorage(str(tmp_path)), clock=clock) as second:
            assert [e.notice_id for e in second.list_events()] == ["1", "2"]
            assert second.add_event(_event(1)).status is AddStatus.DUPLICATE
