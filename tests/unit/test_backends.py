"""Tests for key-value storage backends."""

import os

import pytest

from notice_keydates.storage.backends import JsonFileStorage, MemoryStorage, StorageError


class TestMemoryStorage:
    """Tests for MemoryStorage and the shared notification logic."""

    def test_get_set_remove(self):
        """Test basic item access."""
        storage = MemoryStorage({"a": "1"})

        assert storage.get_item("a") == "1"
        storage.set_item("b", "2")
        assert storage.get_item("b") == "2"
        storage.remove_item("a")
        assert storage.get_item("a") is None

    def test_writer_not_notified(self):
        """Test listeners of the writing context are skipped."""
        storage = MemoryStorage()
        writer, other = object(), object()
        seen = []
        storage.subscribe(lambda key: seen.append(("writer", key)), origin=writer)
        storage.subscribe(lambda key: seen.append(("other", key)), origin=other)

        storage.set_item("k", "v", origin=writer)

        assert seen == [("other", "k")]

    def test_anonymous_write_notifies_everyone(self):
        """Test a write without origin reaches every listener."""
        storage = MemoryStorage()
        seen = []
        storage.subscribe(seen.append, origin=object())
        storage.subscribe(seen.append)

        storage.set_item("k", "v")

        assert seen == ["k", "k"]

    def test_remove_notifies(self):
        """Test removal is broadcast like a write."""
        storage = MemoryStorage({"k": "v"})
        seen = []
        storage.subscribe(seen.append)

        storage.remove_item("k")

        assert seen == ["k"]

    def test_unsubscribe(self):
        """Test an unsubscribed listener is no longer called."""
        storage = MemoryStorage()
        seen = []
        unsubscribe = storage.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        storage.set_item("k", "v")

        assert seen == []
        assert storage.listener_count == 0

    def test_failing_listener_isolated(self):
        """Test one failing listener does not stop the others."""
        storage = MemoryStorage()
        seen = []

        def broken(key):
            raise RuntimeError("boom")

        storage.subscribe(broken)
        storage.subscribe(seen.append)

        storage.set_item("k", "v")

        assert seen == ["k"]


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_missing_key(self, tmp_path):
        """Test an absent file reads as None."""
        assert JsonFileStorage(str(tmp_path)).get_item("events") is None

    def test_write_and_read(self, tmp_path):
        """Test values round-trip through the file."""
        storage = JsonFileStorage(str(tmp_path / "nested"))
        storage.set_item("events", '[{"id": "1"}]')

        assert storage.get_item("events") == '[{"id": "1"}]'
        assert (tmp_path / "nested" / "events.json").exists()

    def test_no_temp_file_left(self, tmp_path):
        """Test the atomic write leaves only the target file."""
        storage = JsonFileStorage(str(tmp_path))
        storage.set_item("events", "[]")

        assert sorted(os.listdir(tmp_path)) == ["events.json"]

    def test_key_sanitized(self, tmp_path):
        """Test keys cannot escape the storage directory."""
        storage = JsonFileStorage(str(tmp_path))
        assert storage.path_for("../evil key").parent == tmp_path

    def test_remove(self, tmp_path):
        """Test removal deletes the file and tolerates absence."""
        storage = JsonFileStorage(str(tmp_path))
        storage.set_item("events", "[]")

        storage.remove_item("events")
        storage.remove_item("events")

        assert storage.get_item("events") is None

    def test_unreadable_path_raises(self, tmp_path):
        """Test a directory in place of the file raises StorageError."""
        storage = JsonFileStorage(str(tmp_path))
        storage.path_for("events").mkdir()

        with pytest.raises(StorageError):
            storage.get_item("events")

    def test_failed_write_removes_temp_file(self, tmp_path, monkeypatch):
        """Test a failed rename raises StorageError and leaves no temp file."""
        storage = JsonFileStorage(str(tmp_path))

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("notice_keydates.storage.backends.os.replace", failing_replace)

        with pytest.raises(StorageError):
            storage.set_item("events", "[]")

        assert os.listdir(tmp_path) == []

    def test_poll_detects_other_writer(self, tmp_path):
        """Test poll() broadcasts a write made through another instance."""
        reader = JsonFileStorage(str(tmp_path))
        writer = JsonFileStorage(str(tmp_path))
        seen = []
        reader.subscribe(seen.append, origin=object())

        assert reader.get_item("events") is None
        writer.set_item("events", "[]")

        assert reader.poll() == ["events"]
        assert seen == ["events"]
        assert reader.poll() == []

    def test_poll_ignores_own_writes(self, tmp_path):
        """Test the instance's own writes are not reported again."""
        storage = JsonFileStorage(str(tmp_path))
        storage.set_item("events", "[]")

        assert storage.poll() == []
