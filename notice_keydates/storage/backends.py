"""
Durable key-value storage with change notification.

Backends mirror browser localStorage: string values under string keys, and
a "storage" notification delivered to every subscriber except the one
whose context made the write.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


Listener = Callable[[str], None]


class StorageError(Exception):
    """Raised when a backend cannot read or write a value."""


class KeyValueStorage(ABC):
    """
    Base class for storage backends.

    Subclasses implement _read/_write; notification fan-out lives here.
    """

    def __init__(self):
        self._listeners: list[tuple[Listener, object]] = []

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def _write(self, key: str, value: Optional[str]) -> None:
        ...

    def get_item(self, key: str) -> Optional[str]:
        """
        Read the value stored under key.

        Raises:
            StorageError: If the backend cannot be read
        """
        return self._read(key)

    def set_item(self, key: str, value: str, origin: object = None) -> None:
        """
        Store value under key and notify the other contexts.

        Args:
            key: Storage key
            value: Serialized value
            origin: Writing context; its own listeners are not notified

        Raises:
            StorageError: If the backend cannot be written
        """
        self._write(key, value)
        self._broadcast(key, origin)

    def remove_item(self, key: str, origin: object = None) -> None:
        self._write(key, None)
        self._broadcast(key, origin)

    def subscribe(self, listener: Listener, origin: object = None) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that unregisters the listener
        """
        entry = (listener, origin)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _broadcast(self, key: str, origin: object) -> None:
        for listener, owner in list(self._listeners):
            if origin is not None and owner is origin:
                continue
            try:
                listener(key)
            except Exception as e:
                logger.error("storage_listener_failed", key=key, error=str(e))


class MemoryStorage(KeyValueStorage):
    """In-process storage; contexts sharing one instance see each other's writes."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        super().__init__()
        self._data: dict[str, str] = dict(initial or {})

    def _read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value


class JsonFileStorage(KeyValueStorage):
    """
    One JSON file per key in a directory.

    Writes are atomic (temp file + rename). Writes made by other processes
    are picked up by poll(), which broadcasts them to every local context.
    """

    def __init__(self, directory: str):
        super().__init__()
        self.directory = Path(directory)
        self._mtimes: dict[str, Optional[int]] = {}

    def path_for(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.directory / f"{safe}.json"

    def _mtime(self, key: str) -> Optional[int]:
        try:
            return self.path_for(key).stat().st_mtime_ns
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot stat {self.path_for(key)}: {e}") from e

    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._mtimes[key] = None
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        self._mtimes[key] = self._mtime(key)
        return content

    def _write(self, key: str, value: Optional[str]) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            if value is None:
                path.unlink(missing_ok=True)
            else:
                path.parent.mkdir(parents=True, exist_ok=True)
                with tmp_path.open("w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning("storage_tmp_cleanup_failed", path=str(tmp_path), error=str(cleanup_error))
            raise StorageError(f"Cannot write {path}: {e}") from e
        self._mtimes[key] = self._mtime(key)

    def poll(self) -> list[str]:
        """
        Detect keys changed on disk by another process.

        Returns:
            Keys whose files changed since this instance last touched them
        """
        changed = []
        for key, known in list(self._mtimes.items()):
            current = self._mtime(key)
            if current != known:
                self._mtimes[key] = current
                changed.append(key)
                logger.debug("storage_external_change", key=key)
                self._broadcast(key, None)
        return changed
