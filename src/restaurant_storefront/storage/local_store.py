"""Durable local key/value storage.

A small string-to-string store in the spirit of browser localStorage. The cart
engine is its only user. Reads and writes are synchronous but fallible: I/O
failures are logged and reported through return values, never raised. A store
whose content cannot be parsed is reported as CorruptLocalStateError on read
and moved aside, not overwritten, on the next write.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import suppress
from pathlib import Path

from restaurant_storefront.errors import CorruptLocalStateError

logger = logging.getLogger(__name__)


class LocalStore(ABC):
    """Abstract string key/value store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or the store cannot be read.

        Raises:
            CorruptLocalStateError: If the store exists but its content is not parseable
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        """Store a value. Returns True on success."""
        pass

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Remove a key if present. Returns True on success."""
        pass


class InMemoryStore(LocalStore):
    """Process-local store, mainly for tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> bool:
        self.values[key] = value
        return True

    def remove(self, key: str) -> bool:
        self.values.pop(key, None)
        return True


class JsonFileStore(LocalStore):
    """Store persisted as a single JSON object file.

    Every write rewrites the whole file through a temporary file and an atomic
    rename, so a crash never leaves a half-written store behind. A corrupt file
    is renamed to ``<name>.corrupt`` before the first write that replaces it.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON file; created on first write
        """
        self.path = Path(path)

    @property
    def quarantine_path(self) -> Path:
        """Where an unparseable store file is kept for inspection."""
        return self.path.with_name(f"{self.path.name}.corrupt")

    def get(self, key: str) -> str | None:
        values = self._read_all()
        if values is None:
            return None
        value = values.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> bool:
        try:
            values = self._read_all()
        except CorruptLocalStateError:
            if not self._quarantine():
                return False
            values = {}
        if values is None:
            return False
        values[key] = value
        return self._write_all(values)

    def remove(self, key: str) -> bool:
        try:
            values = self._read_all()
        except CorruptLocalStateError:
            return self._quarantine()
        if values is None:
            return False
        if key not in values:
            return True
        del values[key]
        return self._write_all(values)

    def _read_all(self) -> dict[str, str] | None:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            logger.error(f"Failed to read local store {self.path}: {e}")
            return None
        except ValueError as e:
            raise CorruptLocalStateError(f"Local store {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CorruptLocalStateError(f"Local store {self.path} does not contain a JSON object")
        return data

    def _quarantine(self) -> bool:
        try:
            os.replace(self.path, self.quarantine_path)
        except OSError as e:
            logger.error(f"Failed to move corrupt local store {self.path} aside: {e}")
            return False
        logger.warning(f"Moved corrupt local store {self.path} to {self.quarantine_path}")
        return True

    def _write_all(self, values: dict[str, str]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        except OSError as e:
            logger.error(f"Failed to write local store {self.path}: {e}")
            return False

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(values, f)
            os.replace(tmp_path, self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write local store {self.path}: {e}")
            with suppress(OSError):
                os.unlink(tmp_path)
            return False
