"""
Key-Value Storage Module.
Persists privacy state (plugin settings, camera configs, audit log) as
string values under string keys.
Uses YAML for simple, human-readable storage.
"""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal string storage consumed by the core modules."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Returns the stored string, or None if the key is missing."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Stores ``value`` under ``key``.

        Raises:
            OSError: If the value could not be persisted.
        """


class MemoryStore(KeyValueStore):
    """Process-local store, used in tests and when no file is configured."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class YamlFileStore(KeyValueStore):
    """Stores all keys in one YAML mapping file."""

    def __init__(self, storage_path: str | None = None):
        """
        Initialize file storage.

        Args:
            storage_path: Path to the YAML file. Defaults to STORAGE_FILE from config.
        """
        if storage_path:
            self.storage_path = Path(storage_path)
        else:
            from config import get_config

            self.storage_path = Path(get_config()["STORAGE_FILE"])

        self._lock = threading.Lock()
        self._data: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        """Load the mapping from disk; malformed content yields an empty mapping."""
        if self._data is not None:
            return self._data

        data: dict[str, str] = {}
        if self.storage_path.exists():
            try:
                with open(self.storage_path, encoding="utf-8") as f:
                    raw = yaml.safe_load(f) or {}
                if isinstance(raw, dict):
                    data = {str(k): str(v) for k, v in raw.items() if v is not None}
                else:
                    logger.warning(
                        f"Ignoring malformed storage file {self.storage_path}"
                    )
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load storage {self.storage_path}: {e}")

        self._data = data
        return data

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = dict(self._load())
            data[key] = value
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.storage_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
            self._data = data
