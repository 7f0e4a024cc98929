"""
Local persistence for data that must survive without the remote backend.

Mirrors browser local storage: named string slots that are read and
rewritten whole. Backed by memory (tests), a JSON file, or Redis.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from backend.errors import ErrorKind, TimeBankError

logger = logging.getLogger(__name__)


class LocalStorage(Protocol):
    """Named string slots, read and written wholesale."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


@dataclass
class InMemoryLocalStorage:
    """Test double for local persistence."""

    items: dict = field(default_factory=dict)

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass
class JsonFileLocalStorage:
    """All slots kept as one JSON object in a file on local disk."""

    path: str

    def __post_init__(self):
        self._path = Path(self.path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            raise TimeBankError(
                ErrorKind.STORAGE, f"Could not read local storage {self._path}: {e}"
            ) from e

    def _write_all(self, slots: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(slots), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as e:
            raise TimeBankError(
                ErrorKind.STORAGE, f"Could not write local storage {self._path}: {e}"
            ) from e

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            slots = self._read_all()
            slots[key] = value
            self._write_all(slots)

    def remove_item(self, key: str) -> None:
        with self._lock:
            slots = self._read_all()
            if slots.pop(key, None) is not None:
                self._write_all(slots)


@dataclass
class RedisLocalStorage:
    """Slots kept as plain Redis string keys under a prefix."""

    url: str
    key_prefix: str = "timebank:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get_item(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(self._key(key))
        except redis_exceptions.RedisError as e:
            raise TimeBankError(
                ErrorKind.STORAGE, f"Could not read local storage slot {key}: {e}"
            ) from e
        return value.decode("utf-8") if value is not None else None

    def set_item(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value)
        except redis_exceptions.RedisError as e:
            raise TimeBankError(
                ErrorKind.STORAGE, f"Could not write local storage slot {key}: {e}"
            ) from e

    def remove_item(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis_exceptions.RedisError as e:
            raise TimeBankError(
                ErrorKind.STORAGE, f"Could not clear local storage slot {key}: {e}"
            ) from e


def load_list(storage: LocalStorage, key: str) -> list:
    """Reads a slot holding a JSON array; a missing slot reads as empty."""
    raw = storage.get_item(key)
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError as e:
        raise TimeBankError(
            ErrorKind.STORAGE, f"Local storage slot {key} is not valid JSON"
        ) from e
    if not isinstance(items, list):
        raise TimeBankError(
            ErrorKind.STORAGE, f"Local storage slot {key} does not hold a list"
        )
    return items


def append_to_list(storage: LocalStorage, key: str, item: dict) -> list:
    """Appends `item` to the slot's array and rewrites the whole slot."""
    items = load_list(storage, key)
    items.append(item)
    storage.set_item(key, json.dumps(items, default=str))
    return items
