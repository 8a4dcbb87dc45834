"""Local persistent state: a small key-value blob store holding JSON strings."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from core.models import PresenceRecord, UserProfile

logger = logging.getLogger(__name__)

USER_KEY = "whereabouts_user"
LOCATION_KEY = "whereabouts_location"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """All keys in one JSON object on disk, rewritten atomically on every change."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        """Current contents. A corrupt or non-object file reads as empty and is replaced on the next write."""
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt store file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring store file %s: expected an object, got %s", self.path, type(data).__name__)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class LocalState:
    """Typed access to the user profile and current presence record."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _load(self, key: str) -> dict[str, Any] | None:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt %s entry: %s", key, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring %s entry: expected an object, got %s", key, type(data).__name__)
            return None
        return data

    def load_profile(self) -> UserProfile | None:
        data = self._load(USER_KEY)
        if data is None:
            return None
        try:
            return UserProfile.from_dict(data)
        except (KeyError, ValueError) as exc:
            logger.warning("Ignoring unreadable user profile: %s", exc)
            return None

    def save_profile(self, profile: UserProfile) -> None:
        self.store.set(USER_KEY, json.dumps(profile.to_dict(), ensure_ascii=False))

    def load_record(self) -> PresenceRecord | None:
        data = self._load(LOCATION_KEY)
        if data is None:
            return None
        try:
            return PresenceRecord.from_dict(data)
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning("Ignoring unreadable presence record: %s", exc)
            return None

    def save_record(self, record: PresenceRecord) -> None:
        self.store.set(LOCATION_KEY, json.dumps(record.to_dict(), ensure_ascii=False))
