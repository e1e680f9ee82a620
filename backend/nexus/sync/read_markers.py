"""
Read markers: per-viewer, per-stream "last read" timestamps kept on this device.

Markers are never shared across devices. The JSON file store rewrites the whole file on
each change (small: one key per open stream).
"""
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Protocol

from nexus.core.constants import READ_MARKER_KEY_PREFIX
from nexus.store.types import coerce_timestamp, ensure_utc

logger = logging.getLogger(__name__)


def marker_key(user_id: str, scope: str, kind: str) -> str:
    """Key for one stream's marker, e.g. nexus_last_read_chat_<projectId>_<uid>."""
    return f"{READ_MARKER_KEY_PREFIX}_{kind}_{scope}_{user_id}"


class ReadMarkerStore(Protocol):
    def get(self, key: str) -> datetime | None:
        ...

    def set(self, key: str, value: datetime) -> None:
        ...


class MemoryReadMarkers:
    """In-process markers (tests, throwaway clients)."""

    def __init__(self) -> None:
        self._values: dict[str, datetime] = {}

    def get(self, key: str) -> datetime | None:
        return self._values.get(key)

    def set(self, key: str, value: datetime) -> None:
        self._values[key] = ensure_utc(value)


class JsonFileReadMarkers:
    """Markers persisted as {key: iso_timestamp} in one JSON file; survives restarts."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._values: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Read markers at %s unreadable; starting empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> datetime | None:
        return coerce_timestamp(self._values.get(key))

    def set(self, key: str, value: datetime) -> None:
        self._values[key] = ensure_utc(value).isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)
