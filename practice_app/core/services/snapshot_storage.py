"""Key/value backends for ephemeral tab-survival snapshots."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

from practice_app.core.errors import SnapshotStorageError

logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    """Storage slot API: values are JSON-compatible dicts keyed by slot name."""

    def read(self, key: str) -> dict[str, Any] | None: ...

    def write(self, key: str, value: dict[str, Any]) -> None: ...

    def delete(self, key: str) -> None: ...


class MemorySnapshotStorage:
    """Process-local storage; values are round-tripped through JSON like the file backend."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._slots: dict[str, str] = {}

    def read(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            raw = self._slots.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise SnapshotStorageError(f"Slot {key!r} holds invalid JSON") from exc

    def write(self, key: str, value: dict[str, Any]) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise SnapshotStorageError(f"Snapshot for {key!r} is not serializable") from exc
        with self._lock:
            self._slots[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._slots.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._slots)


class JsonFileSnapshotStorage:
    """One JSON file per slot inside ``directory``; file names are hashed slot keys."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def read(self, key: str) -> dict[str, Any] | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise SnapshotStorageError(f"Failed to read snapshot {path.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise SnapshotStorageError(f"Snapshot {path.name} is not a JSON object")
        return data

    def write(self, key: str, value: dict[str, Any]) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False)
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise SnapshotStorageError(f"Failed to write snapshot {path.name}: {exc}") from exc
        logger.debug("Wrote snapshot %s", path.name)

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise SnapshotStorageError(f"Failed to delete snapshot {path.name}: {exc}") from exc
