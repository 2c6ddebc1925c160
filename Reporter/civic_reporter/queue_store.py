from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from copy import deepcopy
from pathlib import Path

from civic_reporter.config import settings

LOGGER = logging.getLogger(__name__)


class QueueStore:
    """Durable home of the pending-submission list: whole-list reads and writes."""

    def get(self) -> list[dict]:
        raise NotImplementedError

    def set(self, entries: list[dict]) -> None:
        raise NotImplementedError


class MemoryStore(QueueStore):
    def __init__(self, entries: list[dict] | None = None):
        self._entries = deepcopy(entries or [])
        self.writes = 0

    def get(self) -> list[dict]:
        return deepcopy(self._entries)

    def set(self, entries: list[dict]) -> None:
        self._entries = deepcopy(entries)
        self.writes += 1


class JsonFileStore(QueueStore):
    """Key/value JSON file, one key per list, rewritten atomically on every set."""

    def __init__(self, path: str | Path | None = None, key: str | None = None):
        self.path = Path(path or settings.QUEUE_PATH).expanduser()
        self.key = key or settings.QUEUE_KEY
        self._lock = threading.Lock()

    def _set_aside(self, reason) -> None:
        corrupt = self.path.with_name(self.path.name + ".corrupt")
        try:
            os.replace(self.path, corrupt)
        except OSError as exc:
            LOGGER.warning("Could not move unreadable queue storage %s aside: %s", self.path, exc)
            return
        LOGGER.warning("Queue storage %s is unreadable (%s), moved to %s", self.path, reason, corrupt)

    def _read_all(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError as exc:
            self._set_aside(exc)
            return {}
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            self._set_aside(exc)
            return {}
        if not isinstance(data, dict):
            self._set_aside(f"top level is {type(data).__name__}")
            return {}
        return data

    def get(self) -> list[dict]:
        with self._lock:
            entries = self._read_all().get(self.key) or []
        return entries if isinstance(entries, list) else []

    def set(self, entries: list[dict]) -> None:
        with self._lock:
            data = self._read_all()
            data[self.key] = entries
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".queue-", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
