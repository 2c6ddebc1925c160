from __future__ import annotations

import logging
import threading
from copy import deepcopy
from typing import Callable

from civic_api.utils import new_id

LOGGER = logging.getLogger(__name__)


class MemoryCollection:
    """Process-local record store keyed by ``id``.

    Data is lost on restart. Every read hands out a copy and every mutation
    runs under the collection lock, so route handlers running in the
    threadpool never observe a half-applied update.
    """

    def __init__(self, name: str):
        self.name = name
        self._docs: dict[str, dict] = {}
        self._lock = threading.RLock()

    def insert_one(self, doc: dict) -> dict:
        record = deepcopy(doc)
        with self._lock:
            record_id = record.get("id")
            if not record_id:
                record_id = new_id()
                while record_id in self._docs:
                    record_id = new_id()
            record["id"] = record_id
            self._docs[record_id] = record
            return deepcopy(record)

    def find_one(self, doc_id: str) -> dict | None:
        with self._lock:
            doc = self._docs.get(doc_id)
            return deepcopy(doc) if doc is not None else None

    def find(self, predicate: Callable[[dict], bool] | None = None) -> list[dict]:
        with self._lock:
            rows = [deepcopy(doc) for doc in self._docs.values()]
        if predicate is None:
            return rows
        return [row for row in rows if predicate(row)]

    def update_one(self, doc_id: str, mutate: Callable[[dict], None]) -> dict | None:
        with self._lock:
            doc = self._docs.get(doc_id)
            if doc is None:
                return None
            mutate(doc)
            return deepcopy(doc)

    def count(self) -> int:
        with self._lock:
            return len(self._docs)

    def delete_many(self) -> int:
        with self._lock:
            removed = len(self._docs)
            self._docs.clear()
            return removed


issues = MemoryCollection("issues")
community_posts = MemoryCollection("community_posts")
community_events = MemoryCollection("community_events")
profiles = MemoryCollection("profiles")

ALL_COLLECTIONS = (issues, community_posts, community_events, profiles)


def init_db():
    total = 0
    for collection in ALL_COLLECTIONS:
        total += collection.delete_many()
    if total:
        LOGGER.info("In-memory store reset, dropped %s records", total)
