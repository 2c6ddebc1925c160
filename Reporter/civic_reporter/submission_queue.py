from __future__ import annotations

import asyncio
import logging
from copy import deepcopy
from dataclasses import dataclass

from civic_reporter.errors import NetworkFailure
from civic_reporter.events import Signal, Unsubscribe
from civic_reporter.issue_client import IssueApiClient
from civic_reporter.queue_store import JsonFileStore, QueueStore

LOGGER = logging.getLogger(__name__)

CREATE_ISSUE = "create-issue"


@dataclass(frozen=True)
class FlushResult:
    attempted: int
    sent: int
    remaining: int


class SubmissionQueue:
    """FIFO of issue submissions that could not reach the server.

    Entries stay in enqueue order and are never deduplicated. A flush sends
    every queued submission once and writes back only those that failed; at
    most one flush runs at a time and overlapping triggers are dropped.
    """

    def __init__(self, client: IssueApiClient, store: QueueStore | None = None):
        self.client = client
        self.store = store or JsonFileStore()
        self.flushed = Signal("queue.flushed")
        self._flushing = False
        self._flush_task: asyncio.Task | None = None

    @property
    def flushing(self) -> bool:
        return self._flushing

    def pending(self) -> list[dict]:
        return self.store.get()

    def enqueue(self, payload: dict) -> int:
        entries = self.store.get()
        entries.append({"type": CREATE_ISSUE, "payload": deepcopy(payload)})
        self.store.set(entries)
        LOGGER.info("Submission queued offline (%s pending)", len(entries))
        return len(entries)

    async def flush(self) -> FlushResult | None:
        if self._flushing:
            LOGGER.info("Flush already in progress, trigger ignored")
            return None
        self._flushing = True
        try:
            return await self._flush_once()
        finally:
            self._flushing = False

    async def _flush_once(self) -> FlushResult:
        snapshot = self.store.get()
        if not snapshot:
            return FlushResult(attempted=0, sent=0, remaining=0)

        remaining: list = []
        attempted = 0
        failed = 0
        # entries from snapshot[position:] have not been settled yet
        position = 0
        try:
            for entry in snapshot:
                if not isinstance(entry, dict) or entry.get("type") != CREATE_ISSUE:
                    kind = entry.get("type") if isinstance(entry, dict) else type(entry).__name__
                    LOGGER.warning("Keeping queued entry of unknown type %r", kind)
                    remaining.append(entry)
                    position += 1
                    continue
                attempted += 1
                try:
                    await self.client.create_issue(entry.get("payload") or {})
                except NetworkFailure as exc:
                    LOGGER.warning("Queued submission still failing: %s", exc)
                    failed += 1
                    remaining.append(entry)
                position += 1
        finally:
            # enqueue only appends, so anything past the snapshot arrived mid-flush
            appended = self.store.get()[len(snapshot):]
            remaining.extend(snapshot[position:])
            self.store.set(remaining + appended)

        result = FlushResult(
            attempted=attempted,
            sent=attempted - failed,
            remaining=len(remaining) + len(appended),
        )
        LOGGER.info("Offline queue flushed: %s sent, %s remaining", result.sent, result.remaining)
        self.flushed.emit(result)
        return result

    def trigger_flush(self) -> asyncio.Task:
        """Schedule a flush on the running loop, reusing one that is still active."""
        if self._flush_task is not None and not self._flush_task.done():
            LOGGER.info("Flush already scheduled, trigger coalesced")
            return self._flush_task
        self._flush_task = asyncio.get_running_loop().create_task(self.flush())
        return self._flush_task

    async def wait_idle(self):
        task = self._flush_task
        if task is not None:
            await task

    def attach(self, monitor) -> Unsubscribe:
        return monitor.restored.subscribe(self.trigger_flush)
