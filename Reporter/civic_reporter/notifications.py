from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from civic_reporter.config import settings
from civic_reporter.events import Signal
from civic_reporter.issue_client import IssueApiClient
from civic_reporter.models import ACTIONABLE_STATUSES

LOGGER = logging.getLogger(__name__)
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class NotificationItem:
    id: str
    kind: str
    title: str
    meta: str
    href: str
    at: str


def _parse_dt(value) -> datetime | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def is_actionable(issue: dict) -> bool:
    return issue.get("status") in ACTIONABLE_STATUSES


def build_notifications(issues: list[dict], events: list[dict]) -> list[NotificationItem]:
    items = []
    for issue in issues:
        if not is_actionable(issue):
            continue
        meta = "Needs verification" if issue.get("status") == "submitted" else "Pending verification"
        items.append(
            NotificationItem(
                id=str(issue.get("id") or ""),
                kind="issue",
                title=issue.get("title") or "",
                meta=meta,
                href="/issues",
                at=issue.get("createdAt") or "",
            )
        )
    for event in events:
        starts_at = _parse_dt(event.get("startsAt"))
        day = starts_at.date().isoformat() if starts_at else ""
        items.append(
            NotificationItem(
                id=str(event.get("id") or ""),
                kind="event",
                title=event.get("title") or "",
                meta=f"{day} • {event.get('location') or ''}",
                href="/contributions",
                at=event.get("startsAt") or "",
            )
        )
    items.sort(key=lambda item: _parse_dt(item.at) or _EPOCH, reverse=True)
    return items


class NotificationPoller:
    """Periodically collects actionable issues and upcoming community events."""

    def __init__(
        self,
        client: IssueApiClient,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ):
        self.client = client
        self.interval_seconds = interval_seconds or settings.NOTIFICATION_INTERVAL_SECONDS
        self.timeout_seconds = timeout_seconds or settings.NOTIFICATION_TIMEOUT_SECONDS
        self.updated = Signal("notifications.updated")
        self.items: list[NotificationItem] = []
        self._task: asyncio.Task | None = None
        self._stopped = False

    @property
    def count(self) -> int:
        return len(self.items)

    async def refresh(self) -> list[NotificationItem]:
        issues_body = await self.client.fetch_json("/api/issues", {"issues": []}, timeout=self.timeout_seconds)
        events_body = await self.client.fetch_json(
            "/api/community-events", {"events": []}, timeout=self.timeout_seconds
        )
        items = build_notifications(
            (issues_body or {}).get("issues") or [],
            (events_body or {}).get("events") or [],
        )
        if not self._stopped:
            self.items = items
            self.updated.emit(items)
        return items

    async def _worker_loop(self):
        while not self._stopped:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.warning("Notification refresh failed: %s", exc)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> Callable[[], None]:
        self._stopped = False
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._worker_loop())
        return self.stop

    def stop(self):
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
