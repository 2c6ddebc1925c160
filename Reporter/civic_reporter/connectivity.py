from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from civic_reporter.config import settings
from civic_reporter.events import Signal

LOGGER = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks online/offline transitions and announces when the link comes back.

    ``restored`` fires once per offline-to-online transition. The state can be
    pushed in with :meth:`set_online` or polled with an async ``check``.
    """

    def __init__(
        self,
        check: Callable[[], Awaitable[bool]] | None = None,
        interval_seconds: float | None = None,
        online: bool = True,
    ):
        self.check = check
        self.interval_seconds = interval_seconds or settings.CONNECTIVITY_POLL_SECONDS
        self.restored = Signal("connectivity.restored")
        self.lost = Signal("connectivity.lost")
        self._online = online
        self._task: asyncio.Task | None = None

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool):
        was_online, self._online = self._online, online
        if online and not was_online:
            LOGGER.info("Connectivity restored")
            self.restored.emit()
        elif was_online and not online:
            LOGGER.info("Connectivity lost")
            self.lost.emit()

    async def poll_once(self) -> bool:
        if self.check is None:
            return self._online
        online = bool(await self.check())
        self.set_online(online)
        return online

    async def _worker_loop(self):
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.warning("Connectivity check failed: %s", exc)
                self.set_online(False)
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> Callable[[], None]:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._worker_loop())
        return self.stop

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
