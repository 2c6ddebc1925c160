from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from civic_reporter.config import settings
from civic_reporter.errors import NetworkFailure

LOGGER = logging.getLogger(__name__)


class IssueApiClient:
    """JSON-over-HTTP access to the civic issue service."""

    def __init__(
        self,
        base_url: str | None = None,
        session: Any = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.API_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def create_issue_sync(self, payload: dict) -> dict:
        try:
            response = self.session.post(self._url("/api/issues"), json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkFailure(f"Issue submission failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise NetworkFailure(
                f"Issue submission rejected with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkFailure("Issue submission returned a non-JSON body", response.status_code) from exc

    async def create_issue(self, payload: dict) -> dict:
        return await asyncio.to_thread(self.create_issue_sync, payload)

    def fetch_json_sync(self, path: str, fallback: Any = None, timeout: float | None = None) -> Any:
        """GET ``path`` and decode JSON, answering ``fallback`` on any failure."""
        try:
            response = self.session.get(self._url(path), timeout=timeout or self.timeout)
        except requests.RequestException as exc:
            LOGGER.warning("Request to %s failed: %s", path, exc)
            return fallback
        if not 200 <= response.status_code < 300:
            LOGGER.warning("Non-OK response for %s: %s", path, response.status_code)
            return fallback
        try:
            return response.json()
        except ValueError as exc:
            LOGGER.warning("Invalid JSON from %s: %s", path, exc)
            return fallback

    async def fetch_json(self, path: str, fallback: Any = None, timeout: float | None = None) -> Any:
        return await asyncio.to_thread(self.fetch_json_sync, path, fallback, timeout)

    def ping_sync(self, timeout: float | None = None) -> bool:
        return self.fetch_json_sync("/api/ping", fallback=None, timeout=timeout) is not None

    async def ping(self, timeout: float | None = None) -> bool:
        return await asyncio.to_thread(self.ping_sync, timeout)
