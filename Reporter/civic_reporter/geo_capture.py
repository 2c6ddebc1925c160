from __future__ import annotations

import asyncio
import logging

import requests

from civic_reporter.capabilities import Availability, CapabilityProbe, EnvironmentProbe
from civic_reporter.config import settings
from civic_reporter.errors import LocationUnavailable, PermissionDenied, PositionTimeout
from civic_reporter.models import GeoPosition

LOGGER = logging.getLogger(__name__)


class PositionProvider:
    async def locate(self) -> GeoPosition:
        raise NotImplementedError


class FixedPositionProvider(PositionProvider):
    """Position of a device mounted at known coordinates."""

    def __init__(self, latitude: float, longitude: float, accuracy: float | None = None):
        self.latitude = float(latitude)
        self.longitude = float(longitude)
        self.accuracy = accuracy

    async def locate(self) -> GeoPosition:
        return GeoPosition.now(self.latitude, self.longitude, self.accuracy)


class HttpPositionProvider(PositionProvider):
    """Asks a JSON geolocation endpoint (``lat``/``lon`` style keys) for the position."""

    def __init__(self, url: str, session: requests.Session | None = None, timeout: float | None = None):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout or settings.GEO_TIMEOUT_SECONDS

    def _fetch(self) -> GeoPosition:
        response = self.session.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise LocationUnavailable("Geolocation response is not a JSON object")
        latitude = data.get("lat", data.get("latitude"))
        longitude = data.get("lon", data.get("lng", data.get("longitude")))
        if latitude is None or longitude is None:
            raise LocationUnavailable("Geolocation response carried no coordinates")
        accuracy = data.get("accuracy")
        try:
            return GeoPosition.now(
                float(latitude), float(longitude), float(accuracy) if accuracy is not None else None
            )
        except (TypeError, ValueError) as exc:
            raise LocationUnavailable(f"Geolocation response has malformed coordinates: {exc}") from exc

    async def locate(self) -> GeoPosition:
        try:
            return await asyncio.to_thread(self._fetch)
        except (requests.RequestException, ValueError) as exc:
            raise LocationUnavailable(f"Geolocation lookup failed: {exc}") from exc


def default_provider() -> PositionProvider | None:
    if settings.REPORTER_LATITUDE is not None and settings.REPORTER_LONGITUDE is not None:
        return FixedPositionProvider(settings.REPORTER_LATITUDE, settings.REPORTER_LONGITUDE)
    if settings.GEOLOCATION_URL:
        return HttpPositionProvider(settings.GEOLOCATION_URL)
    return None


class GeoCapture:
    def __init__(
        self,
        provider: PositionProvider | None = None,
        probe: CapabilityProbe | None = None,
        timeout_seconds: float | None = None,
    ):
        self.provider = provider if provider is not None else default_provider()
        self.probe = probe or EnvironmentProbe()
        self.timeout_seconds = timeout_seconds or settings.GEO_TIMEOUT_SECONDS

    async def request_position(self) -> GeoPosition:
        availability = self.probe.geolocation()
        if availability is Availability.DENIED:
            raise PermissionDenied("location")
        if availability is Availability.UNAVAILABLE or self.provider is None:
            raise LocationUnavailable("Location is not available on this device")

        try:
            position = await asyncio.wait_for(self.provider.locate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise PositionTimeout(f"No position within {self.timeout_seconds:g}s") from exc
        LOGGER.info("Position resolved to %s", position.display())
        return position
