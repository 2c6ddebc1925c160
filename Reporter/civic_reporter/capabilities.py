from __future__ import annotations

from enum import Enum

from civic_reporter.config import settings


class Availability(str, Enum):
    AVAILABLE = "available"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


class CapabilityProbe:
    """Answers whether this device can use a camera or report its position."""

    def camera(self) -> Availability:
        raise NotImplementedError

    def geolocation(self) -> Availability:
        raise NotImplementedError


class EnvironmentProbe(CapabilityProbe):
    def camera(self) -> Availability:
        if not settings.CAMERA_ENABLED:
            return Availability.UNAVAILABLE
        return Availability.AVAILABLE

    def geolocation(self) -> Availability:
        has_fixed = settings.REPORTER_LATITUDE is not None and settings.REPORTER_LONGITUDE is not None
        if has_fixed or settings.GEOLOCATION_URL:
            return Availability.AVAILABLE
        return Availability.UNAVAILABLE


class StaticProbe(CapabilityProbe):
    def __init__(
        self,
        camera: Availability = Availability.AVAILABLE,
        geolocation: Availability = Availability.AVAILABLE,
    ):
        self._camera = camera
        self._geolocation = geolocation

    def camera(self) -> Availability:
        return self._camera

    def geolocation(self) -> Availability:
        return self._geolocation
