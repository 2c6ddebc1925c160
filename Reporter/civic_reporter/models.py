from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timezone

from civic_reporter.config import settings

CATEGORIES = ("pothole", "graffiti", "streetlight", "garbage", "other")
DEFAULT_CATEGORY = "pothole"
ACTIONABLE_STATUSES = ("submitted", "pending_verification")


@dataclass(frozen=True)
class GeoPosition:
    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: str | None = None

    @classmethod
    def now(cls, latitude: float, longitude: float, accuracy: float | None = None) -> "GeoPosition":
        stamp = datetime.now(timezone.utc).isoformat()
        return cls(float(latitude), float(longitude), accuracy, stamp)

    def as_wire(self) -> dict:
        return {"lat": self.latitude, "lng": self.longitude}

    def display(self, digits: int = 4) -> str:
        return f"{self.latitude:.{digits}f}, {self.longitude:.{digits}f}"


@dataclass(frozen=True)
class CapturedMedia:
    data: bytes
    mime_type: str = "image/jpeg"
    position: GeoPosition | None = None
    source: str = "camera"

    @property
    def geotagged(self) -> bool:
        return self.position is not None

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode()
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass
class IssueDraft:
    title: str = ""
    description: str = ""
    category: str = DEFAULT_CATEGORY
    location: GeoPosition | None = None
    address: str = ""
    ward_id: str = ""
    photo: CapturedMedia | None = None
    user_id: str | None = None

    def to_payload(self) -> dict:
        """Freeze the draft into the ``POST /api/issues`` body."""
        if self.location is None:
            raise ValueError("A resolved position is required to build an issue payload")
        payload = {
            "title": self.title.strip() or settings.DEFAULT_TITLE,
            "description": self.description.strip(),
            "category": self.category if self.category in CATEGORIES else "other",
            "location": self.location.as_wire(),
            "address": self.address.strip() or settings.DEFAULT_ADDRESS,
            "wardId": self.ward_id.strip() or settings.DEFAULT_WARD_ID,
        }
        if self.photo is not None:
            payload["photoBase64"] = self.photo.to_data_url()
        user_id = (self.user_id or settings.USER_ID or "").strip()
        if user_id:
            payload["userId"] = user_id
        return payload
