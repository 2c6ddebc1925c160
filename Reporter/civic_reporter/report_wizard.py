"""
Three-step issue report flow: Capture, Describe, Confirm.

The wizard owns one draft and at most one camera stream per session. Device
failures never abort it; they land in ``warnings`` so the user can retry or
fall back to a picked file. A submission that cannot reach the server is
parked in the offline queue instead of being dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from civic_reporter import exif_geotagger
from civic_reporter.config import settings
from civic_reporter.errors import (
    CameraUnavailable,
    LocationUnavailable,
    NetworkFailure,
    PermissionDenied,
    PositionTimeout,
    ReporterError,
    UnsupportedMedia,
)
from civic_reporter.geo_capture import GeoCapture
from civic_reporter.issue_client import IssueApiClient
from civic_reporter.media_capture import LiveVideoHandle, MediaCapture
from civic_reporter.models import CATEGORIES, CapturedMedia, GeoPosition, IssueDraft
from civic_reporter.submission_queue import SubmissionQueue

LOGGER = logging.getLogger(__name__)

QUEUED_NOTICE = "Saved offline, will retry when connection returns."
LOCATING = "Locating..."


class WizardState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DESCRIBING = "describing"
    CONFIRMING = "confirming"
    SUBMITTED = "submitted"
    QUEUED = "queued"


@dataclass(frozen=True)
class SubmitOutcome:
    state: WizardState
    payload: dict
    issue: dict | None = None


def describe_failure(exc: ReporterError) -> str:
    if isinstance(exc, PermissionDenied):
        if exc.channel == "camera":
            return "Camera permission denied. You can still upload a photo."
        return "Location permission denied. Allow location access to submit."
    if isinstance(exc, CameraUnavailable):
        return "No camera available. Upload a photo instead."
    if isinstance(exc, LocationUnavailable):
        return "Location is unavailable on this device."
    if isinstance(exc, PositionTimeout):
        return "Location request timed out. Try again."
    if isinstance(exc, UnsupportedMedia):
        return "That file is not a supported image."
    return str(exc)


class ReportWizard:
    def __init__(
        self,
        client: IssueApiClient,
        queue: SubmissionQueue,
        geo: GeoCapture | None = None,
        media: MediaCapture | None = None,
        on_created: Callable[[dict], Any] | None = None,
        on_notice: Callable[[str], Any] | None = None,
        user_id: str | None = None,
    ):
        self.client = client
        self.queue = queue
        self.geo = geo or GeoCapture()
        self.media = media or MediaCapture()
        self.on_created = on_created
        self.on_notice = on_notice
        self.user_id = user_id

        self.state = WizardState.IDLE
        self.draft = IssueDraft(user_id=user_id)
        self.position: GeoPosition | None = None
        self.warnings: dict[str, str] = {}
        self.submitting = False
        self.last_outcome: SubmitOutcome | None = None
        self._session = 0
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> "ReportWizard":
        self.open()
        await self.settle()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    @property
    def photo(self) -> CapturedMedia | None:
        return self.draft.photo

    @property
    def can_next(self) -> bool:
        if self.state is WizardState.CAPTURING:
            return self.draft.photo is not None
        if self.state is WizardState.DESCRIBING:
            return bool(self.draft.description.strip())
        return False

    @property
    def can_submit(self) -> bool:
        return self.state is WizardState.CONFIRMING and self.position is not None and not self.submitting

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def open(self):
        if self.state is not WizardState.IDLE:
            self.close()
        self._session += 1
        self.draft = IssueDraft(user_id=self.user_id)
        self.position = None
        self.warnings = {}
        self.last_outcome = None
        self.state = WizardState.CAPTURING
        self._spawn(self._acquire_position(self._session))
        self._spawn(self._acquire_stream(self._session))

    async def settle(self):
        """Wait until in-flight position and camera requests have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def retry_location(self):
        if self.state is WizardState.IDLE:
            return
        self.warnings.pop("location", None)
        self._spawn(self._acquire_position(self._session))

    async def _acquire_position(self, session: int):
        try:
            position = await self.geo.request_position()
        except ReporterError as exc:
            if session == self._session:
                LOGGER.warning("Position unavailable: %s", exc)
                self.warnings["location"] = describe_failure(exc)
            return
        if session != self._session:
            return
        self.position = position
        self.draft.location = position
        photo = self.draft.photo
        if photo is not None and not photo.geotagged:
            self.draft.photo = exif_geotagger.embed(photo, position)

    async def _acquire_stream(self, session: int):
        try:
            handle = await self.media.open_stream()
        except ReporterError as exc:
            if session == self._session:
                LOGGER.warning("Camera unavailable: %s", exc)
                self.warnings["camera"] = describe_failure(exc)
            return
        if session != self._session or self.state is not WizardState.CAPTURING:
            self._drop_stream(handle)
            return
        self.warnings.pop("camera", None)

    def _drop_stream(self, handle: LiveVideoHandle):
        if self.media.handle is handle:
            self.media.release()
        else:
            handle.stop()

    def _attach_photo(self, media: CapturedMedia) -> CapturedMedia:
        if self.position is not None:
            media = exif_geotagger.embed(media, self.position)
        self.draft.photo = media
        self.warnings.pop("photo", None)
        return media

    def capture(self) -> CapturedMedia | None:
        if self.state is not WizardState.CAPTURING:
            return None
        try:
            media = self.media.capture_frame()
        except ReporterError as exc:
            self.warnings["camera"] = describe_failure(exc)
            return None
        return self._attach_photo(media)

    async def upload(self, path: str | Path) -> CapturedMedia | None:
        if self.state is not WizardState.CAPTURING:
            return None
        session = self._session
        try:
            media = await self.media.pick_file(path)
        except ReporterError as exc:
            if session == self._session:
                self.warnings["photo"] = describe_failure(exc)
            return None
        if session != self._session or self.state is not WizardState.CAPTURING:
            return None
        return self._attach_photo(media)

    def set_details(
        self,
        *,
        title: str | None = None,
        description: str | None = None,
        category: str | None = None,
        address: str | None = None,
        ward_id: str | None = None,
    ):
        if category is not None and category not in CATEGORIES:
            raise ValueError(f"Unknown category {category!r}")
        if title is not None:
            self.draft.title = title
        if description is not None:
            self.draft.description = description
        if category is not None:
            self.draft.category = category
        if address is not None:
            self.draft.address = address
        if ward_id is not None:
            self.draft.ward_id = ward_id

    def next(self) -> bool:
        if not self.can_next:
            return False
        if self.state is WizardState.CAPTURING:
            self.media.release()
            self.state = WizardState.DESCRIBING
        else:
            self.state = WizardState.CONFIRMING
        return True

    def back(self) -> bool:
        if self.state is WizardState.CONFIRMING:
            self.state = WizardState.DESCRIBING
            return True
        if self.state is WizardState.DESCRIBING:
            self.state = WizardState.CAPTURING
            self._spawn(self._acquire_stream(self._session))
            return True
        return False

    def confirmation(self) -> dict:
        return {
            "category": self.draft.category,
            "location": self.position.display() if self.position else LOCATING,
            "title": self.draft.title.strip() or settings.DEFAULT_TITLE,
            "description": self.draft.description,
            "address": self.draft.address.strip() or settings.DEFAULT_ADDRESS,
            "geotagged": bool(self.draft.photo and self.draft.photo.geotagged),
        }

    def _notify(self, message: str):
        if self.on_notice is not None:
            self.on_notice(message)
        else:
            LOGGER.info(message)

    async def submit(self) -> SubmitOutcome | None:
        if not self.can_submit:
            return None
        session = self._session
        payload = self.draft.to_payload()
        self.submitting = True
        try:
            issue = await self.client.create_issue(payload)
        except NetworkFailure as exc:
            LOGGER.warning("Submission failed, queued for retry: %s", exc)
            self.queue.enqueue(payload)
            outcome = SubmitOutcome(WizardState.QUEUED, payload)
        else:
            outcome = SubmitOutcome(WizardState.SUBMITTED, payload, issue)
        finally:
            self.submitting = False

        if outcome.state is WizardState.QUEUED:
            self._notify(QUEUED_NOTICE)
        elif self.on_created is not None:
            self.on_created(outcome.issue)

        if session == self._session:
            self.state = outcome.state
            self.last_outcome = outcome
            self.close()
        return outcome

    def close(self):
        self._session += 1
        for task in list(self._tasks):
            task.cancel()
        self.media.release()
        self.draft = IssueDraft(user_id=self.user_id)
        self.position = None
        self.warnings = {}
        self.submitting = False
        self.state = WizardState.IDLE

    cancel = close
