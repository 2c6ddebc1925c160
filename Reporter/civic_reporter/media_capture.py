from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Any, Callable

import cv2
from PIL import Image, UnidentifiedImageError

from civic_reporter.capabilities import Availability, CapabilityProbe, EnvironmentProbe
from civic_reporter.config import settings
from civic_reporter.errors import CameraUnavailable, PermissionDenied, UnsupportedMedia
from civic_reporter.models import CapturedMedia

LOGGER = logging.getLogger(__name__)

IMAGE_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
}


def _stop_orphan(future: asyncio.Future):
    if future.cancelled() or future.exception() is not None:
        return
    handle = future.result()
    handle.stop()
    LOGGER.info("Camera %s opened after its caller went away, released", handle.device_index)


class LiveVideoHandle:
    def __init__(self, capture: Any, device_index: int):
        self.capture = capture
        self.device_index = device_index
        self._stopped = False

    @property
    def active(self) -> bool:
        return not self._stopped

    def stop(self) -> bool:
        if self._stopped:
            return False
        self._stopped = True
        self.capture.release()
        return True


class MediaCapture:
    """Owns at most one live camera stream at a time.

    Every path that gives the camera back (wizard close, a newer stream,
    teardown) goes through :meth:`release`, which stops a handle at most once.
    """

    def __init__(
        self,
        probe: CapabilityProbe | None = None,
        camera_factory: Callable[[int], Any] | None = None,
        preferred_index: int | None = None,
        fallback_indices: list[int] | None = None,
        jpeg_quality: int | None = None,
    ):
        self.probe = probe or EnvironmentProbe()
        self.camera_factory = camera_factory or cv2.VideoCapture
        self.preferred_index = settings.CAMERA_INDEX if preferred_index is None else preferred_index
        self.fallback_indices = settings.CAMERA_FALLBACK_INDICES if fallback_indices is None else fallback_indices
        self.jpeg_quality = jpeg_quality or settings.JPEG_QUALITY
        self._handle: LiveVideoHandle | None = None

    @property
    def handle(self) -> LiveVideoHandle | None:
        return self._handle

    def _candidate_indices(self) -> list[int]:
        indices = [self.preferred_index]
        for index in self.fallback_indices:
            if index not in indices:
                indices.append(index)
        return indices

    def _acquire(self) -> LiveVideoHandle:
        for index in self._candidate_indices():
            try:
                capture = self.camera_factory(index)
            except cv2.error as exc:
                LOGGER.warning("Camera %s could not be opened: %s", index, exc)
                continue
            if capture is not None and capture.isOpened():
                if index != self.preferred_index:
                    LOGGER.info("Preferred camera %s unavailable, using camera %s", self.preferred_index, index)
                return LiveVideoHandle(capture, index)
            if capture is not None:
                capture.release()
        raise CameraUnavailable("No camera device could be opened")

    async def open_stream(self) -> LiveVideoHandle:
        availability = self.probe.camera()
        if availability is Availability.DENIED:
            raise PermissionDenied("camera")
        if availability is Availability.UNAVAILABLE:
            raise CameraUnavailable("Camera capture is not available on this device")

        self.release()
        acquiring = asyncio.ensure_future(asyncio.to_thread(self._acquire))
        try:
            handle = await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            acquiring.add_done_callback(_stop_orphan)
            raise
        # a concurrent open may have finished while this one was acquiring
        self.release()
        self._handle = handle
        LOGGER.info("Camera %s streaming", handle.device_index)
        return handle

    def capture_frame(self, handle: LiveVideoHandle | None = None) -> CapturedMedia:
        handle = handle or self._handle
        if handle is None or not handle.active:
            raise CameraUnavailable("No live camera stream")
        ok, frame = handle.capture.read()
        if not ok or frame is None:
            raise CameraUnavailable("Camera returned no frame")
        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(self.jpeg_quality)])
        if not ok:
            raise CameraUnavailable("Frame could not be encoded")
        return CapturedMedia(buffer.tobytes(), "image/jpeg", source="camera")

    def _read_image_file(self, path: str | Path) -> CapturedMedia:
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise UnsupportedMedia(f"Cannot read {path}: {exc}") from exc
        try:
            with Image.open(io.BytesIO(data)) as image:
                image_format = image.format
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise UnsupportedMedia(f"{path} is not a readable image") from exc
        mime_type = IMAGE_FORMATS.get(image_format or "")
        if mime_type is None:
            raise UnsupportedMedia(f"Image format {image_format} is not accepted")
        return CapturedMedia(data, mime_type, source="file")

    async def pick_file(self, path: str | Path) -> CapturedMedia:
        return await asyncio.to_thread(self._read_image_file, path)

    def release(self) -> bool:
        handle, self._handle = self._handle, None
        if handle is None:
            return False
        stopped = handle.stop()
        if stopped:
            LOGGER.info("Camera %s released", handle.device_index)
        return stopped
