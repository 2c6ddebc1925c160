"""Shared fixtures: an isolated API client, fake devices and a fake issue service."""

import asyncio
import io

import numpy as np
import pytest
from PIL import Image
from starlette.testclient import TestClient

from civic_reporter.capabilities import StaticProbe
from civic_reporter.errors import NetworkFailure
from civic_reporter.geo_capture import FixedPositionProvider, GeoCapture
from civic_reporter.media_capture import MediaCapture
from civic_reporter.queue_store import MemoryStore
from civic_reporter.submission_queue import SubmissionQueue

NEW_DELHI = (28.6139, 77.2090)


# ---------------------------------------------------------------------------
# Server fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api(tmp_path, monkeypatch):
    """TestClient over a freshly reset in-memory store, images in tmp_path."""
    from civic_api.config.settings import settings
    from civic_api.main import app

    monkeypatch.setattr(settings, "IMAGE_DIR", str(tmp_path / "images"))
    with TestClient(app) as client:
        yield client


# ---------------------------------------------------------------------------
# Image helpers
# ---------------------------------------------------------------------------

def make_image_bytes(image_format="JPEG", size=(32, 24), color=(200, 40, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_file(tmp_path, jpeg_bytes):
    path = tmp_path / "pothole.jpg"
    path.write_bytes(jpeg_bytes)
    return path


# ---------------------------------------------------------------------------
# Device fakes
# ---------------------------------------------------------------------------

class FakeCamera:
    """Stands in for cv2.VideoCapture and counts releases."""

    def __init__(self, index, opened=True):
        self.index = index
        self.opened = opened
        self.release_calls = 0
        self.frame = np.full((24, 32, 3), 127, dtype=np.uint8)

    def isOpened(self):
        return self.opened

    def read(self):
        if not self.opened:
            return False, None
        return True, self.frame

    def release(self):
        self.release_calls += 1
        self.opened = False


class CameraRig:
    """Camera factory; ``working`` lists the device indices that open."""

    def __init__(self, working=(0,)):
        self.working = set(working)
        self.cameras = []

    def __call__(self, index):
        camera = FakeCamera(index, opened=index in self.working)
        self.cameras.append(camera)
        return camera

    @property
    def opened(self):
        return [camera for camera in self.cameras if camera.index in self.working]


@pytest.fixture
def camera_rig():
    return CameraRig()


@pytest.fixture
def media(camera_rig):
    return MediaCapture(
        probe=StaticProbe(),
        camera_factory=camera_rig,
        preferred_index=0,
        fallback_indices=[1],
        jpeg_quality=90,
    )


@pytest.fixture
def geo():
    return GeoCapture(FixedPositionProvider(*NEW_DELHI), probe=StaticProbe(), timeout_seconds=1)


# ---------------------------------------------------------------------------
# Service fakes
# ---------------------------------------------------------------------------

class FakeIssueClient:
    """Async create_issue double; titles in ``failing`` raise NetworkFailure."""

    def __init__(self, offline=False, failing=()):
        self.offline = offline
        self.failing = set(failing)
        self.calls = []
        self.gate = None

    async def create_issue(self, payload):
        self.calls.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.offline or payload.get("title") in self.failing:
            raise NetworkFailure("Issue submission failed: connection refused")
        return {"id": f"issue-{len(self.calls)}", "status": "submitted", **payload}


@pytest.fixture
def fake_client():
    return FakeIssueClient()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def queue(fake_client, store):
    return SubmissionQueue(fake_client, store)


def issue_entry(title):
    return {
        "type": "create-issue",
        "payload": {
            "title": title,
            "description": f"{title} description",
            "category": "pothole",
            "location": {"lat": NEW_DELHI[0], "lng": NEW_DELHI[1]},
            "address": "Current location",
            "wardId": "ward-1",
        },
    }


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
