"""End-to-end reporting against the real API app, online and offline."""

import asyncio
from unittest.mock import Mock

import pytest
import requests
from conftest import NEW_DELHI, make_image_bytes

from civic_reporter import exif_geotagger
from civic_reporter.connectivity import ConnectivityMonitor
from civic_reporter.issue_client import IssueApiClient
from civic_reporter.models import GeoPosition, IssueDraft
from civic_reporter.queue_store import JsonFileStore
from civic_reporter.report_wizard import ReportWizard, WizardState
from civic_reporter.submission_queue import SubmissionQueue


def fill_in(wizard):
    wizard.capture()
    assert wizard.next()
    wizard.set_details(description="Deep pothole", category="pothole")
    assert wizard.next()


def stored_image(tmp_path, photo_url):
    return (tmp_path / "images" / photo_url.rsplit("/", 1)[1]).read_bytes()


def test_report_reaches_server_with_geotagged_photo(api, geo, media, tmp_path):
    client = IssueApiClient(base_url="", session=api)
    queue = SubmissionQueue(client, JsonFileStore(tmp_path / "storage.json"))
    created = []

    async def scenario():
        wizard = ReportWizard(client, queue, geo=geo, media=media, on_created=created.append)
        async with wizard:
            fill_in(wizard)
            return await wizard.submit()

    outcome = asyncio.run(scenario())

    assert outcome.state is WizardState.SUBMITTED
    issue = created[0]
    assert issue["status"] == "submitted"
    assert issue["location"] == {"lat": 28.6139, "lng": 77.2090}
    assert issue["category"] == "pothole"
    assert issue["description"] == "Deep pothole"

    listed = api.get("/api/issues").json()["issues"]
    assert [row["id"] for row in listed] == [issue["id"]]

    position = exif_geotagger.read_position(stored_image(tmp_path, issue["photoUrl"]))
    assert round(position.latitude, 4) == 28.6139
    assert round(position.longitude, 4) == 77.2090
    assert queue.pending() == []


def test_offline_report_is_retried_when_connection_returns(api, geo, media, tmp_path):
    offline = Mock()
    offline.post.side_effect = requests.ConnectionError("network unreachable")
    client = IssueApiClient(base_url="", session=offline)
    queue = SubmissionQueue(client, JsonFileStore(tmp_path / "storage.json"))
    monitor = ConnectivityMonitor(online=False)
    notices = []

    async def scenario():
        unsubscribe = queue.attach(monitor)
        wizard = ReportWizard(client, queue, geo=geo, media=media, on_notice=notices.append)
        async with wizard:
            fill_in(wizard)
            outcome = await wizard.submit()
        assert len(queue.pending()) == 1

        client.session = api
        monitor.set_online(True)
        await queue.wait_idle()
        unsubscribe()
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome.state is WizardState.QUEUED
    assert notices == ["Saved offline, will retry when connection returns."]
    assert queue.pending() == []
    issues = api.get("/api/issues").json()["issues"]
    assert len(issues) == 1
    assert issues[0]["description"] == "Deep pothole"
    assert issues[0]["photoUrl"].startswith("/images/")


@pytest.mark.parametrize(
    "image_format, extension",
    [("JPEG", ".jpg"), ("PNG", ".png"), ("WEBP", ".webp"), ("GIF", ".gif"), ("BMP", ".bmp")],
)
def test_picked_file_of_each_format_is_stored(api, media, tmp_path, image_format, extension):
    path = tmp_path / f"upload{extension}"
    path.write_bytes(make_image_bytes(image_format))

    photo = asyncio.run(media.pick_file(path))
    draft = IssueDraft(description="Broken light", location=GeoPosition.now(*NEW_DELHI), photo=photo)
    response = api.post("/api/issues", json=draft.to_payload())

    assert response.status_code == 201
    photo_url = response.json()["photoUrl"]
    assert photo_url.endswith(extension)
    assert stored_image(tmp_path, photo_url) == photo.data
