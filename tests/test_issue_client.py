"""Tests for the HTTP client, notification feed, connectivity monitor and signals."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests

from civic_reporter.connectivity import ConnectivityMonitor
from civic_reporter.errors import NetworkFailure
from civic_reporter.events import Signal
from civic_reporter.issue_client import IssueApiClient
from civic_reporter.notifications import NotificationPoller, build_notifications


def response(status_code=200, body=None):
    resp = Mock()
    resp.status_code = status_code
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    return resp


class TestIssueApiClient:

    def test_create_issue_posts_json(self):
        session = Mock()
        session.post.return_value = response(201, {"id": "abc", "status": "submitted"})
        client = IssueApiClient("http://api.test/", session=session, timeout=4)

        issue = asyncio.run(client.create_issue({"title": "x"}))

        assert issue["id"] == "abc"
        session.post.assert_called_once_with("http://api.test/api/issues", json={"title": "x"}, timeout=4)

    def test_connection_error_is_network_failure(self):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(NetworkFailure):
            IssueApiClient("http://api.test", session=session).create_issue_sync({})

    def test_server_error_is_network_failure(self):
        session = Mock()
        session.post.return_value = response(500, {"error": "boom"})
        with pytest.raises(NetworkFailure) as excinfo:
            IssueApiClient("http://api.test", session=session).create_issue_sync({})
        assert excinfo.value.status_code == 500

    def test_non_json_body_is_network_failure(self):
        session = Mock()
        session.post.return_value = response(201, ValueError("no json"))
        with pytest.raises(NetworkFailure):
            IssueApiClient("http://api.test", session=session).create_issue_sync({})

    @pytest.mark.parametrize(
        "outcome",
        [requests.Timeout("slow"), response(503, {}), response(200, ValueError("html"))],
    )
    def test_fetch_json_falls_back(self, outcome):
        session = Mock()
        if isinstance(outcome, Exception):
            session.get.side_effect = outcome
        else:
            session.get.return_value = outcome
        client = IssueApiClient("http://api.test", session=session)
        assert asyncio.run(client.fetch_json("/api/issues", {"issues": []})) == {"issues": []}

    def test_ping(self):
        session = Mock()
        session.get.return_value = response(200, {"message": "pong"})
        assert asyncio.run(IssueApiClient("http://api.test", session=session).ping()) is True
        session.get.side_effect = requests.ConnectionError("down")
        assert asyncio.run(IssueApiClient("http://api.test", session=session).ping()) is False


class TestBuildNotifications:

    def test_only_actionable_issues_with_meta(self):
        issues = [
            {"id": "1", "title": "New", "status": "submitted", "createdAt": "2026-10-01T10:00:00Z"},
            {"id": "2", "title": "Voting", "status": "pending_verification", "createdAt": "2026-10-02T10:00:00Z"},
            {"id": "3", "title": "Done", "status": "resolved", "createdAt": "2026-10-03T10:00:00Z"},
        ]
        items = build_notifications(issues, [])
        assert [(item.id, item.meta, item.href) for item in items] == [
            ("2", "Pending verification", "/issues"),
            ("1", "Needs verification", "/issues"),
        ]

    def test_events_and_issues_sorted_newest_first(self):
        issues = [{"id": "1", "title": "Pothole", "status": "submitted", "createdAt": "2026-10-01T10:00:00Z"}]
        events = [{"id": "e1", "title": "Clean-up", "location": "Lakeview Park", "startsAt": "2026-10-05T08:00:00+00:00"}]
        items = build_notifications(issues, events)
        assert [item.kind for item in items] == ["event", "issue"]
        assert items[0].meta == "2026-10-05 • Lakeview Park"
        assert items[0].href == "/contributions"

    def test_unparseable_times_sort_last(self):
        issues = [
            {"id": "1", "title": "A", "status": "submitted", "createdAt": "yesterday"},
            {"id": "2", "title": "B", "status": "submitted", "createdAt": "2026-10-01T10:00:00Z"},
        ]
        assert [item.id for item in build_notifications(issues, [])] == ["2", "1"]


class FeedClient:
    def __init__(self, issues=None, events=None):
        self.bodies = {
            "/api/issues": {"issues": issues or []},
            "/api/community-events": {"events": events or []},
        }
        self.requests = []

    async def fetch_json(self, path, fallback=None, timeout=None):
        self.requests.append((path, timeout))
        return self.bodies.get(path, fallback)


class TestNotificationPoller:

    def test_refresh_updates_items_and_signal(self):
        start = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
        client = FeedClient(
            issues=[{"id": "1", "title": "Pothole", "status": "submitted", "createdAt": "2026-10-01T10:00:00Z"}],
            events=[{"id": "e", "title": "Walk", "location": "Ward 14", "startsAt": start}],
        )
        poller = NotificationPoller(client, interval_seconds=60, timeout_seconds=8)
        seen = []
        poller.updated.subscribe(seen.append)

        asyncio.run(poller.refresh())

        assert poller.count == 2
        assert seen == [poller.items]
        assert client.requests == [("/api/issues", 8), ("/api/community-events", 8)]

    def test_refresh_after_stop_does_not_publish(self):
        poller = NotificationPoller(FeedClient(issues=[{"id": "1", "status": "submitted"}]))
        seen = []
        poller.updated.subscribe(seen.append)
        poller.stop()
        asyncio.run(poller.refresh())
        assert poller.items == []
        assert seen == []

    def test_background_loop_runs_until_stopped(self):
        client = FeedClient()
        poller = NotificationPoller(client, interval_seconds=0.01)

        async def scenario():
            stop = poller.start()
            await asyncio.sleep(0.05)
            stop()
            count = len(client.requests)
            await asyncio.sleep(0.05)
            return count

        count = asyncio.run(scenario())
        assert count >= 2
        assert len(client.requests) == count


class TestConnectivityMonitor:

    def test_restored_fires_once_per_transition(self):
        monitor = ConnectivityMonitor(online=False)
        restored = []
        monitor.restored.subscribe(lambda: restored.append(True))
        monitor.set_online(True)
        monitor.set_online(True)
        monitor.set_online(False)
        monitor.set_online(True)
        assert len(restored) == 2

    def test_poll_once_uses_check(self):
        results = iter([False, True])

        async def check():
            return next(results)

        monitor = ConnectivityMonitor(check=check)
        lost = []
        monitor.lost.subscribe(lambda: lost.append(True))

        async def scenario():
            return await monitor.poll_once(), await monitor.poll_once()

        assert asyncio.run(scenario()) == (False, True)
        assert lost == [True]

    def test_failing_check_marks_offline(self):
        async def check():
            raise OSError("network down")

        monitor = ConnectivityMonitor(check=check, interval_seconds=60)

        async def scenario():
            stop = monitor.start()
            await asyncio.sleep(0.02)
            stop()

        asyncio.run(scenario())
        assert monitor.online is False


class TestSignal:

    def test_unsubscribe_removes_listener(self):
        signal = Signal("test")
        seen = []
        unsubscribe = signal.subscribe(seen.append)
        signal.emit(1)
        unsubscribe()
        unsubscribe()
        signal.emit(2)
        assert seen == [1]
        assert len(signal) == 0

    def test_failing_listener_does_not_stop_others(self):
        signal = Signal("test")
        seen = []
        signal.subscribe(lambda value: 1 / 0)
        signal.subscribe(seen.append)
        signal.emit("ok")
        assert seen == ["ok"]
