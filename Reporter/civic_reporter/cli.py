from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from civic_reporter import exif_geotagger
from civic_reporter.capabilities import Availability, EnvironmentProbe, StaticProbe
from civic_reporter.config import settings
from civic_reporter.connectivity import ConnectivityMonitor
from civic_reporter.geo_capture import GeoCapture
from civic_reporter.issue_client import IssueApiClient
from civic_reporter.media_capture import MediaCapture
from civic_reporter.models import CATEGORIES, DEFAULT_CATEGORY
from civic_reporter.notifications import NotificationPoller
from civic_reporter.queue_store import JsonFileStore
from civic_reporter.report_wizard import ReportWizard, WizardState
from civic_reporter.submission_queue import SubmissionQueue

LOGGER = logging.getLogger("civic_reporter")


async def _report(args, client: IssueApiClient, queue: SubmissionQueue) -> int:
    probe = EnvironmentProbe() if args.camera else StaticProbe(camera=Availability.UNAVAILABLE)
    wizard = ReportWizard(
        client,
        queue,
        geo=GeoCapture(),
        media=MediaCapture(probe=probe),
        on_created=lambda issue: print(f"Issue {issue.get('id')} submitted ({issue.get('status')})"),
        on_notice=print,
        user_id=args.user or None,
    )
    async with wizard:
        if args.photo:
            await wizard.upload(args.photo)
        else:
            wizard.capture()
        if not wizard.next():
            for message in wizard.warnings.values():
                print(message, file=sys.stderr)
            print("No photo to report.", file=sys.stderr)
            return 1

        wizard.set_details(
            title=args.title,
            description=args.description,
            category=args.category,
            address=args.address,
            ward_id=args.ward,
        )
        if not wizard.next():
            print("A description is required.", file=sys.stderr)
            return 1

        if wizard.position is None:
            print(wizard.warnings.get("location", "Location is still unknown."), file=sys.stderr)
            return 1
        for key, value in wizard.confirmation().items():
            print(f"  {key}: {value}")
        embedded = exif_geotagger.read_position(wizard.photo) if wizard.photo else None
        if embedded is not None:
            print(f"  embedded GPS: {embedded.display()}")

        outcome = await wizard.submit()
    if outcome is None:
        return 1
    return 0 if outcome.state in (WizardState.SUBMITTED, WizardState.QUEUED) else 1


async def _flush(queue: SubmissionQueue) -> int:
    result = await queue.flush()
    if result is None:
        print("A flush is already running.")
        return 1
    print(f"Attempted: {result.attempted}")
    print(f"Sent: {result.sent}")
    print(f"Remaining: {result.remaining}")
    return 0


def _show_queue(queue: SubmissionQueue) -> int:
    entries = queue.pending()
    print(f"{len(entries)} submission(s) waiting")
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            print(f"  {index}. (unreadable entry)")
            continue
        payload = entry.get("payload") or {}
        print(f"  {index}. [{payload.get('category', '?')}] {payload.get('title', '')}")
    return 0


async def _notifications(client: IssueApiClient) -> int:
    poller = NotificationPoller(client)
    items = await poller.refresh()
    print(f"{len(items)} notification(s)")
    for item in items:
        print(f"  {item.title} ({item.meta}) -> {item.href}")
    return 0


async def _watch(args, client: IssueApiClient, queue: SubmissionQueue) -> int:
    monitor = ConnectivityMonitor(check=client.ping, online=False)
    poller = NotificationPoller(client)
    unsubscribers = [
        queue.attach(monitor),
        queue.flushed.subscribe(lambda result: LOGGER.info("Retried %s queued submission(s)", result.sent)),
        poller.updated.subscribe(lambda items: LOGGER.info("%s notification(s)", len(items))),
    ]
    stop_monitor = monitor.start()
    stop_poller = poller.start()
    try:
        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        stop_poller()
        stop_monitor()
        for unsubscribe in unsubscribers:
            unsubscribe()
        await queue.wait_idle()
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report civic issues from this device")
    parser.add_argument("--api", default=settings.API_BASE_URL, help="Base URL of the civic issue API")
    parser.add_argument("--queue-file", default=settings.QUEUE_PATH, help="Where offline submissions are kept")
    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Capture, describe and submit an issue")
    source = report.add_mutually_exclusive_group(required=True)
    source.add_argument("--photo", help="Image file to attach")
    source.add_argument("--camera", action="store_true", help="Take the photo with the camera")
    report.add_argument("--description", required=True, help="What is wrong")
    report.add_argument("--category", choices=CATEGORIES, default=DEFAULT_CATEGORY)
    report.add_argument("--title", default="")
    report.add_argument("--address", default="")
    report.add_argument("--ward", default="")
    report.add_argument("--user", default=settings.USER_ID, help="Reporter id sent as userId")

    subparsers.add_parser("flush", help="Retry queued offline submissions")
    subparsers.add_parser("queue", help="List queued offline submissions")
    subparsers.add_parser("notifications", help="Show actionable issues and upcoming events")

    watch = subparsers.add_parser("watch", help="Retry the queue whenever the API comes back")
    watch.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    return parser


async def run(args) -> int:
    client = IssueApiClient(base_url=args.api)
    queue = SubmissionQueue(client, JsonFileStore(args.queue_file))
    if args.command == "report":
        return await _report(args, client, queue)
    if args.command == "flush":
        return await _flush(queue)
    if args.command == "queue":
        return _show_queue(queue)
    if args.command == "notifications":
        return await _notifications(client)
    return await _watch(args, client, queue)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
