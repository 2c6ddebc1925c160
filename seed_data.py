from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from random import Random
from typing import Any

import requests

DEFAULT_API_URL = os.getenv("API_BASE_URL", "http://localhost:8080")
MIN_ISSUE_COUNT = 1
MAX_ISSUE_COUNT = 250
TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "20"))

REPORTER_POOL = [
    "aarav",
    "isha",
    "neel",
    "ritika",
    "kabir",
    "sana",
    "rohan",
    "priya",
]

ISSUE_TEMPLATES = [
    {
        "title": "Pothole causing lane slowdown",
        "description": "Deep pothole observed during rush hour; drivers swerving abruptly.",
        "category": "pothole",
        "address": "North Ring Road",
        "lat": 20.6093,
        "lng": 78.9782,
    },
    {
        "title": "Garbage bins overflowing near market",
        "description": "Uncleared waste near food stalls with strong odor and stray animals.",
        "category": "garbage",
        "address": "Lakshmi Market Junction",
        "lat": 20.5961,
        "lng": 78.9729,
    },
    {
        "title": "Street light outage on service road",
        "description": "Street segment remains dark after sunset, creating pedestrian safety risk.",
        "category": "streetlight",
        "address": "Civil Lines Service Road",
        "lat": 20.5912,
        "lng": 78.9556,
    },
    {
        "title": "Graffiti on school boundary wall",
        "description": "Fresh spray paint covering the mural on the east wall.",
        "category": "graffiti",
        "address": "Green Park School Gate",
        "lat": 20.5869,
        "lng": 78.9664,
    },
    {
        "title": "Illegal debris dump on footpath",
        "description": "Construction debris blocks pedestrian movement and wheelchair access.",
        "category": "other",
        "address": "Ward 14 Community Center",
        "lat": 20.5798,
        "lng": 78.9487,
    },
    {
        "title": "Open manhole without barricade",
        "description": "Cover missing and no warning signs in a high-footfall area.",
        "category": "other",
        "address": "Station Access Road",
        "lat": 20.6018,
        "lng": 78.9861,
    },
]

EVENT_TEMPLATES = [
    {
        "title": "Lakeview park clean-up drive",
        "description": "Gloves and bags provided. Meet at the north entrance.",
        "location": "Lakeview Public Park",
    },
    {
        "title": "Ward 14 road safety walk",
        "description": "Walk the ward with the councillor and log hazards together.",
        "location": "Ward 14 Community Center",
    },
]

FINAL_STATUSES = ["submitted", "submitted", "under_review", "in_progress", "resolved"]


@dataclass(frozen=True)
class SeedConfig:
    api_url: str = DEFAULT_API_URL
    issue_count: int = 12
    event_count: int = 2
    random_seed: int | None = None
    with_votes: bool = True


@dataclass(frozen=True)
class SeedResult:
    seeded_issues: int
    seeded_votes: int
    seeded_events: int
    total_issues: int


def _validate_counts(config: SeedConfig) -> None:
    if not MIN_ISSUE_COUNT <= config.issue_count <= MAX_ISSUE_COUNT:
        raise ValueError(f"--issues must be between {MIN_ISSUE_COUNT} and {MAX_ISSUE_COUNT}")
    if config.event_count < 0:
        raise ValueError("--events must not be negative")


def build_issue_payloads(count: int, rng: Random) -> list[dict[str, Any]]:
    payloads = []
    for index in range(count):
        template = ISSUE_TEMPLATES[index % len(ISSUE_TEMPLATES)]
        payloads.append(
            {
                "title": template["title"],
                "description": template["description"],
                "category": template["category"],
                "location": {
                    "lat": round(template["lat"] + rng.uniform(-0.004, 0.004), 6),
                    "lng": round(template["lng"] + rng.uniform(-0.004, 0.004), 6),
                },
                "address": template["address"],
                "wardId": f"ward-{rng.randint(1, 20)}",
                "userId": rng.choice(REPORTER_POOL),
            }
        )
    return payloads


def build_event_payloads(count: int, now: datetime) -> list[dict[str, Any]]:
    payloads = []
    for index in range(count):
        template = EVENT_TEMPLATES[index % len(EVENT_TEMPLATES)]
        starts_at = now + timedelta(days=3 + index * 4)
        payloads.append({**template, "startsAt": starts_at.replace(microsecond=0).isoformat()})
    return payloads


def _post(session, url: str, body: dict) -> dict:
    response = session.post(url, json=body, timeout=TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.json()


def seed_api(config: SeedConfig, session: Any = None) -> SeedResult:
    _validate_counts(config)
    rng = Random(config.random_seed)
    base = config.api_url.rstrip("/")
    session = session or requests.Session()

    created = []
    for payload in build_issue_payloads(config.issue_count, rng):
        created.append(_post(session, f"{base}/api/issues", payload))

    votes = 0
    if config.with_votes:
        for issue in created:
            voters = rng.sample(REPORTER_POOL, rng.randint(0, len(REPORTER_POOL) - 1))
            for voter in voters:
                _post(session, f"{base}/api/issues/{issue['id']}/vote", {"userId": voter, "vote": 1})
                votes += 1

    for issue in created:
        status = rng.choice(FINAL_STATUSES)
        if status in ("submitted", "under_review"):
            continue
        response = session.put(
            f"{base}/api/issues/{issue['id']}/status",
            json={"status": status},
            timeout=TIMEOUT_SECONDS,
        )
        response.raise_for_status()

    events = build_event_payloads(config.event_count, datetime.now(timezone.utc))
    for payload in events:
        _post(session, f"{base}/api/community-events", payload)

    response = session.get(f"{base}/api/issues", timeout=TIMEOUT_SECONDS)
    response.raise_for_status()
    total = len(response.json().get("issues") or [])

    return SeedResult(
        seeded_issues=len(created),
        seeded_votes=votes,
        seeded_events=len(events),
        total_issues=total,
    )


def _print_summary(result: SeedResult) -> None:
    print("Seeding completed.")
    print(f"  Seeded issues: {result.seeded_issues}")
    print(f"  Seeded votes: {result.seeded_votes}")
    print(f"  Seeded events: {result.seeded_events}")
    print("")
    print(f"Issues now on the server: {result.total_issues}")


def _parse_args() -> SeedConfig:
    parser = argparse.ArgumentParser(description="Seed a running CivicLens API with demo data")
    parser.add_argument("--api", default=DEFAULT_API_URL, help="Base URL of the API")
    parser.add_argument("--issues", type=int, default=12, help="Number of issues to create")
    parser.add_argument("--events", type=int, default=2, help="Number of community events to create")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for deterministic output")
    parser.add_argument("--no-votes", action="store_true", help="Skip casting verification votes")
    args = parser.parse_args()

    return SeedConfig(
        api_url=args.api,
        issue_count=args.issues,
        event_count=args.events,
        random_seed=args.seed,
        with_votes=not args.no_votes,
    )


def main() -> None:
    config = _parse_args()
    result = seed_api(config)
    _print_summary(result)


if __name__ == "__main__":
    main()
