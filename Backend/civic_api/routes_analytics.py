from datetime import datetime, timezone
from fastapi import APIRouter
from civic_api.config.settings import settings
from civic_api.database import issues
from civic_api.utils import parse_iso

router = APIRouter(prefix="/api")
CATEGORIES = ("pothole", "graffiti", "streetlight", "garbage", "other")


def _average_resolution_hours(rows: list[dict]) -> float:
    durations = []
    for row in rows:
        if row.get("status") != "resolved":
            continue
        created_at = parse_iso(row.get("createdAt"))
        resolved_at = parse_iso(row.get("resolvedAt"))
        if not created_at or not resolved_at:
            continue
        if resolved_at < created_at:
            continue
        durations.append((resolved_at - created_at).total_seconds() / 3600)

    if not durations:
        return 0
    return round(sum(durations) / len(durations), settings.STATS_ROUND_DIGITS)


def build_stats(rows: list[dict], now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    today = now.date()
    reported_today = 0
    resolved_this_month = 0
    counts = {category: 0 for category in CATEGORIES}

    for row in rows:
        created_at = parse_iso(row.get("createdAt"))
        if created_at and created_at.date() == today:
            reported_today += 1
        resolved_at = parse_iso(row.get("resolvedAt"))
        if row.get("status") == "resolved" and resolved_at and (resolved_at.year, resolved_at.month) == (now.year, now.month):
            resolved_this_month += 1
        category = row.get("category")
        if category in counts:
            counts[category] += 1

    return {
        "issuesReportedToday": reported_today,
        "resolvedThisMonth": resolved_this_month,
        "avgTimeToResolutionHours": _average_resolution_hours(rows),
        "byCategory": [{"category": category, "count": counts[category]} for category in CATEGORIES],
    }

@router.get("/stats")
def stats():
    return build_stats(issues.find())
