from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from uuid import uuid4


def new_id() -> str:
    return uuid4().hex[:8]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(value: str | None) -> datetime | None:
    candidate = (value or "").strip()
    if not candidate:
        return None
    if candidate.endswith("Z"):
        candidate = f"{candidate[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def serialize_doc(doc: dict | None) -> dict | None:
    """Copy a stored record for the wire, dropping server-only keys.

    Keys starting with an underscore (voter maps, password hashes) never
    leave the process. Nested lists of records are cleaned the same way.
    """
    if doc is None:
        return None
    data = {}
    for key, value in doc.items():
        if key.startswith("_"):
            continue
        if isinstance(value, list):
            value = [serialize_doc(item) if isinstance(item, dict) else deepcopy(item) for item in value]
        elif isinstance(value, dict):
            value = serialize_doc(value)
        data[key] = value
    return data


def serialize_list(rows: list[dict]) -> list[dict]:
    return [serialize_doc(row) for row in rows]
