from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Status(str, Enum):
    GOOD = "good"
    MINOR = "minor"
    MAJOR = "major"
    # Sentinel for a failed or malformed observation; never reported by the API.
    UNKNOWN = "unknown"


REPORTED_STATUSES = frozenset({Status.GOOD, Status.MINOR, Status.MAJOR})


@dataclass(frozen=True)
class StatusReport:
    status: Status
    ok: bool
    last_updated: datetime | None = None
    details: dict[str, Any] = field(default_factory=dict)


def coerce_status(value: Any) -> Status:
    s = str(value or "").strip().lower()
    for status in REPORTED_STATUSES:
        if status.value == s:
            return status
    return Status.UNKNOWN


def parse_timestamp(value: Any) -> datetime | None:
    s = str(value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_status_payload(data: Any) -> tuple[Status, datetime | None, str | None]:
    """
    Decode ``{"status": "...", "last_updated": "..."}``.

    Returns (status, last_updated, error). ``error`` is set whenever the payload
    cannot be trusted, in which case status is UNKNOWN.
    """
    if not isinstance(data, dict):
        return Status.UNKNOWN, None, f"payload is {type(data).__name__}, expected object"

    raw_status = data.get("status")
    if not isinstance(raw_status, str):
        return Status.UNKNOWN, None, "payload has no string 'status' field"

    status = coerce_status(raw_status)
    if status is Status.UNKNOWN:
        return Status.UNKNOWN, None, f"unrecognized status {raw_status!r}"

    return status, parse_timestamp(data.get("last_updated")), None
