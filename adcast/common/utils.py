"""
Utility functions for AdCast.
"""

from __future__ import annotations

import re
import time
import uuid
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

import orjson

T = TypeVar("T")

SECONDS_IN_DAY = 24 * 60 * 60

# 24-hour wall clock, e.g. 06:00 or 23:59
HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Namespace for deterministic summary ids
_SUMMARY_NAMESPACE = uuid.UUID("6f1c5b7e-2d0a-4c55-9a43-8f7e1c2b9d10")


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


def summary_id(summary_date: date, group_id: str, ad_id: str) -> str:
    """Stable id for one (date, group, ad) impression summary row."""
    return str(uuid.uuid5(_SUMMARY_NAMESPACE, f"{summary_date.isoformat()}:{group_id}:{ad_id}"))


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_hhmm(value: str) -> dt_time | None:
    """Parse a 24-hour HH:MM string, returning None when malformed."""
    match = HHMM_PATTERN.match(value or "")
    if match is None:
        return None
    return dt_time(int(match.group(1)), int(match.group(2)))


def local_to_utc(day: date, wall_clock: dt_time, tz_name: str) -> datetime:
    """
    Combine a calendar day and wall-clock time in ``tz_name`` into naive UTC.

    A wall-clock time skipped by a DST gap maps to the first instant after the
    gap. A repeated wall-clock time takes its first occurrence.
    """
    zone = ZoneInfo(tz_name)
    local = datetime.combine(day, wall_clock, tzinfo=zone)
    moment = local.astimezone(timezone.utc)
    if moment.astimezone(zone).replace(tzinfo=None) != local.replace(tzinfo=None):
        moment = _gap_end(local.replace(fold=1).astimezone(timezone.utc), moment, zone)
    return moment.replace(tzinfo=None)


def _gap_end(lower: datetime, upper: datetime, zone: ZoneInfo) -> datetime:
    """First whole minute in [lower, upper] carrying the post-transition offset."""
    target = upper.astimezone(zone).utcoffset()
    moment = lower
    while moment < upper and moment.astimezone(zone).utcoffset() != target:
        moment += timedelta(minutes=1)
    return moment


def utc_to_local_date(moment: datetime, tz_name: str) -> date:
    """Calendar day of a naive UTC timestamp as seen in ``tz_name``."""
    return moment.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name)).date()


def day_bounds_utc(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Half-open [start, end) of a local calendar day, as naive UTC."""
    start = local_to_utc(day, dt_time(0, 0), tz_name)
    end = local_to_utc(day + timedelta(days=1), dt_time(0, 0), tz_name)
    return start, end


def iter_days(start: date, end: date) -> list[date]:
    """Every calendar day from start to end, both inclusive."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def sunday_based_weekday(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def json_dumps(obj: Any) -> str:
    """Fast JSON serialization using orjson."""
    return orjson.dumps(obj).decode("utf-8")


def json_loads(s: str | bytes) -> Any:
    """Fast JSON deserialization using orjson."""
    return orjson.loads(s)


def file_extension(storage_key: str) -> str:
    """Extension of a storage key or URL, ignoring any query string."""
    path = storage_key.split("?", 1)[0]
    if "." not in path.rsplit("/", 1)[-1]:
        return ""
    return path.rsplit(".", 1)[-1].lower()


def dedupe(lst: list[T]) -> list[T]:
    """Remove duplicates while preserving order."""
    seen: set[Any] = set()
    result: list[T] = []
    for item in lst:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, name: str = ""):
        self.name = name
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        return (self.end_time - self.start_time) * 1000

    @property
    def elapsed_s(self) -> float:
        """Get elapsed time in seconds."""
        return self.end_time - self.start_time
