"""Day-of-week schedule helpers for tours, services and experiences."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence

from .errors import InvalidArgument

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_day_date(value: Optional[str | date]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` string; ``None`` and empty strings mean no filter."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not _DATE_RE.match(value):
        raise InvalidArgument(f"dayDate must use YYYY-MM-DD, got {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidArgument(f"dayDate is not a calendar date: {value!r}") from exc


def weekday_of(day_date: date) -> int:
    """ISO weekday, 1 = Monday ... 7 = Sunday."""

    return day_date.isoweekday()


def is_available_on(availability: Optional[Sequence[dict[str, Any]]], day_date: Optional[date]) -> bool:
    """Time windows are advisory; only the weekday gates availability."""

    if not availability:
        return day_date is None
    if day_date is None:
        return True
    target = weekday_of(day_date)
    return any(entry.get("day") == target for entry in availability)


def filter_by_day(items: Iterable[Any], day_date: Optional[date], attr: str = "availability") -> list[Any]:
    if day_date is None:
        return list(items)
    return [item for item in items if is_available_on(getattr(item, attr, None), day_date)]


def validate_day_schedules(schedules: Sequence[dict[str, Any]]) -> list[str]:
    errors: list[str] = []
    if not schedules:
        errors.append("availability must contain at least one day")
    for index, entry in enumerate(schedules):
        day = entry.get("day")
        if not isinstance(day, int) or isinstance(day, bool) or not 1 <= day <= 7:
            errors.append(f"entry {index}: day must be an integer between 1 and 7")
        start = entry.get("startTime")
        end = entry.get("endTime")
        for label, value in (("startTime", start), ("endTime", end)):
            if value not in (None, "") and not _TIME_RE.match(str(value)):
                errors.append(f"entry {index}: {label} must use HH:MM")
        if start and end and _TIME_RE.match(str(start)) and _TIME_RE.match(str(end)) and start >= end:
            errors.append(f"entry {index}: startTime must be before endTime")
    return errors


def sort_day_schedules(schedules: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(schedules, key=lambda entry: (entry["day"], entry.get("startTime") or ""))


def normalize_availability(schedules: Optional[Sequence[dict[str, Any]]]) -> Optional[list[dict[str, Any]]]:
    """Validate and sort schedules for storage; ``None`` leaves the item unscheduled."""

    if schedules is None:
        return None
    errors = validate_day_schedules(schedules)
    if errors:
        raise InvalidArgument("Invalid availability: " + ", ".join(errors))
    return [
        {
            "day": entry["day"],
            "startTime": entry.get("startTime") or None,
            "endTime": entry.get("endTime") or None,
        }
        for entry in sort_day_schedules(schedules)
    ]
