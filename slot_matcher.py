"""
Consultation slot lookups.

Clients send a local calendar date and wall-clock times; slots are stored as
absolute UTC instants. Conversion uses the clinic's configured time zone.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Tuple
from zoneinfo import ZoneInfo

from database import as_utc


class InvalidSlotQuery(ValueError):
    pass


def _local(date_str: str, time_str: str, tz: ZoneInfo) -> datetime:
    try:
        naive = datetime.fromisoformat(f"{date_str}T{time_str}")
    except (TypeError, ValueError):
        raise InvalidSlotQuery(f"Invalid date or time: {date_str} {time_str}")
    return naive.replace(tzinfo=tz)


def slot_window(date_str: str, start_time: str, end_time: str, tz_name: str) -> Tuple[datetime, datetime]:
    if not date_str or not start_time or not end_time:
        raise InvalidSlotQuery("Missing date, start_time or end_time")
    tz = ZoneInfo(tz_name)
    start = _local(date_str, start_time, tz)
    end = _local(date_str, end_time, tz)
    if end <= start:
        raise InvalidSlotQuery("end_time must be after start_time")
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def day_window(date_str: str, tz_name: str) -> Tuple[datetime, datetime]:
    """[start, end) of a local calendar day, in UTC."""
    if not date_str:
        raise InvalidSlotQuery("Missing date")
    start = _local(date_str, "00:00", ZoneInfo(tz_name))
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def localize(value: datetime, tz_name: str) -> datetime:
    """Naive datetimes from clients are wall-clock times in the clinic's zone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(tz_name))
    return value.astimezone(timezone.utc)


def local_slot_time(day: datetime, time_str: str, tz_name: str) -> datetime:
    return _local(day.strftime("%Y-%m-%d"), time_str, ZoneInfo(tz_name)).astimezone(timezone.utc)


def match_available_counselors(schedules: Iterable[Mapping[str, Any]], start: datetime,
                               end: datetime) -> List[Dict[str, Any]]:
    """Counselors with at least one free slot starting in [start, end).

    Each schedule is expected to carry its joined ``counselor`` document. A
    counselor is listed once, at the position of its earliest matching slot.
    """
    start, end = as_utc(start), as_utc(end)
    seen = set()
    result = []
    for s in schedules:
        if s.get("status") != "available":
            continue
        begins = s.get("start_time")
        if not isinstance(begins, datetime) or not (start <= as_utc(begins) < end):
            continue
        counselor = s.get("counselor")
        if not counselor:
            continue
        key = str(counselor.get("_id", s.get("counselor_id")))
        if key in seen:
            continue
        seen.add(key)
        result.append(dict(counselor))
    return result
