"""
Wall-clock helpers for a fixed, named time zone.
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_now(tz: ZoneInfo) -> datetime:
    return datetime.now(tz)


def local_today(tz: ZoneInfo) -> date:
    return local_now(tz).date()


def next_run_at(now: datetime, hour: int, minute: int = 0) -> datetime:
    """
    Next instant strictly after ``now`` whose wall-clock time in ``now``'s zone
    is hour:minute.
    """
    target = datetime.combine(now.date(), time(hour, minute), tzinfo=now.tzinfo)
    if target <= now:
        target = datetime.combine(now.date() + timedelta(days=1), time(hour, minute), tzinfo=now.tzinfo)
    return target


def seconds_between(start: datetime, end: datetime) -> float:
    """Elapsed real time between two aware datetimes (DST-safe)."""
    return (end.astimezone(timezone.utc) - start.astimezone(timezone.utc)).total_seconds()
