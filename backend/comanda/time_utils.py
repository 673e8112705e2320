from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


PERIODS = ("daily", "weekly", "monthly", "yearly")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC of that day
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day in UTC-naive datetimes."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Start of the current daily/weekly/monthly/yearly window."""
    now = now or utcnow()
    today = datetime.combine(now.date(), time.min)
    if period == "daily":
        return today
    if period == "weekly":
        return today - timedelta(days=today.weekday())
    if period == "monthly":
        return today.replace(day=1)
    if period == "yearly":
        return today.replace(month=1, day=1)
    raise ValueError(f"period must be one of: {', '.join(PERIODS)}")


def parse_date_range(
    start: Optional[str],
    end: Optional[str],
    *,
    default_days: Optional[int] = None,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Parse a start/end query pair into a half-open [start, end) window.

    A date-only end ("2024-05-01") includes that whole day.
    When both are missing and default_days is given, the window is the
    last default_days days up to now.
    """
    start_dt = parse_iso_datetime(start) if start else None
    end_dt = parse_iso_datetime(end) if end else None

    if end and end_dt is not None and len(end.strip()) == 10:
        end_dt = end_dt + timedelta(days=1)

    if start_dt is None and end_dt is None and default_days is not None:
        end_dt = utcnow()
        start_dt = datetime.combine(end_dt.date(), time.min) - timedelta(days=default_days - 1)

    if start_dt and end_dt and start_dt >= end_dt:
        raise ValueError("start must be before end")

    return start_dt, end_dt


def period_bounds(period: str, at: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """[start, end) of the daily/weekly/monthly/yearly window containing `at`."""
    start = period_start(period, at)
    if period == "daily":
        return start, start + timedelta(days=1)
    if period == "weekly":
        return start, start + timedelta(days=7)
    if period == "monthly":
        if start.month == 12:
            return start, start.replace(year=start.year + 1, month=1)
        return start, start.replace(month=start.month + 1)
    return start, start.replace(year=start.year + 1)
