from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_in(tz_name: str) -> date:
    """Calendar date at the salon, which is what "today's bookings" means."""
    return datetime.now(ZoneInfo(tz_name)).date()


def add_minutes(start: time, minutes: int) -> time:
    """Shift a wall-clock time; raises ValueError if the result leaves the day."""
    moved = datetime.combine(date.min, start) + timedelta(minutes=minutes)
    if moved.date() != date.min:
        raise ValueError("resulting time crosses midnight")
    return moved.time()
