import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

PERIODS = ("daily", "weekly", "monthly", "yearly")
DEFAULT_PERIOD = "monthly"


def as_datetime(value) -> Optional[datetime]:
    """Coerce stored or requested date values to a naive UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def as_date(value) -> Optional[date]:
    parsed = as_datetime(value)
    return parsed.date() if parsed else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _shift_months(d: datetime, months: int) -> datetime:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def date_range(period: Optional[str], today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """Calendar window containing ``today``: the day, Monday-Sunday week, month or year."""
    today = today or utcnow().date()
    if period == "daily":
        start = today
        end = today
    elif period == "weekly":
        start = today - timedelta(days=today.weekday())
        end = start + timedelta(days=6)
    elif period == "yearly":
        start = date(today.year, 1, 1)
        end = date(today.year, 12, 31)
    else:
        start = date(today.year, today.month, 1)
        end = date(today.year, today.month, calendar.monthrange(today.year, today.month)[1])
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def rolling_range(period: Optional[str], now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Trailing window ending now, used by farm summaries."""
    now = now or utcnow()
    if period == "daily":
        return datetime.combine(now.date(), time.min), datetime.combine(now.date(), time.max)
    if period == "weekly":
        return now - timedelta(days=7), now
    if period == "yearly":
        return _shift_months(now, -12), now
    return _shift_months(now, -1), now


def resolve_range(
    period: Optional[str],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[datetime, datetime]:
    default_start, default_end = date_range(period)
    start = datetime.combine(start_date, time.min) if start_date else default_start
    end = datetime.combine(end_date, time.max) if end_date else default_end
    return start, end


def calculate_age(date_of_birth, today: Optional[date] = None) -> Optional[int]:
    born = as_date(date_of_birth)
    if born is None:
        return None
    today = today or utcnow().date()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def days_since(value, now: Optional[datetime] = None) -> Optional[int]:
    then = as_datetime(value)
    if then is None:
        return None
    now = now or utcnow()
    return (now - then).days
