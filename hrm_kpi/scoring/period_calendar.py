"""
Organization Calendar
hrm_kpi/scoring/period_calendar.py

Evaluation weeks are anchored to Fridays and months are calendar months, both
read in the organization timezone (ORG_TIMEZONE, Asia/Dhaka by default).

Key formats:
    week key   YYYY-MM-DD   (the Friday)
    month key  YYYY-MM

Every function here is pure: the same inputs and timezone give the same output.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from hrm_kpi.config import settings
from hrm_kpi.core.exceptions import KpiValidationError

FRIDAY = 4  # date.weekday()

_WEEK_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class MonthRange:
    start: date
    end: date


def organization_tz(tz_name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(tz_name or settings.ORG_TIMEZONE)


def organization_now(tz_name: Optional[str] = None) -> datetime:
    """Current wall-clock time in the organization timezone."""
    return datetime.now(timezone.utc).astimezone(organization_tz(tz_name))


def local_date(now: datetime, tz_name: Optional[str] = None) -> date:
    """
    The organization-local calendar date of an instant.

    Naive datetimes are taken to already be organization-local.
    """
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(organization_tz(tz_name)).date()


def current_friday(now: datetime, tz_name: Optional[str] = None) -> date:
    """
    Today if today is Friday in the organization timezone, else the most
    recent past Friday.
    """
    today = local_date(now, tz_name)
    days_back = (today.weekday() - FRIDAY) % 7
    return today - timedelta(days=days_back)


def week_key_for(friday_date: date) -> str:
    """Week key (YYYY-MM-DD) for a Friday."""
    if friday_date.weekday() != FRIDAY:
        raise KpiValidationError(
            f"{friday_date.isoformat()} is not a Friday", {"date": friday_date.isoformat()}
        )
    return friday_date.isoformat()


def parse_week_key(week_key: str) -> date:
    """Parse a week key back to its Friday date."""
    if not isinstance(week_key, str) or not _WEEK_KEY_RE.match(week_key):
        raise KpiValidationError(
            f"Invalid week key '{week_key}' (expected YYYY-MM-DD)", {"week_key": week_key}
        )
    try:
        friday = date.fromisoformat(week_key)
    except ValueError:
        raise KpiValidationError(f"Invalid week key '{week_key}'", {"week_key": week_key})
    if friday.weekday() != FRIDAY:
        raise KpiValidationError(f"Week key {week_key} is not a Friday", {"week_key": week_key})
    return friday


def parse_month_key(month_key: str) -> tuple:
    """Parse YYYY-MM into (year, month)."""
    match = _MONTH_KEY_RE.match(month_key) if isinstance(month_key, str) else None
    if not match:
        raise KpiValidationError(
            f"Invalid month key '{month_key}' (expected YYYY-MM)", {"month_key": month_key}
        )
    year, month = int(match.group(1)), int(match.group(2))
    if year < date.min.year:
        raise KpiValidationError(f"Invalid year in '{month_key}'", {"month_key": month_key})
    if not 1 <= month <= 12:
        raise KpiValidationError(f"Invalid month in '{month_key}'", {"month_key": month_key})
    return year, month


def month_key_for(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def month_key_for_week(week_key: str) -> str:
    return month_key_for(parse_week_key(week_key))


def previous_month_key(month_key: str) -> str:
    year, month = parse_month_key(month_key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def month_date_range(month_key: str) -> MonthRange:
    """First and last calendar day of the month."""
    year, month = parse_month_key(month_key)
    last_day = calendar.monthrange(year, month)[1]
    return MonthRange(start=date(year, month, 1), end=date(year, month, last_day))


def fridays_in_month(month_key: str) -> List[str]:
    """
    Week keys of every Friday inside the calendar month.

    The length of this list is the month's expected_weeks_count.
    """
    rng = month_date_range(month_key)
    first = 1 + (FRIDAY - rng.start.weekday()) % 7
    return [
        rng.start.replace(day=d).isoformat()
        for d in range(first, rng.end.day + 1, 7)
    ]


def week_number_in_month(week_key: str) -> str:
    """'Week-N' label of a Friday within its month."""
    keys = fridays_in_month(month_key_for_week(week_key))
    return f"Week-{keys.index(week_key) + 1}"
