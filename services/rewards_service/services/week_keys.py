"""Period keys in the reference timezone.

A reward/raffle week runs Monday 00:00 through Sunday 23:59:59.999 local time
and is keyed by its ending Sunday (``YYYY-MM-DD``). Accrual runs are keyed by
local date plus an AM/PM slot split at noon.
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Literal, Optional

from libs.common.datetime_utils import reference_tz, to_reference, utc_now

Slot = Literal["AM", "PM"]

_WEEK_CLOSE_TIME = time(23, 59, 59, 999000)


def _parse(key: str) -> date:
    return date.fromisoformat(key)


def date_key(now: Optional[datetime] = None) -> str:
    return to_reference(now or utc_now()).date().isoformat()


def accrual_slot(now: Optional[datetime] = None) -> Slot:
    return "AM" if to_reference(now or utc_now()).hour < 12 else "PM"


def week_key(now: Optional[datetime] = None) -> str:
    local = to_reference(now or utc_now()).date()
    return (local + timedelta(days=6 - local.weekday())).isoformat()


def previous_week_key(key: str) -> str:
    return (_parse(key) - timedelta(days=7)).isoformat()


def next_week_key(key: str) -> str:
    return (_parse(key) + timedelta(days=7)).isoformat()


def week_bounds(key: str) -> tuple[datetime, datetime]:
    """Return ``(opens_at, closes_at)`` for a week key as aware datetimes."""
    sunday = _parse(key)
    if sunday.weekday() != 6:
        raise ValueError(f"week key must be a Sunday: {key}")
    tz = reference_tz()
    opens_at = datetime.combine(sunday - timedelta(days=6), time.min, tzinfo=tz)
    closes_at = datetime.combine(sunday, _WEEK_CLOSE_TIME, tzinfo=tz)
    return opens_at, closes_at


def month_key(now: Optional[datetime] = None) -> str:
    return to_reference(now or utc_now()).strftime("%Y-%m")


def month_key_for_week(key: str) -> str:
    """Month containing the week's ending Sunday."""
    return key[:7]


def days_in_month(key: str) -> int:
    """Days in the month of a ``YYYY-MM-DD`` or ``YYYY-MM`` key."""
    year, month = int(key[:4]), int(key[5:7])
    return calendar.monthrange(year, month)[1]


def week_index(key: str, launch_week_key: str) -> int:
    """Zero-based number of weeks since launch; negative before launch."""
    return (_parse(key) - _parse(launch_week_key)).days // 7
