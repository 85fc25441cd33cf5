"""
Shift-aware end time computation.

Work is only done inside the daily shift window (07:00-16:00 by default)
on weekdays. A duration that does not fit in what is left of the start
day's shift runs to shift end, then continues at shift start on the next
business day, as many days as needed.
"""
from datetime import datetime, timedelta
from typing import Optional

from app.core.settings import settings

SATURDAY = 5
SUNDAY = 6


def is_business_day(day: datetime) -> bool:
    return day.weekday() not in (SATURDAY, SUNDAY)


def compute_end(
    start: datetime,
    duration_hours: float,
    shift_start: Optional[int] = None,
    shift_end: Optional[int] = None,
) -> datetime:
    """
    End timestamp of ``duration_hours`` of work beginning at ``start``.

    A duration that exactly uses up the remaining shift ends at shift end
    on the same day; it is never rolled over.

    >>> compute_end(datetime(2024, 6, 7, 7, 0), 9)
    datetime.datetime(2024, 6, 7, 16, 0)
    >>> compute_end(datetime(2024, 6, 7, 7, 0), 9.5)
    datetime.datetime(2024, 6, 10, 7, 30)
    """
    if shift_start is None:
        shift_start = settings.SHIFT_START_HOUR
    if shift_end is None:
        shift_end = settings.SHIFT_END_HOUR
    shift_length = shift_end - shift_start

    start_hour = start.hour + start.minute / 60
    hours_left_today = max(0.0, shift_end - start_hour)

    if duration_hours <= hours_left_today:
        return start + timedelta(hours=duration_hours)

    remaining = duration_hours - hours_left_today
    end = start.replace(hour=shift_end, minute=0, second=0, microsecond=0)

    while remaining > 0:
        end += timedelta(days=1)
        while not is_business_day(end):
            end += timedelta(days=1)
        end = end.replace(hour=shift_start, minute=0, second=0, microsecond=0)

        worked = min(remaining, shift_length)
        end += timedelta(hours=worked)
        remaining -= worked

    return end
