from __future__ import annotations

from datetime import date, timedelta

from app.config import get_settings
from app.exceptions import ValidationError
from app.models.enums import DayCountMode

# date.weekday() values for Saturday and Sunday.
_WEEKEND = frozenset({5, 6})


def _business_days(start_date: date, end_date: date) -> int:
    """Count Monday-Friday days in [start_date, end_date]."""
    total = (end_date - start_date).days + 1
    full_weeks, remainder = divmod(total, 7)
    count = full_weeks * 5
    current = start_date + timedelta(days=full_weeks * 7)
    for _ in range(remainder):
        if current.weekday() not in _WEEKEND:
            count += 1
        current += timedelta(days=1)
    return count


def count_leave_days(
    start_date: date,
    end_date: date,
    mode: DayCountMode | None = None,
) -> int:
    """Number of leave days in the inclusive range [start_date, end_date].

    CALENDAR counts every day. BUSINESS skips Saturdays and Sundays and
    rejects ranges that contain no working day. When ``mode`` is omitted the
    configured ``day_count_mode`` applies.
    """
    if end_date < start_date:
        raise ValidationError("End date must not be before start date")

    if mode is None:
        mode = DayCountMode(get_settings().day_count_mode)

    if mode == DayCountMode.CALENDAR:
        return (end_date - start_date).days + 1

    days = _business_days(start_date, end_date)
    if days == 0:
        raise ValidationError("Requested range contains no working days")
    return days
