"""
Report periods in the clinic's local time zone.

Windows are half-open [start, end) and built with pytz so day and month
boundaries follow the clinic's wall clock, not UTC.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

import pytz
from django.conf import settings
from django.utils import timezone

from apps.core.exceptions import Validation

PERIOD_DAY = 'day'
PERIOD_MONTH = 'month'
PERIOD_YEAR = 'year'


@dataclass(frozen=True)
class ReportWindow:
    period: str
    start: datetime
    end: datetime
    year: int
    month: Optional[int] = None
    day: Optional[int] = None


def clinic_timezone():
    return pytz.timezone(settings.CLINIC_TIME_ZONE)


def _local_midnight(day: date):
    return clinic_timezone().localize(datetime(day.year, day.month, day.day))


def local_date(moment: Optional[datetime] = None) -> date:
    """Calendar date of moment (default: now) on the clinic's wall clock."""
    moment = moment or timezone.now()
    return moment.astimezone(clinic_timezone()).date()


def day_window(day: date) -> ReportWindow:
    return ReportWindow(
        period=PERIOD_DAY,
        start=_local_midnight(day),
        end=_local_midnight(day + timedelta(days=1)),
        year=day.year,
        month=day.month,
        day=day.day,
    )


def month_window(year: int, month: int) -> ReportWindow:
    _validate_year(year)
    if not 1 <= month <= 12:
        raise Validation(f'Invalid month: {month}')
    next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return ReportWindow(
        period=PERIOD_MONTH,
        start=_local_midnight(date(year, month, 1)),
        end=_local_midnight(next_month),
        year=year,
        month=month,
    )


def year_window(year: int) -> ReportWindow:
    _validate_year(year)
    return ReportWindow(
        period=PERIOD_YEAR,
        start=_local_midnight(date(year, 1, 1)),
        end=_local_midnight(date(year + 1, 1, 1)),
        year=year,
    )


def _validate_year(year: int):
    if not 1900 <= year <= 9998:
        raise Validation(f'Invalid year: {year}')
