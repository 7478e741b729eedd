"""
Calendar Bucket Keys
====================

Bounded Context: Period bucketing of step totals.

Every bucket total is keyed by the calendar period the wall-clock time falls
in. Keys are locale independent:

    daily    yyyyMMdd     20250106
    weekly   YYYY-Www     2025-W02   (ISO-8601 week, Monday first)
    monthly  yyyyMM       202501
    yearly   yyyy         2025

ISO weeks belong to the ISO week-numbering year, so 2024-12-30 is
"2025-W01" and 2021-01-01 is "2020-W53". Week 1 of a new year never
collides with the last week of the previous one.
"""

from dataclasses import dataclass
from datetime import datetime, date
from enum import Enum
from typing import Union

Moment = Union[datetime, date]


class Period(str, Enum):
    """Bucket granularity."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def day_key(moment: Moment) -> str:
    return moment.strftime("%Y%m%d")


def week_key(moment: Moment) -> str:
    iso_year, iso_week, _ = moment.isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"


def month_key(moment: Moment) -> str:
    return moment.strftime("%Y%m")


def year_key(moment: Moment) -> str:
    return moment.strftime("%Y")


_KEY_FUNCTIONS = {
    Period.DAILY: day_key,
    Period.WEEKLY: week_key,
    Period.MONTHLY: month_key,
    Period.YEARLY: year_key,
}


def period_key(period: Period, moment: Moment) -> str:
    """Bucket key of `moment` for one granularity."""
    return _KEY_FUNCTIONS[Period(period)](moment)


def local_time(moment: datetime) -> datetime:
    """
    Naive local wall-clock time of `moment`.

    Offset-aware values are converted to the host's local zone and stripped;
    naive values are already local and pass through.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    """Midnight of the calendar day `moment` falls in (tzinfo preserved)."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass(frozen=True)
class BucketKeys:
    """
    Immutable set of the four bucket keys for one instant.

    Example:
        >>> keys = BucketKeys.at(datetime(2025, 1, 6, 9, 30))
        >>> keys.day, keys.week, keys.month, keys.year
        ('20250106', '2025-W02', '202501', '2025')
    """

    day: str
    week: str
    month: str
    year: str

    @classmethod
    def at(cls, moment: Moment) -> "BucketKeys":
        return cls(
            day=day_key(moment),
            week=week_key(moment),
            month=month_key(moment),
            year=year_key(moment),
        )

    def for_period(self, period: Period) -> str:
        return {
            Period.DAILY: self.day,
            Period.WEEKLY: self.week,
            Period.MONTHLY: self.month,
            Period.YEARLY: self.year,
        }[Period(period)]
