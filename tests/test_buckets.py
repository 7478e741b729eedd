"""Calendar bucket keys."""

from datetime import date, datetime, timedelta, timezone

from pedometer_core.buckets import (
    BucketKeys,
    Period,
    day_key,
    local_time,
    month_key,
    period_key,
    start_of_day,
    week_key,
    year_key,
)


def test_keys_for_one_instant():
    keys = BucketKeys.at(datetime(2025, 1, 6, 9, 30))

    assert keys.day == "20250106"
    assert keys.week == "2025-W02"
    assert keys.month == "202501"
    assert keys.year == "2025"


def test_week_keys_follow_iso_calendar():
    """Week-year may differ from calendar year around New Year."""
    assert week_key(date(2024, 12, 30)) == "2025-W01"
    assert week_key(date(2021, 1, 3)) == "2020-W53"
    assert week_key(date(2025, 1, 12)) == "2025-W02"
    assert week_key(date(2025, 1, 13)) == "2025-W03"


def test_period_key_dispatch():
    moment = datetime(2025, 3, 9, 23, 59)

    assert period_key(Period.DAILY, moment) == day_key(moment) == "20250309"
    assert period_key(Period.MONTHLY, moment) == month_key(moment) == "202503"
    assert period_key(Period.YEARLY, moment) == year_key(moment) == "2025"
    assert period_key("weekly", moment) == "2025-W10"


def test_for_period_matches_attributes():
    keys = BucketKeys.at(date(2025, 2, 1))

    assert keys.for_period(Period.DAILY) == keys.day
    assert keys.for_period(Period.WEEKLY) == keys.week
    assert keys.for_period(Period.MONTHLY) == keys.month
    assert keys.for_period(Period.YEARLY) == keys.year


def test_start_of_day():
    assert start_of_day(datetime(2025, 1, 8, 9, 15, 42, 123)) == datetime(2025, 1, 8)


def test_local_time_strips_offsets():
    moment = datetime(2025, 1, 7, 10, 0)
    elsewhere = moment.astimezone(timezone(timedelta(hours=5)))

    assert local_time(moment) is moment
    assert local_time(elsewhere) == moment
    assert local_time(elsewhere).tzinfo is None
