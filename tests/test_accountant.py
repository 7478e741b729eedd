"""
StepAccountant: bucket accounting, rollovers, walking time, resets.

Readings are absolute counter values; D0/D1 are consecutive days of the same
ISO week.
"""

from dataclasses import replace
from datetime import datetime, timedelta

from pedometer_core import PersistedState, StepAccountant
from pedometer_store import MemoryStore, StateRepository
from pedometer_store.keys import bucket_key
from pedometer_core.buckets import Period

from conftest import D0, D1

acc = StepAccountant()


def feed(readings, state=None):
    """Apply (reading, moment) pairs in order."""
    state = state or PersistedState()
    for reading, moment in readings:
        state = acc.observe(reading, moment, state)
    return state


def test_first_reading_anchors_epoch():
    state = acc.observe(500, D0, PersistedState())

    assert state.initial_step_count == 500
    assert state.previous_step_count == 500
    assert state.daily_steps == 0
    assert state.displayed_steps == 0
    assert state.last_reset_time == D0
    assert state.last_reset_week == "2025-W02"


def test_day_scenario_across_midnight():
    """500 -> 600 on D0, duplicate 600, then 650 on D1."""
    repository = StateRepository(MemoryStore())

    s1 = acc.observe(500, D0, PersistedState())
    s2 = acc.observe(600, D0 + timedelta(minutes=5), s1)
    assert s2.daily_steps == 100
    assert s2.weekly_steps == 100
    assert s2.displayed_steps == 100
    repository.save(s2)

    s3 = acc.observe(600, D0 + timedelta(minutes=6), s2)
    assert s3.daily_steps == s2.daily_steps
    assert s3.weekly_steps == s2.weekly_steps
    assert s3.monthly_steps == s2.monthly_steps
    assert s3.yearly_steps == s2.yearly_steps

    s4 = acc.observe(650, D1, s3)
    assert s4.initial_step_count == 600
    assert s4.daily_steps == 50
    assert s4.weekly_steps == 150
    assert s4.monthly_steps == 150
    assert s4.yearly_steps == 150
    repository.save(s4)

    assert repository.read_bucket(Period.DAILY, "20250107") == 100
    assert repository.read_bucket(Period.DAILY, "20250108") == 50
    assert repository.read_bucket(Period.WEEKLY, "2025-W02") == 150


def test_buckets_never_decrease_within_period():
    readings = [(500, D0), (520, D0 + timedelta(minutes=1)), (519, D0 + timedelta(minutes=2)),
                (560, D0 + timedelta(minutes=3)), (560, D0 + timedelta(minutes=4))]
    state = PersistedState()
    previous = None
    for reading, moment in readings:
        state = acc.observe(reading, moment, state)
        if previous is not None:
            assert state.daily_steps >= previous.daily_steps
            assert state.weekly_steps >= previous.weekly_steps
        previous = state


def test_counter_reboot_keeps_counting():
    """A reading below the previous one re-anchors instead of subtracting."""
    state = feed([(500, D0), (600, D0 + timedelta(minutes=1))])

    rebooted = acc.observe(20, D0 + timedelta(minutes=2), state)
    assert rebooted.daily_steps == 100
    assert rebooted.weekly_steps == 100
    assert rebooted.displayed_steps == 100
    assert rebooted.current_step_count >= rebooted.initial_step_count

    after = acc.observe(50, D0 + timedelta(minutes=3), rebooted)
    assert after.daily_steps == 130
    assert after.weekly_steps == 130
    assert after.displayed_steps == 130


def test_unavailable_reading_short_circuits():
    state = feed([(500, D0), (600, D0 + timedelta(minutes=1))])

    denied = acc.observe(-1, D0 + timedelta(minutes=2), state)
    assert denied.current_step_count == -1
    assert denied.displayed_steps is None
    assert denied.is_unavailable
    assert denied.daily_steps == state.daily_steps
    assert denied.weekly_steps == state.weekly_steps
    assert denied.initial_step_count == state.initial_step_count


def test_invalid_readings_are_dropped():
    state = feed([(500, D0)])

    for bad in (float("nan"), float("inf"), -5, "600", None, True):
        assert acc.observe(bad, D0 + timedelta(minutes=1), state) is state


def test_weekly_rollover_resets_week_only():
    sunday = datetime(2025, 1, 12, 20, 0)
    monday = datetime(2025, 1, 13, 8, 0)
    state = feed([(1000, sunday), (1300, sunday + timedelta(minutes=30)), (1400, monday)])

    assert state.last_reset_week == "2025-W03"
    assert state.weekly_steps == 100
    assert state.monthly_steps == 400
    assert state.daily_steps == 100


def test_monthly_rollover_keeps_iso_week():
    state = feed([
        (1000, datetime(2025, 1, 31, 18, 0)),
        (1200, datetime(2025, 1, 31, 19, 0)),
        (1250, datetime(2025, 2, 1, 9, 0)),
    ])

    assert state.last_reset_month == "202502"
    assert state.monthly_steps == 50
    assert state.weekly_steps == 250
    assert state.yearly_steps == 250


def test_yearly_rollover_inside_one_iso_week():
    """2024-12-31 and 2025-01-01 both belong to 2025-W01."""
    state = feed([
        (7000, datetime(2024, 12, 31, 18, 0)),
        (7400, datetime(2024, 12, 31, 22, 0)),
        (7500, datetime(2025, 1, 1, 10, 0)),
    ])

    assert state.last_reset_year == "2025"
    assert state.yearly_steps == 100
    assert state.monthly_steps == 100
    assert state.weekly_steps == 500


def test_walking_time_heartbeat_and_close():
    state = acc.observe(500, D0, PersistedState())
    assert state.is_walking
    assert state.walking_start_time == D0
    assert state.total_walking_time_ms == 0

    state = acc.observe(510, D0 + timedelta(seconds=90), state)
    assert state.total_walking_time_ms == 90_000

    closed = acc.close_session(D0 + timedelta(seconds=120), state)
    assert closed.total_walking_time_ms == 120_000
    assert not closed.is_walking
    assert closed.walking_start_time is None

    assert acc.close_session(D0 + timedelta(hours=1), closed).total_walking_time_ms == 120_000


def test_walking_interval_clipped_at_midnight():
    late = datetime(2025, 1, 7, 23, 50)
    state = feed([(500, late), (520, late + timedelta(minutes=5))])
    assert state.total_walking_time_ms == 5 * 60_000

    next_day = acc.observe(530, datetime(2025, 1, 8, 0, 10), state)
    assert next_day.total_walking_time_ms == 10 * 60_000


def test_clock_going_backwards_never_adds_negative_time():
    state = feed([(500, D0), (510, D0 + timedelta(minutes=5))])
    earlier = acc.observe(520, D0 + timedelta(minutes=1), state)

    assert earlier.total_walking_time_ms == state.total_walking_time_ms


def test_reset_zeroes_daily_keeps_longer_buckets():
    state = feed([(500, D0), (600, D0 + timedelta(minutes=5))])
    moment = D0 + timedelta(minutes=10)

    reset = acc.reset(moment, state)
    assert reset.initial_step_count == 600
    assert reset.daily_steps == 0
    assert reset.displayed_steps == 0
    assert reset.total_walking_time_ms == 0
    assert not reset.is_walking
    assert reset.weekly_steps == 100
    assert reset.last_reset_time == moment

    after = acc.observe(620, moment + timedelta(minutes=1), reset)
    assert after.daily_steps == 20
    assert after.weekly_steps == 120


def test_reset_while_unavailable_anchors_on_last_good_reading():
    state = feed([(500, D0), (600, D0 + timedelta(minutes=5)), (-1, D0 + timedelta(minutes=6))])

    reset = acc.reset(D0 + timedelta(minutes=7), state)
    assert reset.initial_step_count == 600
    assert reset.current_step_count == -1


def test_reset_before_any_reading_stays_unanchored():
    reset = acc.reset(D0, PersistedState())

    assert not reset.is_anchored
    assert reset.last_reset_time == D0
    assert reset.daily_steps == 0


def test_roll_over_without_reading():
    state = feed([(500, D0), (600, D0 + timedelta(minutes=5))])
    rolled = acc.roll_over(D1, state)

    assert rolled.initial_step_count == 600
    assert rolled.daily_steps == 0
    assert rolled.weekly_steps == 100
    assert rolled.displayed_steps == 0


def test_faults_never_escape():
    state = feed([(500, D0)])

    assert acc.roll_over(None, state) is state
    assert acc.observe(600, None, state) is state
    assert acc.reset(None, state) is state
    broken = replace(state, is_walking=True, walking_start_time="not a datetime")
    assert acc.close_session(D0, broken) is broken


def test_anchor_only_once():
    anchored = acc.anchor(500, D0, PersistedState())
    assert anchored.initial_step_count == 500

    assert acc.anchor(900, D0, anchored) is anchored
    assert acc.anchor(-1, D0, PersistedState()).initial_step_count is None


def test_bucket_store_keys():
    assert bucket_key(Period.DAILY, "20250107") == "steps_daily_20250107"
    assert bucket_key(Period.WEEKLY, "2025-W02") == "steps_weekly_2025-W02"
