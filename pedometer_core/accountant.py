"""
Step Accountant
===============

Bounded Context: Step bookkeeping.

Converts absolute step counter readings into period-bucketed totals and
walking time. Pure: every operation takes a PersistedState and returns a new
one, no I/O.

Design:
- Daily bucket is *set* to `reading - initial_step_count` (epoch displacement)
- Weekly/monthly/yearly buckets accumulate positive deltas only
- Rollover is evaluated independently for each granularity
- A reading below the previous one means the hardware counter restarted
  (device reboot): the epoch is re-anchored, nothing is subtracted
- Faults never escape: the update is dropped and the input state returned

Usage:
    accountant = StepAccountant()

    state = PersistedState()
    state = accountant.observe(500.0, datetime(2025, 1, 6, 9, 0), state)
    state = accountant.observe(600.0, datetime(2025, 1, 6, 9, 5), state)
    state.daily_steps  # 100.0
"""

import logging
import math
from dataclasses import replace
from datetime import datetime

from pedometer_core.buckets import BucketKeys, start_of_day
from pedometer_core.errors import InvalidReadingError
from pedometer_core.state import PersistedState, SENSOR_UNAVAILABLE

logger = logging.getLogger(__name__)


def _elapsed_ms(start: datetime, end: datetime) -> int:
    """Milliseconds from start to end, floored at zero."""
    return max(int((end - start).total_seconds() * 1000), 0)


class StepAccountant:
    """
    Stateless step accounting rules.

    Operations:
    - anchor(): set the epoch zero point on the first reading
    - roll_over(): start new buckets whose calendar period changed
    - observe(): apply one absolute reading
    - close_session(): fold the open walking interval
    - reset(): user reset of the daily epoch

    Thread Safety:
        Holds no state. Callers serialize access to the PersistedState they
        pass in (observe reads and writes several related fields).
    """

    def anchor(self, reading: float, now: datetime, state: PersistedState) -> PersistedState:
        """
        Anchor the epoch on `reading` if no zero point exists yet.

        The result must be persisted before the rest of the update so a crash
        cannot lose the anchor.
        """
        if state.is_anchored or not self.is_valid_reading(reading):
            return state

        logger.info(f"Epoch anchored at absolute reading {reading}")
        return replace(
            state,
            initial_step_count=float(reading),
            previous_step_count=float(reading),
            current_step_count=float(reading),
        )

    def roll_over(self, now: datetime, state: PersistedState) -> PersistedState:
        """
        Start new buckets for every granularity whose key changed.

        Daily rollover also starts a new epoch: the anchor moves to the last
        observed reading and walking time restarts at zero.
        """
        try:
            return self._roll_over(now, state)
        except Exception as e:
            logger.error(f"Rollover failed, state unchanged: {e}", exc_info=True)
            return state

    def observe(self, reading: float, now: datetime, state: PersistedState) -> PersistedState:
        """
        Apply one absolute reading.

        Args:
            reading: Absolute step counter value (-1 = sensor unavailable)
            now: Wall-clock time of the reading
            state: Current state

        Returns:
            Updated state, or `state` itself when the reading was dropped
        """
        try:
            return self._observe(reading, now, state)
        except InvalidReadingError as e:
            logger.warning(f"Dropped step reading: {e}")
            return state
        except Exception as e:
            logger.error(f"Error applying reading {reading!r}, dropped: {e}", exc_info=True)
            return state

    def close_session(self, now: datetime, state: PersistedState) -> PersistedState:
        """Fold the open walking interval into the total and close it."""
        try:
            if not state.is_walking or state.walking_start_time is None:
                return replace(state, is_walking=False, walking_start_time=None)

            elapsed = _elapsed_ms(state.walking_start_time, now)
            return replace(
                state,
                total_walking_time_ms=state.total_walking_time_ms + elapsed,
                is_walking=False,
                walking_start_time=None,
            )
        except Exception as e:
            logger.error(f"Error closing walking session: {e}", exc_info=True)
            return state

    def reset(self, now: datetime, state: PersistedState) -> PersistedState:
        """
        User reset: displayed steps, daily total and walking time go to zero.

        Weekly, monthly and yearly totals are left alone; only calendar
        rollover clears them. The raw absolute reading is untouched.
        """
        try:
            state = self._roll_over(now, state)

            if state.is_anchored:
                anchor = (
                    state.previous_step_count
                    if state.current_step_count == SENSOR_UNAVAILABLE
                    else state.current_step_count
                )
                state = replace(
                    state,
                    initial_step_count=anchor,
                    previous_step_count=anchor,
                )

            logger.info("Daily steps reset by user")
            return replace(
                state,
                last_reset_time=now,
                daily_steps=0.0,
                total_walking_time_ms=0,
                is_walking=False,
                walking_start_time=None,
            )
        except Exception as e:
            logger.error(f"Error resetting steps: {e}", exc_info=True)
            return state

    @staticmethod
    def is_valid_reading(reading: float) -> bool:
        """True for finite, non-negative readings."""
        if isinstance(reading, bool) or not isinstance(reading, (int, float)):
            return False
        return math.isfinite(reading) and reading >= 0

    # ─────────────────────────────────────────────────────────────────────
    # Internals (may raise, wrapped by the public operations)
    # ─────────────────────────────────────────────────────────────────────

    def _observe(self, reading: float, now: datetime, state: PersistedState) -> PersistedState:
        if reading == SENSOR_UNAVAILABLE:
            return replace(state, current_step_count=SENSOR_UNAVAILABLE)

        if not self.is_valid_reading(reading):
            raise InvalidReadingError(f"invalid absolute step reading {reading!r}")

        reading = float(reading)
        state = self.anchor(reading, now, state)
        state = self._roll_over(now, state)

        if reading < state.previous_step_count:
            # Counter restarted: keep the displayed count continuous
            logger.warning(
                f"Step counter went backwards ({state.previous_step_count} -> {reading}), "
                f"re-anchoring epoch"
            )
            state = replace(state, initial_step_count=reading - state.daily_steps)

        delta = max(reading - state.previous_step_count, 0.0)

        state = replace(
            state,
            daily_steps=max(state.daily_steps, reading - state.initial_step_count),
            weekly_steps=state.weekly_steps + delta,
            monthly_steps=state.monthly_steps + delta,
            yearly_steps=state.yearly_steps + delta,
            previous_step_count=reading,
            current_step_count=reading,
        )

        return self._track_walking(now, state)

    def _roll_over(self, now: datetime, state: PersistedState) -> PersistedState:
        keys = BucketKeys.at(now)

        if state.live_day_key != keys.day:
            changes = dict(
                last_reset_time=now,
                daily_steps=0.0,
                total_walking_time_ms=0,
            )
            if state.is_anchored:
                changes["initial_step_count"] = state.previous_step_count
            if state.is_walking and state.walking_start_time is not None:
                changes["walking_start_time"] = max(state.walking_start_time, start_of_day(now))
            logger.info(f"Daily rollover {state.live_day_key or '-'} -> {keys.day}")
            state = replace(state, **changes)

        if state.last_reset_week != keys.week:
            state = replace(state, weekly_steps=0.0, last_reset_week=keys.week)

        if state.last_reset_month != keys.month:
            state = replace(state, monthly_steps=0.0, last_reset_month=keys.month)

        if state.last_reset_year != keys.year:
            state = replace(state, yearly_steps=0.0, last_reset_year=keys.year)

        return state

    def _track_walking(self, now: datetime, state: PersistedState) -> PersistedState:
        # Heartbeat: every step event extends the open interval up to `now`
        if not state.is_walking or state.walking_start_time is None:
            return replace(state, is_walking=True, walking_start_time=now)

        elapsed = _elapsed_ms(state.walking_start_time, now)
        return replace(
            state,
            total_walking_time_ms=state.total_walking_time_ms + elapsed,
            walking_start_time=now,
        )
