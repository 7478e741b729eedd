"""
Persisted Step State
====================

Bounded Context: Step accounting state.

Design:
- One frozen dataclass holds everything the tracker persists
- Every change produces a new instance (dataclasses.replace)
- Sentinels: `initial_step_count is None` means no epoch anchor yet,
  `current_step_count == -1` means the sensor is unavailable or denied
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from pedometer_core.buckets import BucketKeys, Period, day_key

SENSOR_UNAVAILABLE = -1.0

STEP_GOAL_RANGE: Tuple[int, int] = (1000, 50000)
WEIGHT_RANGE: Tuple[float, float] = (30.0, 150.0)
HEIGHT_RANGE: Tuple[float, float] = (100.0, 250.0)

DEFAULT_STEP_GOAL = 10000
DEFAULT_WEIGHT = 70.0
DEFAULT_HEIGHT = 170.0


def in_range(value: float, bounds: Tuple[float, float]) -> bool:
    """Inclusive range check that also rejects NaN and infinities."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if not math.isfinite(value):
        return False
    low, high = bounds
    return low <= value <= high


@dataclass(frozen=True)
class PersistedState:
    """
    Immutable snapshot of the tracker's persisted state.

    Attributes:
        initial_step_count: Absolute reading at the start of the epoch (None until anchored)
        current_step_count: Latest absolute reading, or -1 when unavailable
        previous_step_count: Absolute reading at the last flush
        last_reset_time: Start of the current epoch (daily rollover or manual reset)
        last_reset_week: Week key the weekly total belongs to
        last_reset_month: Month key the monthly total belongs to
        last_reset_year: Year key the yearly total belongs to
        walking_start_time: Start of the open walking interval
        is_walking: Whether a walking session is open
        total_walking_time_ms: Walking duration accumulated in the epoch
        daily_steps: Live daily bucket total
        weekly_steps: Live weekly bucket total
        monthly_steps: Live monthly bucket total
        yearly_steps: Live yearly bucket total
        step_goal: Daily target, 1000..50000
        weight: kg, 30..150
        height: cm, 100..250
        is_sensor_available: Whether the step counter hardware exists

    Invariants:
        - current_step_count >= initial_step_count once anchored
          (unless current_step_count is the -1 sentinel)
        - bucket totals never decrease within their period
    """

    initial_step_count: Optional[float] = None
    current_step_count: float = 0.0
    previous_step_count: float = 0.0

    last_reset_time: Optional[datetime] = None
    last_reset_week: str = ""
    last_reset_month: str = ""
    last_reset_year: str = ""

    walking_start_time: Optional[datetime] = None
    is_walking: bool = False
    total_walking_time_ms: int = 0

    daily_steps: float = 0.0
    weekly_steps: float = 0.0
    monthly_steps: float = 0.0
    yearly_steps: float = 0.0

    step_goal: int = DEFAULT_STEP_GOAL
    weight: float = DEFAULT_WEIGHT
    height: float = DEFAULT_HEIGHT
    is_sensor_available: bool = True

    @property
    def is_anchored(self) -> bool:
        """True once the epoch has a zero point."""
        return self.initial_step_count is not None

    @property
    def is_unavailable(self) -> bool:
        """True when readings are denied or the hardware is missing."""
        return (
            self.current_step_count == SENSOR_UNAVAILABLE
            or not self.is_sensor_available
        )

    @property
    def displayed_steps(self) -> Optional[float]:
        """Steps since the epoch began, or None when there is no data."""
        if self.is_unavailable or not self.is_anchored:
            return None
        return max(self.current_step_count - self.initial_step_count, 0.0)

    @property
    def live_day_key(self) -> str:
        """Day key of the live daily bucket ("" before the first epoch)."""
        if self.last_reset_time is None:
            return ""
        return day_key(self.last_reset_time)

    def live_key(self, period: Period) -> str:
        """Bucket key the live total of `period` belongs to."""
        return {
            Period.DAILY: self.live_day_key,
            Period.WEEKLY: self.last_reset_week,
            Period.MONTHLY: self.last_reset_month,
            Period.YEARLY: self.last_reset_year,
        }[Period(period)]

    def total(self, period: Period) -> float:
        """Live bucket total of `period`."""
        return {
            Period.DAILY: self.daily_steps,
            Period.WEEKLY: self.weekly_steps,
            Period.MONTHLY: self.monthly_steps,
            Period.YEARLY: self.yearly_steps,
        }[Period(period)]

    def total_at(self, period: Period, keys: BucketKeys) -> float:
        """
        Total for the bucket `keys` points at.

        A live bucket that belongs to an older period reads as 0: nothing has
        been counted for the current period yet.
        """
        if self.live_key(period) != keys.for_period(period):
            return 0.0
        return self.total(period)
