"""
Dashboard Derivations
=====================

Bounded Context: Presentation values derived from the persisted state.

Design:
- StepSnapshot: immutable read model handed to the presentation layer
- DashboardView: derived figures (distance, calories, progress) or None (N/A)
- render_dashboard(): plain text lines for terminals and logs

Formulas (walking estimates):
    stride (m)     = height_cm * 0.415 / 100
    distance (km)  = steps * stride / 1000
    calories (kcal) = distance_km * weight_kg * 0.57
    progress       = min(steps / goal, 1.0)

No derived figure is computed from the -1 sentinel; unavailable data renders
as "N/A", never as 0, a negative count, NaN or infinity.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from pedometer_core.buckets import BucketKeys, Period
from pedometer_core.state import PersistedState

NOT_AVAILABLE = "N/A"

STRIDE_FACTOR = 0.415
CALORIES_PER_KG_KM = 0.57


@dataclass(frozen=True)
class StepSnapshot:
    """
    Immutable read model of the tracker state.

    `displayed_steps` is -1 when there is no data (sensor missing,
    permission denied, or no reading yet).
    """

    displayed_steps: int
    step_goal: int
    daily_steps: int
    weekly_steps: int
    monthly_steps: int
    yearly_steps: int
    total_walking_time_ms: int
    is_sensor_available: bool
    weight: float
    height: float

    @property
    def has_data(self) -> bool:
        return self.displayed_steps >= 0 and self.is_sensor_available

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def take_snapshot(state: PersistedState, now: datetime) -> StepSnapshot:
    """Build the presentation snapshot of `state` as seen at `now`."""
    keys = BucketKeys.at(now)
    displayed = state.displayed_steps
    if displayed is not None and state.live_day_key != keys.day:
        # Epoch belongs to an earlier day that has not been rolled over yet
        displayed = 0

    return StepSnapshot(
        displayed_steps=-1 if displayed is None else int(displayed),
        step_goal=state.step_goal,
        daily_steps=int(state.total_at(Period.DAILY, keys)),
        weekly_steps=int(state.total_at(Period.WEEKLY, keys)),
        monthly_steps=int(state.total_at(Period.MONTHLY, keys)),
        yearly_steps=int(state.total_at(Period.YEARLY, keys)),
        total_walking_time_ms=state.total_walking_time_ms,
        is_sensor_available=state.is_sensor_available,
        weight=state.weight,
        height=state.height,
    )


def stride_length_m(height_cm: float) -> float:
    return height_cm * STRIDE_FACTOR / 100


def distance_km(steps: float, height_cm: float) -> float:
    return steps * stride_length_m(height_cm) / 1000


def calories_kcal(steps: float, height_cm: float, weight_kg: float) -> float:
    return distance_km(steps, height_cm) * weight_kg * CALORIES_PER_KG_KM


def progress_ratio(steps: float, goal: int) -> Optional[float]:
    """Fraction of the goal reached, clamped to [0, 1]; None without a usable goal."""
    if goal <= 0:
        return None
    return min(max(steps / goal, 0.0), 1.0)


@dataclass(frozen=True)
class DashboardView:
    """
    Derived dashboard figures. Every Optional field is None when N/A.
    """

    steps: Optional[int]
    step_goal: int
    progress: Optional[float]
    distance_km: Optional[float]
    calories_kcal: Optional[float]
    walking_minutes: Optional[int]
    daily_steps: Optional[int]
    weekly_steps: Optional[int]
    monthly_steps: Optional[int]
    yearly_steps: Optional[int]
    is_sensor_available: bool

    @classmethod
    def from_snapshot(cls, snapshot: StepSnapshot) -> "DashboardView":
        if not snapshot.has_data:
            return cls(
                steps=None,
                step_goal=snapshot.step_goal,
                progress=None,
                distance_km=None,
                calories_kcal=None,
                walking_minutes=None,
                daily_steps=None,
                weekly_steps=None,
                monthly_steps=None,
                yearly_steps=None,
                is_sensor_available=snapshot.is_sensor_available,
            )

        steps = snapshot.displayed_steps
        return cls(
            steps=steps,
            step_goal=snapshot.step_goal,
            progress=progress_ratio(steps, snapshot.step_goal),
            distance_km=distance_km(steps, snapshot.height),
            calories_kcal=calories_kcal(steps, snapshot.height, snapshot.weight),
            walking_minutes=snapshot.total_walking_time_ms // 60000,
            daily_steps=snapshot.daily_steps,
            weekly_steps=snapshot.weekly_steps,
            monthly_steps=snapshot.monthly_steps,
            yearly_steps=snapshot.yearly_steps,
            is_sensor_available=snapshot.is_sensor_available,
        )


def format_count(value: Optional[int]) -> str:
    """Group thousands with '.' (10000 -> '10.000')."""
    if value is None:
        return NOT_AVAILABLE
    return f"{value:,}".replace(",", ".")


def _format_decimal(value: Optional[float], unit: str) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.2f} {unit}"


def render_dashboard(view: DashboardView) -> List[str]:
    """Render the dashboard as text lines."""
    lines = []

    if not view.is_sensor_available:
        lines.append("Step counter sensor not available on this device")

    lines.append(f"Steps: {format_count(view.steps)} / {format_count(view.step_goal)}")
    if view.progress is None:
        lines.append(f"Progress: {NOT_AVAILABLE}")
    else:
        lines.append(f"Progress: {view.progress * 100:.0f}%")

    lines.append(f"Distance: {_format_decimal(view.distance_km, 'km')}")
    lines.append(f"Calories: {_format_decimal(view.calories_kcal, 'kcal')}")

    if view.walking_minutes is None:
        lines.append(f"Walking Time: {NOT_AVAILABLE}")
    else:
        lines.append(f"Walking Time: {view.walking_minutes} min")

    lines.append(f"Today: {format_count(view.daily_steps)}")
    lines.append(f"This Week: {format_count(view.weekly_steps)}")
    lines.append(f"This Month: {format_count(view.monthly_steps)}")
    lines.append(f"This Year: {format_count(view.yearly_steps)}")
    return lines
