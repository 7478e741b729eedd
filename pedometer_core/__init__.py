"""
Step Accounting Core
====================

Bounded Context: Step bookkeeping (no I/O).

Responsibilities:
- Calendar bucket keys (day, ISO week, month, year)
- Immutable persisted state (PersistedState)
- Reading -> bucket totals + walking time (StepAccountant)
- Presentation snapshot and derived figures (StepSnapshot, DashboardView)
- Error taxonomy

Design Philosophy:
- Pure functions over an explicit state snapshot
- Immutable outputs (frozen dataclasses)
- One place for rollover rules, shared by every caller
"""

from pedometer_core.accountant import StepAccountant
from pedometer_core.buckets import BucketKeys, Period, local_time, period_key
from pedometer_core.dashboard import (
    DashboardView,
    StepSnapshot,
    render_dashboard,
    take_snapshot,
)
from pedometer_core.errors import (
    CapabilityUnavailable,
    InvalidReadingError,
    PedometerError,
    PermissionDenied,
    SettingOutOfRange,
    TransientReadError,
)
from pedometer_core.state import PersistedState, SENSOR_UNAVAILABLE

__all__ = [
    "StepAccountant",
    "BucketKeys",
    "Period",
    "period_key",
    "local_time",
    "DashboardView",
    "StepSnapshot",
    "render_dashboard",
    "take_snapshot",
    "CapabilityUnavailable",
    "InvalidReadingError",
    "PedometerError",
    "PermissionDenied",
    "SettingOutOfRange",
    "TransientReadError",
    "PersistedState",
    "SENSOR_UNAVAILABLE",
]
