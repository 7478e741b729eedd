"""Store key names (compatible with the mobile app's preference file)."""

from pedometer_core.buckets import Period

INITIAL_STEP_COUNT = "initialStepCount"
HAS_INITIAL_STEP_COUNT = "hasInitialStepCount"
CURRENT_STEP_COUNT = "currentStepCount"
PREVIOUS_STEP_COUNT = "previousStepCount"

LAST_RESET_TIME = "lastResetTime"
LAST_RESET_WEEK = "lastResetWeek"
LAST_RESET_MONTH = "lastResetMonth"
LAST_RESET_YEAR = "lastResetYear"

WALKING_START_TIME = "walkingStartTime"
IS_WALKING = "isWalking"
TOTAL_WALKING_TIME = "totalWalkingTime"

STEP_GOAL = "stepGoal"
WEIGHT = "weight"
HEIGHT = "height"
IS_SENSOR_AVAILABLE = "isSensorAvailable"

# Written together so a crash cannot split an anchor from its bucket reset
EPOCH_KEYS = frozenset({
    INITIAL_STEP_COUNT,
    HAS_INITIAL_STEP_COUNT,
    PREVIOUS_STEP_COUNT,
    LAST_RESET_TIME,
})


def bucket_key(period: Period, key: str) -> str:
    """Store key of one bucket total, e.g. steps_daily_20250106."""
    return f"steps_{Period(period).value}_{key}"


def is_bucket_key(key: str) -> bool:
    return key.startswith("steps_")
