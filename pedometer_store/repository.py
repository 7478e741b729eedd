"""
State Repository
================

Bounded Context: Mapping PersistedState onto the flat key-value schema.

Design:
- load(): read every field with its default, plus the live bucket totals
- save(): write only the keys whose value changed since the last save,
  all in one editor batch
- Epoch keys (anchor, previous reading, reset time) and the live bucket
  totals are always written together when any of them changes
- Historical bucket entries (older keys) are never touched or purged

Timestamps are stored as epoch milliseconds (0 = unset).
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pedometer_core.buckets import Period
from pedometer_core.state import PersistedState
from pedometer_store import keys as k
from pedometer_store.base import KeyValueStore, StoreEditor

logger = logging.getLogger(__name__)

Entry = Tuple[str, Any]  # (kind, value)


def to_epoch_ms(moment: Optional[datetime]) -> int:
    if moment is None:
        return 0
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int) -> Optional[datetime]:
    if value <= 0:
        return None
    return datetime.fromtimestamp(value / 1000)


class StateRepository:
    """
    Loads and flushes PersistedState through a KeyValueStore.

    Args:
        store: Backing key-value store
        defaults: State whose profile fields (goal, weight, height) are used
            when the store has none yet

    Usage:
        repository = StateRepository(JsonFileStore("data/pedometer.json"))
        state = repository.load()
        ...
        repository.save(new_state)
    """

    def __init__(self, store: KeyValueStore, defaults: Optional[PersistedState] = None):
        self.store = store
        self.defaults = defaults or PersistedState()
        self._written: Dict[str, Entry] = {}

    def load(self) -> PersistedState:
        """Read the persisted state (defaults for anything missing)."""
        s = self.store
        d = self.defaults

        initial: Optional[float] = None
        if s.get_bool(k.HAS_INITIAL_STEP_COUNT, False):
            initial = s.get_float(k.INITIAL_STEP_COUNT, 0.0)

        last_reset_time = from_epoch_ms(s.get_long(k.LAST_RESET_TIME, 0))
        last_reset_week = s.get_string(k.LAST_RESET_WEEK, "")
        last_reset_month = s.get_string(k.LAST_RESET_MONTH, "")
        last_reset_year = s.get_string(k.LAST_RESET_YEAR, "")

        state = PersistedState(
            initial_step_count=initial,
            current_step_count=s.get_float(k.CURRENT_STEP_COUNT, d.current_step_count),
            previous_step_count=s.get_float(k.PREVIOUS_STEP_COUNT, d.previous_step_count),
            last_reset_time=last_reset_time,
            last_reset_week=last_reset_week,
            last_reset_month=last_reset_month,
            last_reset_year=last_reset_year,
            walking_start_time=from_epoch_ms(s.get_long(k.WALKING_START_TIME, 0)),
            is_walking=s.get_bool(k.IS_WALKING, False),
            total_walking_time_ms=s.get_long(k.TOTAL_WALKING_TIME, 0),
            step_goal=s.get_int(k.STEP_GOAL, d.step_goal),
            weight=s.get_float(k.WEIGHT, d.weight),
            height=s.get_float(k.HEIGHT, d.height),
            is_sensor_available=s.get_bool(k.IS_SENSOR_AVAILABLE, d.is_sensor_available),
        )

        state = replace(
            state,
            daily_steps=self.read_bucket(Period.DAILY, state.live_day_key),
            weekly_steps=self.read_bucket(Period.WEEKLY, last_reset_week),
            monthly_steps=self.read_bucket(Period.MONTHLY, last_reset_month),
            yearly_steps=self.read_bucket(Period.YEARLY, last_reset_year),
        )

        self._written = self._entries(state)
        logger.info(
            f"Loaded state (anchored={state.is_anchored}, day={state.live_day_key or '-'}, "
            f"daily={state.daily_steps})"
        )
        return state

    def read_bucket(self, period: Period, key: str) -> float:
        """Stored total of one bucket (0 when absent)."""
        if not key:
            return 0.0
        return self.store.get_float(k.bucket_key(period, key), 0.0)

    def save(self, state: PersistedState) -> int:
        """
        Flush `state`, writing only changed keys in one batch.

        Returns:
            Number of keys written

        Raises:
            StoreError: If the backing store fails (nothing is marked written)
        """
        entries = self._entries(state)
        changed = {key for key, entry in entries.items() if self._written.get(key) != entry}

        if changed & self._epoch_group(entries):
            changed |= self._epoch_group(entries)

        if not changed:
            return 0

        with self.store.edit() as editor:
            for key in sorted(changed):
                kind, value = entries[key]
                self._put(editor, kind, key, value)

        for key in changed:
            self._written[key] = entries[key]
        return len(changed)

    @staticmethod
    def _epoch_group(entries: Dict[str, Entry]) -> set:
        return {key for key in entries if key in k.EPOCH_KEYS or k.is_bucket_key(key)}

    @staticmethod
    def _put(editor: StoreEditor, kind: str, key: str, value: Any) -> None:
        {
            "float": editor.put_float,
            "int": editor.put_int,
            "long": editor.put_long,
            "bool": editor.put_bool,
            "string": editor.put_string,
        }[kind](key, value)

    @staticmethod
    def _entries(state: PersistedState) -> Dict[str, Entry]:
        entries: Dict[str, Entry] = {
            k.HAS_INITIAL_STEP_COUNT: ("bool", state.is_anchored),
            k.CURRENT_STEP_COUNT: ("float", state.current_step_count),
            k.PREVIOUS_STEP_COUNT: ("float", state.previous_step_count),
            k.LAST_RESET_TIME: ("long", to_epoch_ms(state.last_reset_time)),
            k.LAST_RESET_WEEK: ("string", state.last_reset_week),
            k.LAST_RESET_MONTH: ("string", state.last_reset_month),
            k.LAST_RESET_YEAR: ("string", state.last_reset_year),
            k.WALKING_START_TIME: ("long", to_epoch_ms(state.walking_start_time)),
            k.IS_WALKING: ("bool", state.is_walking),
            k.TOTAL_WALKING_TIME: ("long", state.total_walking_time_ms),
            k.STEP_GOAL: ("int", state.step_goal),
            k.WEIGHT: ("float", state.weight),
            k.HEIGHT: ("float", state.height),
            k.IS_SENSOR_AVAILABLE: ("bool", state.is_sensor_available),
        }
        if state.is_anchored:
            entries[k.INITIAL_STEP_COUNT] = ("float", state.initial_step_count)

        for period in Period:
            live_key = state.live_key(period)
            if live_key:
                entries[k.bucket_key(period, live_key)] = ("float", state.total(period))

        return entries
