"""Key-value stores and the PersistedState repository."""

import json
from dataclasses import replace
from datetime import datetime

import pytest

from pedometer_core import PersistedState
from pedometer_core.buckets import Period
from pedometer_store import (
    JsonFileStore,
    MemoryStore,
    StateRepository,
    StoreError,
    StoreTypeError,
)
from pedometer_store import keys as k
from pedometer_store.repository import from_epoch_ms, to_epoch_ms

from conftest import D0


def test_typed_get_with_defaults():
    store = MemoryStore({"goal": 8000, "weight": 72.5, "flag": True, "name": "x"})

    assert store.get_int("goal", 0) == 8000
    assert store.get_float("weight", 0.0) == 72.5
    assert store.get_float("goal", 0.0) == 8000.0
    assert store.get_bool("flag", False) is True
    assert store.get_string("name", "") == "x"
    assert store.get_long("missing", 42) == 42
    assert not store.contains("missing")

    with pytest.raises(StoreTypeError):
        store.get_int("weight", 0)
    with pytest.raises(StoreTypeError):
        store.get_bool("goal", False)


def test_editor_batch_commits_once():
    store = MemoryStore()

    with store.edit() as editor:
        editor.put_float("a", 1).put_int("b", 2).put_bool("c", True).put_string("d", "w")
        assert store.as_dict() == {}

    assert store.as_dict() == {"a": 1.0, "b": 2, "c": True, "d": "w"}
    assert store.commit_count == 1


def test_editor_discards_on_error():
    store = MemoryStore()

    with pytest.raises(RuntimeError):
        with store.edit() as editor:
            editor.put_int("a", 1)
            raise RuntimeError("boom")

    assert store.as_dict() == {}
    assert store.commit_count == 0


def test_editor_rejects_wrong_types():
    editor = MemoryStore().edit()

    with pytest.raises(StoreTypeError):
        editor.put_int("a", 1.5)
    with pytest.raises(StoreTypeError):
        editor.put_int("a", True)
    with pytest.raises(StoreTypeError):
        editor.put_float("a", float("nan"))
    with pytest.raises(StoreTypeError):
        editor.put_bool("a", 1)
    with pytest.raises(StoreTypeError):
        editor.put_string("a", 3)


def test_json_store_survives_reopen(tmp_path):
    path = tmp_path / "state" / "pedometer.json"
    store = JsonFileStore(path)
    with store.edit() as editor:
        editor.put_float(k.CURRENT_STEP_COUNT, 4200).put_int(k.STEP_GOAL, 9000)

    reopened = JsonFileStore(path)
    assert reopened.get_float(k.CURRENT_STEP_COUNT, 0.0) == 4200.0
    assert reopened.get_int(k.STEP_GOAL, 0) == 9000
    assert json.loads(path.read_text())[k.STEP_GOAL] == 9000
    assert [p.name for p in path.parent.iterdir()] == ["pedometer.json"]


def test_json_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(StoreError):
        JsonFileStore(path)

    path.write_text("{not json")
    with pytest.raises(StoreError):
        JsonFileStore(path)


def test_epoch_ms_round_trip():
    assert to_epoch_ms(None) == 0
    assert from_epoch_ms(0) is None
    assert from_epoch_ms(to_epoch_ms(D0)) == D0


def test_load_defaults_from_empty_store():
    defaults = PersistedState(step_goal=8000, weight=60.0, height=165.0)
    state = StateRepository(MemoryStore(), defaults=defaults).load()

    assert not state.is_anchored
    assert state.step_goal == 8000
    assert state.weight == 60.0
    assert state.height == 165.0
    assert state.last_reset_time is None
    assert state.displayed_steps is None


def test_initial_count_needs_presence_flag():
    store = MemoryStore({k.INITIAL_STEP_COUNT: 500.0, k.HAS_INITIAL_STEP_COUNT: False})

    assert StateRepository(store).load().initial_step_count is None


def test_save_then_load_restores_state():
    store = MemoryStore()
    state = PersistedState(
        initial_step_count=500.0,
        current_step_count=600.0,
        previous_step_count=600.0,
        last_reset_time=D0,
        last_reset_week="2025-W02",
        last_reset_month="202501",
        last_reset_year="2025",
        walking_start_time=D0,
        is_walking=True,
        total_walking_time_ms=1234,
        daily_steps=100.0,
        weekly_steps=300.0,
        monthly_steps=900.0,
        yearly_steps=900.0,
        step_goal=12000,
    )
    StateRepository(store).save(state)

    assert store.get_float("steps_daily_20250107", 0.0) == 100.0
    assert store.get_float("steps_weekly_2025-W02", 0.0) == 300.0
    assert StateRepository(store).load() == state


def test_save_writes_only_changed_keys():
    store = MemoryStore()
    repository = StateRepository(store)
    state = repository.load()

    assert repository.save(state) == 0
    assert repository.save(replace(state, step_goal=8000)) == 1
    assert store.as_dict() == {k.STEP_GOAL: 8000}


def test_epoch_keys_written_together():
    store = MemoryStore()
    repository = StateRepository(store)
    state = repository.load()

    written = repository.save(replace(state, initial_step_count=500.0))

    assert written == len(k.EPOCH_KEYS)
    assert store.commit_count == 1
    assert set(store.as_dict()) == set(k.EPOCH_KEYS)


def test_historical_buckets_are_kept():
    store = MemoryStore({"steps_daily_20240101": 4321.0})
    repository = StateRepository(store)
    state = replace(
        repository.load(),
        last_reset_time=datetime(2025, 1, 7, 8, 0),
        daily_steps=10.0,
    )
    repository.save(state)

    assert repository.read_bucket(Period.DAILY, "20240101") == 4321.0
    assert repository.read_bucket(Period.DAILY, "20250107") == 10.0
    assert repository.read_bucket(Period.DAILY, "") == 0.0


def test_failed_save_is_retried():
    class Flaky(MemoryStore):
        fail = True

        def _commit(self, changes):
            if self.fail:
                raise StoreError("disk full")
            super()._commit(changes)

    store = Flaky()
    repository = StateRepository(store)
    state = replace(repository.load(), step_goal=7000)

    with pytest.raises(StoreError):
        repository.save(state)

    store.fail = False
    assert repository.save(state) == 1
    assert store.get_int(k.STEP_GOAL, 0) == 7000
