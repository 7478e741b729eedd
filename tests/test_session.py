"""TrackingSession lifecycle, flushing and commands."""

from datetime import timedelta, timezone

from pedometer_core.errors import CapabilityUnavailable, PermissionDenied, TransientReadError
from pedometer_service.session import SessionState
from pedometer_store import keys as k

from conftest import D0, D1, FailingStore, FakeNotifier, FakeSensor


def with_offset(moment, hours=5):
    """Same instant as the local `moment`, expressed at a fixed UTC offset."""
    return moment.astimezone(timezone(timedelta(hours=hours)))


def test_start_registers_and_runs(make_session, sensor, notifier):
    session = make_session(notifier=notifier)

    assert session.start() == SessionState.RUNNING
    assert sensor.is_registered
    assert notifier.connected
    assert notifier.statuses == ["running"]
    assert session.persisted.last_reset_time == D0


def test_missing_hardware_is_terminal(make_session, store):
    sensor = FakeSensor(available=False)
    session = make_session(sensor=sensor)

    assert session.start() == SessionState.UNAVAILABLE
    assert isinstance(session.last_error, CapabilityUnavailable)
    assert sensor.register_calls == 0
    assert store.get_bool(k.IS_SENSOR_AVAILABLE, True) is False
    assert session.snapshot().displayed_steps == -1

    assert session.start() == SessionState.UNAVAILABLE
    assert sensor.register_calls == 0


def test_permission_denied_marks_unavailable(make_session, store):
    sensor = FakeSensor(permission_granted=False)
    session = make_session(sensor=sensor)

    assert session.start() == SessionState.UNAVAILABLE
    assert isinstance(session.last_error, PermissionDenied)
    assert session.persisted.current_step_count == -1
    assert store.get_float(k.CURRENT_STEP_COUNT, 0.0) == -1.0
    assert not session.snapshot().has_data


def test_notifier_failure_aborts_start(make_session, sensor):
    notifier = FakeNotifier(connects=False)
    session = make_session(notifier=notifier)

    assert session.start() == SessionState.STOPPED
    assert sensor.register_calls == 0


def test_registration_failure_stops(make_session, notifier):
    sensor = FakeSensor(fail_register=ConnectionError("broker down"))
    session = make_session(sensor=sensor, notifier=notifier)

    assert session.start() == SessionState.STOPPED
    assert isinstance(session.last_error, TransientReadError)
    assert notifier.statuses == ["stopped"]
    assert not notifier.connected


def test_readings_are_flushed_and_published(make_session, sensor, store):
    session = make_session()
    snapshots = []
    session.subscribe(snapshots.append)
    session.start()

    sensor.emit(500, D0)
    sensor.emit(600, D0 + timedelta(minutes=5))

    assert session.snapshot().displayed_steps == 100
    assert snapshots[-1].displayed_steps == 100
    assert snapshots[-1].daily_steps == 100
    assert store.get_float("steps_daily_20250107", 0.0) == 100.0
    assert store.get_float(k.INITIAL_STEP_COUNT, 0.0) == 500.0


def test_anchor_is_flushed_before_the_update(make_session, sensor, store):
    session = make_session()
    session.start()
    before = store.commit_count

    sensor.emit(500, D0)
    assert store.commit_count == before + 2

    sensor.emit(520, D0 + timedelta(minutes=1))
    assert store.commit_count == before + 3


def test_events_ignored_unless_running(make_session, sensor):
    session = make_session()

    session.on_sensor_event(500, D0)
    assert not session.persisted.is_anchored

    session.start()
    session.stop()
    session.on_sensor_event(500, D0)
    assert not session.persisted.is_anchored


def test_invalid_reading_is_dropped(make_session, sensor):
    session = make_session()
    session.start()
    sensor.emit(500, D0)
    state = session.persisted

    sensor.emit(float("nan"), D0 + timedelta(minutes=1))
    assert session.persisted is state


def test_suspend_closes_walking_session(make_session, sensor):
    session = make_session()
    session.start()
    sensor.emit(500, D0)

    session.on_suspend(D0 + timedelta(minutes=2))

    assert not session.persisted.is_walking
    assert session.persisted.total_walking_time_ms == 120_000
    assert session.state == SessionState.RUNNING


def test_stop_closes_session_and_unregisters(make_session, sensor, notifier, clock):
    session = make_session(notifier=notifier)
    session.start()
    sensor.emit(500, D0)

    session.stop(D0 + timedelta(minutes=1))

    assert session.state == SessionState.STOPPED
    assert sensor.unregister_calls == 1
    assert not sensor.is_registered
    assert not session.persisted.is_walking
    assert session.persisted.total_walking_time_ms == 60_000
    assert notifier.statuses == ["running", "stopped"]
    assert not notifier.connected


def test_restart_rolls_over_to_new_day(make_session, sensor, clock):
    session = make_session()
    session.start()
    sensor.emit(500, D0)
    sensor.emit(600, D0 + timedelta(minutes=5))
    session.stop()

    clock.now = D1
    session.start()

    assert session.persisted.initial_step_count == 600
    assert session.snapshot().daily_steps == 0
    assert session.snapshot().weekly_steps == 100


def test_permission_revoked_while_running(make_session, sensor, notifier):
    session = make_session(notifier=notifier)
    session.start()
    sensor.emit(500, D0)
    sensor.emit(600, D0 + timedelta(minutes=1))

    sensor.revoke()

    assert session.state == SessionState.UNAVAILABLE
    assert isinstance(session.last_error, PermissionDenied)
    assert session.persisted.current_step_count == -1
    assert session.snapshot().displayed_steps == -1
    assert not sensor.is_registered
    assert not session.persisted.is_walking
    assert notifier.statuses == ["running", "unavailable"]
    assert notifier.connected
    assert session.reset() is False

    session.stop()
    assert session.state == SessionState.UNAVAILABLE
    assert notifier.statuses[-1] == "unavailable"
    assert not notifier.connected


def test_reset_allowed_when_running_or_stopped(make_session, sensor):
    session = make_session()
    assert session.reset(D0) is True

    session.start()
    sensor.emit(500, D0)
    sensor.emit(650, D0 + timedelta(minutes=3))
    assert session.reset(D0 + timedelta(minutes=4)) is True
    assert session.snapshot().displayed_steps == 0
    assert session.snapshot().weekly_steps == 150

    session.stop()
    assert session.reset(D0 + timedelta(minutes=5)) is True


def test_profile_commands_validate_ranges(make_session, store):
    session = make_session()

    assert session.set_step_goal(8000) is True
    assert session.set_step_goal(999) is False
    assert session.set_step_goal(50001) is False
    assert session.set_step_goal(8000.5) is False
    assert session.set_step_goal(True) is False
    assert session.persisted.step_goal == 8000
    assert store.get_int(k.STEP_GOAL, 0) == 8000

    assert session.set_weight(30) is True
    assert session.set_weight(150.1) is False
    assert session.set_weight(float("nan")) is False
    assert session.persisted.weight == 30.0

    assert session.set_height(250) is True
    assert session.set_height(99.9) is False
    assert session.persisted.height == 250.0


def test_flush_failure_keeps_previous_state(make_session, sensor):
    store = FailingStore()
    session = make_session(store=store)
    session.start()
    sensor.emit(500, D0)
    state = session.persisted

    store.failing = True
    sensor.emit(600, D0 + timedelta(minutes=1))
    assert session.persisted is state
    assert isinstance(session.last_error, TransientReadError)
    assert session.set_step_goal(9000) is False

    store.failing = False
    sensor.emit(620, D0 + timedelta(minutes=2))
    assert session.persisted.daily_steps == 120


def test_unsubscribe_stops_notifications(make_session, sensor):
    session = make_session()
    seen = []
    unsubscribe = session.subscribe(seen.append)
    session.start()
    sensor.emit(500, D0)
    count = len(seen)

    unsubscribe()
    sensor.emit(510, D0 + timedelta(minutes=1))
    assert len(seen) == count


def test_failing_listener_does_not_break_session(make_session, sensor):
    session = make_session()

    def broken(snapshot):
        raise RuntimeError("listener bug")

    session.subscribe(broken)
    session.start()
    sensor.emit(500, D0)
    sensor.emit(530, D0 + timedelta(minutes=1))

    assert session.persisted.daily_steps == 30


def test_unavailable_start_keeps_status_channel(make_session, notifier):
    sensor = FakeSensor(available=False)
    session = make_session(sensor=sensor, notifier=notifier)

    assert session.start() == SessionState.UNAVAILABLE
    assert notifier.connected
    assert notifier.statuses == ["unavailable"]


def test_permission_denied_on_register_reports_unavailable(make_session, notifier):
    sensor = FakeSensor(fail_register=PermissionDenied("revoked before registration"))
    session = make_session(sensor=sensor, notifier=notifier)

    assert session.start() == SessionState.UNAVAILABLE
    assert notifier.statuses == ["unavailable"]
    assert notifier.connected


def test_offset_timestamps_use_local_time(make_session, sensor, store):
    session = make_session()
    session.start()
    sensor.emit(500, with_offset(D0))
    sensor.emit(600, with_offset(D0 + timedelta(minutes=1)))

    session.stop(with_offset(D0 + timedelta(minutes=2)))

    assert not session.persisted.is_walking
    assert session.persisted.total_walking_time_ms == 120_000
    assert store.get_bool(k.IS_WALKING, True) is False

    restarted = make_session()
    restarted.start()
    sensor.emit(700, with_offset(D0 + timedelta(minutes=3)))
    sensor.emit(800, with_offset(D0 + timedelta(minutes=4), hours=-3))

    assert restarted.persisted.daily_steps == 300
    assert restarted.persisted.total_walking_time_ms == 180_000
    assert restarted.persisted.walking_start_time == D0 + timedelta(minutes=4)


def test_restart_after_crash_drops_open_walking_session(make_session, sensor, store, clock):
    session = make_session()
    session.start()
    sensor.emit(500, D0)
    sensor.emit(510, D0 + timedelta(minutes=1))
    assert store.get_bool(k.IS_WALKING, False) is True

    # No stop(): the process died with the walking session open
    clock.now = D0 + timedelta(hours=6)
    restarted = make_session()
    restarted.start()

    assert not restarted.persisted.is_walking
    assert restarted.persisted.walking_start_time is None

    sensor.emit(520, clock.now)
    assert restarted.persisted.total_walking_time_ms == 60_000
    assert restarted.persisted.walking_start_time == clock.now
    assert restarted.persisted.daily_steps == 20
