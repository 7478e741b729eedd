"""
Tracking Session
================

Bounded Context: Step tracking lifecycle.

The TrackingSession is the single writer of the persisted step state. It
owns sensor registration, runs every reading through the StepAccountant,
flushes the result to the store before anyone sees it, and fans snapshots
out to subscribers.

Lifecycle:
    STOPPED -> STARTING -> RUNNING -> STOPPED
                  |
                  +-> UNAVAILABLE (no hardware / permission denied, terminal)

The notifier's status reads "running", "stopped" or "unavailable"; it stays
connected while UNAVAILABLE so the device still shows why nothing is counted.

Event timestamps are normalised to naive local time on the way in, the same
form the clock and the store use.

Threading:
- Sensor callbacks (sensor thread) and commands (MQTT control thread) both
  reach the session; one RLock serializes every state mutation
- Listeners are called with the lock held, so they must be fast (the
  service only enqueues the snapshot for its publisher thread)
"""

import threading
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pedometer_core.accountant import StepAccountant
from pedometer_core.buckets import local_time
from pedometer_core.dashboard import StepSnapshot, take_snapshot
from pedometer_core.errors import (
    CapabilityUnavailable,
    PedometerError,
    PermissionDenied,
    TransientReadError,
)
from pedometer_core.state import (
    HEIGHT_RANGE,
    SENSOR_UNAVAILABLE,
    STEP_GOAL_RANGE,
    WEIGHT_RANGE,
    PersistedState,
    in_range,
)
from pedometer_mqtt.logging import LogEvent, StructuredLogger, create_logger
from pedometer_service.sensor import StepSensor
from pedometer_store.base import StoreError
from pedometer_store.repository import StateRepository

SnapshotListener = Callable[[StepSnapshot], None]


class SessionState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    UNAVAILABLE = "unavailable"


class TrackingSession:
    """
    Lifecycle wrapper around the StepAccountant.

    Args:
        repository: Loads and flushes PersistedState
        sensor: Step counter source
        logger: Structured logger (default: "tracking_session")
        accountant: Step accounting rules
        notifier: Visible "tracking active" channel with connect(),
            publish_status() and disconnect() (the MQTT control plane in
            the service); failing to connect it aborts start(). It stays
            connected while UNAVAILABLE until stop() releases it
        clock: Wall-clock source, used when an event carries no timestamp

    Example:
        >>> session = TrackingSession(StateRepository(JsonFileStore(path)), sensor)
        >>> session.subscribe(lambda snapshot: print(snapshot.displayed_steps))
        >>> session.start()
    """

    def __init__(
        self,
        repository: StateRepository,
        sensor: StepSensor,
        logger: Optional[StructuredLogger] = None,
        accountant: Optional[StepAccountant] = None,
        notifier=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository
        self.sensor = sensor
        self.logger = logger or create_logger("tracking_session")
        self.accountant = accountant or StepAccountant()
        self.notifier = notifier
        self.clock = clock

        self._lock = threading.RLock()
        self._state = SessionState.STOPPED
        self._persisted = repository.load()
        self._listeners: List[SnapshotListener] = []
        self._notifier_connected = False

        self.last_error: Optional[PedometerError] = None

    # ─────────────────────────────────────────────────────────────────────
    # Read accessors
    # ─────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def persisted(self) -> PersistedState:
        return self._persisted

    def snapshot(self) -> StepSnapshot:
        """Presentation snapshot as of now."""
        with self._lock:
            return take_snapshot(self._persisted, self.clock())

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a snapshot listener.

        Returns:
            Callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def start(self) -> SessionState:
        """
        Check the sensor, roll buckets over, raise the visible indicator and
        register for readings.

        Returns:
            The resulting session state
        """
        with self._lock:
            if self._state in (SessionState.RUNNING, SessionState.STARTING):
                self.logger.warning(
                    event=LogEvent.SESSION_STARTED,
                    message="Session already running"
                )
                return self._state

            if self._state == SessionState.UNAVAILABLE:
                self.logger.warning(
                    event=LogEvent.SESSION_UNAVAILABLE,
                    message="Session is unavailable for this run, start ignored"
                )
                return self._state

            self._state = SessionState.STARTING
            now = self.clock()

            try:
                self._check_sensor()
            except (CapabilityUnavailable, PermissionDenied) as e:
                return self._enter_unavailable(e, now)

            rolled = self.accountant.roll_over(now, self._persisted)
            if rolled.is_walking:
                # Left open by a run that ended without stop(); its end is unknown
                self.logger.warning(
                    event=LogEvent.SESSION_STARTED,
                    message="Discarding walking session left open by previous run",
                    metadata={'walking_start_time': rolled.walking_start_time}
                )
                rolled = replace(rolled, is_walking=False, walking_start_time=None)
            self._commit(replace(rolled, is_sensor_available=True))

            if self.notifier is not None:
                if not self.notifier.connect():
                    self.last_error = CapabilityUnavailable("Tracking notification channel unavailable")
                    self.logger.error(
                        event=LogEvent.MQTT_CONNECTION_ERROR,
                        message="Cannot show tracking status, session not started"
                    )
                    self._state = SessionState.STOPPED
                    return self._state
                self._notifier_connected = True

            try:
                self.sensor.register(self.on_sensor_event, on_revoked=self._on_permission_revoked)
            except (CapabilityUnavailable, PermissionDenied) as e:
                return self._enter_unavailable(e, now)
            except Exception as e:
                self.last_error = TransientReadError(f"Sensor registration failed: {e}")
                self.logger.error(
                    event=LogEvent.SENSOR_REGISTRATION_ERROR,
                    message="Failed to register step sensor",
                    exc_info=e
                )
                self._disconnect_notifier("stopped")
                self._state = SessionState.STOPPED
                return self._state

            self._state = SessionState.RUNNING
            if self.notifier is not None:
                self.notifier.publish_status("running")

            self.logger.info(
                event=LogEvent.SESSION_STARTED,
                message="Tracking session running",
                metadata={
                    'anchored': self._persisted.is_anchored,
                    'daily_steps': self._persisted.daily_steps
                }
            )
            self._notify(now)
            return self._state

    def stop(self, timestamp: Optional[datetime] = None) -> None:
        """
        Close the walking session, flush, unregister and drop the indicator.

        An UNAVAILABLE session stays UNAVAILABLE; only its status channel
        is released.
        """
        with self._lock:
            if self._state == SessionState.UNAVAILABLE:
                self._disconnect_notifier()
                return
            if self._state != SessionState.RUNNING:
                return

            now = self._moment(timestamp)
            self._release_sensor(now)
            self._disconnect_notifier("stopped")
            self._state = SessionState.STOPPED

            self.logger.info(
                event=LogEvent.SESSION_STOPPED,
                message="Tracking session stopped",
                metadata={'total_walking_time_ms': self._persisted.total_walking_time_ms}
            )
            self._notify(now)

    def on_suspend(self, timestamp: Optional[datetime] = None) -> None:
        """Host is going to background: fold the open walking interval."""
        with self._lock:
            if self._state != SessionState.RUNNING:
                return

            now = self._moment(timestamp)
            if self._commit(self.accountant.close_session(now, self._persisted)):
                self.logger.info(
                    event=LogEvent.SESSION_SUSPENDED,
                    message="Walking session closed on suspend",
                    metadata={'total_walking_time_ms': self._persisted.total_walking_time_ms}
                )
                self._notify(now)

    def on_sensor_event(self, reading: float, timestamp: Optional[datetime] = None) -> None:
        """
        Apply one absolute reading and flush it before notifying.

        The epoch anchor of a fresh store is flushed on its own first, so a
        crash between the two writes keeps the zero point.
        """
        with self._lock:
            if self._state != SessionState.RUNNING:
                return

            now = self._moment(timestamp)

            if not self._persisted.is_anchored:
                anchored = self.accountant.anchor(reading, now, self._persisted)
                if anchored is not self._persisted:
                    if not self._commit(anchored):
                        return
                    self.logger.info(
                        event=LogEvent.STEPS_ANCHORED,
                        message="Step epoch anchored",
                        metadata={'initial_step_count': anchored.initial_step_count}
                    )

            updated = self.accountant.observe(reading, now, self._persisted)
            if updated is self._persisted:
                return

            if self._commit(updated):
                self.logger.debug(
                    event=LogEvent.STEPS_OBSERVED,
                    message="Step reading applied",
                    metadata={
                        'reading': reading,
                        'daily_steps': updated.daily_steps,
                        'weekly_steps': updated.weekly_steps
                    }
                )
                self._notify(now)

    # ─────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────

    def reset(self, timestamp: Optional[datetime] = None) -> bool:
        """Manual daily reset. Allowed while RUNNING or STOPPED."""
        with self._lock:
            if self._state not in (SessionState.RUNNING, SessionState.STOPPED):
                self.logger.warning(
                    event=LogEvent.SETTING_REJECTED,
                    message=f"Reset not allowed while {self._state.value}"
                )
                return False

            now = self._moment(timestamp)
            if not self._commit(self.accountant.reset(now, self._persisted)):
                return False

            self.logger.info(
                event=LogEvent.STEPS_RESET,
                message="Daily steps reset",
                metadata={'initial_step_count': self._persisted.initial_step_count}
            )
            self._notify(now)
            return True

    def set_step_goal(self, value: int) -> bool:
        if in_range(value, STEP_GOAL_RANGE) and int(value) != value:
            return self._reject("step_goal", value, STEP_GOAL_RANGE)
        return self._set_profile("step_goal", value, STEP_GOAL_RANGE, int)

    def set_weight(self, value: float) -> bool:
        return self._set_profile("weight", value, WEIGHT_RANGE, float)

    def set_height(self, value: float) -> bool:
        return self._set_profile("height", value, HEIGHT_RANGE, float)

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────

    def _set_profile(self, field_name: str, value, bounds: Tuple[float, float], cast) -> bool:
        if not in_range(value, bounds):
            return self._reject(field_name, value, bounds)

        with self._lock:
            if not self._commit(replace(self._persisted, **{field_name: cast(value)})):
                return False

            self.logger.info(
                event=LogEvent.PROFILE_UPDATED,
                message=f"{field_name} updated",
                metadata={field_name: cast(value)}
            )
            self._notify()
            return True

    def _reject(self, field_name: str, value, bounds: Tuple[float, float]) -> bool:
        self.logger.warning(
            event=LogEvent.SETTING_REJECTED,
            message=f"{field_name} out of range",
            metadata={'value': value, 'min': bounds[0], 'max': bounds[1]}
        )
        return False

    def _check_sensor(self) -> None:
        if not self.sensor.is_available():
            raise CapabilityUnavailable("Step counter sensor not available on this device")
        if not self.sensor.has_permission():
            raise PermissionDenied("Activity recognition permission not granted")

    def _enter_unavailable(self, error: PedometerError, now: datetime) -> SessionState:
        self.last_error = error

        if isinstance(error, CapabilityUnavailable):
            self._commit(replace(self._persisted, is_sensor_available=False))
        else:
            self._commit(self.accountant.observe(SENSOR_UNAVAILABLE, now, self._persisted))

        self._state = SessionState.UNAVAILABLE
        self.logger.warning(
            event=LogEvent.SESSION_UNAVAILABLE,
            message=str(error),
            metadata={'reason': type(error).__name__}
        )
        self._show_unavailable()
        self._notify(now)
        return self._state

    def _on_permission_revoked(self) -> None:
        with self._lock:
            if self._state != SessionState.RUNNING:
                return

            now = self.clock()
            self.logger.warning(
                event=LogEvent.SENSOR_PERMISSION_REVOKED,
                message="Activity permission revoked, releasing sensor"
            )
            self._release_sensor(now)
            self._enter_unavailable(PermissionDenied("Activity recognition permission revoked"), now)

    def _release_sensor(self, now: datetime) -> None:
        """Fold the open walking interval and unregister from the sensor."""
        self._commit(self.accountant.close_session(now, self._persisted))

        try:
            self.sensor.unregister()
        except Exception as e:
            self.logger.error(
                event=LogEvent.SENSOR_REGISTRATION_ERROR,
                message="Error unregistering step sensor",
                exc_info=e
            )

    def _show_unavailable(self) -> None:
        """Keep the status channel up and report that tracking is unavailable."""
        if self.notifier is None:
            return

        if not self._notifier_connected:
            if not self.notifier.connect():
                self.logger.warning(
                    event=LogEvent.MQTT_CONNECTION_ERROR,
                    message="Cannot report unavailable tracking status"
                )
                return
            self._notifier_connected = True

        self.notifier.publish_status("unavailable")

    def _disconnect_notifier(self, status: Optional[str] = None) -> None:
        if self.notifier is None or not self._notifier_connected:
            return
        try:
            if status is not None:
                self.notifier.publish_status(status)
            self.notifier.disconnect()
        finally:
            self._notifier_connected = False

    def _moment(self, timestamp: Optional[datetime]) -> datetime:
        """Event time as naive local time, the clock when absent."""
        if timestamp is None:
            return self.clock()
        return local_time(timestamp)

    def _commit(self, new_state: PersistedState) -> bool:
        """Flush `new_state`; on store failure keep the previous state."""
        try:
            self.repository.save(new_state)
        except StoreError as e:
            self.last_error = TransientReadError(f"State flush failed: {e}")
            self.logger.error(
                event=LogEvent.STATE_FLUSH_ERROR,
                message="Failed to persist step state, update dropped",
                exc_info=e
            )
            return False

        self._persisted = new_state
        return True

    def _notify(self, now: Optional[datetime] = None) -> None:
        if not self._listeners:
            return

        snapshot = take_snapshot(self._persisted, now or self.clock())
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.SERIALIZATION_ERROR,
                    message="Snapshot listener failed",
                    exc_info=e
                )
