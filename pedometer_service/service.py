"""
Pedometer Service - Tracker orchestrator.

This module provides the PedometerService class which wires the tracking
session to its MQTT surfaces: snapshot publishing for dashboards and the
control plane for goal/profile/reset commands.

Threading Model:
- Sensor Thread (replay thread or paho-mqtt sensor client thread)
- MQTT Publisher Thread (our thread, drains the snapshot queue)
- Control Plane Thread (paho-mqtt internal, command handlers)

Every snapshot the session emits is only enqueued on the sensor/control
thread; publishing happens on the publisher thread so a slow broker never
holds the session lock.
"""

import logging
import queue
import threading
from typing import Dict, Optional

from pedometer_core.errors import SettingOutOfRange, TransientReadError
from pedometer_core.dashboard import StepSnapshot
from pedometer_core.state import HEIGHT_RANGE, STEP_GOAL_RANGE, WEIGHT_RANGE, in_range
from pedometer_mqtt.schemas import StepSnapshotMessage
from pedometer_service.config import TrackerConfig
from pedometer_service.session import SessionState, TrackingSession

logger = logging.getLogger(__name__)


class PedometerService:
    """
    Main tracker service.

    Usage:
        config = TrackerConfig.from_yaml("config/tracker_config.yaml")
        control_plane = MQTTControlPlane(...)
        session = TrackingSession(repository, sensor, notifier=control_plane)
        snapshot_publisher = SnapshotPublisher(...)

        service = PedometerService(
            config=config,
            session=session,
            control_plane=control_plane,
            snapshot_publisher=snapshot_publisher,
        )

        service.setup()
        service.start()
        service.wait()  # Blocks until stopped
    """

    def __init__(
        self,
        config: TrackerConfig,
        session: TrackingSession,
        control_plane,  # MQTTControlPlane
        snapshot_publisher,  # SnapshotPublisher
    ):
        self.config = config
        self.session = session
        self.control_plane = control_plane
        self.snapshot_publisher = snapshot_publisher

        # MQTT publishing
        self.publish_queue: "queue.Queue[StepSnapshotMessage]" = queue.Queue(
            maxsize=config.publish_queue_size
        )
        self.publisher_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()

        self._running = False
        self._unsubscribe = None

        logger.info(f"PedometerService initialized for device_id={config.device_id}")

    @property
    def is_running(self) -> bool:
        return self._running

    def setup(self):
        """
        Register command handlers and subscribe to session snapshots.

        Must be called before start().
        """
        self._setup_control_handlers()
        self._unsubscribe = self.session.subscribe(self._on_snapshot)
        logger.info("Service setup complete")

    def _setup_control_handlers(self):
        """Register all supported commands with the control plane's registry."""
        registry = self.control_plane.command_registry

        registry.register(
            "set_step_goal",
            self._handle_set_step_goal,
            f"Set daily step goal ({STEP_GOAL_RANGE[0]}..{STEP_GOAL_RANGE[1]})"
        )
        registry.register(
            "set_weight",
            self._handle_set_weight,
            f"Set weight in kg ({WEIGHT_RANGE[0]:g}..{WEIGHT_RANGE[1]:g})"
        )
        registry.register(
            "set_height",
            self._handle_set_height,
            f"Set height in cm ({HEIGHT_RANGE[0]:g}..{HEIGHT_RANGE[1]:g})"
        )
        registry.register(
            "reset_steps",
            self._handle_reset_steps,
            "Reset today's steps and walking time"
        )
        registry.register(
            "status",
            self._handle_status,
            "Publish session state and current snapshot"
        )

        logger.info("Control handlers registered")

    def start(self):
        """
        Start the tracker service (non-blocking).

        Lifecycle:
        1. Connect snapshot publisher
        2. Start MQTT publisher thread
        3. Start tracking session (connects control plane, registers sensor)

        Raises:
            RuntimeError: If the tracking session could not start
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting pedometer service")

        if not self.snapshot_publisher.connect():
            logger.warning("⚠️ Snapshot publisher not connected, dashboards will not update")

        self.stop_event.clear()
        self.publisher_thread = threading.Thread(
            target=self._publish_loop,
            name="MQTTPublisherThread",
            daemon=True
        )
        self.publisher_thread.start()
        logger.info("MQTT publisher thread started")

        state = self.session.start()
        if state == SessionState.STOPPED:
            self._stop_publishing()
            raise RuntimeError(f"Failed to start tracking session: {self.session.last_error}")

        self._running = True

        if state == SessionState.UNAVAILABLE:
            logger.warning(f"⚠️ Step tracking unavailable: {self.session.last_error}")
            self._on_snapshot(self.session.snapshot())
        else:
            logger.info("✅ Pedometer service started")

    def wait(self):
        """Block until stop() is called."""
        if not self._running:
            logger.warning("Service not running")
            return

        try:
            while not self.stop_event.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Received KeyboardInterrupt, stopping...")
            self.stop()

    def stop(self):
        """
        Stop the service gracefully.

        Lifecycle:
        1. Stop tracking session (closes walking session, flushes state)
        2. Drain and stop the MQTT publisher thread
        3. Disconnect publisher and control plane
        """
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping pedometer service")

        try:
            self.session.stop()
        except Exception as e:
            logger.error(f"Error stopping session: {e}", exc_info=True)

        self._stop_publishing()

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        self.control_plane.disconnect()

        self._running = False
        logger.info("✅ Pedometer service stopped")

    def _stop_publishing(self):
        self.stop_event.set()
        if self.publisher_thread:
            self.publisher_thread.join(timeout=5.0)
            logger.info("MQTT publisher thread stopped")
        self.snapshot_publisher.disconnect()

    def _on_snapshot(self, snapshot: StepSnapshot):
        """
        Session listener: queue a snapshot message for publishing.

        Thread: whichever thread mutated the session (lock held, keep fast)
        """
        message = StepSnapshotMessage.create(
            device_id=self.config.device_id,
            session_state=self.session.state.value,
            snapshot=snapshot,
        )
        try:
            self.publish_queue.put_nowait(message)
        except queue.Full:
            logger.warning("Publish queue full, dropping snapshot")

    def _publish_loop(self):
        """
        MQTT publisher thread loop.

        Publishes queued snapshots until stopped, then flushes what is left
        so the final (stopped) snapshot still goes out.
        """
        logger.info("MQTT publisher loop started")

        while not self.stop_event.is_set():
            try:
                msg = self.publish_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            self._publish(msg)

        while True:
            try:
                msg = self.publish_queue.get_nowait()
            except queue.Empty:
                break
            self._publish(msg)

        logger.info("MQTT publisher loop stopped")

    def _publish(self, msg: StepSnapshotMessage):
        try:
            self.snapshot_publisher.publish_snapshot(msg)
        except Exception as e:
            logger.error(f"Error publishing snapshot: {e}", exc_info=True)

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (called by Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def _command_value(command: Dict):
        value = command.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SettingOutOfRange(f"'value' must be a number, got {value!r}")
        return value

    def _saved_or_raise(self, saved: bool, setting: str):
        """An in-range setting the session refused was not flushed."""
        if not saved:
            raise TransientReadError(f"{setting} not saved: {self.session.last_error}")

    def _acknowledge(self, status: str, details: Optional[Dict] = None):
        # Not retained: the retained status keeps showing the session state
        self.control_plane.publish_status(status, details, retain=False)

    def _handle_set_step_goal(self, command: Dict):
        """Handle set_step_goal command (Control Plane Thread)."""
        value = self._command_value(command)
        if not in_range(value, STEP_GOAL_RANGE) or int(value) != value:
            raise SettingOutOfRange(
                f"step goal must be a whole number in "
                f"{STEP_GOAL_RANGE[0]}..{STEP_GOAL_RANGE[1]}, got {value}"
            )
        self._saved_or_raise(self.session.set_step_goal(value), "step goal")

        self._acknowledge("step_goal_updated", {"step_goal": int(value)})
        logger.info(f"Step goal set to {int(value)}")

    def _handle_set_weight(self, command: Dict):
        """Handle set_weight command (Control Plane Thread)."""
        value = self._command_value(command)
        if not in_range(value, WEIGHT_RANGE):
            raise SettingOutOfRange(
                f"weight must be in {WEIGHT_RANGE[0]:g}..{WEIGHT_RANGE[1]:g} kg, got {value}"
            )
        self._saved_or_raise(self.session.set_weight(value), "weight")

        self._acknowledge("weight_updated", {"weight": float(value)})
        logger.info(f"Weight set to {value} kg")

    def _handle_set_height(self, command: Dict):
        """Handle set_height command (Control Plane Thread)."""
        value = self._command_value(command)
        if not in_range(value, HEIGHT_RANGE):
            raise SettingOutOfRange(
                f"height must be in {HEIGHT_RANGE[0]:g}..{HEIGHT_RANGE[1]:g} cm, got {value}"
            )
        self._saved_or_raise(self.session.set_height(value), "height")

        self._acknowledge("height_updated", {"height": float(value)})
        logger.info(f"Height set to {value} cm")

    def _handle_reset_steps(self, command: Dict):
        """Handle reset_steps command (Control Plane Thread)."""
        if not self.session.reset():
            return False

        self._acknowledge("steps_reset")
        logger.info("Daily steps reset")
        return True

    def _handle_status(self, command: Dict):
        """Handle status command (Control Plane Thread)."""
        snapshot = self.session.snapshot()
        self._acknowledge(
            "status",
            {
                "session_state": self.session.state.value,
                "snapshot": snapshot.to_dict(),
            }
        )
        logger.info(f"Status published (session={self.session.state.value})")
