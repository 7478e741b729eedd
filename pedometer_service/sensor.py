"""
Step Sensor Sources
===================

Bounded Context: Hardware step counter boundary.

A StepSensor delivers absolute, monotonically non-decreasing step readings
to one listener. Two sources ship with the tracker:

- ReplayStepSensor: replays (timestamp, steps) rows from a CSV file on a
  daemon thread (demos, offline runs, tests)
- MQTTStepSensor: readings pushed by a device bridge on an MQTT topic

Listener contract:
    listener(reading: float, timestamp: datetime)

A reading of -1 from either source means the activity permission was
revoked; it is routed to `on_revoked` instead of the listener.
"""

import csv
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

import paho.mqtt.client as mqtt

from pedometer_core.buckets import local_time
from pedometer_core.errors import CapabilityUnavailable, PermissionDenied
from pedometer_mqtt.logging import LogEvent, StructuredLogger
from pedometer_mqtt.schemas import SensorReading

logger = logging.getLogger(__name__)

Listener = Callable[[float, datetime], None]
RevokedCallback = Callable[[], None]
ReplayRow = Tuple[Optional[datetime], float]


class StepSensor(ABC):
    """
    Abstract step counter.

    Args:
        available: Whether the step counter hardware exists
        permission_granted: Whether the activity permission is granted
    """

    def __init__(self, available: bool = True, permission_granted: bool = True):
        self.available = available
        self.permission_granted = permission_granted
        self._listener: Optional[Listener] = None
        self._on_revoked: Optional[RevokedCallback] = None

    def is_available(self) -> bool:
        return self.available

    def has_permission(self) -> bool:
        return self.permission_granted

    @property
    def is_registered(self) -> bool:
        return self._listener is not None

    def _check_access(self) -> None:
        if not self.is_available():
            raise CapabilityUnavailable("Step counter sensor not available on this device")
        if not self.has_permission():
            raise PermissionDenied("Activity recognition permission not granted")

    @abstractmethod
    def register(self, listener: Listener, on_revoked: Optional[RevokedCallback] = None) -> None:
        """
        Start delivering readings to `listener`.

        Raises:
            CapabilityUnavailable: No step counter hardware
            PermissionDenied: Activity permission not granted
        """
        raise NotImplementedError("Subclasses must implement register()")

    @abstractmethod
    def unregister(self) -> None:
        """Stop delivering readings. Safe to call when not registered."""
        raise NotImplementedError("Subclasses must implement unregister()")


class ReplayStepSensor(StepSensor):
    """
    Replays recorded readings on a background thread.

    Rows without a timestamp are delivered with the wall-clock time of the
    replay.

    Example:
        >>> sensor = ReplayStepSensor.from_csv("data/sample_readings.csv", interval=0.5)
        >>> sensor.register(session.on_sensor_event)
    """

    def __init__(
        self,
        rows: List[ReplayRow],
        interval: float = 1.0,
        available: bool = True,
        permission_granted: bool = True,
    ):
        super().__init__(available=available, permission_granted=permission_granted)
        self.rows = list(rows)
        self.interval = interval
        self.delivered = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @classmethod
    def from_csv(cls, path: Union[str, Path], interval: float = 1.0, **kwargs) -> "ReplayStepSensor":
        """
        Load rows from a CSV file with `timestamp` and `steps` columns.

        Raises:
            ValueError: If a row has a malformed timestamp or steps value
        """
        rows: List[ReplayRow] = []
        with open(path, newline="", encoding="utf-8") as f:
            for line_no, record in enumerate(csv.DictReader(f), start=2):
                raw_ts = (record.get("timestamp") or "").strip()
                raw_steps = (record.get("steps") or "").strip()
                try:
                    timestamp = local_time(datetime.fromisoformat(raw_ts)) if raw_ts else None
                    steps = float(raw_steps)
                except ValueError as e:
                    raise ValueError(f"{path}:{line_no}: invalid replay row ({e})") from e
                rows.append((timestamp, steps))

        logger.info(f"Loaded {len(rows)} replay rows from {path}")
        return cls(rows, interval=interval, **kwargs)

    def register(self, listener: Listener, on_revoked: Optional[RevokedCallback] = None) -> None:
        self._check_access()
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Replay sensor already registered")

        self._listener = listener
        self._on_revoked = on_revoked
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._replay_loop,
            name="ReplaySensorThread",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Replay sensor started ({len(self.rows)} rows, interval={self.interval}s)")

    def unregister(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        self._listener = None
        self._on_revoked = None

    def join(self, timeout: Optional[float] = None) -> None:
        """Block until every row has been replayed (or the sensor stopped)."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _replay_loop(self) -> None:
        for timestamp, steps in self.rows:
            if self._stop_event.wait(self.interval):
                break

            if steps == -1:
                logger.warning("⚠️ Replay reached permission revocation marker")
                if self._on_revoked is not None:
                    self._on_revoked()
                break

            listener = self._listener
            if listener is None:
                break
            try:
                listener(steps, timestamp or datetime.now())
                self.delivered += 1
            except Exception as e:
                logger.error(f"❌ Listener failed on replayed reading {steps}: {e}", exc_info=True)

        logger.info(f"Replay sensor finished ({self.delivered} readings delivered)")


class MQTTStepSensor(StepSensor):
    """
    Step counter fed by a device bridge over MQTT.

    Payload on `topic`:
        {"steps": 4210.0, "timestamp": "2025-01-06T09:30:45"}
        {"steps": -1}    # permission revoked on the device
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "pedometer_sensor",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        available: bool = True,
        permission_granted: bool = True,
    ):
        super().__init__(available=available, permission_granted=permission_granted)
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self.readings_received = 0

    def register(self, listener: Listener, on_revoked: Optional[RevokedCallback] = None) -> None:
        """
        Raises:
            CapabilityUnavailable, PermissionDenied: see StepSensor.register
            ConnectionError: Broker unreachable
        """
        self._check_access()
        self._listener = listener
        self._on_revoked = on_revoked

        if not self._connect():
            self._listener = None
            self._on_revoked = None
            raise ConnectionError(
                f"Cannot reach step sensor broker {self.broker_host}:{self.broker_port}"
            )

    def unregister(self) -> None:
        self._listener = None
        self._on_revoked = None
        if self._connected.is_set():
            self.client.loop_stop()
            self.client.disconnect()
            self._connected.clear()

    def _connect(self, timeout: float = 10.0) -> bool:
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect step sensor",
                exc_info=e,
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return False

        if self._connected.wait(timeout=timeout):
            return True

        self.client.loop_stop()
        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Step sensor connection timeout",
            metadata={'timeout': timeout}
        )
        return False

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Step sensor connection refused (rc={reason_code})",
            )
            return

        client.subscribe(self.topic, qos=self.qos)
        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Step sensor subscribed",
            metadata={'topic': self.topic}
        )

    def _on_message(self, client, userdata, msg) -> None:
        try:
            reading = SensorReading.from_dict(json.loads(msg.payload.decode('utf-8')))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode sensor reading",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return
        except ValueError as e:
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Sensor reading failed schema validation",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        self.readings_received += 1

        if reading.is_revocation:
            self.logger.warning(
                event=LogEvent.SENSOR_PERMISSION_REVOKED,
                message="Device reported activity permission revoked",
                metadata={'topic': msg.topic}
            )
            if self._on_revoked is not None:
                self._on_revoked()
            return

        listener = self._listener
        if listener is None:
            return

        self.logger.debug(
            event=LogEvent.SENSOR_READING_RECEIVED,
            message="Step reading received",
            metadata={'steps': reading.steps}
        )
        try:
            listener(reading.steps, reading.timestamp or datetime.now())
        except Exception as e:
            self.logger.error(
                event=LogEvent.SENSOR_REGISTRATION_ERROR,
                message="Step listener failed",
                exc_info=e,
                metadata={'steps': reading.steps}
            )
