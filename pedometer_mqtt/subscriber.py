"""
MQTT Snapshot Subscriber
========================

Bounded Context: Message Consumption

This module provides the subscriber that receives step snapshots from the
broker and hands them, typed, to a dashboard callback.

Design:
- Callback-based (callback runs in the MQTT network thread)
- Automatic deserialization with error handling
- Malformed messages are logged and skipped, never raised

Message Flow:
    1. Subscriber receives JSON from MQTT
    2. Deserializes to StepSnapshotMessage
    3. Invokes user callback with typed message

Example (terminal dashboard):
    >>> def on_snapshot(msg: StepSnapshotMessage):
    ...     view = DashboardView.from_snapshot(msg.snapshot)
    ...     print("\\n".join(render_dashboard(view)))
    >>>
    >>> subscriber = SnapshotSubscriber(
    ...     broker_host="localhost",
    ...     snapshot_topic="pedometer/data/phone_01/snapshot",
    ...     on_snapshot=on_snapshot,
    ...     logger=logger
    ... )
    >>> subscriber.connect()
    >>> subscriber.start()
"""

import json
import threading
from typing import Any, Callable, Optional
import paho.mqtt.client as mqtt

from .schemas import StepSnapshotMessage
from .logging import StructuredLogger, LogEvent


class SnapshotSubscriber:
    """
    MQTT subscriber for step snapshot messages.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        snapshot_topic: Topic for snapshot messages
        client_id: MQTT client identifier
        logger: Structured logger instance
        on_snapshot: Callback for snapshot messages

    Thread Safety:
        Thread-safe via paho-mqtt's loop_start() and threading.Event
    """

    def __init__(
        self,
        broker_host: str,
        snapshot_topic: str,
        on_snapshot: Callable[[StepSnapshotMessage], None],
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "pedometer_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        """
        Initialize MQTT subscriber.

        Args:
            broker_host: MQTT broker hostname
            snapshot_topic: Topic to subscribe for snapshots (wildcards allowed)
            on_snapshot: Callback function for snapshot messages
            logger: Structured logger instance
            broker_port: MQTT broker port (default: 1883)
            client_id: MQTT client ID (default: pedometer_subscriber)
            username: MQTT auth username (optional)
            password: MQTT auth password (optional)
            qos: Quality of Service (default: 1)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.snapshot_topic = snapshot_topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.on_snapshot = on_snapshot

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._running = False
        self._stats_lock = threading.Lock()
        self._message_count = 0
        self._rejected_count = 0

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        """Subscribe to the snapshot topic once connected."""
        if not reason_code.is_failure:
            self._connected.set()
            client.subscribe(self.snapshot_topic, qos=self.qos)

            self.logger.info(
                event=LogEvent.MQTT_CONNECTED,
                message="Connected to MQTT broker and subscribed to snapshots",
                metadata={
                    'broker': f"{self.broker_host}:{self.broker_port}",
                    'snapshot_topic': self.snapshot_topic
                }
            )
        else:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (rc={reason_code})",
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'reason_code': str(reason_code)
            }
        )

    def _on_message(self, client, userdata: Any, msg) -> None:
        """
        Callback when message received.

        Deserializes JSON and invokes the snapshot callback.
        """
        try:
            payload = msg.payload.decode('utf-8')
            data = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._reject()
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode JSON message",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        self._handle_snapshot_message(data, msg.topic)

    def _handle_snapshot_message(self, data: dict, topic: str) -> None:
        try:
            snapshot_msg = StepSnapshotMessage.from_dict(data)
        except ValueError as e:
            self._reject()
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Snapshot message failed schema validation",
                exc_info=e,
                metadata={'topic': topic}
            )
            return

        with self._stats_lock:
            self._message_count += 1

        self.logger.debug(
            event=LogEvent.SNAPSHOT_RECEIVED,
            message="Received snapshot message",
            metadata={
                'device_id': snapshot_msg.device_id,
                'displayed_steps': snapshot_msg.snapshot.displayed_steps
            }
        )

        try:
            self.on_snapshot(snapshot_msg)
        except Exception as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Error in snapshot callback",
                exc_info=e
            )

    def _reject(self) -> None:
        with self._stats_lock:
            self._rejected_count += 1

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                return True
            else:
                self.client.loop_stop()
                self.logger.error(
                    event=LogEvent.MQTT_CONNECTION_ERROR,
                    message="Connection timeout",
                    metadata={'timeout': timeout}
                )
                return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return False

    def start(self) -> None:
        """
        Mark the subscriber as listening.

        The network loop already runs since connect(); callbacks fire in the
        background MQTT thread.
        """
        if not self._connected.is_set():
            self.logger.warning(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Cannot start: not connected to broker"
            )
            return

        self._running = True
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Subscriber started (listening for snapshots)",
            metadata={'snapshot_topic': self.snapshot_topic}
        )

    def stop(self) -> None:
        """Stop subscriber loop and disconnect."""
        self._running = False
        self.client.loop_stop()
        self.client.disconnect()

        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        """Get subscriber statistics."""
        with self._stats_lock:
            return {
                'snapshots_received': self._message_count,
                'snapshots_rejected': self._rejected_count,
                'connected': self._connected.is_set(),
                'running': self._running,
                'snapshot_topic': self.snapshot_topic,
                'broker': f"{self.broker_host}:{self.broker_port}"
            }
