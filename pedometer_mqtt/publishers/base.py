"""
Base MQTT Publisher
==================

Bounded Context: MQTT Infrastructure

Abstract base for the tracker's outbound MQTT traffic.

Design:
- One paho client per publisher, network loop on paho's background thread
- Subclasses only format messages; publish() handles transport
- Messages published while offline are dropped and counted, never queued
- The last retained payload is re-sent after a reconnect, so a broker that
  restarted without persistence still serves the current dashboard state

Architecture:
    BasePublisher (abstract)
        ↓
    SnapshotPublisher (retained step snapshots)
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import paho.mqtt.client as mqtt

from ..logging import StructuredLogger, LogEvent


class BasePublisher(ABC):
    """
    Abstract base class for MQTT publishers.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        topic: Topic every message goes to
        client_id: MQTT client identifier
        qos: Quality of Service
        logger: Structured logger instance
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._stats_lock = threading.Lock()
        self._published_count = 0
        self._dropped_count = 0
        self._last_retained: Optional[str] = None

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused publisher connection (rc={reason_code})",
                metadata={'broker': self.broker, 'client_id': self.client_id}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Publisher connected",
            metadata={'broker': self.broker, 'topic': self.topic}
        )

        # Broker kept no session state: put the current snapshot back
        if not flags.session_present and self._last_retained is not None:
            client.publish(self.topic, self._last_retained, qos=self.qos, retain=True)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        if reason_code.is_failure:
            self.logger.warning(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Publisher lost broker connection",
                metadata={'broker': self.broker, 'reason_code': str(reason_code)}
            )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect and start the network loop.

        Returns:
            True once the broker accepted the connection within `timeout`
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Publisher cannot reach broker",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        self.client.loop_start()
        if self._connected.wait(timeout=timeout):
            return True

        self.client.loop_stop()
        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Publisher connection timeout",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        try:
            self.client.loop_stop()
            self.client.disconnect()
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Error during publisher disconnect",
                exc_info=e
            )
            return
        finally:
            self._connected.clear()

        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher disconnected",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Build the JSON-compatible dict for one message."""
        raise NotImplementedError("Subclasses must implement format_message()")

    def publish(self, message_data: Dict[str, Any], retain: bool = False) -> bool:
        """
        Serialize and publish one message to `self.topic`.

        Returns:
            True if handed to the client, False if dropped (offline or error)
        """
        try:
            payload = json.dumps(message_data)
        except (TypeError, ValueError) as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Message is not JSON serializable",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False

        if retain:
            self._last_retained = payload

        if not self._connected.is_set():
            with self._stats_lock:
                self._dropped_count += 1
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Not connected, message dropped",
                metadata={'topic': self.topic, 'dropped_count': self._dropped_count}
            )
            return False

        try:
            result = self.client.publish(
                topic=self.topic,
                payload=payload,
                qos=self.qos,
                retain=retain
            )
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing message",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            with self._stats_lock:
                self._dropped_count += 1
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message=f"Publish failed (rc={result.rc})",
                metadata={'topic': self.topic}
            )
            return False

        with self._stats_lock:
            self._published_count += 1
        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'topic': self.topic, 'retain': retain}
        )
        return True

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'message_count': self._published_count,
                'dropped_count': self._dropped_count,
                'connected': self._connected.is_set(),
                'topic': self.topic,
                'broker': self.broker,
            }
