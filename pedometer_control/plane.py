"""
MQTTControlPlane - MQTT Control Plane for the step tracker

Bounded Context: MQTT connection management + command reception
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Command message reception (subscribe to command topic)
  - Status publishing (publish to status topic)
  - Command delegation to CommandRegistry

The retained status topic is the tracker's visible "tracking is active"
indicator: while the plane is connected the last status says so, and a
disconnect publishes "disconnected".

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last session status persisted)
  - Command acknowledgements: QoS 1, not retained

Threading:
  - MQTT client runs own background thread (loop_start/loop_stop)
  - Command handlers run in MQTT thread (keep them fast!)
"""

import json
import logging
from datetime import datetime
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from pedometer_core.errors import SettingOutOfRange, TransientReadError

from .registry import CommandRegistry, CommandNotAvailableError

logger = logging.getLogger(__name__)


class MQTTControlPlane:
    """
    MQTT Control Plane for receiving commands and publishing status.

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="pedometer/control/phone_01/commands",
            status_topic="pedometer/control/phone_01/status",
            client_id="pedometer_tracker_phone_01"
        )

        control_plane.command_registry.register('reset_steps', on_reset, "Reset daily steps")

        if control_plane.connect(timeout=5.0):
            print("Connected to MQTT broker")

        control_plane.disconnect()
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker with timeout.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            logger.info(f"🔌 Connecting to MQTT broker: {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                logger.info("✅ MQTT Control Plane connected")
                return True

            logger.error(f"❌ Connection timeout after {timeout}s")
            self.client.loop_stop()
            self._running = False
            return False

        except Exception as e:
            logger.error(f"❌ Error connecting to MQTT: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from MQTT broker. Safe to call multiple times."""
        if self._running:
            logger.info("🔌 Disconnecting from MQTT broker")
            self.publish_status("disconnected")
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
            self._connected.clear()
            logger.info("✅ MQTT Control Plane disconnected")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def publish_status(
        self,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        retain: bool = True,
    ) -> None:
        """
        Publish status update to status topic (QoS 1).

        Args:
            status: Status string (e.g., "running", "stopped", "unavailable")
            details: Optional extra fields merged into the message
            retain: False for command acknowledgements, which must not
                replace the retained session status
        """
        message = {
            "status": status,
            "timestamp": datetime.now().isoformat(),
            "client_id": self.client_id,
        }
        if details:
            message["details"] = details

        try:
            self.client.publish(
                self.status_topic,
                json.dumps(message, default=str),
                qos=1,
                retain=retain,
            )
            logger.debug(f"📤 Status published: {status} (retain={retain})")
        except Exception as e:
            logger.error(f"❌ Error publishing status: {e}")

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if not reason_code.is_failure:
            logger.info(f"✅ Connected to broker (rc={reason_code})")

            client.subscribe(self.command_topic, qos=1)
            logger.info(f"📥 Subscribed to: {self.command_topic} (QoS 1)")

            self.publish_status("connected")
            self._connected.set()
        else:
            logger.error(f"❌ Connection failed (rc={reason_code})")
            self._connected.clear()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"⚠️ Unexpected disconnection (rc={reason_code})")
        else:
            logger.info("✅ Disconnected from broker")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        """
        MQTT callback: command message received.

        Handlers returning False, or raising SettingOutOfRange or
        TransientReadError, are reported back on the status topic as a
        non-retained "rejected".
        """
        try:
            payload = msg.payload.decode('utf-8')
            logger.debug(f"📦 Command received: {payload}")

            command_data = json.loads(payload)
            if not isinstance(command_data, dict):
                logger.warning(f"⚠️ Command payload is not an object: {payload}")
                return

            command = str(command_data.get('command', '')).lower()
            if not command:
                logger.warning("⚠️ Empty command received")
                return

            logger.info(f"🎯 Executing command: {command}")

            try:
                result = self.command_registry.execute(command, command_data)
            except CommandNotAvailableError as e:
                logger.warning(f"⚠️ {e}")
                available = ', '.join(sorted(self.command_registry.available_commands))
                logger.info(f"💡 Available commands: {available}")
                return
            except (SettingOutOfRange, TransientReadError) as e:
                logger.warning(f"⚠️ Command '{command}' rejected: {e}")
                self.publish_status("rejected", {"command": command, "reason": str(e)}, retain=False)
                return

            if result is False:
                logger.warning(f"⚠️ Command '{command}' rejected")
                self.publish_status("rejected", {"command": command}, retain=False)
            else:
                logger.debug(f"✅ Command '{command}' executed successfully")

        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"❌ Error decoding JSON: {msg.payload!r} ({e})")
        except Exception as e:
            logger.error(f"❌ Error processing message: {e}", exc_info=True)
