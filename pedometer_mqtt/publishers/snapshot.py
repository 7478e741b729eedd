"""
Snapshot Publisher
==================

Bounded Context: Dashboard snapshot production

Design:
- Inherits from BasePublisher (connection management)
- Formats StepSnapshotMessage to JSON
- Publishes retained, so a dashboard that connects late gets the last state

Message Flow:
    TrackingSession -> StepSnapshotMessage -> SnapshotPublisher -> MQTT Broker
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import StepSnapshotMessage
from ..logging import StructuredLogger, LogEvent


class SnapshotPublisher(BasePublisher):
    """
    Publisher for step snapshot messages.

    Example:
        >>> publisher = SnapshotPublisher(
        ...     broker_host="localhost",
        ...     topic="pedometer/data/phone_01/snapshot",
        ...     logger=logger
        ... )
        >>> publisher.connect()
        >>> publisher.publish_snapshot(msg)
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "pedometer_snapshot_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )

    def format_message(self, snapshot_msg: StepSnapshotMessage) -> Dict[str, Any]:
        """
        Format StepSnapshotMessage to JSON-compatible dict.

        Raises:
            ValueError: If snapshot_msg cannot be serialized
        """
        try:
            formatted = snapshot_msg.to_dict()

            self.logger.debug(
                event=LogEvent.SNAPSHOT_SERIALIZED,
                message="Serialized snapshot message",
                metadata={
                    'device_id': snapshot_msg.device_id,
                    'displayed_steps': snapshot_msg.snapshot.displayed_steps
                }
            )

            return formatted

        except Exception as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize snapshot message",
                exc_info=e,
                metadata={'device_id': getattr(snapshot_msg, 'device_id', None)}
            )
            raise ValueError(f"Failed to format snapshot message: {e}")

    def publish_snapshot(self, snapshot_msg: StepSnapshotMessage) -> bool:
        """
        Publish snapshot message (retained) to MQTT broker.

        Returns:
            True if published successfully, False otherwise
        """
        try:
            message_data = self.format_message(snapshot_msg)
            return self.publish(message_data, retain=True)

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing snapshot message",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False
