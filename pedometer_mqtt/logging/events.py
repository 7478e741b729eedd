"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, steps, session, error
    category: connected, publish, flushed
    action: success, failed, updated

Example Log Query:
    fields @timestamp, event, message, metadata.daily_steps
    | filter event = "steps.observed"
    | stats count() by bin(1h)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - sensor.*: Step counter feed
    - steps.*: Step accounting
    - session.*: Tracking session lifecycle
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Sensor Events ==========
    SENSOR_READING_RECEIVED = "sensor.reading.received"
    """Absolute step reading received from the sensor feed."""

    SENSOR_PERMISSION_REVOKED = "sensor.permission.revoked"
    """Sensor feed reported the permission was revoked."""

    # ========== Step Events ==========
    STEPS_OBSERVED = "steps.observed"
    """Reading applied to the bucket totals."""

    STEPS_ANCHORED = "steps.anchored"
    """Epoch zero point persisted."""

    STEPS_RESET = "steps.reset"
    """Daily steps reset by the user."""

    SNAPSHOT_SERIALIZED = "steps.snapshot.serialized"
    """Snapshot message serialized to JSON."""

    SNAPSHOT_RECEIVED = "steps.snapshot.received"
    """Snapshot message received by subscriber."""

    PROFILE_UPDATED = "steps.profile.updated"
    """Goal, weight or height changed."""

    # ========== Session Events ==========
    SESSION_STARTED = "session.started"
    """Tracking session is running."""

    SESSION_STOPPED = "session.stopped"
    """Tracking session stopped."""

    SESSION_SUSPENDED = "session.suspended"
    """Walking session closed on suspension."""

    SESSION_UNAVAILABLE = "session.unavailable"
    """Tracking is impossible for this run (sensor or permission)."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

    STATE_FLUSH_ERROR = "error.state_flush"
    """Persisting the state failed; the update was dropped."""

    SETTING_REJECTED = "error.setting_rejected"
    """Profile command outside its allowed range."""

    SENSOR_REGISTRATION_ERROR = "error.sensor_registration"
    """Registering with the step sensor failed."""


# Event categories for filtering
SENSOR_EVENTS = {
    LogEvent.SENSOR_READING_RECEIVED,
    LogEvent.SENSOR_PERMISSION_REVOKED,
}

MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

STEP_EVENTS = {
    LogEvent.STEPS_OBSERVED,
    LogEvent.STEPS_ANCHORED,
    LogEvent.STEPS_RESET,
    LogEvent.SNAPSHOT_SERIALIZED,
    LogEvent.SNAPSHOT_RECEIVED,
    LogEvent.PROFILE_UPDATED,
}

SESSION_EVENTS = {
    LogEvent.SESSION_STARTED,
    LogEvent.SESSION_STOPPED,
    LogEvent.SESSION_SUSPENDED,
    LogEvent.SESSION_UNAVAILABLE,
}

ERROR_EVENTS = {
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.SCHEMA_VALIDATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
    LogEvent.STATE_FLUSH_ERROR,
    LogEvent.SETTING_REJECTED,
    LogEvent.SENSOR_REGISTRATION_ERROR,
}
