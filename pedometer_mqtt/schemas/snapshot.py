"""
Step Snapshot Message Schema
============================

Bounded Context: Dashboard data published over MQTT

Design:
- StepSnapshotMessage mirrors pedometer_core.StepSnapshot, plus envelope
  fields (schema version, timestamp, device, session state)
- to_dict()/from_dict() for JSON transport, with validation on the way in

Message Flow:
    TrackingSession -> StepSnapshot -> SnapshotPublisher -> MQTT -> SnapshotSubscriber -> Dashboard

Example payload:
    {
        "schema_version": "1.0",
        "timestamp": "2025-01-06T09:30:45.123456+00:00",
        "device_id": "phone_01",
        "session_state": "running",
        "snapshot": {
            "displayed_steps": 1830,
            "step_goal": 10000,
            "daily_steps": 1830,
            "weekly_steps": 9120,
            "monthly_steps": 20410,
            "yearly_steps": 20410,
            "total_walking_time_ms": 960000,
            "is_sensor_available": true,
            "weight": 70.0,
            "height": 170.0
        }
    }
"""

from dataclasses import dataclass
from typing import Any, Dict

from pedometer_core.dashboard import StepSnapshot
from .common import Timestamp

SNAPSHOT_SCHEMA_VERSION = "1.0"

_INT_FIELDS = (
    "displayed_steps",
    "step_goal",
    "daily_steps",
    "weekly_steps",
    "monthly_steps",
    "yearly_steps",
    "total_walking_time_ms",
)


@dataclass(frozen=True)
class StepSnapshotMessage:
    """
    Complete snapshot message for one device.

    Attributes:
        schema_version: Message schema version
        timestamp: When the snapshot was taken
        device_id: Tracker identifier
        session_state: TrackingSession state value ("running", "stopped", ...)
        snapshot: Dashboard read model

    Invariants:
        - device_id is not empty
        - displayed_steps >= -1 (-1 = N/A)
    """
    schema_version: str
    timestamp: Timestamp
    device_id: str
    session_state: str
    snapshot: StepSnapshot

    def __post_init__(self):
        """Validate invariants."""
        if not self.device_id:
            raise ValueError("device_id cannot be empty")
        if self.snapshot.displayed_steps < -1:
            raise ValueError(
                f"displayed_steps must be >= -1, got {self.snapshot.displayed_steps}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'device_id': self.device_id,
            'session_state': self.session_state,
            'snapshot': self.snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StepSnapshotMessage':
        """
        Deserialize from dict.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        try:
            snapshot_data = data['snapshot']
            snapshot = StepSnapshot(
                **{name: int(snapshot_data[name]) for name in _INT_FIELDS},
                is_sensor_available=bool(snapshot_data['is_sensor_available']),
                weight=float(snapshot_data['weight']),
                height=float(snapshot_data['height']),
            )
            return cls(
                schema_version=str(data['schema_version']),
                timestamp=Timestamp(value=data['timestamp']),
                device_id=str(data['device_id']),
                session_state=str(data['session_state']),
                snapshot=snapshot,
            )
        except KeyError as e:
            raise ValueError(f"Missing required snapshot field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid snapshot data: {e}")

    @classmethod
    def create(
        cls,
        device_id: str,
        session_state: str,
        snapshot: StepSnapshot,
    ) -> 'StepSnapshotMessage':
        """Build a message stamped with the current time."""
        return cls(
            schema_version=SNAPSHOT_SCHEMA_VERSION,
            timestamp=Timestamp.now(),
            device_id=device_id,
            session_state=session_state,
            snapshot=snapshot,
        )
