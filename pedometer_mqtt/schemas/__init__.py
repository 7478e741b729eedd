"""
MQTT Message Schemas
====================

Bounded Context: Message data structures

Public API
----------
    Timestamp: ISO 8601 wrapper
    StepSnapshotMessage: Dashboard snapshot envelope
    SensorReading: Raw step counter reading
"""

from .common import Timestamp
from .reading import SensorReading
from .snapshot import SNAPSHOT_SCHEMA_VERSION, StepSnapshotMessage

__all__ = [
    'Timestamp',
    'SensorReading',
    'SNAPSHOT_SCHEMA_VERSION',
    'StepSnapshotMessage',
]
