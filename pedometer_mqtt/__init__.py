"""
Pedometer MQTT Communication Package
====================================

Bounded Context: Communication Protocol for the Step Tracker

This package provides MQTT messaging between the tracker service and its
dashboards, plus the structured logging used across the tracker.

Architecture:
- schemas/: Immutable message structures (snapshot, raw sensor reading)
- publishers/: Message producers (SnapshotPublisher)
- subscriber.py: Message consumer (SnapshotSubscriber)
- logging/: Structured JSON logging for observability

Public API
----------
Schemas:
    Timestamp, StepSnapshotMessage, SensorReading

Publishers:
    SnapshotPublisher
    BasePublisher (for custom publishers)

Subscriber:
    SnapshotSubscriber

Logging:
    LogEvent, StructuredLogger, create_logger

Example (tracker side):
    >>> from pedometer_mqtt import SnapshotPublisher, StepSnapshotMessage, create_logger
    >>>
    >>> logger = create_logger("snapshot_publisher")
    >>> publisher = SnapshotPublisher(
    ...     broker_host="localhost",
    ...     topic="pedometer/data/phone_01/snapshot",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_snapshot(
    ...     StepSnapshotMessage.create("phone_01", "running", session.snapshot())
    ... )
"""

__version__ = "1.0.0"

from .schemas import (
    Timestamp,
    SensorReading,
    StepSnapshotMessage,
)

from .publishers import (
    BasePublisher,
    SnapshotPublisher,
)

from .subscriber import SnapshotSubscriber

from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    'Timestamp',
    'SensorReading',
    'StepSnapshotMessage',
    'BasePublisher',
    'SnapshotPublisher',
    'SnapshotSubscriber',
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
