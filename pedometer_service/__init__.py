"""
Pedometer Service
=================

Bounded Context: Tracker runtime.

Responsibilities:
- TrackingSession: lifecycle, single writer of the persisted state
- StepSensor sources (replay, MQTT)
- TrackerConfig: YAML configuration
- PedometerService: session + snapshot publishing + control plane
"""

from pedometer_service.config import MQTTConfig, ProfileConfig, SensorConfig, TrackerConfig
from pedometer_service.sensor import MQTTStepSensor, ReplayStepSensor, StepSensor
from pedometer_service.session import SessionState, TrackingSession
from pedometer_service.service import PedometerService

__all__ = [
    "MQTTConfig",
    "ProfileConfig",
    "SensorConfig",
    "TrackerConfig",
    "MQTTStepSensor",
    "ReplayStepSensor",
    "StepSensor",
    "SessionState",
    "TrackingSession",
    "PedometerService",
]
