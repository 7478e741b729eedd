"""
pedometer_control - Control Plane for the step tracker

Bounded Context: MQTT-based command-and-control
Responsibilities:
  - MQTT connection management (Control Plane)
  - Command registration and validation
  - Command execution delegation

Commands:
  - set_step_goal {value}: daily goal, 1000..50000
  - set_weight {value}: kg, 30..150
  - set_height {value}: cm, 100..250
  - reset_steps: manual daily reset
  - status: publish the current snapshot on the status topic
"""

from .registry import CommandRegistry, CommandNotAvailableError
from .plane import MQTTControlPlane

__all__ = [
    "CommandRegistry",
    "CommandNotAvailableError",
    "MQTTControlPlane",
]
