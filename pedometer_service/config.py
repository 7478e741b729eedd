"""
Configuration schema for the step tracker service.

This module defines the configuration structure for the tracker, including
the step sensor source, the default user profile, the local store and MQTT
messaging settings.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml

from pedometer_core.state import (
    DEFAULT_HEIGHT,
    DEFAULT_STEP_GOAL,
    DEFAULT_WEIGHT,
    HEIGHT_RANGE,
    STEP_GOAL_RANGE,
    WEIGHT_RANGE,
    in_range,
)


@dataclass(frozen=True)
class SensorConfig:
    """
    Step sensor source configuration.

    Sources:
    - mqtt: absolute readings arrive on the sensor topic
    - replay: readings are replayed from a CSV file (timestamp,steps)

    `available` and `permission_granted` stand in for the platform's
    capability and permission checks.
    """

    source: str = "mqtt"
    replay_file: Optional[Path] = None
    replay_interval: float = 1.0  # seconds between replayed rows
    available: bool = True
    permission_granted: bool = True

    def __post_init__(self):
        """Validate sensor configuration."""
        valid_sources = {"mqtt", "replay"}
        if self.source not in valid_sources:
            raise ValueError(
                f"Invalid sensor source: {self.source}. "
                f"Must be one of {valid_sources}"
            )

        if self.replay_interval < 0:
            raise ValueError(
                f"replay_interval must be >= 0, got {self.replay_interval}"
            )

        if self.source == "replay":
            if self.replay_file is None:
                raise ValueError("replay_file is required when source is 'replay'")
            if not Path(self.replay_file).is_file():
                raise FileNotFoundError(
                    f"Replay file not found: {self.replay_file}\n"
                    f"Create the CSV or update 'sensor.replay_file' in config"
                )


@dataclass(frozen=True)
class ProfileConfig:
    """Default user profile, applied only when the store holds no value yet."""

    step_goal: int = DEFAULT_STEP_GOAL
    weight: float = DEFAULT_WEIGHT
    height: float = DEFAULT_HEIGHT

    def __post_init__(self):
        """Validate profile ranges (inclusive)."""
        if not in_range(self.step_goal, STEP_GOAL_RANGE) or int(self.step_goal) != self.step_goal:
            raise ValueError(
                f"step_goal must be an integer in {list(STEP_GOAL_RANGE)}, got {self.step_goal}"
            )

        if not in_range(self.weight, WEIGHT_RANGE):
            raise ValueError(
                f"weight must be in {list(WEIGHT_RANGE)} kg, got {self.weight}"
            )

        if not in_range(self.height, HEIGHT_RANGE):
            raise ValueError(
                f"height must be in {list(HEIGHT_RANGE)} cm, got {self.height}"
            )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1

    sensor_topic: str = "pedometer/data/{device_id}/readings"
    snapshot_topic: str = "pedometer/data/{device_id}/snapshot"
    command_topic: str = "pedometer/control/{device_id}/commands"
    status_topic: str = "pedometer/control/{device_id}/status"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        for name in ("sensor_topic", "snapshot_topic", "command_topic", "status_topic"):
            template = getattr(self, name)
            if "{device_id}" not in template:
                raise ValueError(
                    f"{name} must contain '{{device_id}}', got {template!r}"
                )

    def topic(self, name: str, device_id: str) -> str:
        """Resolve a topic template (e.g. 'snapshot_topic') for a device."""
        return getattr(self, name).format(device_id=device_id)


@dataclass(frozen=True)
class TrackerConfig:
    """
    Main configuration for the tracker service.

    Loaded from YAML and validated at startup.
    Immutable after construction (frozen dataclass).
    """

    device_id: str
    store_path: Path = Path("./data/pedometer_state.json")

    sensor: SensorConfig = field(default_factory=SensorConfig)
    profile: ProfileConfig = field(default_factory=ProfileConfig)
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)

    publish_queue_size: int = 512

    def __post_init__(self):
        """Validate tracker configuration."""
        if not self.device_id:
            raise ValueError("device_id cannot be empty")

        if not str(self.store_path):
            raise ValueError("store_path cannot be empty")

        if Path(self.store_path).is_dir():
            raise ValueError(
                f"store_path must be a file, got directory: {self.store_path}"
            )

        if self.publish_queue_size < 1:
            raise ValueError(
                f"publish_queue_size must be >= 1, got {self.publish_queue_size}"
            )

    @property
    def sensor_topic(self) -> str:
        return self.mqtt_config.topic("sensor_topic", self.device_id)

    @property
    def snapshot_topic(self) -> str:
        return self.mqtt_config.topic("snapshot_topic", self.device_id)

    @property
    def command_topic(self) -> str:
        return self.mqtt_config.topic("command_topic", self.device_id)

    @property
    def status_topic(self) -> str:
        return self.mqtt_config.topic("status_topic", self.device_id)

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "TrackerConfig":
        """
        Load configuration from YAML file.

        Relative replay/store paths are resolved against the YAML file's
        directory.

        Example YAML:
            device_id: "phone_01"
            store_path: "../data/pedometer_state.json"

            sensor:
              source: "replay"
              replay_file: "../data/sample_readings.csv"
              replay_interval: 0.5

            profile:
              step_goal: 10000
              weight: 70
              height: 170

            mqtt_config:
              broker: "localhost"
              port: 1883
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.is_file():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file must hold a mapping: {yaml_path}")

        base_dir = yaml_path.parent

        sensor_data = dict(data.get("sensor") or {})
        if sensor_data.get("replay_file"):
            sensor_data["replay_file"] = _resolve(base_dir, sensor_data["replay_file"])
        sensor = SensorConfig(**sensor_data)

        profile = ProfileConfig(**(data.get("profile") or {}))
        mqtt_config = MQTTConfig(**(data.get("mqtt_config") or {}))

        store_path = _resolve(base_dir, data.get("store_path", "./data/pedometer_state.json"))

        if "device_id" not in data:
            raise ValueError(f"device_id is required in {yaml_path}")

        return cls(
            device_id=str(data["device_id"]),
            store_path=store_path,
            sensor=sensor,
            profile=profile,
            mqtt_config=mqtt_config,
            publish_queue_size=data.get("publish_queue_size", 512),
        )


def _resolve(base_dir: Path, value) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base_dir / path
