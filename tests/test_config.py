"""TrackerConfig YAML loading and validation."""

from pathlib import Path

import pytest

from pedometer_service.config import MQTTConfig, ProfileConfig, SensorConfig, TrackerConfig

SAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config" / "tracker_config.yaml"


def write_config(tmp_path, text):
    path = tmp_path / "tracker.yaml"
    path.write_text(text)
    return path


def test_sample_config_loads():
    config = TrackerConfig.from_yaml(SAMPLE_CONFIG)

    assert config.device_id == "phone_01"
    assert config.sensor.source == "replay"
    assert config.sensor.replay_file.is_file()
    assert config.snapshot_topic == "pedometer/data/phone_01/snapshot"
    assert config.command_topic == "pedometer/control/phone_01/commands"


def test_relative_paths_resolve_against_config_dir(tmp_path):
    (tmp_path / "readings.csv").write_text("timestamp,steps\n,100\n")
    path = write_config(tmp_path, """
device_id: "watch_7"
store_path: "state/pedometer.json"
sensor:
  source: "replay"
  replay_file: "readings.csv"
  replay_interval: 0
profile:
  step_goal: 8000
  weight: 64.5
mqtt_config:
  broker: "mqtt.local"
  port: 1884
""")
    config = TrackerConfig.from_yaml(path)

    assert config.store_path == tmp_path / "state" / "pedometer.json"
    assert config.sensor.replay_file == tmp_path / "readings.csv"
    assert config.sensor.replay_interval == 0
    assert config.profile.step_goal == 8000
    assert config.profile.weight == 64.5
    assert config.profile.height == 170.0
    assert config.mqtt_config.broker == "mqtt.local"
    assert config.status_topic == "pedometer/control/watch_7/status"
    assert config.sensor_topic == "pedometer/data/watch_7/readings"


def test_defaults_for_minimal_config(tmp_path):
    config = TrackerConfig.from_yaml(write_config(tmp_path, 'device_id: "p1"\n'))

    assert config.sensor.source == "mqtt"
    assert config.mqtt_config.port == 1883
    assert config.publish_queue_size == 512


def test_missing_device_id(tmp_path):
    with pytest.raises(ValueError):
        TrackerConfig.from_yaml(write_config(tmp_path, "store_path: x.json\n"))


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        TrackerConfig.from_yaml(tmp_path / "nope.yaml")


def test_sensor_validation(tmp_path):
    with pytest.raises(ValueError):
        SensorConfig(source="bluetooth")
    with pytest.raises(ValueError):
        SensorConfig(source="replay")
    with pytest.raises(FileNotFoundError):
        SensorConfig(source="replay", replay_file=tmp_path / "missing.csv")
    with pytest.raises(ValueError):
        SensorConfig(replay_interval=-1)


def test_profile_ranges_are_inclusive():
    ProfileConfig(step_goal=1000, weight=30, height=100)
    ProfileConfig(step_goal=50000, weight=150, height=250)

    with pytest.raises(ValueError):
        ProfileConfig(step_goal=999)
    with pytest.raises(ValueError):
        ProfileConfig(weight=151)
    with pytest.raises(ValueError):
        ProfileConfig(height=99)


def test_mqtt_validation():
    with pytest.raises(ValueError):
        MQTTConfig(port=0)
    with pytest.raises(ValueError):
        MQTTConfig(qos=3)
    with pytest.raises(ValueError):
        MQTTConfig(snapshot_topic="pedometer/snapshot")

    assert MQTTConfig().topic("command_topic", "d9") == "pedometer/control/d9/commands"


def test_empty_device_id_rejected():
    with pytest.raises(ValueError):
        TrackerConfig(device_id="")
