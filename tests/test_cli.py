"""pedometer-cli argument handling and the offline `show` dashboard."""

from pathlib import Path

import pytest

from pedometer_cli.cli import build_command, build_parser, main, resolve_target, show_store
from pedometer_core import PersistedState
from pedometer_core.errors import SettingOutOfRange
from pedometer_store import JsonFileStore, StateRepository

from conftest import D0

SAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config" / "tracker_config.yaml"


def parse(*argv):
    return build_parser().parse_args(list(argv))


def test_build_commands():
    assert build_command(parse("set-goal", "8000")) == {"command": "set_step_goal", "value": 8000}
    assert build_command(parse("set-weight", "72.5")) == {"command": "set_weight", "value": 72.5}
    assert build_command(parse("set-height", "178")) == {"command": "set_height", "value": 178.0}
    assert build_command(parse("reset")) == {"command": "reset_steps"}
    assert build_command(parse("status")) == {"command": "status"}


@pytest.mark.parametrize("argv", [
    ("set-goal", "500"),
    ("set-weight", "20"),
    ("set-height", "260"),
])
def test_out_of_range_values_are_refused(argv):
    with pytest.raises(SettingOutOfRange):
        build_command(parse(*argv))


def test_watch_is_not_a_control_command():
    with pytest.raises(ValueError):
        build_command(parse("watch"))


def test_resolve_target_from_flags():
    target = resolve_target(parse("--device-id", "watch_7", "--broker", "mqtt.local", "status"))

    assert target["broker"] == "mqtt.local"
    assert target["port"] == 1883
    assert target["command_topic"] == "pedometer/control/watch_7/commands"
    assert target["snapshot_topic"] == "pedometer/data/watch_7/snapshot"


def test_resolve_target_from_config():
    target = resolve_target(parse("--config", str(SAMPLE_CONFIG), "reset"))

    assert target["command_topic"] == "pedometer/control/phone_01/commands"


def test_show_renders_store(tmp_path):
    path = tmp_path / "pedometer.json"
    state = PersistedState(
        initial_step_count=1000.0,
        current_step_count=3500.0,
        previous_step_count=3500.0,
        last_reset_time=D0,
        last_reset_week="2025-W02",
        last_reset_month="202501",
        last_reset_year="2025",
        daily_steps=2500.0,
        weekly_steps=2500.0,
        monthly_steps=2500.0,
        yearly_steps=2500.0,
    )
    StateRepository(JsonFileStore(path)).save(state)

    lines = show_store(path, now=D0)

    assert lines[0] == "Steps: 2.500 / 10.000"
    assert "Progress: 25%" in lines
    assert "Today: 2.500" in lines


def test_show_missing_store(tmp_path):
    with pytest.raises(FileNotFoundError):
        show_store(tmp_path / "missing.json")


def test_main_reports_errors(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["show", "--store", str(tmp_path / "missing.json")])

    assert exc.value.code == 1
    assert "Error" in capsys.readouterr().err


def test_main_without_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])

    assert exc.value.code == 1
    assert "pedometer-cli" in capsys.readouterr().out
