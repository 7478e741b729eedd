"""
Pedometer CLI - Main entry point.

Sends control commands to the tracker over MQTT, watches the live dashboard,
and renders the dashboard straight from a local store file.
"""

import argparse
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pedometer_core.dashboard import DashboardView, render_dashboard, take_snapshot
from pedometer_core.errors import SettingOutOfRange
from pedometer_core.state import HEIGHT_RANGE, STEP_GOAL_RANGE, WEIGHT_RANGE, in_range
from pedometer_mqtt import SnapshotSubscriber, StepSnapshotMessage, create_logger
from pedometer_service.config import MQTTConfig, TrackerConfig
from pedometer_store import JsonFileStore, StateRepository

from .mqtt_client import MQTTCommandClient

SIMPLE_COMMANDS = {
    'reset': 'reset_steps',
    'status': 'status',
}


def build_command(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate parsed CLI arguments into a control-plane command.

    Raises:
        SettingOutOfRange: If a profile value is outside its range
    """
    if args.command == 'set-goal':
        if not in_range(args.value, STEP_GOAL_RANGE):
            raise SettingOutOfRange(
                f"step goal must be in {STEP_GOAL_RANGE[0]}..{STEP_GOAL_RANGE[1]}, got {args.value}"
            )
        return {'command': 'set_step_goal', 'value': args.value}

    if args.command == 'set-weight':
        if not in_range(args.value, WEIGHT_RANGE):
            raise SettingOutOfRange(
                f"weight must be in {WEIGHT_RANGE[0]:g}..{WEIGHT_RANGE[1]:g} kg, got {args.value}"
            )
        return {'command': 'set_weight', 'value': args.value}

    if args.command == 'set-height':
        if not in_range(args.value, HEIGHT_RANGE):
            raise SettingOutOfRange(
                f"height must be in {HEIGHT_RANGE[0]:g}..{HEIGHT_RANGE[1]:g} cm, got {args.value}"
            )
        return {'command': 'set_height', 'value': args.value}

    if args.command in SIMPLE_COMMANDS:
        return {'command': SIMPLE_COMMANDS[args.command]}

    raise ValueError(f"Not a control command: {args.command}")


def resolve_target(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Broker and topics for the target device.

    With --config the tracker's own YAML supplies broker, credentials and
    topic templates; otherwise the command-line flags and default templates
    are used.
    """
    if args.config:
        config = TrackerConfig.from_yaml(Path(args.config))
        mqtt_config = config.mqtt_config
        device_id = config.device_id
    else:
        mqtt_config = MQTTConfig(broker=args.broker, port=args.port)
        device_id = args.device_id

    return {
        'broker': mqtt_config.broker,
        'port': mqtt_config.port,
        'username': mqtt_config.username,
        'password': mqtt_config.password,
        'command_topic': mqtt_config.topic('command_topic', device_id),
        'snapshot_topic': mqtt_config.topic('snapshot_topic', device_id),
    }


def send_command(command: Dict[str, Any], target: Dict[str, Any]) -> None:
    """Send command to the tracker via MQTT."""
    client = MQTTCommandClient(
        broker=target['broker'],
        port=target['port'],
        username=target['username'],
        password=target['password'],
    )
    client.send_command(target['command_topic'], command, qos=1)


def show_store(store_path: Path, now: Optional[datetime] = None) -> List[str]:
    """
    Render the dashboard from a local store file (no broker needed).

    Raises:
        FileNotFoundError: If the store file does not exist
    """
    store_path = Path(store_path)
    if not store_path.is_file():
        raise FileNotFoundError(f"Store file not found: {store_path}")

    state = StateRepository(JsonFileStore(store_path)).load()
    snapshot = take_snapshot(state, now or datetime.now())
    return render_dashboard(DashboardView.from_snapshot(snapshot))


def watch(target: Dict[str, Any], count: Optional[int] = None) -> None:
    """Print a dashboard for every snapshot the tracker publishes."""
    done = threading.Event()
    received = [0]

    def on_snapshot(msg: StepSnapshotMessage) -> None:
        view = DashboardView.from_snapshot(msg.snapshot)
        print(f"\n📟 {msg.device_id} [{msg.session_state}] @ {msg.timestamp.value}")
        for line in render_dashboard(view):
            print(f"  {line}")

        received[0] += 1
        if count is not None and received[0] >= count:
            done.set()

    subscriber = SnapshotSubscriber(
        broker_host=target['broker'],
        broker_port=target['port'],
        snapshot_topic=target['snapshot_topic'],
        on_snapshot=on_snapshot,
        logger=create_logger("cli_watch"),
        client_id="pedometer_cli_watch",
        username=target['username'],
        password=target['password'],
    )

    if not subscriber.connect():
        raise ConnectionError(
            f"Unable to connect to MQTT broker at {target['broker']}:{target['port']}"
        )

    subscriber.start()
    print(f"👀 Watching {target['snapshot_topic']} (Ctrl+C to stop)")
    try:
        while not done.wait(timeout=0.5):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        subscriber.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pedometer-cli",
        description="Pedometer CLI - Control the step tracker and view its dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Profile and goal
  pedometer-cli set-goal 8000
  pedometer-cli set-weight 72.5
  pedometer-cli set-height 178

  # Reset today's steps
  pedometer-cli reset

  # Ask the tracker to publish its status
  pedometer-cli status

  # Live dashboard (stop after 5 updates)
  pedometer-cli watch --count 5

  # Dashboard from the local store file
  pedometer-cli show --store data/pedometer_state.json
"""
    )

    parser.add_argument(
        "--device-id",
        default="phone_01",
        help="Target device ID (default: phone_01)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Tracker YAML config (overrides --device-id/--broker/--port)"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    set_goal = subparsers.add_parser('set-goal', help='Set daily step goal')
    set_goal.add_argument('value', type=int, help='Steps (1000..50000)')

    set_weight = subparsers.add_parser('set-weight', help='Set weight')
    set_weight.add_argument('value', type=float, help='Kilograms (30..150)')

    set_height = subparsers.add_parser('set-height', help='Set height')
    set_height.add_argument('value', type=float, help='Centimeters (100..250)')

    subparsers.add_parser('reset', help="Reset today's steps and walking time")
    subparsers.add_parser('status', help='Query tracker status')

    watch_parser = subparsers.add_parser('watch', help='Print live dashboards')
    watch_parser.add_argument('--count', type=int, default=None, help='Stop after N snapshots')

    show = subparsers.add_parser('show', help='Render dashboard from a local store file')
    show.add_argument('--store', required=True, help='Path to the JSON store file')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == 'show':
            for line in show_store(Path(args.store)):
                print(line)

        elif args.command == 'watch':
            watch(resolve_target(args), count=args.count)

        else:
            command = build_command(args)
            send_command(command, resolve_target(args))

    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
