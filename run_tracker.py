#!/usr/bin/env python3
"""
Pedometer Tracker Service - Entry Point
=======================================

This script starts the pedometer tracker, which:
- Samples a cumulative step counter (MQTT device bridge or CSV replay)
- Maintains daily/weekly/monthly/yearly step buckets and walking time
- Persists every update to a local JSON store
- Publishes dashboard snapshots to MQTT
- Responds to goal/profile/reset commands via the MQTT control plane

Usage:
    pedometer-tracker --config config/tracker_config.yaml

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create store, sensor, control plane and snapshot publisher
    4. Create TrackingSession and PedometerService
    5. Start service (non-blocking)
    6. Wait for stop signal (Ctrl+C or SIGTERM)
    7. Graceful shutdown (walking session closed, state flushed)

Logs:
    - Console: INFO level
    - File: logs/tracker.log (INFO level)
    - Structured JSON lines from the session and MQTT components
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from pedometer_control import MQTTControlPlane
from pedometer_core.state import PersistedState
from pedometer_mqtt import SnapshotPublisher, create_logger
from pedometer_service import (
    MQTTStepSensor,
    PedometerService,
    ReplayStepSensor,
    StepSensor,
    TrackerConfig,
    TrackingSession,
)
from pedometer_store import JsonFileStore, StateRepository


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the tracker service.

    Args:
        log_file: Optional path to log file (default: logs/tracker.log)
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


def build_sensor(config: TrackerConfig) -> StepSensor:
    """Create the step sensor the config asks for."""
    sensor_config = config.sensor

    if sensor_config.source == "replay":
        return ReplayStepSensor.from_csv(
            sensor_config.replay_file,
            interval=sensor_config.replay_interval,
            available=sensor_config.available,
            permission_granted=sensor_config.permission_granted,
        )

    mqtt_config = config.mqtt_config
    return MQTTStepSensor(
        broker_host=mqtt_config.broker,
        broker_port=mqtt_config.port,
        topic=config.sensor_topic,
        logger=create_logger(component="step_sensor", device_id=config.device_id),
        client_id=f"sensor_{config.device_id}",
        username=mqtt_config.username,
        password=mqtt_config.password,
        qos=mqtt_config.qos,
        available=sensor_config.available,
        permission_granted=sensor_config.permission_granted,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class TrackerApp:
    """
    Main application wrapper for PedometerService.

    Handles:
    - Configuration loading
    - Component initialization (store, sensor, control plane, publisher)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        self.config: Optional[TrackerConfig] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.snapshot_publisher: Optional[SnapshotPublisher] = None
        self.session: Optional[TrackingSession] = None
        self.service: Optional[PedometerService] = None

        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Open the state store
        3. Create control plane and snapshot publisher
        4. Create sensor and tracking session
        5. Create PedometerService and register command handlers
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 Pedometer Tracker - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"📄 Loading configuration: {self.config_path}")
        self.config = TrackerConfig.from_yaml(self.config_path)
        self.logger.info(f"✅ Configuration loaded (device_id={self.config.device_id})")

        self.logger.info(f"💾 Opening state store: {self.config.store_path}")
        profile = self.config.profile
        repository = StateRepository(
            JsonFileStore(self.config.store_path),
            defaults=PersistedState(
                step_goal=profile.step_goal,
                weight=float(profile.weight),
                height=float(profile.height),
            ),
        )

        mqtt_config = self.config.mqtt_config

        self.logger.info("🔌 Creating MQTT control plane")
        self.control_plane = MQTTControlPlane(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            command_topic=self.config.command_topic,
            status_topic=self.config.status_topic,
            client_id=f"tracker_{self.config.device_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        self.logger.info("📤 Creating snapshot publisher")
        self.snapshot_publisher = SnapshotPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=self.config.snapshot_topic,
            logger=create_logger(component="mqtt_publisher", device_id=self.config.device_id),
            client_id=f"publisher_snapshots_{self.config.device_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        self.logger.info(f"  - Snapshot topic: {self.config.snapshot_topic}")
        self.logger.info(f"  - Command topic: {self.config.command_topic}")

        self.logger.info(f"👣 Creating step sensor (source={self.config.sensor.source})")
        sensor = build_sensor(self.config)

        self.session = TrackingSession(
            repository=repository,
            sensor=sensor,
            logger=create_logger(component="tracking_session", device_id=self.config.device_id),
            notifier=self.control_plane,
        )

        self.service = PedometerService(
            config=self.config,
            session=self.session,
            control_plane=self.control_plane,
            snapshot_publisher=self.snapshot_publisher,
        )
        self.service.setup()
        self.logger.info("✅ Service created")
        self.logger.info("=" * 80)

    def run(self):
        """Run the tracker. Blocks until shutdown is requested."""
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.service.start()

            self.logger.info("✅ Service started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            self.service.wait()

        except KeyboardInterrupt:
            self.logger.info("\n⚠️  KeyboardInterrupt received")
            self.shutdown()

        except Exception as e:
            self.logger.error(f"❌ Service error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Stop service (session, publisher thread, publisher)
        2. Disconnect control plane
        """
        if self._shutdown_requested:
            self.logger.warning("⚠️  Shutdown already in progress")
            return

        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down tracker")
        self.logger.info("=" * 80)

        if self.service and self.service.is_running:
            try:
                self.service.stop()
                self.logger.info("✅ Service stopped")
            except Exception as e:
                self.logger.error(f"❌ Error stopping service: {e}")

        if self.control_plane:
            try:
                self.control_plane.disconnect()
            except Exception as e:
                self.logger.error(f"❌ Error disconnecting control plane: {e}")

        self.logger.info("✅ Shutdown complete")

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals (SIGTERM, SIGINT)."""
        signal_name = signal.Signals(signum).name
        self.logger.info(f"\n⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="pedometer-tracker",
        description="Pedometer Tracker - step counter + MQTT dashboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with the sample config (CSV replay)
  pedometer-tracker --config config/tracker_config.yaml

  # Custom log file
  pedometer-tracker --config config/tracker_config.yaml --log-file logs/custom.log

  # Console logging only
  pedometer-tracker --config config/tracker_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to tracker configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/tracker.log'),
        help='Path to log file (default: logs/tracker.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = TrackerApp(config_path=args.config, log_file=log_file)

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
