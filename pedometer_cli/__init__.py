"""
Pedometer CLI - Command-line interface for the step tracker.

This package provides a CLI for sending MQTT commands to the tracker
without manually writing JSON, and for viewing its dashboard.

Usage:
    pedometer-cli set-goal 8000
    pedometer-cli set-weight 72.5
    pedometer-cli reset
    pedometer-cli watch
    pedometer-cli show --store data/pedometer_state.json
"""

__version__ = "1.0.0"
