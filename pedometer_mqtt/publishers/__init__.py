"""
MQTT Publishers
==============

Bounded Context: Message Production

Public API
----------
    BasePublisher: Abstract publisher (for custom publishers)
    SnapshotPublisher: Step snapshot publisher
"""

from .base import BasePublisher
from .snapshot import SnapshotPublisher

__all__ = [
    'BasePublisher',
    'SnapshotPublisher',
]
