"""
Shared fixtures: in-memory store, fake sensor, fake notifier, fixed clock.

Nothing here touches a broker; MQTT clients are created but never connected.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from pedometer_service.sensor import StepSensor
from pedometer_service.session import TrackingSession
from pedometer_store import MemoryStore, StateRepository, StoreError
from pedometer_mqtt import create_logger

# Tuesday and Wednesday of ISO week 2025-W02
D0 = datetime(2025, 1, 7, 10, 0)
D1 = datetime(2025, 1, 8, 9, 0)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeSensor(StepSensor):
    """Sensor driven by the test: emit() readings, revoke() permission."""

    def __init__(self, available=True, permission_granted=True, fail_register=None):
        super().__init__(available=available, permission_granted=permission_granted)
        self.fail_register = fail_register
        self.register_calls = 0
        self.unregister_calls = 0

    def register(self, listener, on_revoked=None):
        self.register_calls += 1
        if self.fail_register is not None:
            raise self.fail_register
        self._check_access()
        self._listener = listener
        self._on_revoked = on_revoked

    def unregister(self):
        self.unregister_calls += 1
        self._listener = None
        self._on_revoked = None

    def emit(self, reading: float, timestamp: Optional[datetime] = None):
        assert self._listener is not None, "sensor not registered"
        self._listener(reading, timestamp)

    def revoke(self):
        assert self._on_revoked is not None, "sensor not registered"
        self._on_revoked()


class FakeNotifier:
    """Stands in for the control plane's connect/publish_status/disconnect."""

    def __init__(self, connects: bool = True):
        self.connects = connects
        self.connected = False
        self.statuses: List[str] = []

    def connect(self, timeout: float = 5.0) -> bool:
        self.connected = self.connects
        return self.connects

    def publish_status(self, status, details=None):
        self.statuses.append(status)

    def disconnect(self):
        self.connected = False


class FailingStore(MemoryStore):
    """MemoryStore whose commits fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def _commit(self, changes):
        if self.failing:
            raise StoreError("disk full")
        super()._commit(changes)


@pytest.fixture
def clock():
    return FakeClock(D0)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sensor():
    return FakeSensor()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_session(store, sensor, clock):
    """Factory for sessions sharing the fixtures' store, sensor and clock."""

    def factory(sensor=sensor, store=store, notifier=None):
        return TrackingSession(
            repository=StateRepository(store),
            sensor=sensor,
            logger=create_logger("test_session"),
            notifier=notifier,
            clock=clock,
        )

    return factory
