"""
Pedometer error taxonomy.

CapabilityUnavailable and PermissionDenied are terminal for a tracking run
and are never retried. TransientReadError covers faults on a single event:
the event is dropped and the next reading is processed normally.
"""


class PedometerError(Exception):
    """Base class for all tracker errors."""
    pass


class CapabilityUnavailable(PedometerError):
    """Raised when the step counter hardware (or a required channel) is missing."""
    pass


class PermissionDenied(PedometerError):
    """Raised when the activity recognition permission is not granted."""
    pass


class TransientReadError(PedometerError):
    """Raised when one sensor event cannot be read or persisted."""
    pass


class InvalidReadingError(TransientReadError):
    """Raised for readings that are NaN, infinite or negative (other than -1)."""
    pass


class SettingOutOfRange(PedometerError, ValueError):
    """Raised when a profile command is outside its inclusive range."""
    pass
