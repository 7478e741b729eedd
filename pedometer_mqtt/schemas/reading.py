"""
Sensor Reading Schema
=====================

Raw step counter readings pushed by a device bridge.

Payload:
    {"steps": 4210.0, "timestamp": "2025-01-06T09:30:45"}

`timestamp` is optional (receive time is used when absent). An offset-bearing
timestamp is converted to naive local time. `steps == -1`
means the activity permission was revoked on the device.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from pedometer_core.buckets import local_time


@dataclass(frozen=True)
class SensorReading:
    """One absolute step counter reading."""
    steps: float
    timestamp: Optional[datetime] = None

    @property
    def is_revocation(self) -> bool:
        return self.steps == -1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SensorReading':
        """
        Deserialize from dict.

        Raises:
            ValueError: If steps is missing or timestamp is not ISO 8601
        """
        if not isinstance(data, dict):
            raise ValueError(f"Reading must be a JSON object, got {type(data).__name__}")
        try:
            steps = float(data['steps'])
        except KeyError:
            raise ValueError("Missing required reading field: 'steps'")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid steps value: {e}")

        raw_timestamp = data.get('timestamp')
        timestamp = None
        if raw_timestamp:
            try:
                timestamp = local_time(datetime.fromisoformat(raw_timestamp))
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid reading timestamp {raw_timestamp!r}: {e}")

        return cls(steps=steps, timestamp=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'steps': self.steps}
        if self.timestamp is not None:
            data['timestamp'] = self.timestamp.isoformat()
        return data
