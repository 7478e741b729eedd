"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

One JSON object per log line, written to a dedicated stdout handler so the
tracker's human-readable console log and its machine-readable event stream
stay apart.

Design:
- Typed events (LogEvent enum), free-form metadata
- Bound context (device_id, source, ...) repeated on every entry
- Thread-safe (standard logging module underneath)

Example:
    >>> logger = create_logger("tracking_session", device_id="phone_01")
    >>> logger.info(
    ...     event=LogEvent.STEPS_OBSERVED,
    ...     message="Applied step reading",
    ...     metadata={'reading': 4210.0, 'daily_steps': 1830}
    ... )

Output:
    {"timestamp": "2025-01-06T09:30:45.123456+00:00", "level": "INFO",
     "component": "tracking_session", "event": "steps.observed",
     "message": "Applied step reading", "context": {"device_id": "phone_01"},
     "metadata": {"reading": 4210.0, "daily_steps": 1830}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from .events import LogEvent


class StructuredLogger:
    """
    JSON structured logger.

    Attributes:
        component: Component name ("tracking_session", "mqtt_publisher", ...)
        context: Fields added to every entry
        logger: Underlying Python logger (`pedometer.<component>`)
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        context: Optional[Dict[str, Any]] = None,
        logger_name: Optional[str] = None
    ):
        self.component = component
        self.context: Dict[str, Any] = dict(context or {})
        self.logger = logging.getLogger(logger_name or f"pedometer.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def bind(self, **context: Any) -> "StructuredLogger":
        """Child logger on the same channel with extra context fields."""
        return StructuredLogger(
            component=self.component,
            level=self.logger.level,
            context={**self.context, **context},
            logger_name=self.logger.name,
        )

    def _entry(
        self,
        level: str,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]],
        exc_info: Optional[BaseException]
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level,
            'component': self.component,
            'event': LogEvent(event).value,
            'message': message,
        }
        if self.context:
            entry['context'] = self.context
        if metadata:
            entry['metadata'] = metadata
        if exc_info is not None:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }
        return entry

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        entry = self._entry(logging.getLevelName(level), event, message, metadata, exc_info)
        self.logger.log(
            level,
            json.dumps(entry, default=str),
            exc_info=exc_info if level >= logging.ERROR else None
        )

    def debug(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        self._log(logging.WARNING, event, message, metadata, exc_info)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """
        Log an error; `exc_info` adds the exception summary and traceback.

        Example:
            >>> try:
            ...     repository.save(state)
            ... except StoreError as e:
            ...     logger.error(
            ...         event=LogEvent.STATE_FLUSH_ERROR,
            ...         message="Failed to persist state",
            ...         exc_info=e,
            ...     )
        """
        self._log(logging.ERROR, event, message, metadata, exc_info)


class JSONFormatter(logging.Formatter):
    """Pass-through formatter: the record message is already JSON."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_logger(component: str, level: int = logging.INFO, **context: Any) -> StructuredLogger:
    """
    Factory for StructuredLogger.

    Example:
        >>> logger = create_logger("step_sensor", level=logging.DEBUG, source="mqtt")
    """
    return StructuredLogger(component=component, level=level, context=context)
