"""Telemetry and analytics sinks.

Telemetry receives operator-facing security events at a severity-mapped level.
Analytics receives named events for product dashboards and is strictly
best-effort: callers log analytics failures and carry on.
"""

import logging
from typing import Any, Protocol, runtime_checkable

from beartype import beartype


@runtime_checkable
class TelemetrySink(Protocol):
    """Severity-routed event sink."""

    def log_info(self, message: str, metadata: dict[str, Any] | None = None) -> None: ...

    def log_warning(
        self, message: str, metadata: dict[str, Any] | None = None
    ) -> None: ...

    def log_error(self, message: str, metadata: dict[str, Any] | None = None) -> None: ...

    def log_critical(
        self, message: str, metadata: dict[str, Any] | None = None
    ) -> None: ...


@runtime_checkable
class AnalyticsSink(Protocol):
    """Named event sink."""

    async def log_event(self, name: str, parameters: dict[str, Any]) -> None: ...


_SEVERITY_METHODS = {
    "info": "log_info",
    "warning": "log_warning",
    "error": "log_error",
    "critical": "log_critical",
}


@beartype
def log_at_severity(
    telemetry: TelemetrySink,
    severity: str,
    message: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Send an event through the sink method matching a severity value.

    Unknown severities fall back to ``log_info``.
    """
    method = _SEVERITY_METHODS.get(severity, "log_info")
    getattr(telemetry, method)(message, metadata)


class LoggingTelemetrySink:
    """Telemetry sink that writes to a stdlib logger."""

    def __init__(self, name: str = "policy_guard.security") -> None:
        self._logger = logging.getLogger(name)

    def _emit(
        self, level: int, message: str, metadata: dict[str, Any] | None
    ) -> None:
        self._logger.log(level, message, extra={"metadata": metadata or {}})

    @beartype
    def log_info(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        """Log an informational security event."""
        self._emit(logging.INFO, message, metadata)

    @beartype
    def log_warning(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        """Log a security warning."""
        self._emit(logging.WARNING, message, metadata)

    @beartype
    def log_error(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        """Log a security error."""
        self._emit(logging.ERROR, message, metadata)

    @beartype
    def log_critical(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        """Log a critical security event."""
        self._emit(logging.CRITICAL, message, metadata)


class NullAnalyticsSink:
    """Discards analytics events."""

    async def log_event(self, name: str, parameters: dict[str, Any]) -> None:
        return None


class LoggingAnalyticsSink:
    """Writes analytics events to the log at debug level."""

    def __init__(self, name: str = "policy_guard.analytics") -> None:
        self._logger = logging.getLogger(name)

    @beartype
    async def log_event(self, name: str, parameters: dict[str, Any]) -> None:
        """Record an analytics event."""
        self._logger.debug("analytics event %s: %s", name, parameters)
