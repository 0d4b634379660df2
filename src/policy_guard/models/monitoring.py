"""Alert, incident and scheduler records."""

from datetime import datetime
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig
from .security import Severity, Violation


class AlertType(str, Enum):
    """Conditions that produce operator alerts."""

    CRITICAL_SECURITY_STATUS = "CRITICAL_SECURITY_STATUS"
    HIGH_VIOLATION_COUNT = "HIGH_VIOLATION_COUNT"
    COMPLIANCE_VIOLATION = "COMPLIANCE_VIOLATION"
    SSL_CERTIFICATE_EXPIRING = "SSL_CERTIFICATE_EXPIRING"
    UNAUTHORIZED_ACCESS_PATTERN = "UNAUTHORIZED_ACCESS_PATTERN"
    SECURITY_INCIDENT_CREATED = "SECURITY_INCIDENT_CREATED"


class IncidentType(str, Enum):
    """Violation-rate patterns that open incidents."""

    MULTIPLE_VIOLATIONS = "MULTIPLE_VIOLATIONS"
    UNAUTHORIZED_ACCESS_PATTERN = "UNAUTHORIZED_ACCESS_PATTERN"


class IncidentStatus(str, Enum):
    """Incident lifecycle states."""

    OPEN = "open"
    RESOLVED = "resolved"


@beartype
class Alert(BaseModelConfig):
    """Operator-facing notification."""

    id: str = Field(..., min_length=1)
    type: AlertType = Field(...)
    message: str = Field(..., min_length=1)
    severity: Severity = Field(...)
    timestamp: datetime = Field(...)
    metadata: dict[str, Any] = Field(default_factory=dict)
    acknowledged: bool = Field(default=False)
    acknowledged_at: datetime | None = Field(default=None)


@beartype
class Incident(BaseModelConfig):
    """Escalation opened when violations exceed a rate threshold."""

    id: str = Field(..., min_length=1)
    type: IncidentType = Field(...)
    description: str = Field(..., min_length=1)
    severity: Severity = Field(...)
    affected_systems: list[str] = Field(default_factory=list)
    violations: list[Violation] = Field(default_factory=list)
    timestamp: datetime = Field(...)
    status: IncidentStatus = Field(default=IncidentStatus.OPEN)
    response_actions: list[str] = Field(default_factory=list)
    resolved_at: datetime | None = Field(default=None)


@beartype
class CycleSummary(BaseModelConfig):
    """Outcome of one monitoring cycle."""

    started_at: datetime = Field(...)
    duration_ms: int = Field(..., ge=0)
    health_status: str | None = Field(default=None)
    compliance_level: str | None = Field(default=None)
    incidents_opened: int = Field(default=0, ge=0)
    alerts_raised: int = Field(default=0, ge=0)
    step_errors: dict[str, str] = Field(default_factory=dict)
    manual: bool = Field(default=False)


@beartype
class MonitoringStatus(BaseModelConfig):
    """Scheduler state snapshot for operators."""

    initialized: bool = Field(...)
    running: bool = Field(...)
    interval_seconds: float = Field(..., gt=0.0)
    last_cycle_at: datetime | None = Field(default=None)
    cycles_completed: int = Field(default=0, ge=0)
    cycles_skipped: int = Field(default=0, ge=0)
