"""Security policy, violation and health records."""

from datetime import datetime
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field, computed_field

from .base import BaseModelConfig


class Severity(str, Enum):
    """Severity shared by violations, alerts, incidents and telemetry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ViolationType(str, Enum):
    """Enumeration of detected policy breaches."""

    CERTIFICATE_PINNING = "CERTIFICATE_PINNING"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    AUTHENTICATION_FAILURE = "AUTHENTICATION_FAILURE"
    INTEGRITY_MISMATCH = "INTEGRITY_MISMATCH"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DECRYPTION_FAILURE = "DECRYPTION_FAILURE"
    UNSAFE_INPUT = "UNSAFE_INPUT"


ACCESS_VIOLATION_TYPES: frozenset[ViolationType] = frozenset(
    {ViolationType.UNAUTHORIZED_ACCESS, ViolationType.AUTHENTICATION_FAILURE}
)


class SecurityHealthStatus(str, Enum):
    """Four-level health classification."""

    SECURE = "secure"
    CAUTION = "caution"
    WARNING = "warning"
    CRITICAL = "critical"


@beartype
class SecurityPolicy(BaseModelConfig):
    """Active security policy, loaded once per process."""

    encryption_required: bool = Field(...)
    certificate_pinning_enabled: bool = Field(...)
    integrity_check_enabled: bool = Field(...)
    network_security_enabled: bool = Field(...)
    debugging_allowed: bool = Field(...)
    max_session_duration: int = Field(
        ..., ge=1, description="Session idle timeout in minutes"
    )
    rate_limit_enabled: bool = Field(...)
    max_requests_per_minute: int = Field(..., ge=1)


@beartype
class Violation(BaseModelConfig):
    """A single detected security-policy breach."""

    timestamp: datetime = Field(...)
    type: ViolationType = Field(...)
    details: dict[str, Any] = Field(default_factory=dict)
    environment: str = Field(..., min_length=1)
    app_version: str = Field(..., min_length=1)
    severity: Severity = Field(default=Severity.ERROR)


@beartype
class SystemMetrics(BaseModelConfig):
    """Host-level performance snapshot used for the system health score."""

    error_rate: float = Field(default=0.0, ge=0.0, le=100.0, description="Percent")
    api_response_time_ms: float = Field(default=0.0, ge=0.0)
    cpu_usage: float = Field(default=0.0, ge=0.0, le=100.0, description="Percent")
    memory_usage: float = Field(default=0.0, ge=0.0, le=100.0, description="Percent")

    @computed_field  # type: ignore[misc]
    @property
    def health_score(self) -> float:
        """Score in [0.0, 1.0]; 1.0 minus capped penalties."""
        score = 1.0

        if self.error_rate > 0:
            score -= min(self.error_rate / 10, 0.3)

        if self.api_response_time_ms > 500:
            score -= min((self.api_response_time_ms - 500) / 2500, 0.3)

        if self.cpu_usage > 50:
            score -= min((self.cpu_usage - 50) / 50, 0.2)

        if self.memory_usage > 50:
            score -= min((self.memory_usage - 50) / 50, 0.2)

        return max(0.0, min(1.0, score))


@beartype
class SecurityHealthReport(BaseModelConfig):
    """Result of one security health check."""

    overall_status: SecurityHealthStatus = Field(...)
    integrity_check_passed: bool = Field(...)
    recent_violations_count: int = Field(..., ge=0, description="Last 24 hours")
    total_violations_count: int = Field(..., ge=0)
    certificate_pinning_enabled: bool = Field(...)
    encryption_enabled: bool = Field(...)
    system_health_score: float | None = Field(default=None, ge=0.0, le=1.0)
    last_check_timestamp: datetime = Field(...)


@beartype
class CertificateStatus(BaseModelConfig):
    """Observed TLS certificate state for a host."""

    host: str = Field(..., min_length=1)
    valid: bool = Field(...)
    expires_in_days: int = Field(...)
    issuer: str = Field(default="")
    last_checked: datetime = Field(...)
