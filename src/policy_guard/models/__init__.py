"""Record models for PolicyGuard.

All records are immutable Pydantic models serialised to JSON for the
key-value store.
"""

from .base import BaseModelConfig
from .compliance import (
    AuditReport,
    CheckResult,
    ComplianceLevel,
    ComplianceStandard,
    ComplianceStatus,
)
from .monitoring import (
    Alert,
    AlertType,
    CycleSummary,
    Incident,
    IncidentStatus,
    IncidentType,
    MonitoringStatus,
)
from .security import (
    ACCESS_VIOLATION_TYPES,
    CertificateStatus,
    SecurityHealthReport,
    SecurityHealthStatus,
    SecurityPolicy,
    Severity,
    SystemMetrics,
    Violation,
    ViolationType,
)

__all__ = [
    "BaseModelConfig",
    "AuditReport",
    "CheckResult",
    "ComplianceLevel",
    "ComplianceStandard",
    "ComplianceStatus",
    "Alert",
    "AlertType",
    "CycleSummary",
    "Incident",
    "IncidentStatus",
    "IncidentType",
    "MonitoringStatus",
    "ACCESS_VIOLATION_TYPES",
    "CertificateStatus",
    "SecurityHealthReport",
    "SecurityHealthStatus",
    "SecurityPolicy",
    "Severity",
    "SystemMetrics",
    "Violation",
    "ViolationType",
]
