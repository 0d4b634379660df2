"""Compliance audit records: per-check results, reports and status."""

from datetime import datetime
from enum import Enum

from beartype import beartype
from pydantic import Field, field_validator

from .base import BaseModelConfig


class ComplianceStandard(str, Enum):
    """Standards the engine reports compliance against."""

    GDPR = "gdpr"
    OWASP = "owasp"
    ISO27001 = "iso27001"
    PCI_DSS = "pci_dss"


class ComplianceLevel(str, Enum):
    """Classification of an overall audit score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    NEEDS_IMPROVEMENT = "needs_improvement"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


@beartype
class CheckResult(BaseModelConfig):
    """Outcome of one of the seven audit checks."""

    check_name: str = Field(..., min_length=1)
    score: float = Field(..., ge=0.0, le=100.0)
    passed: bool = Field(...)
    checks: dict[str, bool] = Field(default_factory=dict)
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


@beartype
class AuditReport(BaseModelConfig):
    """Aggregate result of one audit run."""

    audit_id: str = Field(..., pattern=r"^audit_\d+_[a-z]+$")
    timestamp: datetime = Field(...)
    duration_ms: int = Field(..., ge=0)
    overall_score: float = Field(..., ge=0.0, le=100.0)
    check_results: list[CheckResult] = Field(..., min_length=1)
    recommendations: list[str] = Field(default_factory=list)

    @field_validator("recommendations")
    @classmethod
    def dedupe_recommendations(cls, v: list[str]) -> list[str]:
        """Drop repeated recommendations, keeping first occurrence."""
        return list(dict.fromkeys(v))

    @property
    def failed_checks(self) -> list[CheckResult]:
        """Checks that fell below their pass threshold."""
        return [result for result in self.check_results if not result.passed]


@beartype
class ComplianceStatus(BaseModelConfig):
    """Compliance classification derived from the latest report."""

    standard: ComplianceStandard = Field(...)
    level: ComplianceLevel = Field(...)
    last_check_date: datetime | None = Field(default=None)
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    issues: list[str] = Field(default_factory=list)
