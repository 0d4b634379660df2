# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Security monitoring endpoints for operators."""

from datetime import timedelta
from typing import Annotated, Any

from beartype import beartype
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ...models.compliance import AuditReport, ComplianceStandard, ComplianceStatus
from ...models.monitoring import (
    Alert,
    CycleSummary,
    Incident,
    IncidentStatus,
    MonitoringStatus,
)
from ...models.security import (
    SecurityHealthReport,
    SecurityPolicy,
    Severity,
    Violation,
    ViolationType,
)
from ..dependencies import ContextDep

router = APIRouter(prefix="/security", tags=["security"])


class ResolveIncidentRequest(BaseModel):
    """Incident resolution payload."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    actions: list[str] = Field(
        default_factory=list, description="Response actions taken"
    )


class ViolationReportRequest(BaseModel):
    """Violation reported by the host application."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    type: ViolationType = Field(..., description="Violation type")
    details: dict[str, Any] = Field(default_factory=dict)
    severity: Severity | None = Field(
        default=None, description="Overrides the type's default severity"
    )


@router.get("/status", response_model=MonitoringStatus)
@beartype
async def get_monitoring_status(context: ContextDep) -> MonitoringStatus:
    """Scheduler state."""
    return context.scheduler.status()


@router.get("/policy", response_model=SecurityPolicy)
@beartype
async def get_policy(context: ContextDep) -> SecurityPolicy:
    """Active security policy."""
    return context.policy_store.policy


@router.get("/health", response_model=SecurityHealthReport)
@beartype
async def get_security_health(context: ContextDep) -> SecurityHealthReport:
    """Run a security health check."""
    return await context.health.check()


@router.get("/alerts", response_model=list[Alert])
@beartype
async def list_alerts(
    context: ContextDep,
    unacknowledged_only: Annotated[bool, Query()] = False,
) -> list[Alert]:
    """List alerts, oldest first."""
    return context.alerts.alerts(unacknowledged_only=unacknowledged_only)


@router.post("/alerts/{alert_id}/acknowledge", response_model=Alert)
@beartype
async def acknowledge_alert(alert_id: str, context: ContextDep) -> Alert:
    """Acknowledge an alert; repeating the call is harmless."""
    result = await context.alerts.acknowledge(alert_id)
    if result.is_err():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=result.err_value
        )
    return result.unwrap()


@router.get("/incidents", response_model=list[Incident])
@beartype
async def list_incidents(
    context: ContextDep,
    incident_status: Annotated[IncidentStatus | None, Query(alias="status")] = None,
) -> list[Incident]:
    """List incidents, optionally by status."""
    return context.incidents.incidents(incident_status)


@router.post("/incidents/{incident_id}/resolve", response_model=Incident)
@beartype
async def resolve_incident(
    incident_id: str, payload: ResolveIncidentRequest, context: ContextDep
) -> Incident:
    """Resolve an open incident."""
    result = await context.incidents.resolve(incident_id, list(payload.actions))
    if result.is_err():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=result.err_value
        )
    return result.unwrap()


@router.get("/compliance", response_model=ComplianceStatus)
@beartype
async def get_compliance_status(
    context: ContextDep,
    standard: Annotated[ComplianceStandard, Query()] = ComplianceStandard.OWASP,
) -> ComplianceStatus:
    """Compliance status derived from the latest audit."""
    return context.auditor.check_compliance_status(standard)


@router.get("/reports", response_model=list[AuditReport])
@beartype
async def list_reports(context: ContextDep) -> list[AuditReport]:
    """Retained audit reports, oldest first."""
    return context.auditor.reports()


@router.get("/reports/latest", response_model=AuditReport)
@beartype
async def get_latest_report(context: ContextDep) -> AuditReport:
    """Most recent audit report."""
    report = context.auditor.latest_report()
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No audit has been run"
        )
    return report


@router.get("/violations", response_model=list[Violation])
@beartype
async def list_violations(
    context: ContextDep,
    within_minutes: Annotated[int | None, Query(ge=1, le=10080)] = None,
) -> list[Violation]:
    """Retained violations, optionally limited to a recent window."""
    if within_minutes is None:
        return context.ledger.all()
    return context.ledger.recent(timedelta(minutes=within_minutes))


@router.post(
    "/violations", response_model=Violation, status_code=status.HTTP_201_CREATED
)
@beartype
async def report_violation(
    payload: ViolationReportRequest, context: ContextDep
) -> Violation:
    """Record a violation detected by the host application."""
    return await context.ledger.record(
        payload.type, dict(payload.details), payload.severity
    )


@router.post("/validate", response_model=CycleSummary)
@beartype
async def perform_manual_validation(context: ContextDep) -> CycleSummary:
    """Run a monitoring cycle now, after any cycle already in flight."""
    return await context.scheduler.perform_manual_validation()
