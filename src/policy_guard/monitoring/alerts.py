# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Severity-classified operator alerts.

Alerts are appended to an in-memory log mirrored to ``alert-log``. The only
mutation ever applied to a stored alert is acknowledgement.
"""

import asyncio
import logging
from typing import Any, Final
from uuid import uuid4

from beartype import beartype

from ..core.clock import Clock, epoch_millis
from ..core.result_types import Err, Ok, Result
from ..core.storage import PersistenceGateway, StoreKeys
from ..core.telemetry import AnalyticsSink, TelemetrySink, log_at_severity
from ..models.compliance import ComplianceLevel, ComplianceStatus
from ..models.monitoring import Alert, AlertType, Incident
from ..models.security import (
    CertificateStatus,
    SecurityHealthReport,
    SecurityHealthStatus,
    Severity,
    Violation,
)

logger = logging.getLogger(__name__)

HIGH_VIOLATION_THRESHOLD: Final = 10
ACCESS_PATTERN_THRESHOLD: Final = 3
ACCESS_PATTERN_SAMPLE_SIZE: Final = 5


class AlertDispatcher:
    """Creates, persists and forwards alerts."""

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        telemetry: TelemetrySink,
        analytics: AnalyticsSink,
        clock: Clock,
    ) -> None:
        self._persistence = persistence
        self._telemetry = telemetry
        self._analytics = analytics
        self._clock = clock
        self._alerts: list[Alert] = []
        self._lock = asyncio.Lock()

    @beartype
    async def load(self) -> int:
        """Restore persisted alerts; returns how many were loaded."""
        result = await self._persistence.read_list(StoreKeys.ALERTS)
        if result.is_err():
            logger.warning("Alert log not restored: %s", result.err_value)
            return 0

        restored = Alert.from_records(result.unwrap())

        async with self._lock:
            self._alerts = restored
        return len(restored)

    async def _persist(self) -> None:
        persisted = await self._persistence.write_json(
            StoreKeys.ALERTS, [alert.to_record() for alert in self._alerts]
        )
        if persisted.is_err():
            logger.warning("Alert log not persisted: %s", persisted.err_value)

    def _forward(self, alert: Alert) -> None:
        metadata = {
            "event_type": "SECURITY_ALERT_TRIGGERED",
            "alert_id": alert.id,
            "alert_type": alert.type.value,
            "severity": alert.severity.value,
            **alert.metadata,
        }
        log_at_severity(self._telemetry, alert.severity, alert.message, metadata)

    @beartype
    async def raise_alert(
        self,
        alert_type: AlertType,
        message: str,
        severity: Severity,
        metadata: dict[str, Any] | None = None,
    ) -> Alert:
        """Record an alert and forward it to telemetry and analytics."""
        now = self._clock.now()
        alert = Alert(
            id=f"alert_{epoch_millis(now)}_{uuid4().hex[:8]}",
            type=alert_type,
            message=message,
            severity=severity,
            timestamp=now,
            metadata=metadata or {},
        )

        async with self._lock:
            self._alerts.append(alert)
            await self._persist()

        self._forward(alert)

        try:
            await self._analytics.log_event(
                "security_alert_triggered",
                {
                    "alert_type": alert_type.value,
                    "severity": severity.value,
                    "timestamp": now.isoformat(),
                },
            )
        except Exception as e:
            logger.warning("Analytics event for alert %s failed: %s", alert.id, e)

        return alert

    @beartype
    async def acknowledge(self, alert_id: str) -> Result[Alert, str]:
        """Mark an alert acknowledged; repeated calls keep the first timestamp."""
        async with self._lock:
            for index, alert in enumerate(self._alerts):
                if alert.id != alert_id:
                    continue
                if alert.acknowledged:
                    return Ok(alert)

                updated = alert.model_copy(
                    update={"acknowledged": True, "acknowledged_at": self._clock.now()}
                )
                self._alerts[index] = updated
                await self._persist()
                logger.info("Alert %s acknowledged", alert_id)
                return Ok(updated)

        return Err(f"Alert not found: {alert_id}")

    @beartype
    def alerts(self, unacknowledged_only: bool = False) -> list[Alert]:
        """Alerts in creation order."""
        if unacknowledged_only:
            return [alert for alert in self._alerts if not alert.acknowledged]
        return list(self._alerts)

    @beartype
    def get(self, alert_id: str) -> Alert | None:
        """Look up an alert by id."""
        return next((alert for alert in self._alerts if alert.id == alert_id), None)

    # Trigger helpers used by the monitoring cycle

    @beartype
    async def evaluate_health(self, report: SecurityHealthReport) -> list[Alert]:
        """Alert on critical health and on high recent violation counts."""
        raised: list[Alert] = []

        if report.overall_status is SecurityHealthStatus.CRITICAL:
            raised.append(
                await self.raise_alert(
                    AlertType.CRITICAL_SECURITY_STATUS,
                    "Critical security status detected",
                    Severity.CRITICAL,
                    {
                        "integrity_check": report.integrity_check_passed,
                        "recent_violations": report.recent_violations_count,
                        "total_violations": report.total_violations_count,
                    },
                )
            )

        if report.recent_violations_count > HIGH_VIOLATION_THRESHOLD:
            raised.append(
                await self.raise_alert(
                    AlertType.HIGH_VIOLATION_COUNT,
                    "High number of recent security violations detected",
                    Severity.WARNING,
                    {
                        "recent_violations": report.recent_violations_count,
                        "threshold": HIGH_VIOLATION_THRESHOLD,
                    },
                )
            )

        return raised

    @beartype
    async def evaluate_compliance(self, status: ComplianceStatus) -> Alert | None:
        """Alert when the compliance level is critical."""
        if status.level is not ComplianceLevel.CRITICAL:
            return None
        return await self.raise_alert(
            AlertType.COMPLIANCE_VIOLATION,
            f"Compliance violation detected for {status.standard.value}",
            Severity.CRITICAL,
            {
                "standard": status.standard.value,
                "score": status.score,
                "issues": status.issues,
            },
        )

    @beartype
    async def evaluate_certificate(
        self, status: CertificateStatus, warning_days: int = 7
    ) -> Alert | None:
        """Alert when the certificate expires within ``warning_days``."""
        if status.expires_in_days >= warning_days:
            return None
        return await self.raise_alert(
            AlertType.SSL_CERTIFICATE_EXPIRING,
            f"SSL certificate expires in {status.expires_in_days} days",
            Severity.WARNING,
            status.to_record(),
        )

    @beartype
    async def evaluate_access_pattern(self, violations: list[Violation]) -> Alert | None:
        """Alert on more than three access violations in the window."""
        if len(violations) <= ACCESS_PATTERN_THRESHOLD:
            return None
        return await self.raise_alert(
            AlertType.UNAUTHORIZED_ACCESS_PATTERN,
            "Pattern of unauthorized access attempts detected",
            Severity.CRITICAL,
            {
                "violation_count": len(violations),
                "time_window": "1_hour",
                "violations": [
                    v.to_record()
                    for v in violations[:ACCESS_PATTERN_SAMPLE_SIZE]
                ],
            },
        )

    @beartype
    async def mirror_incident(self, incident: Incident) -> Alert:
        """Operator alert for a newly opened incident."""
        return await self.raise_alert(
            AlertType.SECURITY_INCIDENT_CREATED,
            incident.description,
            incident.severity,
            {
                "incident_id": incident.id,
                "incident_type": incident.type.value,
                "affected_systems": incident.affected_systems,
            },
        )
