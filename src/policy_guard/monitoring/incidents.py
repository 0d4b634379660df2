# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Escalation of violation bursts into incidents.

Two independent rate patterns are checked on every cycle:

* five or more violations of any type in the last ten minutes, and
* more than three unauthorized-access or authentication-failure violations in
  the last hour.

Both may open an incident in the same cycle. Incidents stay open until an
operator resolves them.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Final
from uuid import uuid4

from beartype import beartype

from ..core.clock import Clock, epoch_millis
from ..core.result_types import Err, Ok, Result
from ..core.storage import PersistenceGateway, StoreKeys
from ..core.telemetry import AnalyticsSink, TelemetrySink
from ..models.monitoring import Incident, IncidentStatus, IncidentType
from ..models.security import ACCESS_VIOLATION_TYPES, Severity, Violation
from ..security.violations import ViolationLedger
from .alerts import AlertDispatcher

logger = logging.getLogger(__name__)

BURST_WINDOW: Final = timedelta(minutes=10)
BURST_THRESHOLD: Final = 5
ACCESS_WINDOW: Final = timedelta(hours=1)
ACCESS_THRESHOLD: Final = 3
AFFECTED_SYSTEMS: Final = ("authentication", "access_control")


class IncidentManager:
    """Detects violation patterns and tracks the resulting incidents."""

    def __init__(
        self,
        *,
        ledger: ViolationLedger,
        alerts: AlertDispatcher,
        persistence: PersistenceGateway,
        telemetry: TelemetrySink,
        analytics: AnalyticsSink,
        clock: Clock,
    ) -> None:
        self._ledger = ledger
        self._alerts = alerts
        self._persistence = persistence
        self._telemetry = telemetry
        self._analytics = analytics
        self._clock = clock
        self._incidents: list[Incident] = []
        self._lock = asyncio.Lock()

    @beartype
    async def load(self) -> int:
        """Restore persisted incidents; returns how many were loaded."""
        result = await self._persistence.read_list(StoreKeys.INCIDENTS)
        if result.is_err():
            logger.warning("Incident log not restored: %s", result.err_value)
            return 0

        restored = Incident.from_records(result.unwrap())

        async with self._lock:
            self._incidents = restored
        return len(restored)

    @beartype
    def access_violations(self, within: timedelta = ACCESS_WINDOW) -> list[Violation]:
        """Recent unauthorized-access and authentication-failure violations."""
        return [
            v for v in self._ledger.recent(within) if v.type in ACCESS_VIOLATION_TYPES
        ]

    @beartype
    async def detect(self) -> list[Incident]:
        """Open incidents for every pattern whose threshold is crossed."""
        opened: list[Incident] = []

        burst = self._ledger.recent(BURST_WINDOW)
        if len(burst) >= BURST_THRESHOLD:
            opened.append(
                await self.open_incident(
                    IncidentType.MULTIPLE_VIOLATIONS,
                    "Multiple security violations detected in short timeframe",
                    burst,
                )
            )

        access = self.access_violations()
        if len(access) > ACCESS_THRESHOLD:
            opened.append(
                await self.open_incident(
                    IncidentType.UNAUTHORIZED_ACCESS_PATTERN,
                    "Repeated unauthorized access attempts detected",
                    access,
                )
            )

        return opened

    @beartype
    async def open_incident(
        self,
        incident_type: IncidentType,
        description: str,
        violations: list[Violation],
        severity: Severity = Severity.CRITICAL,
    ) -> Incident:
        """Create, persist and announce an incident."""
        now = self._clock.now()
        incident = Incident(
            id=f"incident_{epoch_millis(now)}_{uuid4().hex[:8]}",
            type=incident_type,
            description=description,
            severity=severity,
            affected_systems=list(AFFECTED_SYSTEMS),
            violations=violations,
            timestamp=now,
        )

        async with self._lock:
            self._incidents.append(incident)
            await self._persist()

        self._telemetry.log_error(
            description,
            {
                "event_type": "SECURITY_INCIDENT_CREATED",
                "incident_id": incident.id,
                "incident_type": incident_type.value,
                "affected_systems": incident.affected_systems,
            },
        )

        try:
            await self._analytics.log_event(
                "security_incident_created",
                {
                    "incident_type": incident_type.value,
                    "severity": severity.value,
                    "affected_systems_count": len(incident.affected_systems),
                },
            )
        except Exception as e:
            logger.warning("Analytics event for incident %s failed: %s", incident.id, e)

        await self._alerts.mirror_incident(incident)
        return incident

    async def _persist(self) -> None:
        persisted = await self._persistence.write_json(
            StoreKeys.INCIDENTS, [i.to_record() for i in self._incidents]
        )
        if persisted.is_err():
            logger.warning("Incident log not persisted: %s", persisted.err_value)

    @beartype
    def incidents(self, status: IncidentStatus | None = None) -> list[Incident]:
        """Incidents in creation order, optionally filtered by status."""
        if status is None:
            return list(self._incidents)
        return [i for i in self._incidents if i.status is status]

    @beartype
    async def resolve(
        self, incident_id: str, actions: list[str] | None = None
    ) -> Result[Incident, str]:
        """Close an open incident, recording the response actions taken."""
        async with self._lock:
            for index, incident in enumerate(self._incidents):
                if incident.id != incident_id:
                    continue
                if incident.status is IncidentStatus.RESOLVED:
                    return Ok(incident)

                resolved = incident.model_copy(
                    update={
                        "status": IncidentStatus.RESOLVED,
                        "response_actions": [
                            *incident.response_actions,
                            *(actions or []),
                        ],
                        "resolved_at": self._clock.now(),
                    }
                )
                self._incidents[index] = resolved
                await self._persist()
                logger.info("Incident %s resolved", incident_id)
                return Ok(resolved)

        return Err(f"Incident not found: {incident_id}")
