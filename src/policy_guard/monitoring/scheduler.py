# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Periodic security monitoring cycle.

A cycle runs five steps in order: health check, compliance audit, incident
detection, certificate expiry check and access-pattern check. Each step is
isolated: an exception is logged and recorded in the cycle summary, and the
remaining steps still run.

Scheduled ticks and manual validations share one lock. A tick that finds a
cycle in flight is skipped; a manual validation waits for it.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from attrs import define, field
from beartype import beartype

from ..compliance.auditor import ComplianceAuditor
from ..core.clock import Clock
from ..core.storage import PersistenceGateway, StoreKeys
from ..core.telemetry import TelemetrySink
from ..models.compliance import ComplianceStatus
from ..models.monitoring import CycleSummary, MonitoringStatus
from ..models.security import SecurityHealthReport
from ..security.certificates import CertificateStatusProvider
from ..security.health import SecurityHealthMonitor
from ..security.policy_store import PolicyStore
from .alerts import AlertDispatcher
from .incidents import IncidentManager

logger = logging.getLogger(__name__)


@define
class _CycleState:
    health: SecurityHealthReport | None = field(default=None)
    compliance: ComplianceStatus | None = field(default=None)
    incidents_opened: int = field(default=0)


class MonitoringScheduler:
    """Drives the monitoring cycle on a fixed interval."""

    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        health: SecurityHealthMonitor,
        auditor: ComplianceAuditor,
        incidents: IncidentManager,
        alerts: AlertDispatcher,
        certificates: CertificateStatusProvider,
        persistence: PersistenceGateway,
        telemetry: TelemetrySink,
        clock: Clock,
        interval_seconds: float = 120.0,
        ssl_warning_days: int = 7,
    ) -> None:
        self._policy_store = policy_store
        self._health = health
        self._auditor = auditor
        self._incidents = incidents
        self._alerts = alerts
        self._certificates = certificates
        self._persistence = persistence
        self._telemetry = telemetry
        self._clock = clock
        self._interval = interval_seconds
        self._ssl_warning_days = ssl_warning_days

        self._cycle_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

        self._last_cycle_at: datetime | None = None
        self._last_summary: CycleSummary | None = None
        self._cycles_completed = 0
        self._cycles_skipped = 0

    @property
    def running(self) -> bool:
        """Whether the periodic task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def last_summary(self) -> CycleSummary | None:
        """Summary of the most recent completed cycle."""
        return self._last_summary

    @beartype
    def start(self) -> None:
        """Begin ticking; no-op when already running."""
        if self.running:
            logger.debug("Monitoring scheduler already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="policy-guard-monitoring")
        logger.info("Security monitoring started (interval %.0fs)", self._interval)

    @beartype
    async def stop(self) -> None:
        """Stop future ticks, letting an in-flight cycle finish."""
        task = self._task
        if task is None:
            return

        self._stop_event.set()
        await task
        self._task = None
        logger.info("Security monitoring stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.tick()
            except Exception:
                logger.exception("Security monitoring tick failed")

    @beartype
    async def tick(self) -> CycleSummary | None:
        """Scheduled entry point; skips when a cycle is already running."""
        if self._cycle_lock.locked():
            self._cycles_skipped += 1
            logger.warning("Skipping monitoring tick: previous cycle still running")
            return None

        async with self._cycle_lock:
            return await self.run_cycle()

    @beartype
    async def perform_manual_validation(self) -> CycleSummary:
        """Out-of-band cycle, serialised behind any running cycle."""
        async with self._cycle_lock:
            return await self.run_cycle(manual=True)

    async def _step(
        self,
        name: str,
        errors: dict[str, str],
        action: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await action()
        except Exception as e:
            errors[name] = str(e) or type(e).__name__
            logger.error("Monitoring step %s failed: %s", name, e, exc_info=True)

    @beartype
    async def run_cycle(self, manual: bool = False) -> CycleSummary:
        """Execute one cycle; callers are expected to hold the cycle lock."""
        started_at = self._clock.now()
        started = time.perf_counter()
        alerts_before = len(self._alerts.alerts())
        errors: dict[str, str] = {}
        state = _CycleState()

        async def health_step() -> None:
            report = await self._health.check()
            state.health = report
            await self._alerts.evaluate_health(report)

        async def compliance_step() -> None:
            report = await self._auditor.audit(state.health)
            status = self._auditor.check_compliance_status()
            state.compliance = status
            stored = await self._persistence.write_json(
                StoreKeys.COMPLIANCE_STATUS, status.to_record()
            )
            if stored.is_err():
                logger.warning("Compliance status not persisted: %s", stored.err_value)
            await self._alerts.evaluate_compliance(status)
            logger.debug("Audit %s scored %.1f", report.audit_id, report.overall_score)

        async def incident_step() -> None:
            state.incidents_opened = len(await self._incidents.detect())

        async def certificate_step() -> None:
            status = await self._certificates.check()
            await self._alerts.evaluate_certificate(status, self._ssl_warning_days)

        async def access_step() -> None:
            await self._alerts.evaluate_access_pattern(
                self._incidents.access_violations()
            )

        await self._step("health_check", errors, health_step)
        await self._step("compliance_audit", errors, compliance_step)
        await self._step("incident_detection", errors, incident_step)
        await self._step("certificate_expiry", errors, certificate_step)
        await self._step("access_pattern", errors, access_step)

        summary = CycleSummary(
            started_at=started_at,
            duration_ms=int((time.perf_counter() - started) * 1000),
            health_status=state.health.overall_status.value if state.health else None,
            compliance_level=state.compliance.level.value if state.compliance else None,
            incidents_opened=state.incidents_opened,
            alerts_raised=len(self._alerts.alerts()) - alerts_before,
            step_errors=errors,
            manual=manual,
        )

        self._last_cycle_at = started_at
        self._last_summary = summary
        self._cycles_completed += 1

        logger.info(
            "Security monitoring cycle completed in %dms (health=%s, compliance=%s)",
            summary.duration_ms,
            summary.health_status,
            summary.compliance_level,
        )
        self._telemetry.log_info(
            "Security monitoring cycle completed",
            {
                "duration_ms": summary.duration_ms,
                "health_status": summary.health_status,
                "compliance_level": summary.compliance_level,
                "step_errors": len(errors),
            },
        )
        return summary

    @beartype
    def status(self) -> MonitoringStatus:
        """Operator view of the scheduler."""
        return MonitoringStatus(
            initialized=self._policy_store.loaded,
            running=self.running,
            interval_seconds=self._interval,
            last_cycle_at=self._last_cycle_at,
            cycles_completed=self._cycles_completed,
            cycles_skipped=self._cycles_skipped,
        )
