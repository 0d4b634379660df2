# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Security health classification from integrity and violation activity."""

import logging
from datetime import timedelta
from typing import Final

from beartype import beartype

from ..core.clock import Clock
from ..models.security import SecurityHealthReport, SecurityHealthStatus
from ..monitoring.metrics import MetricsSource
from .certificates import CertificatePinRegistry
from .integrity import IntegrityVerifier
from .policy_store import PolicyStore
from .violations import ViolationLedger

logger = logging.getLogger(__name__)

HEALTH_WINDOW: Final = timedelta(hours=24)
CRITICAL_VIOLATION_COUNT: Final = 10
WARNING_VIOLATION_COUNT: Final = 5


@beartype
def classify_health(
    integrity_passed: bool, recent_violations: int
) -> SecurityHealthStatus:
    """Map integrity and 24h violation count to a health status."""
    if not integrity_passed or recent_violations > CRITICAL_VIOLATION_COUNT:
        return SecurityHealthStatus.CRITICAL
    if recent_violations > WARNING_VIOLATION_COUNT:
        return SecurityHealthStatus.WARNING
    if recent_violations > 0:
        return SecurityHealthStatus.CAUTION
    return SecurityHealthStatus.SECURE


class SecurityHealthMonitor:
    """Produces :class:`SecurityHealthReport` snapshots."""

    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        integrity: IntegrityVerifier,
        ledger: ViolationLedger,
        pins: CertificatePinRegistry,
        clock: Clock,
        metrics: MetricsSource | None = None,
    ) -> None:
        self._policy_store = policy_store
        self._integrity = integrity
        self._ledger = ledger
        self._pins = pins
        self._clock = clock
        self._metrics = metrics
        self._last_report: SecurityHealthReport | None = None

    @property
    def last_report(self) -> SecurityHealthReport | None:
        """Most recent report, if any check has run."""
        return self._last_report

    @beartype
    async def check(self) -> SecurityHealthReport:
        """Run integrity verification and summarise recent violations."""
        integrity_passed = await self._integrity.verify()
        recent = len(self._ledger.recent(HEALTH_WINDOW))

        health_score: float | None = None
        if self._metrics is not None:
            try:
                snapshot = await self._metrics.collect()
                health_score = snapshot.health_score
            except Exception as e:
                logger.warning("System metrics unavailable: %s", e)

        report = SecurityHealthReport(
            overall_status=classify_health(integrity_passed, recent),
            integrity_check_passed=integrity_passed,
            recent_violations_count=recent,
            total_violations_count=len(self._ledger),
            certificate_pinning_enabled=self._pins.enabled,
            encryption_enabled=self._policy_store.policy.encryption_required,
            system_health_score=health_score,
            last_check_timestamp=self._clock.now(),
        )
        self._last_report = report
        return report
