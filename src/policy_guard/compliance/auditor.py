# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Seven-check security compliance auditor.

Each check evaluates a handful of boolean sub-checks. The check score is the
percentage of sub-checks that pass, and the check passes when the score meets
its threshold. An audit report averages the seven scores and collects the
remediation hints of every failing check.

Sub-check inputs come from three places:

1. Live probes (session token round trip, encryption round trip, input
   screening, integrity verification via the health report).
2. The active :class:`SecurityPolicy` and the resolved environment profile.
3. :class:`ControlPosture`, the operator's declaration of deployment controls
   the engine cannot observe from inside the process.
"""

import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Final

from attrs import field, frozen
from beartype import beartype

from ..core.clock import Clock, epoch_millis
from ..core.config import Settings
from ..core.storage import PersistenceGateway, StoreKeys
from ..core.telemetry import TelemetrySink
from ..models.compliance import (
    AuditReport,
    CheckResult,
    ComplianceLevel,
    ComplianceStandard,
    ComplianceStatus,
)
from ..models.security import SecurityHealthReport
from ..security.encryption import EncryptionGateway
from ..security.health import SecurityHealthMonitor
from ..security.policy_store import PolicyStore
from ..security.session import SessionManager

logger = logging.getLogger(__name__)

SubChecks = tuple[dict[str, bool], list[str]]


@frozen
class CheckDefinition:
    """Static description of one audit check."""

    name: str = field()
    threshold: float = field()
    recommendations: tuple[str, ...] = field()


AUTHENTICATION: Final = CheckDefinition(
    name="Authentication",
    threshold=80.0,
    recommendations=(
        "Enable session timeout",
        "Implement multi-factor authentication",
        "Review password policies",
    ),
)
ENCRYPTION: Final = CheckDefinition(
    name="Encryption",
    threshold=75.0,
    recommendations=(
        "Enable strong encryption for all sensitive data",
        "Implement proper key rotation",
        "Use AES-256-GCM for encryption",
    ),
)
NETWORK_SECURITY: Final = CheckDefinition(
    name="Network Security",
    threshold=80.0,
    recommendations=(
        "Enable certificate pinning for all domains",
        "Implement network security configuration",
        "Disable cleartext traffic",
    ),
)
DATA_PROTECTION: Final = CheckDefinition(
    name="Data Protection",
    threshold=75.0,
    recommendations=(
        "Implement data anonymization",
        "Add user consent management",
        "Enhance data retention policies",
    ),
)
ACCESS_CONTROL: Final = CheckDefinition(
    name="Access Control",
    threshold=80.0,
    recommendations=(
        "Implement fine-grained permissions",
        "Add API rate limiting",
        "Enhance input validation",
    ),
)
LOGGING_MONITORING: Final = CheckDefinition(
    name="Logging & Monitoring",
    threshold=85.0,
    recommendations=(
        "Implement centralized logging",
        "Add real-time alerting",
        "Enhance log analysis",
    ),
)
VULNERABILITY_ASSESSMENT: Final = CheckDefinition(
    name="Vulnerability Assessment",
    threshold=90.0,
    recommendations=(
        "Perform regular dependency updates",
        "Implement automated vulnerability scanning",
        "Add penetration testing",
    ),
)

GENERAL_RECOMMENDATIONS: Final = (
    "Schedule regular security audits",
    "Implement security training for development team",
    "Consider third-party security assessment",
)

_SQL_INJECTION_SAMPLE: Final = "'; DROP TABLE users; --"
_XSS_SAMPLE: Final = "<script>alert('XSS')</script>"
_BENIGN_SAMPLE: Final = "Normal text input"


@beartype
def compliance_level(score: float) -> ComplianceLevel:
    """Classify an overall audit score."""
    if score >= 95:
        return ComplianceLevel.EXCELLENT
    if score >= 85:
        return ComplianceLevel.GOOD
    if score >= 70:
        return ComplianceLevel.ACCEPTABLE
    if score >= 50:
        return ComplianceLevel.NEEDS_IMPROVEMENT
    return ComplianceLevel.CRITICAL


@beartype
def score_checks(checks: dict[str, bool]) -> float:
    """Percentage of passing sub-checks (0.0 when there are none)."""
    if not checks:
        return 0.0
    return sum(1 for passed in checks.values() if passed) / len(checks) * 100


def _flag(
    checks: dict[str, bool], issues: list[str], name: str, value: bool, issue: str
) -> None:
    checks[name] = value
    if not value:
        issues.append(issue)


class ComplianceAuditor:
    """Runs audits and keeps a bounded report history."""

    def __init__(
        self,
        *,
        settings: Settings,
        policy_store: PolicyStore,
        session: SessionManager,
        encryption: EncryptionGateway,
        health: SecurityHealthMonitor,
        persistence: PersistenceGateway,
        telemetry: TelemetrySink,
        clock: Clock,
        history_limit: int = 10,
    ) -> None:
        self._settings = settings
        self._policy_store = policy_store
        self._session = session
        self._encryption = encryption
        self._health = health
        self._persistence = persistence
        self._telemetry = telemetry
        self._clock = clock
        self._reports: deque[AuditReport] = deque(maxlen=history_limit)
        self._last_audit_ms = 0
        self._audit_trail_ok = True

    @beartype
    async def load(self) -> int:
        """Restore persisted report history; returns how many were loaded."""
        result = await self._persistence.read_list(StoreKeys.REPORTS)
        if result.is_err():
            logger.warning("Audit history not restored: %s", result.err_value)
            return 0

        self._reports.extend(AuditReport.from_records(result.unwrap()))

        if self._reports:
            self._last_audit_ms = epoch_millis(self._reports[-1].timestamp)
        return len(self._reports)

    # Individual checks

    def _authentication(self) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        posture = self._settings.controls

        _flag(
            checks,
            issues,
            "session_management",
            self._session.probe_round_trip(),
            "Session management not working properly",
        )
        _flag(
            checks,
            issues,
            "password_hashing",
            posture.password_hashing,
            "Password hashing not declared",
        )
        _flag(
            checks,
            issues,
            "account_lockout",
            self._session.lockout_configured,
            "Account lockout not configured",
        )
        _flag(
            checks,
            issues,
            "session_timeout",
            self._session.timeout_enabled,
            "Session timeout not enabled",
        )
        return checks, issues

    async def _encryption_check(self) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        policy = self._policy_store.policy
        profile = self._settings.security_profile

        _flag(
            checks,
            issues,
            "encryption_enabled",
            policy.encryption_required,
            "Data encryption not enabled",
        )
        _flag(
            checks,
            issues,
            "key_management",
            self._encryption.key_configured,
            "Encryption key not configured",
        )
        _flag(
            checks,
            issues,
            "data_at_rest",
            await self._encryption.probe_round_trip(),
            "Encrypted storage round trip failed",
        )
        _flag(
            checks,
            issues,
            "data_in_transit",
            profile.https_enforced,
            "Data in transit not protected by HTTPS",
        )
        return checks, issues

    def _network_security(self, health: SecurityHealthReport) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        profile = self._settings.security_profile

        _flag(
            checks,
            issues,
            "https_enforced",
            profile.https_enforced,
            "HTTPS not enforced in current environment",
        )
        _flag(
            checks,
            issues,
            "certificate_pinning",
            health.certificate_pinning_enabled,
            "Certificate pinning not enabled",
        )
        _flag(
            checks,
            issues,
            "network_security_config",
            self._settings.controls.network_security_config,
            "Network security configuration not shipped",
        )
        _flag(
            checks,
            issues,
            "cleartext_disabled",
            profile.cleartext_disabled,
            "Cleartext traffic not disabled",
        )
        return checks, issues

    def _data_protection(self) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        posture = self._settings.controls

        _flag(
            checks,
            issues,
            "backup_exclusions",
            posture.backup_exclusions,
            "Sensitive data not excluded from backups",
        )
        _flag(
            checks,
            issues,
            "sensitive_data_handling",
            posture.sensitive_data_handling,
            "Sensitive data handling not declared",
        )
        _flag(
            checks,
            issues,
            "data_retention",
            posture.data_retention,
            "Security log retention policy not declared",
        )
        _flag(
            checks,
            issues,
            "gdpr_compliance",
            posture.gdpr_compliance,
            "GDPR compliance not declared",
        )
        return checks, issues

    def _access_control(self) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        posture = self._settings.controls
        screening_works = self._session.is_input_safe(
            _BENIGN_SAMPLE
        ) and not self._session.is_input_safe(_SQL_INJECTION_SAMPLE)

        _flag(
            checks,
            issues,
            "role_based_access",
            posture.role_based_access,
            "Role-based access control not declared",
        )
        _flag(
            checks,
            issues,
            "rate_limiting",
            self._policy_store.policy.rate_limit_enabled,
            "Rate limiting not enabled",
        )
        _flag(
            checks,
            issues,
            "input_validation",
            screening_works,
            "Input validation not effective",
        )
        _flag(
            checks,
            issues,
            "authorization",
            posture.authorization,
            "Authorization rules not declared",
        )
        return checks, issues

    def _logging_monitoring(self) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        posture = self._settings.controls

        _flag(
            checks,
            issues,
            "security_logging",
            posture.security_logging,
            "Security event logging not configured",
        )
        _flag(
            checks,
            issues,
            "audit_trail",
            self._audit_trail_ok,
            "Audit trail could not be persisted",
        )
        _flag(
            checks,
            issues,
            "log_protection",
            posture.log_protection,
            "Log protection not declared",
        )
        _flag(
            checks,
            issues,
            "monitoring_integration",
            posture.monitoring_integration,
            "Monitoring integration not declared",
        )
        return checks, issues

    def _vulnerability(self, health: SecurityHealthReport) -> SubChecks:
        checks: dict[str, bool] = {}
        issues: list[str] = []
        posture = self._settings.controls

        _flag(
            checks,
            issues,
            "sql_injection_protection",
            not self._session.is_input_safe(_SQL_INJECTION_SAMPLE),
            "SQL injection patterns not detected",
        )
        _flag(
            checks,
            issues,
            "xss_protection",
            not self._session.is_input_safe(_XSS_SAMPLE),
            "Script injection patterns not detected",
        )
        _flag(
            checks,
            issues,
            "csrf_protection",
            posture.csrf_protection,
            "CSRF protection not declared",
        )
        _flag(
            checks,
            issues,
            "dependency_vulnerabilities",
            posture.dependency_vulnerabilities_clear,
            "Known vulnerable dependencies present",
        )
        _flag(
            checks,
            issues,
            "integrity_check",
            health.integrity_check_passed,
            "Application integrity check failed",
        )
        return checks, issues

    async def _run_check(
        self,
        definition: CheckDefinition,
        probe: Callable[[], Awaitable[SubChecks] | SubChecks],
    ) -> CheckResult:
        """Evaluate one check; an exception yields a failing result."""
        try:
            outcome = probe()
            if isinstance(outcome, Awaitable):
                outcome = await outcome
            checks, issues = outcome
        except Exception as e:
            logger.error("%s check raised: %s", definition.name, e)
            return CheckResult(
                check_name=definition.name,
                score=0.0,
                passed=False,
                checks={},
                issues=[f"{definition.name} check could not be completed: {str(e)}"],
                recommendations=list(definition.recommendations),
            )

        score = score_checks(checks)
        passed = score >= definition.threshold
        return CheckResult(
            check_name=definition.name,
            score=score,
            passed=passed,
            checks=checks,
            issues=issues,
            recommendations=[] if passed else list(definition.recommendations),
        )

    def _next_audit_id(self) -> str:
        millis = max(epoch_millis(self._clock.now()), self._last_audit_ms + 1)
        self._last_audit_ms = millis
        return f"audit_{millis}_{self._settings.environment}"

    @beartype
    async def audit(self, health: SecurityHealthReport | None = None) -> AuditReport:
        """Run all seven checks and record the report.

        Args:
            health: Health report from the current monitoring cycle; a fresh
                one is taken when omitted.
        """
        started = time.perf_counter()
        audit_id = self._next_audit_id()
        timestamp = self._clock.now()

        try:
            if health is None:
                health = await self._health.check()
            report_health = health

            results = [
                await self._run_check(AUTHENTICATION, self._authentication),
                await self._run_check(ENCRYPTION, self._encryption_check),
                await self._run_check(
                    NETWORK_SECURITY, lambda: self._network_security(report_health)
                ),
                await self._run_check(DATA_PROTECTION, self._data_protection),
                await self._run_check(ACCESS_CONTROL, self._access_control),
                await self._run_check(LOGGING_MONITORING, self._logging_monitoring),
                await self._run_check(
                    VULNERABILITY_ASSESSMENT, lambda: self._vulnerability(report_health)
                ),
            ]

            recommendations: list[str] = []
            for result in results:
                recommendations.extend(result.recommendations)
            if any(not result.passed for result in results):
                recommendations.extend(GENERAL_RECOMMENDATIONS)

            report = AuditReport(
                audit_id=audit_id,
                timestamp=timestamp,
                duration_ms=int((time.perf_counter() - started) * 1000),
                overall_score=sum(result.score for result in results) / len(results),
                check_results=results,
                recommendations=recommendations,
            )
        except Exception as e:
            self._telemetry.log_error(
                f"Security audit failed: {str(e)}", {"audit_id": audit_id}
            )
            raise

        self._reports.append(report)
        persisted = await self._persistence.write_json(
            StoreKeys.REPORTS, [r.to_record() for r in self._reports]
        )
        self._audit_trail_ok = persisted.is_ok()
        if persisted.is_err():
            logger.warning("Audit report not persisted: %s", persisted.err_value)

        self._telemetry.log_info(
            "Security audit completed",
            {
                "audit_id": audit_id,
                "overall_score": report.overall_score,
                "duration_ms": report.duration_ms,
            },
        )
        return report

    @beartype
    def reports(self) -> list[AuditReport]:
        """Retained report history, oldest first."""
        return list(self._reports)

    @beartype
    def latest_report(self) -> AuditReport | None:
        """Most recent report, if any."""
        return self._reports[-1] if self._reports else None

    @beartype
    def check_compliance_status(
        self, standard: ComplianceStandard = ComplianceStandard.OWASP
    ) -> ComplianceStatus:
        """Compliance classification derived from the latest report."""
        latest = self.latest_report()
        if latest is None:
            return ComplianceStatus(
                standard=standard,
                level=ComplianceLevel.UNKNOWN,
                last_check_date=None,
                score=0.0,
                issues=["No compliance audit performed"],
            )

        issues: list[str] = []
        for result in latest.failed_checks:
            issues.extend(result.issues)

        return ComplianceStatus(
            standard=standard,
            level=compliance_level(latest.overall_score),
            last_check_date=latest.timestamp,
            score=latest.overall_score,
            issues=issues,
        )
