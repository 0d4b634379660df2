# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Composition root for the security engine.

One :class:`SecurityContext` is built per process and handed to whatever needs
the engine (the operator API, a worker entry point, tests). There are no
module-level engine singletons.
"""

import logging
from datetime import timedelta

from attrs import define, field
from beartype import beartype

from .compliance.auditor import ComplianceAuditor
from .core.cipher import FernetCipher, SymmetricCipher
from .core.clock import Clock, SystemClock
from .core.config import Settings
from .core.storage import (
    KeyValueStore,
    MemoryStore,
    PersistenceGateway,
    RedisConfig,
    RedisStore,
)
from .core.telemetry import (
    AnalyticsSink,
    LoggingTelemetrySink,
    NullAnalyticsSink,
    TelemetrySink,
)
from .monitoring.alerts import AlertDispatcher
from .monitoring.incidents import IncidentManager
from .monitoring.metrics import HostMetricsSource, MetricsSource, RequestMetricsCollector
from .monitoring.scheduler import MonitoringScheduler
from .security.certificates import (
    CertificatePinRegistry,
    CertificateStatusProvider,
    StaticCertificateStatusProvider,
    TLSCertificateProbe,
)
from .security.encryption import EncryptionGateway
from .security.health import SecurityHealthMonitor
from .security.integrity import IntegrityVerifier
from .security.policy_store import PolicyStore
from .security.rate_limit import RateLimiter
from .security.session import SessionManager
from .security.violations import ViolationLedger

logger = logging.getLogger(__name__)


@define
class SecurityContext:
    """All engine components, wired together."""

    settings: Settings = field()
    store: KeyValueStore = field()
    persistence: PersistenceGateway = field()
    clock: Clock = field()
    telemetry: TelemetrySink = field()
    analytics: AnalyticsSink = field()
    policy_store: PolicyStore = field()
    ledger: ViolationLedger = field()
    encryption: EncryptionGateway = field()
    integrity: IntegrityVerifier = field()
    session: SessionManager = field()
    rate_limiter: RateLimiter = field()
    pins: CertificatePinRegistry = field()
    health: SecurityHealthMonitor = field()
    auditor: ComplianceAuditor = field()
    alerts: AlertDispatcher = field()
    incidents: IncidentManager = field()
    scheduler: MonitoringScheduler = field()
    request_metrics: RequestMetricsCollector | None = field(default=None)
    initialized: bool = field(default=False)

    @classmethod
    @beartype
    def build(
        cls,
        settings: Settings,
        *,
        store: KeyValueStore | None = None,
        clock: Clock | None = None,
        telemetry: TelemetrySink | None = None,
        analytics: AnalyticsSink | None = None,
        cipher: SymmetricCipher | None = None,
        certificates: CertificateStatusProvider | None = None,
        metrics: MetricsSource | None = None,
        request_metrics: RequestMetricsCollector | None = None,
    ) -> "SecurityContext":
        """Wire every component from settings and optional adapters."""
        clock = clock or SystemClock()
        telemetry = telemetry or LoggingTelemetrySink()
        analytics = analytics or NullAnalyticsSink()
        cipher = cipher or FernetCipher(
            salt=settings.encryption_salt.encode(),
            iterations=settings.encryption_kdf_iterations,
        )

        if store is None:
            if settings.store_backend == "redis":
                store = RedisStore(RedisConfig(url=settings.redis_url))
            else:
                store = MemoryStore()

        if metrics is None and request_metrics is not None:
            metrics = HostMetricsSource(request_metrics)

        profile = settings.security_profile
        persistence = PersistenceGateway(
            store,
            timeout_seconds=settings.persistence_timeout_seconds,
            prefix=settings.store_key_prefix,
        )
        policy_store = PolicyStore(settings, persistence)
        ledger = ViolationLedger(
            environment=settings.environment,
            app_version=settings.effective_app_version,
            persistence=persistence,
            clock=clock,
            telemetry=telemetry,
            limit=settings.violation_log_limit,
        )
        encryption = EncryptionGateway(
            policy_store=policy_store,
            cipher=cipher,
            ledger=ledger,
            clock=clock,
            telemetry=telemetry,
            default_key=settings.encryption_key,
            max_age=timedelta(hours=settings.envelope_max_age_hours),
        )
        integrity = IntegrityVerifier(
            app_version=settings.effective_app_version,
            bundle_id=settings.effective_bundle_id,
            environment=settings.environment,
            policy_store=policy_store,
            persistence=persistence,
            ledger=ledger,
        )
        session = SessionManager(
            clock=clock,
            ledger=ledger,
            timeout_enabled=profile.session_timeout_enabled,
            timeout=timedelta(minutes=profile.session_timeout_minutes),
            max_duration=timedelta(hours=settings.max_session_duration_hours),
            max_failed_attempts=settings.max_failed_attempts,
            lockout_duration=timedelta(minutes=settings.lockout_duration_minutes),
        )
        rate_limiter = RateLimiter(policy_store=policy_store, ledger=ledger, clock=clock)
        pins = CertificatePinRegistry(
            pins=settings.certificate_pins,
            policy_store=policy_store,
            ledger=ledger,
            telemetry=telemetry,
        )
        health = SecurityHealthMonitor(
            policy_store=policy_store,
            integrity=integrity,
            ledger=ledger,
            pins=pins,
            clock=clock,
            metrics=metrics,
        )
        auditor = ComplianceAuditor(
            settings=settings,
            policy_store=policy_store,
            session=session,
            encryption=encryption,
            health=health,
            persistence=persistence,
            telemetry=telemetry,
            clock=clock,
            history_limit=settings.report_history_limit,
        )
        alerts = AlertDispatcher(
            persistence=persistence,
            telemetry=telemetry,
            analytics=analytics,
            clock=clock,
        )
        incidents = IncidentManager(
            ledger=ledger,
            alerts=alerts,
            persistence=persistence,
            telemetry=telemetry,
            analytics=analytics,
            clock=clock,
        )

        if certificates is None:
            if settings.ssl_probe_host:
                certificates = TLSCertificateProbe(
                    host=settings.ssl_probe_host,
                    port=settings.ssl_probe_port,
                    clock=clock,
                )
            else:
                certificates = StaticCertificateStatusProvider(
                    host=settings.app_name,
                    expires_in_days=settings.ssl_static_expiry_days,
                    issuer=settings.ssl_issuer,
                    clock=clock,
                )

        scheduler = MonitoringScheduler(
            policy_store=policy_store,
            health=health,
            auditor=auditor,
            incidents=incidents,
            alerts=alerts,
            certificates=certificates,
            persistence=persistence,
            telemetry=telemetry,
            clock=clock,
            interval_seconds=settings.monitoring_interval_seconds,
            ssl_warning_days=settings.ssl_expiry_warning_days,
        )

        return cls(
            settings=settings,
            store=store,
            persistence=persistence,
            clock=clock,
            telemetry=telemetry,
            analytics=analytics,
            policy_store=policy_store,
            ledger=ledger,
            encryption=encryption,
            integrity=integrity,
            session=session,
            rate_limiter=rate_limiter,
            pins=pins,
            health=health,
            auditor=auditor,
            alerts=alerts,
            incidents=incidents,
            scheduler=scheduler,
            request_metrics=request_metrics,
        )

    @beartype
    async def initialize(self) -> None:
        """Load policy, restore persisted state and seed the integrity baseline.

        Policy and baseline failures are fatal: they are reported as critical
        and re-raised.
        """
        if self.initialized:
            return

        if isinstance(self.store, RedisStore):
            await self.store.connect()

        try:
            await self.policy_store.load()
            await self.integrity.establish_baseline()
        except Exception as e:
            self.telemetry.log_critical(
                f"Failed to initialize security monitoring: {str(e)}",
                {"environment": self.settings.environment},
            )
            raise

        await self.ledger.load()
        await self.auditor.load()
        await self.alerts.load()
        await self.incidents.load()

        self.initialized = True
        self.telemetry.log_info(
            "Security monitoring service initialized successfully",
            {"environment": self.settings.environment},
        )

    @beartype
    async def shutdown(self) -> None:
        """Stop the scheduler and release the store."""
        await self.scheduler.stop()
        if isinstance(self.store, RedisStore):
            await self.store.disconnect()
        self.initialized = False
