"""Unit tests for engine wiring and lifecycle."""

from collections.abc import Callable

import pytest

from policy_guard.context import SecurityContext
from policy_guard.core.config import Settings
from policy_guard.core.errors import SecurityError
from policy_guard.core.storage import MemoryStore, RedisStore
from policy_guard.models.security import ViolationType
from policy_guard.security.certificates import (
    StaticCertificateStatusProvider,
    TLSCertificateProbe,
)
from policy_guard.security.policy_store import PolicyStore


class TestBuild:
    """Test adapter selection from settings."""

    def test_memory_store_by_default(self) -> None:
        """Test the default backend is process-local."""
        ctx = SecurityContext.build(Settings())

        assert isinstance(ctx.store, MemoryStore)
        assert ctx.initialized is False

    def test_redis_backend(self) -> None:
        """Test the redis backend is selected from settings."""
        ctx = SecurityContext.build(
            Settings(store_backend="redis", redis_url="redis://cache:6379/2")
        )

        assert isinstance(ctx.store, RedisStore)

    def test_certificate_source_selection(self) -> None:
        """Test a probe host switches from the static source to live TLS."""
        static = SecurityContext.build(Settings())
        probed = SecurityContext.build(Settings(ssl_probe_host="example.com"))

        assert isinstance(static.scheduler._certificates, StaticCertificateStatusProvider)
        assert isinstance(probed.scheduler._certificates, TLSCertificateProbe)


class TestPolicyStore:
    """Test policy loading."""

    def test_policy_before_load_raises(self) -> None:
        """Test reading the policy before startup is an error."""
        ctx = SecurityContext.build(Settings())

        with pytest.raises(SecurityError):
            _ = ctx.policy_store.policy

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self, context: SecurityContext) -> None:
        """Test repeated loads return the same policy object."""
        first = context.policy_store.policy

        assert await context.policy_store.load() is first

    def test_debug_builds_allow_debugging(self) -> None:
        """Test the debug flag maps onto the policy."""
        policy = PolicyStore.derive(Settings(debug=True))

        assert policy.debugging_allowed is True
        assert policy.max_session_duration == 480


class TestLifecycle:
    """Test initialize and shutdown."""

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, context: SecurityContext) -> None:
        """Test a second initialize is a no-op."""
        await context.initialize()

        assert context.initialized is True
        assert "Security monitoring service initialized successfully" in (
            context.telemetry.messages("info")  # type: ignore[attr-defined]
        )

    @pytest.mark.asyncio
    async def test_state_survives_restart_on_redis(
        self,
        build_context: Callable[..., SecurityContext],
        redis_store: RedisStore,
        settings: Settings,
    ) -> None:
        """Test violations, incidents and alerts are restored from Redis."""
        first = build_context(settings, store=redis_store)
        await first.initialize()
        for _ in range(5):
            await first.ledger.record(ViolationType.RATE_LIMIT_EXCEEDED)
        await first.incidents.detect()
        await first.auditor.audit()

        second = build_context(settings, store=redis_store)
        await second.initialize()

        assert len(second.ledger.all()) == 5
        assert len(second.incidents.incidents()) == 1
        assert len(second.alerts.alerts()) == 1
        assert len(second.auditor.reports()) == 1
