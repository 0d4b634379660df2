"""Unit tests for the violation ledger."""

from datetime import timedelta

import pytest

from policy_guard.context import SecurityContext
from policy_guard.core.storage import MemoryStore, PersistenceGateway, StoreKeys
from policy_guard.models.security import Severity, ViolationType
from policy_guard.security.violations import DEFAULT_SEVERITIES, ViolationLedger


class FailingWriteStore(MemoryStore):
    """Store that accepts reads but rejects writes."""

    async def set(self, key: str, value: str) -> None:
        raise ConnectionError("read-only replica")


class TestViolationLedger:
    """Test bounded recording and windowed reads."""

    @pytest.mark.asyncio
    async def test_record_stamps_identity(self, context: SecurityContext) -> None:
        """Test violations carry time, environment and version."""
        violation = await context.ledger.record(
            ViolationType.UNAUTHORIZED_ACCESS, {"path": "/admin"}
        )

        assert violation.timestamp == context.clock.now()
        assert violation.environment == "development"
        assert violation.app_version == "1.0.0-DEVELOPMENT"
        assert violation.details == {"path": "/admin"}
        assert violation.severity is Severity.ERROR

    @pytest.mark.asyncio
    async def test_default_severity_per_type(self, context: SecurityContext) -> None:
        """Test each type gets its default severity unless overridden."""
        failure = await context.ledger.record(ViolationType.AUTHENTICATION_FAILURE)
        overridden = await context.ledger.record(
            ViolationType.AUTHENTICATION_FAILURE, severity=Severity.CRITICAL
        )

        assert failure.severity is Severity.WARNING
        assert overridden.severity is Severity.CRITICAL
        assert set(DEFAULT_SEVERITIES) == set(ViolationType)

    @pytest.mark.asyncio
    async def test_oldest_evicted_past_limit(self, context: SecurityContext) -> None:
        """Test the ledger keeps only the most recent hundred entries."""
        for n in range(101):
            await context.ledger.record(ViolationType.RATE_LIMIT_EXCEEDED, {"n": n})

        retained = context.ledger.all()
        assert len(retained) == 100
        assert retained[0].details["n"] == 1
        assert retained[-1].details["n"] == 100

    @pytest.mark.asyncio
    async def test_recent_window(self, context: SecurityContext) -> None:
        """Test recent() only returns entries inside the window."""
        await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS, {"n": 1})
        context.clock.advance(timedelta(hours=2))
        await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS, {"n": 2})

        recent = context.ledger.recent(timedelta(hours=1))

        assert [v.details["n"] for v in recent] == [2]
        assert len(context.ledger.all()) == 2

    @pytest.mark.asyncio
    async def test_window_boundary_is_exclusive(self, context: SecurityContext) -> None:
        """Test an entry exactly one window old is not recent."""
        await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS)
        context.clock.advance(timedelta(minutes=10))

        assert context.ledger.recent(timedelta(minutes=10)) == []

    @pytest.mark.parametrize(
        ("violation_type", "level"),
        [
            (ViolationType.CERTIFICATE_PINNING, "error"),
            (ViolationType.INTEGRITY_MISMATCH, "critical"),
            (ViolationType.RATE_LIMIT_EXCEEDED, "warning"),
        ],
    )
    @pytest.mark.asyncio
    async def test_record_emits_telemetry_at_severity(
        self, context: SecurityContext, violation_type: ViolationType, level: str
    ) -> None:
        """Test recording forwards telemetry at the violation's severity."""
        await context.ledger.record(violation_type)

        message = f"Security violation: {violation_type.value}"
        levels = [
            lvl
            for lvl, msg, _ in context.telemetry.events  # type: ignore[attr-defined]
            if msg == message
        ]
        assert levels == [level]

    @pytest.mark.asyncio
    async def test_explicit_severity_overrides_routing(
        self, context: SecurityContext
    ) -> None:
        """Test an explicit severity picks the telemetry level."""
        await context.ledger.record(
            ViolationType.UNSAFE_INPUT, severity=Severity.CRITICAL
        )

        assert "Security violation: UNSAFE_INPUT" in (
            context.telemetry.messages("critical")  # type: ignore[attr-defined]
        )

    @pytest.mark.asyncio
    async def test_persisted_and_restored(self, context: SecurityContext) -> None:
        """Test a fresh ledger restores the persisted log."""
        await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS, {"n": 1})
        await context.ledger.record(ViolationType.AUTHENTICATION_FAILURE, {"n": 2})

        restored = ViolationLedger(
            environment="development",
            app_version="1.0.0-DEVELOPMENT",
            persistence=context.persistence,
            clock=context.clock,
            telemetry=context.telemetry,
        )

        assert await restored.load() == 2
        assert [v.type for v in restored.all()] == [
            ViolationType.UNAUTHORIZED_ACCESS,
            ViolationType.AUTHENTICATION_FAILURE,
        ]

    @pytest.mark.asyncio
    async def test_malformed_records_skipped(self, context: SecurityContext) -> None:
        """Test unreadable entries are dropped on restore."""
        good = await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS)
        await context.persistence.write_json(
            StoreKeys.VIOLATIONS,
            [{"type": "NOT_A_TYPE"}, good.model_dump(mode="json")],
        )

        assert await context.ledger.load() == 1

    @pytest.mark.asyncio
    async def test_store_failure_keeps_entry(self, context: SecurityContext) -> None:
        """Test a failed write still keeps the violation in memory."""
        ledger = ViolationLedger(
            environment="development",
            app_version="1.0.0",
            persistence=PersistenceGateway(FailingWriteStore()),
            clock=context.clock,
            telemetry=context.telemetry,
        )

        await ledger.record(ViolationType.UNAUTHORIZED_ACCESS)

        assert len(ledger) == 1
