"""Unit tests for the monitoring cycle and scheduler."""

import asyncio
import json
from collections.abc import Callable

import pytest

from policy_guard.context import SecurityContext
from policy_guard.core.config import Settings
from policy_guard.core.storage import MemoryStore, StoreKeys
from policy_guard.models.monitoring import AlertType, CycleSummary, IncidentType
from policy_guard.models.security import CertificateStatus, ViolationType


class FailingCertificates:
    """Certificate source whose probe always fails."""

    async def check(self) -> CertificateStatus:
        raise RuntimeError("probe down")


class TestRunCycle:
    """Test one monitoring cycle end to end."""

    @pytest.mark.asyncio
    async def test_quiet_cycle(
        self, context: SecurityContext, memory_store: MemoryStore
    ) -> None:
        """Test a clean development cycle raises nothing and stores status."""
        summary = await context.scheduler.run_cycle()

        assert summary.step_errors == {}
        assert summary.health_status == "secure"
        assert summary.compliance_level == "needs_improvement"
        assert summary.incidents_opened == 0
        assert summary.alerts_raised == 0
        assert summary.manual is False

        stored = json.loads(
            memory_store.snapshot()[f"policy_guard:{StoreKeys.COMPLIANCE_STATUS}"]
        )
        assert stored["level"] == "needs_improvement"
        assert len(context.auditor.reports()) == 1

    @pytest.mark.asyncio
    async def test_access_burst_cycle(self, context: SecurityContext) -> None:
        """Test six unauthorized accesses escalate to incidents and alerts."""
        for n in range(6):
            await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS, {"n": n})

        summary = await context.scheduler.run_cycle()

        assert summary.health_status == "warning"
        assert summary.incidents_opened == 2
        alert_types = [a.type for a in context.alerts.alerts()]
        assert AlertType.UNAUTHORIZED_ACCESS_PATTERN in alert_types
        assert alert_types.count(AlertType.SECURITY_INCIDENT_CREATED) == 2
        assert summary.alerts_raised == len(alert_types)

        access_incident = next(
            i
            for i in context.incidents.incidents()
            if i.type is IncidentType.UNAUTHORIZED_ACCESS_PATTERN
        )
        assert access_incident.affected_systems == ["authentication", "access_control"]

    @pytest.mark.asyncio
    async def test_failing_step_is_isolated(
        self, build_context: Callable[..., SecurityContext], settings: Settings
    ) -> None:
        """Test a failing step is recorded while the others still run."""
        ctx = build_context(settings, certificates=FailingCertificates())
        await ctx.initialize()

        summary = await ctx.scheduler.run_cycle()

        assert summary.step_errors == {"certificate_expiry": "probe down"}
        assert summary.health_status == "secure"
        assert summary.compliance_level == "needs_improvement"
        assert len(ctx.auditor.reports()) == 1

    @pytest.mark.asyncio
    async def test_expiring_certificate_alert(
        self, build_context: Callable[..., SecurityContext]
    ) -> None:
        """Test the configured certificate horizon feeds the expiry alert."""
        ctx = build_context(
            Settings(ssl_static_expiry_days=3, encryption_kdf_iterations=10000)
        )
        await ctx.initialize()

        await ctx.scheduler.run_cycle()

        messages = [a.message for a in ctx.alerts.alerts()]
        assert messages == ["SSL certificate expires in 3 days"]

    @pytest.mark.asyncio
    async def test_cycle_telemetry(self, context: SecurityContext) -> None:
        """Test each cycle reports its completion."""
        await context.scheduler.run_cycle()

        assert "Security monitoring cycle completed" in (
            context.telemetry.messages("info")  # type: ignore[attr-defined]
        )


class TestScheduling:
    """Test ticking, overlap handling and lifecycle."""

    @pytest.mark.asyncio
    async def test_tick_skipped_while_cycle_running(
        self, context: SecurityContext
    ) -> None:
        """Test a tick that overlaps a running cycle is skipped."""
        scheduler = context.scheduler

        async with scheduler._cycle_lock:
            assert await scheduler.tick() is None

        status = scheduler.status()
        assert status.cycles_skipped == 1
        assert status.cycles_completed == 0

    @pytest.mark.asyncio
    async def test_tick_runs_cycle(self, context: SecurityContext) -> None:
        """Test an idle tick runs a cycle."""
        summary = await context.scheduler.tick()

        assert summary is not None
        assert context.scheduler.status().cycles_completed == 1
        assert context.scheduler.status().last_cycle_at == summary.started_at

    @pytest.mark.asyncio
    async def test_manual_validation_waits(self, context: SecurityContext) -> None:
        """Test a manual validation queues behind a running cycle."""
        scheduler = context.scheduler

        await scheduler._cycle_lock.acquire()
        pending = asyncio.create_task(scheduler.perform_manual_validation())
        await asyncio.sleep(0)
        assert not pending.done()

        scheduler._cycle_lock.release()
        summary = await pending

        assert summary.manual is True
        assert scheduler.status().cycles_skipped == 0

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, context: SecurityContext) -> None:
        """Test starting twice keeps a single task, and stop ends it."""
        scheduler = context.scheduler

        scheduler.start()
        task = scheduler._task
        scheduler.start()

        assert scheduler._task is task
        assert scheduler.running is True
        assert scheduler.status().running is True

        await scheduler.stop()

        assert scheduler.running is False
        assert task is not None and task.done()

    @pytest.mark.asyncio
    async def test_failing_tick_keeps_timer_alive(
        self, context: SecurityContext, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a cycle that raises does not cancel later ticks."""
        scheduler = context.scheduler
        run_cycle = scheduler.run_cycle
        calls = 0

        async def flaky_cycle(manual: bool = False) -> CycleSummary:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("cycle crashed")
            return await run_cycle(manual)

        monkeypatch.setattr(scheduler, "run_cycle", flaky_cycle)
        monkeypatch.setattr(scheduler, "_interval", 0.05)

        scheduler.start()
        for _ in range(100):
            if scheduler.status().cycles_completed >= 2:
                break
            await asyncio.sleep(0.05)
        await scheduler.stop()

        assert calls >= 3
        assert scheduler.status().cycles_completed >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, context: SecurityContext) -> None:
        """Test stopping an idle scheduler is harmless."""
        await context.scheduler.stop()

        assert context.scheduler.running is False

    @pytest.mark.asyncio
    async def test_status_before_any_cycle(self, context: SecurityContext) -> None:
        """Test the initial status snapshot."""
        status = context.scheduler.status()

        assert status.initialized is True
        assert status.running is False
        assert status.interval_seconds == 120.0
        assert status.last_cycle_at is None
