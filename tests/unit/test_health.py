"""Unit tests for security health classification."""

from datetime import timedelta

import pytest

from policy_guard.context import SecurityContext
from policy_guard.models.security import SecurityHealthStatus, ViolationType
from policy_guard.security.health import classify_health


class TestClassifyHealth:
    """Test the status ladder."""

    @pytest.mark.parametrize(
        ("integrity", "recent", "expected"),
        [
            (True, 0, SecurityHealthStatus.SECURE),
            (True, 1, SecurityHealthStatus.CAUTION),
            (True, 5, SecurityHealthStatus.CAUTION),
            (True, 6, SecurityHealthStatus.WARNING),
            (True, 10, SecurityHealthStatus.WARNING),
            (True, 11, SecurityHealthStatus.CRITICAL),
            (False, 0, SecurityHealthStatus.CRITICAL),
        ],
    )
    def test_thresholds(
        self, integrity: bool, recent: int, expected: SecurityHealthStatus
    ) -> None:
        """Test each boundary of the classification."""
        assert classify_health(integrity, recent) is expected


class TestHealthMonitor:
    """Test health report production."""

    @pytest.mark.asyncio
    async def test_counts_recent_and_total(self, context: SecurityContext) -> None:
        """Test old violations count toward the total only."""
        await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS)
        context.clock.advance(timedelta(hours=25))
        await context.ledger.record(ViolationType.UNAUTHORIZED_ACCESS)

        report = await context.health.check()

        assert report.recent_violations_count == 1
        assert report.total_violations_count == 2
        assert report.overall_status is SecurityHealthStatus.CAUTION
        assert report.last_check_timestamp == context.clock.now()
        assert context.health.last_report == report

    @pytest.mark.asyncio
    async def test_reflects_policy(self, context: SecurityContext) -> None:
        """Test policy flags are copied onto the report."""
        report = await context.health.check()

        assert report.encryption_enabled is False
        assert report.certificate_pinning_enabled is False
        assert report.integrity_check_passed is True
        assert report.system_health_score is None
