"""Unit tests for rate limiting, certificate pinning and expiry sources."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from policy_guard.context import SecurityContext
from policy_guard.core.config import Settings
from policy_guard.models.security import ViolationType
from policy_guard.security.certificates import (
    StaticCertificateStatusProvider,
    spki_pin,
)

GOOD_PIN = "sha256/AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="
BACKUP_PIN = "sha256/BBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBB="


class TestRateLimiter:
    """Test the sliding-window request limiter."""

    @pytest.mark.asyncio
    async def test_disabled_policy_allows_everything(
        self, context: SecurityContext
    ) -> None:
        """Test development never throttles."""
        assert context.rate_limiter.enabled is False
        for _ in range(2000):
            assert await context.rate_limiter.allow("/api/v1/quotes") is True
        assert context.ledger.all() == []

    @pytest.mark.asyncio
    async def test_over_limit_records_violation(
        self, build_context: Callable[..., SecurityContext]
    ) -> None:
        """Test the request past the limit is refused and recorded."""
        ctx = build_context(
            Settings(
                rate_limiting_enabled=True,
                max_requests_per_minute=3,
                encryption_kdf_iterations=10000,
            )
        )
        await ctx.initialize()

        allowed = [await ctx.rate_limiter.allow("/login") for _ in range(4)]

        assert allowed == [True, True, True, False]
        violations = ctx.ledger.all()
        assert len(violations) == 1
        assert violations[0].type is ViolationType.RATE_LIMIT_EXCEEDED
        assert violations[0].details == {"endpoint": "/login", "limit": 3}

    @pytest.mark.asyncio
    async def test_window_slides(
        self, build_context: Callable[..., SecurityContext]
    ) -> None:
        """Test capacity returns once old requests leave the window."""
        ctx = build_context(
            Settings(
                rate_limiting_enabled=True,
                max_requests_per_minute=2,
                encryption_kdf_iterations=10000,
            )
        )
        await ctx.initialize()

        assert await ctx.rate_limiter.allow("/login") is True
        assert await ctx.rate_limiter.allow("/login") is True
        assert await ctx.rate_limiter.allow("/other") is True
        assert await ctx.rate_limiter.allow("/login") is False

        ctx.clock.advance(timedelta(minutes=1))

        assert await ctx.rate_limiter.allow("/login") is True

    @pytest.mark.asyncio
    async def test_reset(self, build_context: Callable[..., SecurityContext]) -> None:
        """Test reset clears an endpoint's history."""
        ctx = build_context(
            Settings(
                rate_limiting_enabled=True,
                max_requests_per_minute=1,
                encryption_kdf_iterations=10000,
            )
        )
        await ctx.initialize()

        assert await ctx.rate_limiter.allow("/login") is True
        ctx.rate_limiter.reset("/login")

        assert await ctx.rate_limiter.allow("/login") is True


class TestCertificatePinning:
    """Test per-host pin verification."""

    @pytest.fixture
    def pinned_settings(self) -> Settings:
        """Settings with pinning on and one pinned host."""
        return Settings(
            certificate_pinning_enabled=True,
            certificate_pins={"api.example.com": [GOOD_PIN, BACKUP_PIN]},
            encryption_kdf_iterations=10000,
        )

    @pytest.mark.asyncio
    async def test_matching_pin(
        self,
        build_context: Callable[..., SecurityContext],
        pinned_settings: Settings,
    ) -> None:
        """Test a pinned hash passes, including the backup pin."""
        ctx = build_context(pinned_settings)
        await ctx.initialize()

        assert ctx.pins.enabled is True
        assert await ctx.pins.verify("api.example.com", GOOD_PIN) is True
        assert await ctx.pins.verify("api.example.com", BACKUP_PIN) is True

    @pytest.mark.asyncio
    async def test_mismatch_is_violation(
        self,
        build_context: Callable[..., SecurityContext],
        pinned_settings: Settings,
    ) -> None:
        """Test an unexpected hash fails and is reported as critical."""
        ctx = build_context(pinned_settings)
        await ctx.initialize()

        assert await ctx.pins.verify("api.example.com", "sha256/forged") is False

        violations = ctx.ledger.all()
        assert [v.type for v in violations] == [ViolationType.CERTIFICATE_PINNING]
        assert (
            "Certificate pin validation failed for host: api.example.com"
            in ctx.telemetry.messages("critical")  # type: ignore[attr-defined]
        )

    @pytest.mark.asyncio
    async def test_unpinned_host_fails_without_violation(
        self,
        build_context: Callable[..., SecurityContext],
        pinned_settings: Settings,
    ) -> None:
        """Test a host with no pins is refused with a warning only."""
        ctx = build_context(pinned_settings)
        await ctx.initialize()

        assert await ctx.pins.verify("cdn.example.com", GOOD_PIN) is False
        assert ctx.ledger.all() == []

    @pytest.mark.asyncio
    async def test_disabled_policy_passes(self, context: SecurityContext) -> None:
        """Test verification is skipped when the policy disables pinning."""
        assert await context.pins.verify("api.example.com", "sha256/anything") is True
        assert context.pins.enabled is False


class TestSpkiPin:
    """Test pin derivation from a certificate."""

    def test_pin_format(self) -> None:
        """Test the pin is a base64 SHA-256 digest with the sha256/ prefix."""
        key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "api.example.com")])
        certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(datetime(2026, 1, 1, tzinfo=timezone.utc))
            .not_valid_after(datetime(2027, 1, 1, tzinfo=timezone.utc))
            .sign(key, hashes.SHA256())
        )

        pin = spki_pin(certificate)

        assert pin.startswith("sha256/")
        assert len(pin) == len("sha256/") + 44
        assert spki_pin(certificate) == pin


class TestStaticCertificateStatus:
    """Test the configured expiry source."""

    @pytest.mark.asyncio
    async def test_reports_configured_expiry(self, context: SecurityContext) -> None:
        """Test the status is stamped with the current time."""
        provider = StaticCertificateStatusProvider(
            host="api.example.com",
            expires_in_days=3,
            issuer="Example CA",
            clock=context.clock,
        )

        status = await provider.check()

        assert status.valid is True
        assert status.expires_in_days == 3
        assert status.last_checked == context.clock.now()

    @pytest.mark.asyncio
    async def test_expired_certificate_invalid(self, context: SecurityContext) -> None:
        """Test a zero-day horizon reports an invalid certificate."""
        provider = StaticCertificateStatusProvider(
            host="api.example.com",
            expires_in_days=0,
            issuer="Example CA",
            clock=context.clock,
        )

        assert (await provider.check()).valid is False
