# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Certificate pinning and TLS certificate expiry sources."""

import asyncio
import base64
import hashlib
import logging
import ssl
from typing import Protocol, runtime_checkable

from beartype import beartype
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from ..core.clock import Clock
from ..core.telemetry import TelemetrySink
from ..models.security import CertificateStatus, ViolationType
from .policy_store import PolicyStore
from .violations import ViolationLedger

logger = logging.getLogger(__name__)


@beartype
def spki_pin(certificate: x509.Certificate) -> str:
    """``sha256/<base64>`` pin of the certificate's SubjectPublicKeyInfo."""
    spki = certificate.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashlib.sha256(spki).digest()
    return "sha256/" + base64.b64encode(digest).decode("ascii")


class CertificatePinRegistry:
    """Per-host SHA-256 public key pins."""

    def __init__(
        self,
        *,
        pins: dict[str, list[str]],
        policy_store: PolicyStore,
        ledger: ViolationLedger,
        telemetry: TelemetrySink,
    ) -> None:
        self._pins = {host: list(values) for host, values in pins.items()}
        self._policy_store = policy_store
        self._ledger = ledger
        self._telemetry = telemetry

    @property
    def enabled(self) -> bool:
        """True when at least one host has pins configured."""
        return any(self._pins.values())

    @beartype
    def pins_for(self, host: str) -> list[str]:
        """Configured pins for a host."""
        return list(self._pins.get(host, []))

    @beartype
    async def verify(self, host: str, certificate_hash: str) -> bool:
        """Check a presented certificate hash against the host's pins.

        Always passes when the policy disables pinning.
        """
        if not self._policy_store.policy.certificate_pinning_enabled:
            return True

        pins = self._pins.get(host)
        if not pins:
            self._telemetry.log_warning(
                f"No certificate pins configured for host: {host}", {"host": host}
            )
            return False

        if certificate_hash in pins:
            return True

        self._telemetry.log_critical(
            f"Certificate pin validation failed for host: {host}",
            {"host": host, "provided_hash": certificate_hash, "expected_pins": pins},
        )
        await self._ledger.record(
            ViolationType.CERTIFICATE_PINNING,
            {"host": host, "provided_hash": certificate_hash},
        )
        return False


@runtime_checkable
class CertificateStatusProvider(Protocol):
    """Source of the monitored certificate's expiry state."""

    async def check(self) -> CertificateStatus: ...


class StaticCertificateStatusProvider:
    """Reports a configured expiry horizon; used when no host is probed."""

    def __init__(
        self, *, host: str, expires_in_days: int, issuer: str, clock: Clock
    ) -> None:
        self._host = host
        self._expires_in_days = expires_in_days
        self._issuer = issuer
        self._clock = clock

    @beartype
    async def check(self) -> CertificateStatus:
        """Return the configured status stamped with the current time."""
        return CertificateStatus(
            host=self._host,
            valid=self._expires_in_days > 0,
            expires_in_days=self._expires_in_days,
            issuer=self._issuer,
            last_checked=self._clock.now(),
        )


class TLSCertificateProbe:
    """Connects to a host over TLS and reads the peer certificate's expiry."""

    def __init__(
        self, *, host: str, port: int = 443, clock: Clock, timeout: float = 10.0
    ) -> None:
        self._host = host
        self._port = port
        self._clock = clock
        self._timeout = timeout

    async def _fetch_certificate(self) -> x509.Certificate:
        context = ssl.create_default_context()
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(
                self._host, self._port, ssl=context, server_hostname=self._host
            ),
            timeout=self._timeout,
        )
        try:
            ssl_object = writer.get_extra_info("ssl_object")
            der = ssl_object.getpeercert(binary_form=True)
            return x509.load_der_x509_certificate(der)
        finally:
            writer.close()
            await writer.wait_closed()

    @beartype
    async def check(self) -> CertificateStatus:
        """Probe the host; raises on connection failure."""
        now = self._clock.now()
        try:
            certificate = await self._fetch_certificate()
        except ssl.SSLCertVerificationError as e:
            logger.error("TLS certificate for %s failed verification: %s", self._host, e)
            return CertificateStatus(
                host=self._host,
                valid=False,
                expires_in_days=0,
                issuer="",
                last_checked=now,
            )

        remaining = certificate.not_valid_after_utc - now
        issuers = certificate.issuer.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
        issuer = str(issuers[0].value) if issuers else certificate.issuer.rfc4514_string()

        return CertificateStatus(
            host=self._host,
            valid=remaining.total_seconds() > 0,
            expires_in_days=remaining.days,
            issuer=issuer,
            last_checked=now,
        )
