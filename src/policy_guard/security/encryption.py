# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Timestamped envelope encryption over a symmetric cipher.

Plaintext is wrapped as ``<epoch-ms>:<nonce>:<payload>`` before encryption.
On decrypt the envelope timestamp is checked against a max-age window so that
replayed or long-lived ciphertext is rejected.
"""

import logging
import secrets
from datetime import datetime, timedelta

from beartype import beartype

from ..core.cipher import SymmetricCipher
from ..core.clock import Clock, epoch_millis, from_epoch_millis
from ..core.errors import EncryptionError, SecurityError
from ..core.telemetry import TelemetrySink
from ..models.security import ViolationType
from .policy_store import PolicyStore
from .violations import ViolationLedger

logger = logging.getLogger(__name__)

_NONCE_BYTES = 16


class EncryptionGateway:
    """Encrypts and decrypts strings inside a timestamp+nonce envelope."""

    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        cipher: SymmetricCipher,
        ledger: ViolationLedger,
        clock: Clock,
        telemetry: TelemetrySink,
        default_key: str = "",
        max_age: timedelta = timedelta(hours=24),
    ) -> None:
        self._policy_store = policy_store
        self._cipher = cipher
        self._ledger = ledger
        self._clock = clock
        self._telemetry = telemetry
        self._default_key = default_key
        self._max_age = max_age

    @property
    def key_configured(self) -> bool:
        """Whether a default encryption key is available."""
        return bool(self._default_key)

    def _resolve_key(self, key: str | None) -> str:
        resolved = key or self._default_key
        if resolved:
            return resolved
        if self._policy_store.policy.encryption_required:
            raise EncryptionError("Encryption is required but no key is configured")
        raise EncryptionError("No encryption key available")

    @beartype
    async def encrypt(self, plaintext: str, key: str | None = None) -> str:
        """Envelope and encrypt ``plaintext``.

        Raises:
            EncryptionError: If no key can be resolved or the cipher fails.
        """
        resolved = self._resolve_key(key)
        nonce = secrets.token_urlsafe(_NONCE_BYTES)
        envelope = f"{epoch_millis(self._clock.now())}:{nonce}:{plaintext}"

        try:
            token = self._cipher.encrypt(envelope.encode("utf-8"), resolved)
        except EncryptionError:
            raise
        except Exception as e:
            raise EncryptionError(f"Cipher failed to encrypt data: {str(e)}") from e

        self._telemetry.log_info(
            "Data encrypted",
            {"payload_length": len(plaintext), "policy_required": self._required()},
        )
        return token.decode("ascii")

    @beartype
    async def decrypt(self, ciphertext: str, key: str | None = None) -> str:
        """Decrypt and unwrap ciphertext produced by :meth:`encrypt`.

        Text that decrypts but carries no parseable envelope is returned as is.

        Raises:
            SecurityError: If the cipher rejects the input or the envelope is
                older than the max-age window.
        """
        resolved = self._resolve_key(key)

        try:
            text = self._cipher.decrypt(ciphertext.encode("ascii"), resolved).decode(
                "utf-8"
            )
        except Exception as e:
            await self._ledger.record(
                ViolationType.DECRYPTION_FAILURE,
                {"reason": type(e).__name__, "ciphertext_length": len(ciphertext)},
            )
            raise SecurityError("Failed to decrypt data") from e

        issued_at = self._envelope_timestamp(text)
        if issued_at is None:
            logger.warning("Decrypted payload has no envelope; returning it unchanged")
            return text

        if self._clock.now() - issued_at > self._max_age:
            self._telemetry.log_warning(
                "Rejected stale encrypted data",
                {"issued_at": issued_at.isoformat()},
            )
            raise SecurityError("stale data")

        return text.split(":", 2)[2]

    @staticmethod
    def _envelope_timestamp(text: str) -> datetime | None:
        parts = text.split(":", 2)
        stamp = parts[0]
        if len(parts) < 3 or not (stamp.isascii() and stamp.isdigit()):
            return None
        try:
            return from_epoch_millis(int(stamp))
        except (ValueError, OverflowError, OSError):
            return None

    @beartype
    async def probe_round_trip(self) -> bool:
        """Encrypt and decrypt a sample value with the default key."""
        if not self.key_configured:
            return False
        sample = "policy-guard-probe"
        token = await self.encrypt(sample)
        return await self.decrypt(token) == sample

    def _required(self) -> bool:
        return self._policy_store.policy.encryption_required
