# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Symmetric cipher primitive behind the encryption gateway."""

import base64
from typing import Protocol, runtime_checkable

from beartype import beartype
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import EncryptionError, SecurityError


@runtime_checkable
class SymmetricCipher(Protocol):
    """Bytes-in, bytes-out cipher keyed by a passphrase."""

    def encrypt(self, data: bytes, key: str) -> bytes: ...

    def decrypt(self, data: bytes, key: str) -> bytes: ...


class FernetCipher:
    """Authenticated encryption using Fernet with PBKDF2-derived keys."""

    def __init__(
        self, salt: bytes = b"policy_guard_envelope_salt", iterations: int = 100000
    ) -> None:
        self._salt = salt
        self._iterations = iterations
        self._fernets: dict[str, Fernet] = {}

    def _fernet(self, key: str) -> Fernet:
        """Derive (once per passphrase) the Fernet instance for a key."""
        fernet = self._fernets.get(key)
        if fernet is None:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=self._salt,
                iterations=self._iterations,
            )
            derived = kdf.derive(key.encode())
            fernet = Fernet(base64.urlsafe_b64encode(derived))
            self._fernets[key] = fernet
        return fernet

    @beartype
    def encrypt(self, data: bytes, key: str) -> bytes:
        """Encrypt bytes with the passphrase-derived key."""
        if not key:
            raise EncryptionError("Encryption key must not be empty")
        return self._fernet(key).encrypt(data)

    @beartype
    def decrypt(self, data: bytes, key: str) -> bytes:
        """Decrypt a Fernet token; tampered or foreign tokens are rejected."""
        if not key:
            raise EncryptionError("Encryption key must not be empty")
        try:
            return self._fernet(key).decrypt(data)
        except InvalidToken as e:
            raise SecurityError("Ciphertext failed authentication") from e
