# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Exception taxonomy for the security engine."""


class PolicyGuardError(Exception):
    """Base class for all engine errors."""


class SecurityError(PolicyGuardError):
    """Generic security fault, including stale or invalid ciphertext."""


class EncryptionError(SecurityError):
    """Cipher failure or an encryption policy that cannot be honored."""


class IntegrityError(SecurityError):
    """Application fingerprint does not match the stored baseline.

    The verifier reports mismatches as critical violations; this type exists
    for callers that want to escalate a failed verification themselves.
    """


class PersistenceError(PolicyGuardError):
    """Key-value store read or write failed or timed out."""
