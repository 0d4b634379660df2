# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Security primitives: policy, encryption, integrity, violations and sessions."""

from .certificates import CertificatePinRegistry
from .encryption import EncryptionGateway
from .health import SecurityHealthMonitor
from .integrity import IntegrityVerifier
from .policy_store import PolicyStore
from .rate_limit import RateLimiter
from .session import SessionManager
from .violations import ViolationLedger

__all__ = [
    "CertificatePinRegistry",
    "EncryptionGateway",
    "SecurityHealthMonitor",
    "IntegrityVerifier",
    "PolicyStore",
    "RateLimiter",
    "SessionManager",
    "ViolationLedger",
]
