# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Core infrastructure components for PolicyGuard."""

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .errors import (
    EncryptionError,
    IntegrityError,
    PersistenceError,
    PolicyGuardError,
    SecurityError,
)
from .result_types import Err, Ok, Result
from .storage import KeyValueStore, MemoryStore, PersistenceGateway, RedisStore

__all__ = [
    "Clock",
    "SystemClock",
    "Settings",
    "get_settings",
    "PolicyGuardError",
    "SecurityError",
    "EncryptionError",
    "IntegrityError",
    "PersistenceError",
    "Ok",
    "Err",
    "Result",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "PersistenceGateway",
]
