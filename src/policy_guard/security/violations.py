# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Bounded, append-only ledger of security violations.

The in-memory deque is authoritative for the running process; every write is
mirrored to the ``violation-log`` record on a best-effort basis. Reads hand
out list copies so a monitoring cycle never iterates a collection that is
being appended to.
"""

import asyncio
import logging
from collections import deque
from datetime import timedelta
from typing import Any

from beartype import beartype

from ..core.clock import Clock
from ..core.storage import PersistenceGateway, StoreKeys
from ..core.telemetry import TelemetrySink, log_at_severity
from ..models.security import Severity, Violation, ViolationType

logger = logging.getLogger(__name__)

DEFAULT_SEVERITIES: dict[ViolationType, Severity] = {
    ViolationType.CERTIFICATE_PINNING: Severity.ERROR,
    ViolationType.UNAUTHORIZED_ACCESS: Severity.ERROR,
    ViolationType.AUTHENTICATION_FAILURE: Severity.WARNING,
    ViolationType.INTEGRITY_MISMATCH: Severity.CRITICAL,
    ViolationType.RATE_LIMIT_EXCEEDED: Severity.WARNING,
    ViolationType.DECRYPTION_FAILURE: Severity.ERROR,
    ViolationType.UNSAFE_INPUT: Severity.WARNING,
}


class ViolationLedger:
    """Ring buffer of the most recent violations (oldest evicted first)."""

    def __init__(
        self,
        *,
        environment: str,
        app_version: str,
        persistence: PersistenceGateway,
        clock: Clock,
        telemetry: TelemetrySink,
        limit: int = 100,
    ) -> None:
        self._environment = environment
        self._app_version = app_version
        self._persistence = persistence
        self._clock = clock
        self._telemetry = telemetry
        self._limit = limit
        self._entries: deque[Violation] = deque(maxlen=limit)
        self._lock = asyncio.Lock()

    @property
    def limit(self) -> int:
        """Maximum number of retained violations."""
        return self._limit

    def __len__(self) -> int:
        return len(self._entries)

    @beartype
    async def load(self) -> int:
        """Restore persisted violations; returns how many were loaded."""
        result = await self._persistence.read_list(StoreKeys.VIOLATIONS)
        if result.is_err():
            logger.warning("Violation log not restored: %s", result.err_value)
            return 0

        restored = Violation.from_records(result.unwrap())

        async with self._lock:
            self._entries.clear()
            self._entries.extend(restored[-self._limit :])
        return len(self._entries)

    @beartype
    async def record(
        self,
        violation_type: ViolationType,
        details: dict[str, Any] | None = None,
        severity: Severity | None = None,
    ) -> Violation:
        """Append a violation stamped with the current time and identity."""
        violation = Violation(
            timestamp=self._clock.now(),
            type=violation_type,
            details=details or {},
            environment=self._environment,
            app_version=self._app_version,
            severity=severity or DEFAULT_SEVERITIES[violation_type],
        )

        async with self._lock:
            self._entries.append(violation)
            payload = [entry.to_record() for entry in self._entries]
            persisted = await self._persistence.write_json(
                StoreKeys.VIOLATIONS, payload
            )

        if persisted.is_err():
            logger.warning("Violation log not persisted: %s", persisted.err_value)

        log_at_severity(
            self._telemetry,
            violation.severity,
            f"Security violation: {violation_type.value}",
            {
                "type": violation_type.value,
                "severity": violation.severity.value,
                "details": violation.details,
                "environment": self._environment,
            },
        )
        return violation

    @beartype
    def recent(self, within: timedelta) -> list[Violation]:
        """Violations with ``now - timestamp < within``."""
        now = self._clock.now()
        return [entry for entry in list(self._entries) if now - entry.timestamp < within]

    @beartype
    def all(self) -> list[Violation]:
        """Snapshot of every retained violation, oldest first."""
        return list(self._entries)
