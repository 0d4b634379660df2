# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Session tokens, failed-login lockout and input screening.

The manager tracks a single active session (the host application's signed-in
user) and per-identifier failed attempts.
"""

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Final

from attrs import define, field
from beartype import beartype

from ..core.clock import Clock
from ..models.security import ViolationType
from .violations import ViolationLedger

logger = logging.getLogger(__name__)

_TOKEN_BYTES: Final = 32

_UNSAFE_INPUT_PATTERNS: Final = [
    re.compile(r"'|;|--|/\*|\|\|?", re.IGNORECASE),
    re.compile(
        r"\b(select|insert|update|delete|drop|create|alter|exec|execute)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(union|join|where|having|group by|order by)\b", re.IGNORECASE),
    re.compile(
        r"<\s*script|javascript:|vbscript:|\bon(load|error|click)\s*=", re.IGNORECASE
    ),
]


@define
class _ActiveSession:
    token: str = field()
    created_at: datetime = field()
    last_activity: datetime = field()


@define
class _FailedAttempts:
    count: int = field(default=0)
    locked_until: datetime | None = field(default=None)


class SessionManager:
    """Session lifecycle and brute-force lockout."""

    def __init__(
        self,
        *,
        clock: Clock,
        ledger: ViolationLedger,
        timeout_enabled: bool,
        timeout: timedelta,
        max_duration: timedelta = timedelta(hours=8),
        max_failed_attempts: int = 5,
        lockout_duration: timedelta = timedelta(minutes=15),
    ) -> None:
        self._clock = clock
        self._ledger = ledger
        self._timeout_enabled = timeout_enabled
        self._timeout = timeout
        self._max_duration = max_duration
        self._max_failed_attempts = max_failed_attempts
        self._lockout_duration = lockout_duration
        self._session: _ActiveSession | None = None
        self._failures: dict[str, _FailedAttempts] = {}

    @property
    def timeout_enabled(self) -> bool:
        """Whether idle sessions expire."""
        return self._timeout_enabled

    @property
    def lockout_configured(self) -> bool:
        """Whether repeated failures lock the account."""
        return self._max_failed_attempts > 0 and self._lockout_duration > timedelta(0)

    @beartype
    def generate_session_token(self) -> str:
        """Start a new session and return its token."""
        now = self._clock.now()
        token = secrets.token_urlsafe(_TOKEN_BYTES)
        self._session = _ActiveSession(token=token, created_at=now, last_activity=now)
        return token

    @beartype
    def validate_session(self, token: str) -> bool:
        """Check the token and refresh activity; expired sessions are dropped."""
        session = self._session
        if session is None or not secrets.compare_digest(session.token, token):
            return False

        now = self._clock.now()
        if self._timeout_enabled and now - session.last_activity > self._timeout:
            logger.info("Session expired after inactivity")
            self.invalidate_session()
            return False

        if now - session.created_at > self._max_duration:
            logger.info("Session exceeded maximum duration")
            self.invalidate_session()
            return False

        session.last_activity = now
        return True

    @beartype
    def probe_round_trip(self) -> bool:
        """Generate and validate a throwaway token, keeping the active session."""
        active = self._session
        try:
            token = self.generate_session_token()
            return self.validate_session(token)
        finally:
            self._session = active

    @beartype
    def invalidate_session(self) -> None:
        """Forget the active session."""
        self._session = None

    @beartype
    async def record_failed_attempt(self, identifier: str) -> bool:
        """Count a failed login; returns True if the account is now locked."""
        attempts = self._failures.setdefault(identifier, _FailedAttempts())
        attempts.count += 1

        await self._ledger.record(
            ViolationType.AUTHENTICATION_FAILURE,
            {"identifier": identifier, "attempt": attempts.count},
        )

        if attempts.count >= self._max_failed_attempts:
            attempts.locked_until = self._clock.now() + self._lockout_duration
            logger.warning(
                "Account locked after %d failed attempts",
                attempts.count,
                extra={"identifier": identifier},
            )
            return True
        return False

    @beartype
    def is_account_locked(self, identifier: str) -> bool:
        """Whether the identifier is inside an active lockout window."""
        attempts = self._failures.get(identifier)
        if attempts is None or attempts.locked_until is None:
            return False
        if self._clock.now() >= attempts.locked_until:
            self.clear_failed_attempts(identifier)
            return False
        return True

    @beartype
    def clear_failed_attempts(self, identifier: str) -> None:
        """Reset the failure counter (e.g. after a successful login)."""
        self._failures.pop(identifier, None)

    @beartype
    def remaining_lockout_minutes(self, identifier: str) -> int:
        """Whole minutes left in the lockout, rounded up; 0 when unlocked."""
        if not self.is_account_locked(identifier):
            return 0
        locked_until = self._failures[identifier].locked_until
        if locked_until is None:
            return 0
        remaining = locked_until - self._clock.now()
        return max(0, -(-int(remaining.total_seconds()) // 60))

    @staticmethod
    @beartype
    def is_input_safe(text: str) -> bool:
        """Screen free text for SQL-injection and script patterns."""
        if not text:
            return True
        return not any(pattern.search(text) for pattern in _UNSAFE_INPUT_PATTERNS)

    @beartype
    async def screen_input(self, text: str, source: str = "unknown") -> bool:
        """Like :meth:`is_input_safe` but records unsafe input as a violation."""
        if self.is_input_safe(text):
            return True
        await self._ledger.record(
            ViolationType.UNSAFE_INPUT,
            {"source": source, "length": len(text)},
        )
        return False
