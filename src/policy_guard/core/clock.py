# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Wall-clock abstraction consumed by every time-windowed component."""

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from beartype import beartype


@runtime_checkable
class Clock(Protocol):
    """Source of timezone-aware UTC timestamps."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the host's wall clock."""

    @beartype
    def now(self) -> datetime:
        """Current UTC time."""
        return datetime.now(timezone.utc)


@beartype
def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime."""
    return int(moment.timestamp() * 1000)


@beartype
def from_epoch_millis(millis: int) -> datetime:
    """Inverse of :func:`epoch_millis` (UTC)."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
