"""Per-endpoint sliding-window request limiter."""

import logging
from collections import deque
from datetime import datetime, timedelta

from beartype import beartype

from ..core.clock import Clock
from ..models.security import ViolationType
from .policy_store import PolicyStore
from .violations import ViolationLedger

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforces ``max_requests_per_minute`` from the active policy."""

    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        ledger: ViolationLedger,
        clock: Clock,
        window: timedelta = timedelta(minutes=1),
    ) -> None:
        self._policy_store = policy_store
        self._ledger = ledger
        self._clock = clock
        self._window = window
        self._requests: dict[str, deque[datetime]] = {}

    @property
    def enabled(self) -> bool:
        """Whether the policy turns limiting on."""
        return self._policy_store.policy.rate_limit_enabled

    @beartype
    async def allow(self, endpoint: str) -> bool:
        """Register a request; returns False (and records a violation) if over."""
        policy = self._policy_store.policy
        if not policy.rate_limit_enabled:
            return True

        now = self._clock.now()
        hits = self._requests.setdefault(endpoint, deque())
        while hits and now - hits[0] >= self._window:
            hits.popleft()

        if len(hits) >= policy.max_requests_per_minute:
            await self._ledger.record(
                ViolationType.RATE_LIMIT_EXCEEDED,
                {"endpoint": endpoint, "limit": policy.max_requests_per_minute},
            )
            return False

        hits.append(now)
        return True

    @beartype
    def reset(self, endpoint: str | None = None) -> None:
        """Forget request history for one endpoint or all of them."""
        if endpoint is None:
            self._requests.clear()
        else:
            self._requests.pop(endpoint, None)
