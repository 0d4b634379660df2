"""Request and host metrics feeding the system health score."""

import asyncio
import time
from collections import deque
from typing import Protocol, runtime_checkable

import psutil
from attrs import field, frozen
from beartype import beartype

from ..models.security import SystemMetrics


@frozen
class RequestSample:
    """Single served request."""

    duration_ms: float = field()
    status_code: int = field()
    timestamp: float = field()


class RequestMetricsCollector:
    """Bounded window of recent request samples."""

    def __init__(self, max_samples: int = 1000, window_seconds: float = 300.0) -> None:
        self.max_samples = max_samples
        self.window_seconds = window_seconds
        self._samples: deque[RequestSample] = deque(maxlen=max_samples)
        self._lock = asyncio.Lock()

    @beartype
    async def record(self, duration_ms: float, status_code: int) -> None:
        """Record one request outcome."""
        async with self._lock:
            self._samples.append(
                RequestSample(
                    duration_ms=duration_ms,
                    status_code=status_code,
                    timestamp=time.time(),
                )
            )

    @beartype
    async def summary(self) -> tuple[float, float]:
        """Return (error rate percent, mean latency ms) over the window."""
        async with self._lock:
            cutoff = time.time() - self.window_seconds
            recent = [s for s in self._samples if s.timestamp >= cutoff]

        if not recent:
            return 0.0, 0.0

        errors = sum(1 for s in recent if s.status_code >= 500)
        error_rate = errors / len(recent) * 100
        latency = sum(s.duration_ms for s in recent) / len(recent)
        return error_rate, latency

    @beartype
    async def reset(self) -> None:
        """Drop all samples."""
        async with self._lock:
            self._samples.clear()


@runtime_checkable
class MetricsSource(Protocol):
    """Produces a :class:`SystemMetrics` snapshot."""

    async def collect(self) -> SystemMetrics: ...


class HostMetricsSource:
    """CPU and memory from psutil, error rate and latency from served requests."""

    def __init__(self, collector: RequestMetricsCollector | None = None) -> None:
        self._collector = collector

    @beartype
    async def collect(self) -> SystemMetrics:
        """Take a snapshot without blocking the event loop."""
        error_rate, latency = 0.0, 0.0
        if self._collector is not None:
            error_rate, latency = await self._collector.summary()

        memory = psutil.virtual_memory()
        cpu_percent = psutil.cpu_percent(interval=None)

        return SystemMetrics(
            error_rate=min(float(error_rate), 100.0),
            api_response_time_ms=float(latency),
            cpu_usage=float(cpu_percent),
            memory_usage=float(memory.percent),
        )
