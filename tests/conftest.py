"""Test configuration and fixtures for the PolicyGuard engine.

Every engine test runs against a :class:`SecurityContext` built with an
in-memory store, a manually advanced clock and recording telemetry and
analytics sinks, so time windows and emitted events can be asserted exactly.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from policy_guard.context import SecurityContext
from policy_guard.core.config import Settings, clear_settings_cache
from policy_guard.core.storage import (
    KeyValueStore,
    MemoryStore,
    PersistenceGateway,
    RedisStore,
)
from policy_guard.main import create_app
from policy_guard.security.violations import ViolationLedger

START_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now


class RecordingTelemetry:
    """Telemetry sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any] | None]] = []

    def log_info(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self.events.append(("info", message, metadata))

    def log_warning(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self.events.append(("warning", message, metadata))

    def log_error(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self.events.append(("error", message, metadata))

    def log_critical(
        self, message: str, metadata: dict[str, Any] | None = None
    ) -> None:
        self.events.append(("critical", message, metadata))

    def messages(self, level: str) -> list[str]:
        return [message for lvl, message, _ in self.events if lvl == level]


class RecordingAnalytics:
    """Analytics sink that keeps every named event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def log_event(self, name: str, parameters: dict[str, Any]) -> None:
        self.events.append((name, parameters))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Keep the cached settings singleton out of test state."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at a fixed UTC instant."""
    return ManualClock()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    """Recording telemetry sink."""
    return RecordingTelemetry()


@pytest.fixture
def analytics() -> RecordingAnalytics:
    """Recording analytics sink."""
    return RecordingAnalytics()


@pytest.fixture
def settings() -> Settings:
    """Development settings with a cheap key derivation."""
    return Settings(environment="development", encryption_kdf_iterations=10000)


@pytest.fixture
def memory_store() -> MemoryStore:
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def ledger(clock: ManualClock, telemetry: RecordingTelemetry) -> ViolationLedger:
    """Standalone violation ledger over an in-memory store."""
    return ViolationLedger(
        environment="development",
        app_version="1.0.0-DEVELOPMENT",
        persistence=PersistenceGateway(MemoryStore()),
        clock=clock,
        telemetry=telemetry,
    )


@pytest.fixture
def build_context(
    clock: ManualClock,
    telemetry: RecordingTelemetry,
    analytics: RecordingAnalytics,
    memory_store: MemoryStore,
) -> Callable[..., SecurityContext]:
    """Factory for contexts sharing the test's clock, sinks and store."""

    def _build(
        settings: Settings | None = None,
        *,
        store: KeyValueStore | None = None,
        **adapters: Any,
    ) -> SecurityContext:
        return SecurityContext.build(
            settings or Settings(encryption_kdf_iterations=10000),
            store=store or memory_store,
            clock=clock,
            telemetry=telemetry,
            analytics=analytics,
            **adapters,
        )

    return _build


@pytest_asyncio.fixture  # type: ignore[misc]
async def context(
    settings: Settings, build_context: Callable[..., SecurityContext]
) -> AsyncGenerator[SecurityContext, None]:
    """Initialized development context."""
    ctx = build_context(settings)
    await ctx.initialize()
    yield ctx
    await ctx.shutdown()


@pytest_asyncio.fixture  # type: ignore[misc]
async def fake_redis() -> AsyncGenerator[FakeAsyncRedis, None]:
    """In-process Redis double."""
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client


@pytest.fixture
def redis_store(fake_redis: FakeAsyncRedis) -> RedisStore:
    """Redis store backed by fakeredis."""
    return RedisStore(redis_client=fake_redis)


@pytest.fixture
def test_app(context: SecurityContext) -> FastAPI:
    """Operator API bound to the initialized test context."""
    return create_app(context=context, start_scheduler=False)


@pytest_asyncio.fixture  # type: ignore[misc]
async def async_test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the operator API."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
