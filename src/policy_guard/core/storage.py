# PolicyGuard - Security Compliance Monitoring Engine
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Durable key-value store adapters and the persistence gateway.

The engine only needs ``get``/``set``/``remove`` on string values; records are
JSON blobs under fixed keys. :class:`PersistenceGateway` wraps any store with a
short timeout and turns failures into ``Err`` results so callers can log and
continue.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

import redis.asyncio as redis
from attrs import field, frozen
from beartype import beartype

from .result_types import Err, Ok, Result

if TYPE_CHECKING:
    from redis.asyncio import Redis as RedisType
else:
    RedisType = redis.Redis

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "PersistenceGateway",
    "StoreKeys",
]

logger = logging.getLogger(__name__)


class StoreKeys:
    """Fixed record identifiers."""

    POLICY: Final = "policy"
    FINGERPRINT: Final = "integrity-fingerprint"
    VIOLATIONS: Final = "violation-log"
    REPORTS: Final = "report-log"
    ALERTS: Final = "alert-log"
    INCIDENTS: Final = "incident-log"
    COMPLIANCE_STATUS: Final = "compliance-status"


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal async string store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, used by default and in tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    @beartype
    async def get(self, key: str) -> str | None:
        """Get value by key."""
        return self._data.get(key)

    @beartype
    async def set(self, key: str, value: str) -> None:
        """Store value under key."""
        self._data[key] = value

    @beartype
    async def remove(self, key: str) -> None:
        """Delete key if present."""
        self._data.pop(key, None)

    @beartype
    def snapshot(self) -> dict[str, str]:
        """Copy of the raw contents."""
        return dict(self._data)


@frozen
class RedisConfig:
    """Immutable Redis connection configuration."""

    url: str = field()
    max_connections: int = field(default=10)
    decode_responses: bool = field(default=True)


class RedisStore:
    """Redis-backed store.

    The constructor optionally accepts an *already-created*
    ``redis.asyncio.Redis`` instance, in which case :py:meth:`connect` is a
    no-op. This is how tests hand in a fakeredis client.
    """

    def __init__(
        self, config: RedisConfig | None = None, redis_client: RedisType | None = None
    ) -> None:
        self._config = config or RedisConfig(url="redis://localhost:6379/0")
        self._redis: RedisType | None = redis_client

    @beartype
    async def connect(self) -> None:
        """Create Redis connection pool."""
        if self._redis is not None:
            return

        self._redis = redis.from_url(
            self._config.url,
            max_connections=self._config.max_connections,
            decode_responses=self._config.decode_responses,
        )

    @beartype
    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis is None:
            return

        await self._redis.aclose()
        self._redis = None

    def _client(self) -> RedisType:
        if self._redis is None:
            raise RuntimeError("Redis store not connected")
        return self._redis

    @beartype
    async def get(self, key: str) -> str | None:
        """Get value from Redis."""
        value = await self._client().get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    @beartype
    async def set(self, key: str, value: str) -> None:
        """Set value in Redis without expiry."""
        await self._client().set(key, value)

    @beartype
    async def remove(self, key: str) -> None:
        """Delete key from Redis."""
        await self._client().delete(key)


class PersistenceGateway:
    """Timeout-bounded JSON access to a :class:`KeyValueStore`."""

    def __init__(
        self, store: KeyValueStore, *, timeout_seconds: float = 2.0, prefix: str = ""
    ) -> None:
        self._store = store
        self._timeout = timeout_seconds
        self._prefix = prefix

    @property
    def store(self) -> KeyValueStore:
        """Underlying store."""
        return self._store

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @beartype
    async def read_text(self, key: str) -> Result[str | None, str]:
        """Read a raw string value."""
        try:
            value = await asyncio.wait_for(
                self._store.get(self._key(key)), timeout=self._timeout
            )
            return Ok(value)
        except asyncio.TimeoutError:
            logger.warning("Store read timed out", extra={"key": key})
            return Err(f"Read of {key} timed out after {self._timeout}s")
        except Exception as e:
            logger.warning("Store read failed: %s", e, extra={"key": key})
            return Err(f"Read of {key} failed: {str(e)}")

    @beartype
    async def write_text(self, key: str, value: str) -> Result[None, str]:
        """Write a raw string value."""
        try:
            await asyncio.wait_for(
                self._store.set(self._key(key), value), timeout=self._timeout
            )
            return Ok(None)
        except asyncio.TimeoutError:
            logger.warning("Store write timed out", extra={"key": key})
            return Err(f"Write of {key} timed out after {self._timeout}s")
        except Exception as e:
            logger.warning("Store write failed: %s", e, extra={"key": key})
            return Err(f"Write of {key} failed: {str(e)}")

    @beartype
    async def read_json(self, key: str) -> Result[Any, str]:
        """Read and decode a JSON value (``None`` when absent)."""
        result = await self.read_text(key)
        if result.is_err():
            return result
        raw = result.unwrap()
        if raw is None:
            return Ok(None)
        try:
            return Ok(json.loads(raw))
        except (json.JSONDecodeError, TypeError) as e:
            logger.error("Corrupt record in store: %s", e, extra={"key": key})
            return Err(f"Record {key} is not valid JSON: {str(e)}")

    @beartype
    async def read_list(self, key: str) -> Result[list[Any], str]:
        """Read a JSON array, treating an absent key as empty."""
        result = await self.read_json(key)
        if result.is_err():
            return result
        value = result.unwrap()
        if value is None:
            return Ok([])
        if not isinstance(value, list):
            return Err(f"Record {key} is not a list")
        return Ok(value)

    @beartype
    async def write_json(self, key: str, value: Any) -> Result[None, str]:
        """Encode and write a JSON value."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            return Err(f"Record {key} is not JSON serializable: {str(e)}")
        return await self.write_text(key, payload)

    @beartype
    async def remove(self, key: str) -> Result[None, str]:
        """Remove a key."""
        try:
            await asyncio.wait_for(
                self._store.remove(self._key(key)), timeout=self._timeout
            )
            return Ok(None)
        except asyncio.TimeoutError:
            return Err(f"Remove of {key} timed out after {self._timeout}s")
        except Exception as e:
            return Err(f"Remove of {key} failed: {str(e)}")
