"""Request metrics middleware feeding the system health score."""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.metrics import RequestMetricsCollector


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Records latency and status of every served request."""

    def __init__(self, app: Any, collector: RequestMetricsCollector) -> None:
        """Initialize middleware with the collector to feed."""
        super().__init__(app)
        self.collector = collector

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Time the request; unhandled errors count as 500s."""
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            await self.collector.record((time.perf_counter() - start_time) * 1000, 500)
            raise

        await self.collector.record(
            (time.perf_counter() - start_time) * 1000, response.status_code
        )
        return response
