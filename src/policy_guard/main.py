"""PolicyGuard - operator API application module."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI

from .api.middleware import RequestMetricsMiddleware
from .api.v1 import router as v1_router
from .context import SecurityContext
from .core.config import Settings, get_settings
from .core.logging_utils import configure_logging
from .core.telemetry import LoggingAnalyticsSink
from .monitoring.metrics import RequestMetricsCollector

logger = logging.getLogger(__name__)


@beartype
def create_app(
    settings: Settings | None = None,
    context: SecurityContext | None = None,
    *,
    start_scheduler: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to build the engine from; defaults to the cached
            environment settings.
        context: Pre-built engine; built from ``settings`` when omitted.
        start_scheduler: Start periodic monitoring during the lifespan.

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or (context.settings if context else get_settings())
    collector = RequestMetricsCollector()
    if context is None:
        context = SecurityContext.build(
            settings,
            analytics=LoggingAnalyticsSink(),
            request_metrics=collector,
        )
    elif context.request_metrics is not None:
        collector = context.request_metrics

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Initialize the engine on startup and release it on shutdown."""
        logger.info("Starting %s in %s mode", settings.app_name, settings.environment)
        await context.initialize()
        if start_scheduler:
            context.scheduler.start()

        yield

        logger.info("Shutting down %s", settings.app_name)
        await context.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="Security compliance auditing, alerting and incident tracking",
        version=settings.app_version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.security_context = context

    app.add_middleware(RequestMetricsMiddleware, collector=collector)
    app.include_router(v1_router)

    return app


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()
    configure_logging(level=logging.DEBUG if settings.debug else logging.INFO)

    uvicorn.run(
        "policy_guard.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="info" if not settings.is_production else "error",
    )


if __name__ == "__main__":
    main()
