"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feed_aggregator.api.dependencies import (
    cleanup_dependencies,
    get_scheduler,
    init_dependencies,
)
from feed_aggregator.api.routes import feed, health, slack
from feed_aggregator.config.settings import get_settings
from feed_aggregator.config.sources import split_csv
from feed_aggregator.observability.logging import log_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Feed API starting up")

    await init_dependencies()
    if app.state.run_scheduler:
        get_scheduler().start(run_immediately=True)

    yield

    logger.info("Feed API shutting down")
    await cleanup_dependencies()


def create_app(run_scheduler: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        run_scheduler: Start the periodic merge loop with the app

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "feed", "description": "Feed read and manual refresh"},
        {"name": "slack", "description": "Operator-driven Slack delivery"},
    ]

    app = FastAPI(
        title="Feed Aggregator API",
        description="""
API over the merged Twitter / Reddit / GitHub feed.

## Authentication

`POST` routes require an `X-API-KEY` header when `API_KEYS` is set.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )
    app.state.run_scheduler = run_scheduler

    # Origins from CORS_ORIGINS env var, comma-separated
    app.add_middleware(
        CORSMiddleware,
        allow_origins=split_csv(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        start_time = time.perf_counter()

        with log_context(request_id=request_id):
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(feed.router, tags=["feed"])
    app.include_router(slack.router, tags=["slack"])

    return app
