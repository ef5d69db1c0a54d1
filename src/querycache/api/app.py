"""FastAPI application factory for querycache.

Creates the application with:
- Change notification webhook (/webhooks/changes, /webhooks/health)
- Prometheus metrics endpoint (/metrics)
- Lifecycle management for the cache store connection
- Consistent {"success": false, "message": ...} error responses
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.responses import Response
from starlette.types import ExceptionHandler

from querycache.api.errors import (
    WebhookApiError,
    generic_exception_handler,
    webhook_api_exception_handler,
)
from querycache.api.webhook import router as webhook_router
from querycache.cache import QueryCache, close_redis, create_store
from querycache.cache.store import CacheStore
from querycache.config import Settings
from querycache.config import settings as default_settings
from querycache.events.ingester import ChangeNotificationIngester
from querycache.observability import configure_logging, get_metrics

logger = logging.getLogger(__name__)


def _wire(app: FastAPI, settings: Settings, store: CacheStore) -> None:
    """Build the cache components and attach them to app state."""
    query_cache = QueryCache(store, settings)
    app.state.store = store
    app.state.query_cache = query_cache
    app.state.ingester = ChangeNotificationIngester(query_cache.invalidation, settings)


def create_app(settings: Settings | None = None, store: CacheStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration (defaults to environment-derived settings)
        store: Cache store to use; when omitted one is created at startup
            from ``settings.cache_driver``
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(json_format=settings.log_json, level=settings.log_level)
        get_metrics(settings.enable_metrics)

        logger.info(f"Starting querycache ({settings.env})")
        if store is None:
            _wire(app, settings, await create_store(settings))

        yield

        logger.info("Shutting down querycache")
        await close_redis()

    app = FastAPI(
        title="querycache",
        description="Query result cache invalidation webhook",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if store is not None:
        _wire(app, settings, store)

    app.include_router(webhook_router)

    @app.get("/metrics", response_class=Response, tags=["observability"])
    async def prometheus_metrics() -> Response:
        """Return Prometheus metrics in exposition format."""
        content = get_metrics(settings.enable_metrics).generate_latest()
        return Response(content=content, media_type="text/plain; version=0.0.4; charset=utf-8")

    app.add_exception_handler(
        WebhookApiError, cast(ExceptionHandler, webhook_api_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    return app
