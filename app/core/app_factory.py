"""Application factory for the rug visualizer.

Centralizes app construction (metadata, middleware, handlers, routers,
static mounts and background housekeeping) so tests can build a fresh app.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.routes import admin_router, catalog_router, health_router, visualize_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.services.visualizer_service import cleanup_old_temp_files

logger = logging.getLogger(__name__)


async def _sweep_temp_dir() -> None:
    removed = await run_in_threadpool(
        cleanup_old_temp_files,
        settings.app.temp_dir,
        settings.app.temp_max_age_seconds,
    )
    logger.debug("temp_cleanup.sweep", extra={"removed": removed})


async def _periodic_temp_cleanup(interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await _sweep_temp_dir()
        except Exception:
            logger.exception("temp_cleanup.failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Sweep stale temp uploads at startup, then hourly until shutdown."""
    await _sweep_temp_dir()
    task = asyncio.create_task(
        _periodic_temp_cleanup(settings.app.temp_cleanup_interval_seconds)
    )
    logger.info("app.started", extra={"app_env": settings.app_env})
    try:
        yield
    finally:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("app.stopped")


def _cors_origins() -> list[str]:
    return [o.strip() for o in settings.app.cors_allow_origins.split(",") if o.strip()]


def _mount_static(app: FastAPI) -> None:
    # /temp must stay reachable: the generation webhook downloads uploads from it
    settings.app.temp_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/temp", StaticFiles(directory=settings.app.temp_dir), name="temp")

    if settings.app.images_dir.is_dir():
        app.mount("/images", StaticFiles(directory=settings.app.images_dir), name="images")

    # Mounted last so it never shadows API routes
    if settings.app.public_dir.is_dir():
        app.mount(
            "/",
            StaticFiles(directory=settings.app.public_dir, html=True),
            name="public",
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rug Visualizer API",
        description=(
            "Backend for the rug visualization wizard: accepts a room photo and a "
            "rug photo, forwards them to the image-generation webhook and returns "
            "a composite 'rug placed in room' image. Each visitor is limited to a "
            "daily number of successful generations, tracked by cookie and IP."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=settings.app.cors_allow_origins.strip() != "*",
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(visualize_router)
    app.include_router(catalog_router)
    app.include_router(admin_router)
    app.include_router(health_router)

    _mount_static(app)

    # OpenAPI customizations (admin cookie scheme, tags)
    apply_openapi_customizations(app)

    return app
