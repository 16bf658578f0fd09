"""fitsync API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import Settings, get_settings
from src.fitsync.adapters import get_provider
from src.fitsync.base import FitnessProvider
from src.fitsync.config_loader import get_sync_config, load_sync_config
from src.fitsync.sync import SyncCoordinator
from src.routers import health, sync

# ---------- Logging ----------

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("fitsync")


# ---------- Wiring ----------

def build_provider(settings: Settings) -> FitnessProvider:
    """Instantiate the configured provider from settings."""
    provider_cls = get_provider(settings.provider)
    return provider_cls(
        client_id=settings.google_fit_client_id,
        client_secret=settings.google_fit_client_secret,
        refresh_token=settings.google_fit_refresh_token,
    )


def build_coordinator(settings: Settings) -> SyncCoordinator:
    config = (
        load_sync_config(Path(settings.sync_config_path))
        if settings.sync_config_path
        else get_sync_config()
    )
    return SyncCoordinator(build_provider(settings), config=config)


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting %s API v%s [%s] with provider %s",
        settings.app_name,
        settings.app_version,
        settings.environment,
        settings.provider,
    )
    coordinator = getattr(app.state, "coordinator", None) or build_coordinator(settings)
    app.state.coordinator = coordinator
    if settings.sync_autostart:
        await coordinator.start()
    yield
    await coordinator.stop()
    logger.info("fitsync API shut down")


# ---------- App factory ----------

def create_app(coordinator: SyncCoordinator | None = None) -> FastAPI:
    """Build the app.  Pass ``coordinator`` to skip building one from settings."""
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description=(
            "Polling sync client for a remote fitness data provider — "
            "today's steps, heart rate and SpO2."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    if coordinator is not None:
        app.state.coordinator = coordinator

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(sync.router, prefix=v1_prefix)

    return app


app = create_app()
