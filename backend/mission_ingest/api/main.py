"""FastAPI application factory for the ingest surface."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from mission_ingest.api.health import router as health_router
from mission_ingest.api.ingest import router as ingest_router
from mission_ingest.core.config import ensure_startup_ready, settings
from mission_ingest.core.logging import configure_logging
from mission_ingest.db.session import dispose_engine, init_db


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    ensure_startup_ready(settings)
    configure_logging(level=settings.log_level, log_format=settings.log_format, use_utc=settings.log_use_utc)
    if settings.db_auto_create:
        await init_db()
    try:
        yield
    finally:
        await dispose_engine()


def create_app(*, with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(title="Mission Control Ingest", lifespan=lifespan if with_lifespan else None)
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(ingest_router)
    app.include_router(api_v1)
    app.include_router(health_router)
    return app


app = create_app()
