from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api import router
from app.web import router as web_router
from datastore.factory import build_default_store
from logging_config import configure_logging
from services.dashboard import build_default_controller
from services.readings import build_default_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    controller = build_default_controller()
    controller.mount()
    try:
        yield
    finally:
        controller.teardown()
        controller.service.shutdown()
        controller.service.store.close()
        build_default_controller.cache_clear()
        build_default_service.cache_clear()
        build_default_store.cache_clear()
        logger.info("Signal monitor stopped")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Signal Monitor",
        description="Live signal-strength dashboard backed by a hosted realtime database.",
        version="0.1.0",
        lifespan=lifespan,
    )
    static_dir = Path(__file__).resolve().parent.parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
