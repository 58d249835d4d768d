"""
Hifz Tracker API

FastAPI application: memorization progress logging, group mastery sheets,
weekly sessions and learner statistics.

Run:
    uvicorn hifz.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hifz import __version__
from hifz.config import settings
from hifz.db.base import engine, init_db
from hifz.middleware import setup_error_handling, setup_rate_limiting
from hifz.routers import (
    activity_router,
    groups_router,
    health_router,
    mastery_router,
    statistics_router,
)

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Configure root logging and quiet noisy libraries."""
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if not debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} {__version__} started")
    yield
    await engine.dispose()
    logger.info(f"{settings.APP_NAME} stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware and routers."""
    setup_logging(settings.LOG_LEVEL, settings.DEBUG)

    app = FastAPI(title=settings.APP_NAME, version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app, debug=settings.DEBUG)
    setup_rate_limiting(app, enabled=settings.RATE_LIMIT_ENABLED)

    app.include_router(health_router.router)
    app.include_router(mastery_router.router)
    app.include_router(statistics_router.router)
    app.include_router(activity_router.router)
    app.include_router(groups_router.router)
    return app


app = create_app()
