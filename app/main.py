"""
Application entry point
"""
import logging
from contextlib import asynccontextmanager

from atams.db import Base
from atams.exceptions import setup_exception_handlers
from atams.logging import setup_logging_from_settings
from fastapi import FastAPI

from app.api.deps import get_verification_service
from app.api.v1.api import api_router
from app.core.config import settings
from app.db.session import SessionLocal, engine
from app.services.verification_service import VerificationSweeper
from app import models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    setup_logging_from_settings(settings)
    Base.metadata.create_all(bind=engine)

    sweeper = None
    if settings.VERIFICATION_SWEEP_ENABLED:
        sweeper = VerificationSweeper(
            get_verification_service(),
            SessionLocal,
            settings.VERIFICATION_SWEEP_INTERVAL_SECONDS,
        )
        sweeper.start()

    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    setup_exception_handlers(application)
    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return application


app = create_app()
