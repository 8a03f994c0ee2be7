"""
FastAPI application entry point for the back-office service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backoffice.config import get_settings
from backoffice.dependencies import get_submission_inbox
from backoffice.errors import BackofficeError
from backoffice.routes import backoffice_error_handler, router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Late inbox loads must not apply results after shutdown.
    get_submission_inbox().close()
    logger.info("Back-office service stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Staffing Back-office", version="0.1.0", lifespan=lifespan)
    app.include_router(router, prefix=settings.api_prefix)
    app.add_exception_handler(BackofficeError, backoffice_error_handler)
    return app


app = create_app()
