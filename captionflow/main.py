import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from captionflow.api import (
    beta,
    billing,
    brand_voices,
    captions,
    health,
    optimizer,
    research,
    schedule,
    social,
    user,
    waitlist,
)
from captionflow.core.config import Settings, settings as default_settings, validate_config
from captionflow.core.database import Database
from captionflow.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from captionflow.core.logging import configure_logging
from captionflow.core.middleware.request_id import RequestIdMiddleware
from captionflow.features.billing.provider import BillingProvider
from captionflow.features.billing.stripe_provider import StripeProvider
from captionflow.features.captions.parser import CaptionParser
from captionflow.features.llm.client import GenerationClient, GroqGenerationClient

logger = logging.getLogger("captionflow")


def create_app(
    settings: Optional[Settings] = None,
    *,
    db: Optional[Database] = None,
    llm: Optional[GenerationClient] = None,
    billing_provider: Optional[BillingProvider] = None,
    caption_parser: Optional[CaptionParser] = None,
) -> FastAPI:
    """Build the application with explicitly constructed collaborators.

    Anything not passed in is built from settings. The LLM and billing
    clients are left unset when their keys are missing; routes needing
    them then fail with a 500 instead of the app failing to start.
    """
    cfg = settings or default_settings
    configure_logging(cfg.ENV)
    validate_config(settings_obj=cfg)

    if llm is None and cfg.GROQ_API_KEY:
        llm = GroqGenerationClient.from_settings(cfg)
    if billing_provider is None and cfg.STRIPE_SECRET_KEY:
        billing_provider = StripeProvider.from_settings(cfg)
    owns_db = db is None
    database = db or Database(cfg.DATABASE_URL, echo=cfg.DATABASE_ECHO)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting CaptionFlow backend...")
        app.state.startup_time = time.time()
        database.create_all()
        try:
            yield
        finally:
            if owns_db:
                database.dispose()
            logger.info("Stopping CaptionFlow backend...")

    app = FastAPI(title="CaptionFlow API", lifespan=lifespan)
    app.state.settings = cfg
    app.state.db = database
    app.state.llm = llm
    app.state.billing = billing_provider
    app.state.caption_parser = caption_parser

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(captions.router, prefix="/api")
    app.include_router(brand_voices.router, prefix="/api")
    app.include_router(schedule.router, prefix="/api")
    app.include_router(research.router, prefix="/api")
    app.include_router(optimizer.router, prefix="/api")
    app.include_router(social.router, prefix="/api")
    app.include_router(billing.router, prefix="/api")
    app.include_router(user.router, prefix="/api")
    app.include_router(waitlist.router, prefix="/api")
    app.include_router(beta.router, prefix="/api")
    app.include_router(health.root_router)

    return app


app = create_app()
