"""
FastAPI application factory

Settings are resolved once, then every process-wide object (database,
RevenueCat client, cipher, services, rate limiter, scheduler) is built in
the lifespan and stored on app.state.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leaderboard.api.router import api_router
from leaderboard.core.config import Settings, load_settings
from leaderboard.core.database import Database
from leaderboard.core.encryption import CredentialCipher
from leaderboard.core.rate_limit import FixedWindowRateLimiter
from leaderboard.core.scheduler import BackgroundScheduler
from leaderboard.schemas.common import ErrorResponse, HealthResponse
from leaderboard.services.metrics_refresh_service import MetricsRefreshService
from leaderboard.services.registration_service import RegistrationService
from leaderboard.services.revenuecat_service import RevenueCatService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("leaderboard").setLevel(level)
    # httpx logs request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    database = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    if settings.DATABASE_AUTO_CREATE:
        await database.create_all()

    cipher = CredentialCipher(settings.ENCRYPTION_KEY)
    revenuecat_service = RevenueCatService(
        base_url=settings.REVENUECAT_API_BASE_URL,
        timeout=settings.REVENUECAT_TIMEOUT_SECONDS
    )
    refresh_service = MetricsRefreshService(
        database.session_factory,
        revenuecat_service,
        cipher,
        max_concurrency=settings.REFRESH_MAX_CONCURRENCY
    )
    scheduler = BackgroundScheduler(
        refresh_service,
        database.session_factory,
        hour=settings.REFRESH_CRON_HOUR,
        minute=settings.REFRESH_CRON_MINUTE
    )

    app.state.database = database
    app.state.revenuecat_service = revenuecat_service
    app.state.refresh_service = refresh_service
    app.state.registration_service = RegistrationService(
        database.session_factory, revenuecat_service, cipher
    )
    app.state.scheduler = scheduler
    app.state.rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.REGISTRATION_RATE_LIMIT,
        window_seconds=settings.REGISTRATION_RATE_WINDOW_SECONDS
    )

    if settings.SCHEDULER_ENABLED:
        await scheduler.start()

    logger.info(f"{settings.APP_NAME} {settings.VERSION} started")
    try:
        yield
    finally:
        await scheduler.stop()
        await revenuecat_service.close()
        await database.dispose()
        logger.info(f"{settings.APP_NAME} stopped")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report the first validation problem as a 400 with a readable message"""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        message = str(errors[0].get("msg", message))
        # pydantic prefixes messages raised from validators
        message = message.removeprefix("Value error, ")

    body = ErrorResponse(error=message, details={"errors": len(errors)})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body.model_dump(mode="json")
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors in the same envelope as every other error response"""
    body = ErrorResponse(error=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json"),
        headers=getattr(exc, "headers", None)
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; raises ConfigurationError when required settings are missing"""
    settings = settings or load_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.include_router(api_router)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        scheduler = getattr(request.app.state, "scheduler", None)
        return HealthResponse(
            status="healthy",
            version=settings.VERSION,
            scheduler=scheduler.get_job_status()["status"] if scheduler else "stopped"
        )

    return app
