"""
FastAPI application initialization for the Meeting Bot orchestrator.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from meeting_bot.api.v1.router import api_router
from meeting_bot.bot.orchestrator import BotOrchestrator
from meeting_bot.calendar.google_calendar import GoogleCalendarGateway
from meeting_bot.config import settings
from meeting_bot.core.exceptions import ConfigurationError
from meeting_bot.core.logging import get_logger, setup_logging
from meeting_bot.meeting_handler.browser import BrowserManager
from meeting_bot.meeting_handler.router import create_default_router
from meeting_bot.scheduler.poll_scheduler import PollScheduler
from meeting_bot.storage.session_store import JsonSessionStore
from meeting_bot.storage.settings_store import IntegrationStore, WorkspaceSettingsStore

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the stores, calendar gateway, join router, scheduler and
    orchestrator; restore enabled bots; tear everything down on exit.
    """
    setup_logging()
    logger.info("Starting Meeting Bot API...")

    session_store = JsonSessionStore(settings.storage.sessions_db_path)
    settings_store = WorkspaceSettingsStore(settings.storage.settings_db_path)
    integrations = IntegrationStore(settings.storage.integrations_db_path)

    browser = BrowserManager(settings.browser)
    join_router = create_default_router(browser, settings.browser)
    scheduler = PollScheduler(settings.scheduler)
    scheduler.start()

    orchestrator = BotOrchestrator(
        calendar=GoogleCalendarGateway(integrations, settings),
        store=session_store,
        router=join_router,
        scheduler=scheduler,
        settings=settings,
    )
    app.state.orchestrator = orchestrator
    app.state.settings_store = settings_store

    if settings.restore_on_startup:
        await orchestrator.restore(settings_store)

    logger.info("Meeting Bot API started successfully")
    try:
        yield
    finally:
        logger.info("Shutting down Meeting Bot API...")
        await orchestrator.shutdown_all()
        await join_router.leave_all()
        scheduler.stop()
        await browser.stop()
        logger.info("Meeting Bot API shutdown complete")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Every error leaves the API as {"error": message}."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        )
        return _error_response(400, f"Invalid request: {details}")

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return _error_response(400, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}")
        return _error_response(500, "Internal server error")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="Per-workspace meeting bots that join calendar meetings automatically",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()

