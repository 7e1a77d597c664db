"""
Architect Backend API - Main Application
"""

import traceback
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from architect import __version__
from architect.config import settings
from architect.database import close_db, init_db
from architect.exceptions import (
    AccountAlreadyExistsError,
    ArchitectError,
    CompletionServiceError,
    InsufficientCreditsError,
    ItemGenerationError,
    NotFoundError,
    PersistenceError,
)
from architect.logging_config import get_logger, setup_logging
from architect.routers import (
    accounts_router,
    conversations_router,
    projects_router,
    sequences_router,
    suites_router,
)
from architect.schemas.schemas import HealthResponse
from architect.services.completion import CompletionClient

# Initialize logging
setup_logging(log_level=settings.log_level, debug=settings.debug, log_file=settings.log_file)
logger = get_logger(__name__)

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=0.1,
        environment="development" if settings.debug else "production",
    )
    logger.info("sentry_initialized")


# First match wins; anything else derived from ArchitectError is a 400
ERROR_STATUS_CODES: list[tuple[type[ArchitectError], int]] = [
    (NotFoundError, 404),
    (InsufficientCreditsError, 402),
    (AccountAlreadyExistsError, 409),
    (CompletionServiceError, 502),
    (ItemGenerationError, 502),
    (PersistenceError, 500),
]


def status_code_for(exc: ArchitectError) -> int:
    for exc_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(
        "application_starting",
        debug=settings.debug,
        model=settings.claude_model,
    )

    await init_db()
    app.state.completion_client = CompletionClient.from_settings(settings)

    logger.info("application_started")

    yield

    logger.info("application_shutting_down")
    await app.state.completion_client.aclose()
    await close_db()
    logger.info("application_shutdown_complete")


app = FastAPI(
    title="Architect API",
    description="Requirements interview, blueprint suites and implementation prompt sequences",
    version=__version__,
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with full traceback."""
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(
        "unhandled_exception",
        traceback=tb_str,
        path=str(request.url.path),
        method=request.method,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_type": type(exc).__name__,
        },
    )


@app.exception_handler(ArchitectError)
async def architect_exception_handler(request: Request, exc: ArchitectError):
    """Map application exceptions to status codes."""
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "architect_error",
        error_type=type(exc).__name__,
        message=exc.message,
        details=exc.details,
        status_code=status_code,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_type": type(exc).__name__,
            "details": exc.details,
        },
    )


app.include_router(accounts_router)
app.include_router(projects_router)
app.include_router(conversations_router)
app.include_router(suites_router)
app.include_router(sequences_router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Architect API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health():
    return HealthResponse(status="healthy", version=__version__)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "architect.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
