"""
FastAPI application entry point for the credential service.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import structlog
import uvicorn

from .core.config import settings
from .core.database import close_db_connections, DatabaseHealthCheck
from .core.exceptions import CredentialError
from .core.middleware import SecurityHeadersMiddleware, RequestTrackingMiddleware
from .api.auth import router as auth_router
from .container import initialize_container, reset_container


# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.DEBUG if settings.DEBUG else logging.INFO
    ),
    logger_factory=structlog.WriteLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting credential service", version=settings.VERSION, environment=settings.ENVIRONMENT)

    try:
        await initialize_container()
        yield
    finally:
        logger.info("Shutting down credential service")
        reset_container()
        await close_db_connections()
        logger.info("Credential service shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description="Session credential issuance, rotation and self-service recovery",
    version=settings.VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestTrackingMiddleware)


@app.exception_handler(CredentialError)
async def credential_exception_handler(request: Request, exc: CredentialError):
    """Translate credential failures into their status and code."""
    logger.info(
        "Credential request rejected",
        status_code=exc.status_code,
        error_code=exc.code.value,
        path=request.url.path
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    logger.warning("Validation error", path=request.url.path)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": jsonable_errors(exc),
            "error_code": "VALIDATION_ERROR"
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the submitted values, which may hold passwords."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.get("/health", tags=["health"])
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "credential-service", "version": settings.VERSION}


@app.get("/ready", tags=["health"])
async def readiness_check():
    """Readiness check with database validation."""
    database_ready = await DatabaseHealthCheck.check_connection()
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if database_ready else "not_ready",
            "checks": {"database": database_ready},
            "service": "credential-service",
            "version": settings.VERSION
        }
    )


app.include_router(auth_router)


def create_app() -> FastAPI:
    """Factory function to create the FastAPI app."""
    return app


def run_dev():
    """Run development server."""
    uvicorn.run(
        "credential_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="debug" if settings.DEBUG else "info"
    )


def run_prod():
    """Run production server."""
    uvicorn.run(
        "credential_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
        workers=1,
        access_log=False
    )


if __name__ == "__main__":
    if settings.DEBUG:
        run_dev()
    else:
        run_prod()
