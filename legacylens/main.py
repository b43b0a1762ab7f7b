"""
FastAPI application entry point.
"""

import secrets
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from legacylens import __version__
from legacylens.api.deps import container
from legacylens.api.v1 import health, jobs
from legacylens.core.config import settings
from legacylens.core.constants import API_PREFIX
from legacylens.core.exceptions import LegacyLensError
from legacylens.core.logging import LogContext, get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.
    Starts the stage workers and releases clients on shutdown.
    """
    logger.info(
        "Starting LegacyLens",
        app_name=settings.app_name,
        env=settings.app_env,
        job_store=settings.job_store.backend,
    )

    await container.start()
    logger.info("Service container started")

    yield

    logger.info("Shutting down LegacyLens")
    await container.shutdown()


# Create FastAPI application
app = FastAPI(
    title="LegacyLens API",
    description="Chunks legacy codebases, infers business intent and plans their migration",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def bind_request_id(request: Request, call_next: Any) -> Any:
    """Tag every log event of a request with its request ID."""
    request_id = request.headers.get("X-Request-ID") or f"req_{secrets.token_hex(8)}"
    with LogContext(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Exception handlers
@app.exception_handler(LegacyLensError)
async def legacylens_error_handler(
    request: Request,
    exc: LegacyLensError,
) -> JSONResponse:
    """Handle application errors."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application error",
        error_code=exc.code,
        error_message=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception(
        "Unexpected error",
        error=str(exc),
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# Include routers
app.include_router(health.router, prefix=API_PREFIX, tags=["Health"])
app.include_router(jobs.router, prefix=API_PREFIX, tags=["Jobs"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else "Disabled in production",
    }


# API info endpoint
@app.get("/api")
async def api_info() -> dict[str, Any]:
    """API information endpoint."""
    return {
        "name": "LegacyLens API",
        "version": __version__,
        "prefix": API_PREFIX,
        "endpoints": {
            "health": f"{API_PREFIX}/health",
            "ingest": f"{API_PREFIX}/jobs/ingest",
            "jobs": f"{API_PREFIX}/jobs/{{job_id}}",
        },
    }


def main() -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "legacylens.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
