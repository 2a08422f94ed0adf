"""
FastAPI application entry point for the Librarian backend.

This module creates the FastAPI app instance and registers all routers.
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from librarian.config import settings
from librarian.routes.health import router as health_router
from librarian.routes.recommendations import router as recommendations_router

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    """
    Get allowed CORS origins based on environment.

    - ENVIRONMENT=production: Uses CORS_ALLOWED_ORIGINS (comma-separated)
    - Any other environment: Allows all origins for local development

    Returns:
        List of allowed origin URLs, or ["*"] for development.
    """
    if settings.is_production():
        origins = settings.CORS_ALLOWED_ORIGINS
        if origins:
            logger.info(f"CORS configured for production with {len(origins)} allowed origins")
        else:
            logger.warning(
                "CORS_ALLOWED_ORIGINS not set in production. "
                "No web origins allowed. Set CORS_ALLOWED_ORIGINS for the web client."
            )
        return origins

    logger.info(f"CORS configured for {settings.ENVIRONMENT}: allowing all origins")
    return ["*"]


# Create FastAPI app
app = FastAPI(
    title="Librarian API",
    description="Catalog-grounded book recommendations for the library web app",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Log detailed validation errors for debugging.

    The body is not echoed to logs: it may contain the reader's query.
    """
    logger.error(
        f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "details": jsonable_errors(exc),
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. exception objects) from errors."""
    return [
        {key: value for key, value in err.items() if key in ("type", "loc", "msg")}
        for err in exc.errors()
    ]


# Configure CORS with environment-based origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Register routers
app.include_router(health_router)
app.include_router(recommendations_router)

logger.info("FastAPI app initialized successfully")
