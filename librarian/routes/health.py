"""
Health check route for the Librarian backend.

This endpoint is PUBLIC (no authentication required) and never touches the
catalog store or the model backend.
"""

from fastapi import APIRouter

from librarian.schemas.health import HealthResponse
from librarian.utils.logging import get_logger

logger = get_logger(__name__)

# Mounted at root level in main.py
router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description=(
        "Public health check endpoint (no authentication required). "
        "Returns a simple status indicator for monitoring and load balancing."
    ),
    status_code=200,
    tags=["system"],
)
async def health_check() -> HealthResponse:
    """
    Public health check endpoint.

    Example response:
        {
            "status": "ok",
            "service": "librarian-backend"
        }
    """
    logger.debug("Health check endpoint called")

    return HealthResponse()
