"""
Health check endpoint schemas.

The health endpoint is PUBLIC (no authentication required) and returns
a simple status indicator.
"""

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """
    Response model for GET /health endpoint.

    Used by load balancers, monitoring systems, and deployment checks.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"status": "ok", "service": "librarian-backend"}})

    status: str = Field(
        default="ok",
        description="Health status of the API (always 'ok' if responding)",
        examples=["ok"]
    )
    service: str = Field(
        default="librarian-backend",
        description="Service name",
        examples=["librarian-backend"]
    )
