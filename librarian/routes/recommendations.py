"""
FastAPI routes for the book recommendation endpoint.

This module is a thin transport adapter: it resolves the caller, hands the
query to the shared recommendation pipeline, and maps classified failures
onto HTTP responses. All validation and parsing lives in
librarian/services/recommendation_service.py.

Endpoints:
- POST /recommendations: Recommend up to 3 catalog books for a free-text query
"""

import functools
import logging
from typing import Annotated, Union

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from librarian.auth.dependencies import Requestor, get_requestor
from librarian.db.client import get_supabase_client
from librarian.schemas.recommendations import (
    RecommendationErrorResponse,
    RecommendationQueryRequest,
    RecommendationResponse,
)
from librarian.services.errors import ModelRateLimitedError, RecommendationError
from librarian.services.recommendation_service import generate_recommendations

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/recommendations",
    tags=["recommendations"]
)


def error_response(error: RecommendationError) -> JSONResponse:
    """Map a classified pipeline failure onto its HTTP response."""
    headers = None
    if isinstance(error, ModelRateLimitedError):
        headers = {"Retry-After": str(error.retry_after)}

    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response_body(),
        headers=headers,
    )


@router.post(
    "",
    response_model=RecommendationResponse,
    status_code=status.HTTP_200_OK,
    summary="Recommend books from the catalog",
    responses={
        400: {"model": RecommendationErrorResponse, "description": "Query missing, blank, or too long"},
        401: {"description": "Authorization header present but token invalid"},
        403: {"model": RecommendationErrorResponse, "description": "Model access denied"},
        429: {"model": RecommendationErrorResponse, "description": "Model rate limit exceeded"},
        500: {"model": RecommendationErrorResponse, "description": "Catalog unavailable or unusable model output"},
    },
    description="""
    Recommends up to 3 books from the library catalog for a free-text query.

    **Authentication:** Optional (Bearer token). Anonymous callers are allowed;
    the caller id is used for logging only.

    **Flow:**
    1. Query is validated (required, max 1000 characters)
    2. The current catalog snapshot is read
    3. Gemini is asked to recommend only books from that snapshot
    4. The JSON in the model output is extracted, validated and bounded

    **Responses:**
    - 200 with recommendations
    - 200 with `recommendations: []` and `message` when nothing matches
    - 4xx/5xx with `{error, details?}` (see responses)
    """
)
async def recommend_books_endpoint(
    request: RecommendationQueryRequest,
    requestor: Annotated[Requestor, Depends(get_requestor)],
) -> Union[RecommendationResponse, JSONResponse]:
    """
    Recommendation endpoint.

    - Auth: Optional, handled by get_requestor dependency
    - Parse: Pydantic RecommendationQueryRequest (query validated by pipeline)
    - Pipeline: generate_recommendations (single Gemini call, no retries)
    - Map output: classified errors -> status codes
    """
    logger.info(f"POST /recommendations called by requestor_id={requestor.requestor_id}")

    try:
        response = await generate_recommendations(
            client_factory=functools.partial(get_supabase_client, requestor.access_token),
            query_text=request.query,
            requestor_id=requestor.requestor_id,
        )
    except RecommendationError as e:
        return error_response(e)

    logger.info(f"Returning {len(response.recommendations)} recommendations")
    return response
