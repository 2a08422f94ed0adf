"""
Pydantic schemas for the book recommendation endpoint.

These models define the request/response contracts for the recommendation
pipeline powered by Gemini and grounded in the library catalog.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

NO_MATCH_MESSAGE = (
    "No relevant books found in our library for your query. "
    "Try a different search term or browse our available books."
)


# ============================================================================
# REQUEST MODELS
# ============================================================================

class RecommendationQueryRequest(BaseModel):
    """
    Request to get book recommendations for a free-text query.

    Length and emptiness are NOT enforced here: the pipeline validates the
    query itself so that violations surface as 400 with the constraint named,
    instead of a generic 422.
    """
    query: Optional[str] = Field(
        None,
        description="What the reader is looking for, in natural language (max 1000 characters)",
        examples=[
            "mystery with unreliable narrator",
            "something cozy for a rainy weekend"
        ]
    )


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class BookRecommendation(BaseModel):
    """
    A single validated recommendation.

    Title/author/reason are non-empty and confidence is within [0, 1].
    """
    title: str = Field(
        ...,
        description="Book title as named by the model",
        min_length=1,
        examples=["Gone Girl"]
    )
    author: str = Field(
        ...,
        description="Book author as named by the model",
        min_length=1,
        examples=["Gillian Flynn"]
    )
    reason: str = Field(
        ...,
        description="Why this book matches the query",
        min_length=1,
        examples=["A dark thriller told by two narrators you cannot fully trust."]
    )
    confidence: float = Field(
        ...,
        description="Model confidence, clamped to [0, 1]",
        ge=0.0,
        le=1.0,
        examples=[0.92]
    )


class RecommendationResponse(BaseModel):
    """
    Successful recommendation response.

    An empty `recommendations` list together with `message` is the
    "no relevant match" case, which is still a success.
    """
    recommendations: List[BookRecommendation] = Field(
        default_factory=list,
        description="Up to RECOMMENDATION_MAX_RESULTS (default 3) recommendations in the model's order"
    )
    message: Optional[str] = Field(
        None,
        description="Present when no relevant books were found",
        examples=[NO_MATCH_MESSAGE]
    )


class RecommendationErrorResponse(BaseModel):
    """
    Error body returned for every failed recommendation request.

    Only the fields relevant to the failure kind are populated.
    """
    error: str = Field(
        ...,
        description="Short, human-readable error",
        examples=["Query is required", "Rate limit exceeded"]
    )
    details: Optional[str] = Field(
        None,
        description="Additional context (never the full model output)"
    )
    maxLength: Optional[int] = Field(
        None,
        description="Maximum accepted query length (query too long only)"
    )
    retryAfter: Optional[int] = Field(
        None,
        description="Seconds to wait before retrying (rate limited only)"
    )
    rawResponse: Optional[str] = Field(
        None,
        description="First 500 characters of the model output (parse failures only)"
    )
