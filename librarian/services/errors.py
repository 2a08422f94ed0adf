"""
Failure taxonomy for the recommendation pipeline.

Every way a recommendation request can fail is a subclass of
RecommendationError carrying:
- kind: machine-readable failure kind (logged, used by tests)
- status_code: HTTP status the transport adapter should return
- error / details: public message pair for the response body

No error here is retried inside the pipeline. Retry policy belongs to the
caller (see RateLimited.retry_after).
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status

from librarian.utils.logging import truncate_excerpt


class FailureKind(str, Enum):
    """Terminal failure kinds of the pipeline state machine."""
    BAD_REQUEST = "BadRequest"
    UPSTREAM_UNAVAILABLE = "UpstreamUnavailable"
    ACCESS_DENIED = "AccessDenied"
    RATE_LIMITED = "RateLimited"
    UPSTREAM_ERROR = "UpstreamError"
    EXTRACTION_FAILED = "ExtractionFailed"
    MALFORMED_JSON = "MalformedJson"
    INVALID_STRUCTURE = "InvalidStructure"
    INVALID_FIELD = "InvalidField"


class RecommendationError(Exception):
    """Base class for every classified recommendation failure."""

    kind: FailureKind = FailureKind.UPSTREAM_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Failed to get recommendations"

    def __init__(self, details: Optional[str] = None):
        super().__init__(details or self.error)
        self.details = details

    def to_response_body(self) -> Dict[str, Any]:
        """Build the `{error, details?}` body for this failure."""
        body: Dict[str, Any] = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# INPUT
# =============================================================================

class BadRequestError(RecommendationError):
    """Query missing, blank, or longer than the configured maximum."""

    kind = FailureKind.BAD_REQUEST
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, error: str, details: Optional[str] = None, max_length: Optional[int] = None):
        self.error = error
        self.max_length = max_length
        super().__init__(details)

    def to_response_body(self) -> Dict[str, Any]:
        body = super().to_response_body()
        if self.max_length is not None:
            body["maxLength"] = self.max_length
        return body


# =============================================================================
# UPSTREAM (catalog store, model backend)
# =============================================================================

class CatalogUnavailableError(RecommendationError):
    """The catalog snapshot could not be read."""

    kind = FailureKind.UPSTREAM_UNAVAILABLE
    error = "Failed to get recommendations"

    def to_response_body(self) -> Dict[str, Any]:
        # Storage errors are never echoed to the client
        return {"error": self.error, "details": "The book catalog is temporarily unavailable"}


class ModelAccessDeniedError(RecommendationError):
    """The service is not allowed to call the configured model."""

    kind = FailureKind.ACCESS_DENIED
    status_code = status.HTTP_403_FORBIDDEN
    error = "Model access denied"

    def to_response_body(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "details": (
                "Please ensure Gemini API access is enabled for the configured "
                "model and that GOOGLE_API_KEY is valid"
            ),
        }


class ModelRateLimitedError(RecommendationError):
    """The model backend is throttling requests."""

    kind = FailureKind.RATE_LIMITED
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Rate limit exceeded"

    def __init__(self, details: Optional[str] = None, retry_after: int = 60):
        super().__init__(details)
        self.retry_after = retry_after

    def to_response_body(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "details": "Please try again in a few moments",
            "retryAfter": self.retry_after,
        }


class ModelInvocationError(RecommendationError):
    """Any other model invocation failure (timeouts, 5xx, empty output)."""

    kind = FailureKind.UPSTREAM_ERROR

    def to_response_body(self) -> Dict[str, Any]:
        return {"error": self.error, "details": "The recommendation model could not be reached"}


# =============================================================================
# RESPONSE PARSING
# =============================================================================

class ResponseParsingError(RecommendationError):
    """Base for failures turning model text into a valid result."""

    error = "Failed to parse AI response"

    def __init__(self, details: Optional[str] = None, raw_text: Optional[str] = None):
        super().__init__(details)
        self.raw_excerpt = truncate_excerpt(raw_text)

    def to_response_body(self) -> Dict[str, Any]:
        body = super().to_response_body()
        if self.raw_excerpt:
            body["rawResponse"] = self.raw_excerpt
        return body


class ExtractionFailedError(ResponseParsingError):
    """No JSON payload could be located in the model output."""

    kind = FailureKind.EXTRACTION_FAILED


class MalformedJsonError(ResponseParsingError):
    """The extracted payload is not valid JSON."""

    kind = FailureKind.MALFORMED_JSON


class InvalidStructureError(ResponseParsingError):
    """The JSON is not an object with a `recommendations` array."""

    kind = FailureKind.INVALID_STRUCTURE


class InvalidFieldError(ResponseParsingError):
    """A recommendation has a missing or invalid required field."""

    kind = FailureKind.INVALID_FIELD

    def __init__(self, field: str, index: int, raw_text: Optional[str] = None):
        self.field = field
        self.index = index
        super().__init__(f"Recommendation {index} missing or invalid {field}", raw_text)
