"""
Response parsing for model-generated recommendations.

Model output is semi-trusted text: the JSON we asked for may be wrapped in a
markdown fence, preceded by prose, malformed, or carry out-of-range values.
This module turns it into a strictly typed, bounded list or raises a
classified ResponseParsingError. Nothing here is ever fabricated: every
returned recommendation comes from fields present in the model output.

Stages (each a separate failure mode):
1. extract_json_payload     -> ExtractionFailedError
2. json.loads               -> MalformedJsonError
3. structure check          -> InvalidStructureError
4. per-field validation     -> InvalidFieldError (confidence is sanitized, never rejected)
5. truncation to max_results
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

from librarian.schemas.books import CatalogItem
from librarian.schemas.recommendations import BookRecommendation
from librarian.services.errors import (
    ExtractionFailedError,
    InvalidFieldError,
    InvalidStructureError,
    MalformedJsonError,
)

logger = logging.getLogger(__name__)

# ```json ... ``` anywhere in the response (non-greedy: first fenced block)
FENCED_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
# First "{" through the last "}" (greedy outer-brace match)
OBJECT_SPAN_PATTERN = re.compile(r"\{[\s\S]*\}")

DEFAULT_CONFIDENCE = 0.5
DEFAULT_MAX_RESULTS = 3
REQUIRED_TEXT_FIELDS = ("title", "author", "reason")


# =============================================================================
# EXTRACTION
# =============================================================================

def extract_json_payload(raw_text: str) -> str:
    """
    Locate the JSON payload inside a raw model response.

    Priority:
    1. A fenced code block tagged `json`: the fence is the stronger signal,
       so it wins over braces appearing anywhere else in the text
    2. The span from the first `{` to the last `}`

    Raises:
        ExtractionFailedError: If neither pattern matches
    """
    text = raw_text or ""

    fenced_match = FENCED_JSON_PATTERN.search(text)
    if fenced_match:
        return fenced_match.group(1)

    object_match = OBJECT_SPAN_PATTERN.search(text)
    if object_match:
        return object_match.group(0)

    raise ExtractionFailedError("No JSON object found in AI response", raw_text=text)


# =============================================================================
# VALIDATION / SANITIZATION
# =============================================================================

def sanitize_confidence(value: Any) -> float:
    """
    Force a model-claimed confidence into [0, 1].

    Missing or non-numeric values (booleans and NaN included) become 0.5;
    numeric values outside the range are clamped to the nearest bound.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if isinstance(value, int):
        # Arbitrarily large ints overflow float(); no int lies strictly inside (0, 1)
        return 1.0 if value >= 1 else 0.0
    if math.isnan(value):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


def _require_text(candidate: Dict[str, Any], field: str, index: int, raw_text: str) -> str:
    value = candidate.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError(field, index, raw_text=raw_text)
    return value.strip()


def _validate_candidate(candidate: Any, index: int, raw_text: str) -> BookRecommendation:
    if not isinstance(candidate, dict):
        raise InvalidStructureError(f"Recommendation {index} is not an object", raw_text=raw_text)

    title, author, reason = (
        _require_text(candidate, field, index, raw_text) for field in REQUIRED_TEXT_FIELDS
    )

    return BookRecommendation(
        title=title,
        author=author,
        reason=reason,
        confidence=sanitize_confidence(candidate.get("confidence")),
    )


def parse_recommendations(candidate_text: str) -> List[Any]:
    """
    Decode the payload and return the raw `recommendations` array.

    Raises:
        MalformedJsonError: The payload is not valid JSON
        InvalidStructureError: Not an object with a `recommendations` array
    """
    try:
        payload = json.loads(candidate_text)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and the int digit-limit error
        raise MalformedJsonError(f"Parse error: {e}", raw_text=candidate_text) from e

    if not isinstance(payload, dict):
        raise InvalidStructureError(
            "Invalid recommendations structure: expected a JSON object",
            raw_text=candidate_text,
        )

    recommendations = payload.get("recommendations")
    if not isinstance(recommendations, list):
        raise InvalidStructureError(
            "Invalid recommendations structure: 'recommendations' must be an array",
            raw_text=candidate_text,
        )

    return recommendations


def validate_recommendations(
    candidate_text: str,
    max_results: Optional[int] = DEFAULT_MAX_RESULTS,
) -> List[BookRecommendation]:
    """
    Validate and sanitize the extracted payload into at most max_results items.

    Every element is validated before truncation, so an invalid element past
    the cut-off still aborts the request. Order is preserved; the list is
    never padded. An empty array is a valid "no match" result.

    Args:
        candidate_text: JSON text returned by extract_json_payload
        max_results: Maximum number of recommendations kept (None keeps all)

    Returns:
        List of BookRecommendation (possibly empty)

    Raises:
        MalformedJsonError, InvalidStructureError, InvalidFieldError
    """
    candidates = parse_recommendations(candidate_text)

    validated = [
        _validate_candidate(candidate, index, candidate_text)
        for index, candidate in enumerate(candidates, start=1)
    ]

    if max_results is None:
        return validated
    return validated[:max_results]


# =============================================================================
# CATALOG MEMBERSHIP (opt-in)
# =============================================================================

def _catalog_key(title: str, author: str) -> tuple:
    return (" ".join(title.split()).casefold(), " ".join(author.split()).casefold())


def filter_to_catalog(
    recommendations: Sequence[BookRecommendation],
    catalog: Sequence[CatalogItem],
) -> List[BookRecommendation]:
    """
    Drop recommendations whose (title, author) pair is not in the catalog.

    Matching ignores case and repeated whitespace. Order is preserved.
    """
    known = {_catalog_key(item.title, item.author) for item in catalog}

    kept = [rec for rec in recommendations if _catalog_key(rec.title, rec.author) in known]

    dropped = len(recommendations) - len(kept)
    if dropped:
        logger.warning(f"Dropped {dropped} recommendations not present in the catalog snapshot")

    return kept
