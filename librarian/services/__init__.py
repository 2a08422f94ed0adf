"""
Service layer for the Librarian backend.

Contains the recommendation pipeline and its collaborators:
- catalog_service: reads the catalog snapshot from Supabase
- model_invoker: sends one prompt to Gemini, classifies upstream failures
- response_parser: extracts, validates and bounds the model output
- recommendation_service: the state machine shared by every adapter

Services act as the glue between routes (HTTP layer) and agents/database.
"""

from .catalog_service import list_available_books
from .errors import FailureKind, RecommendationError
from .model_invoker import GeminiModelInvoker, get_model_invoker
from .recommendation_service import (
    PipelineState,
    RecommendationPipeline,
    generate_recommendations,
)
from .response_parser import extract_json_payload, validate_recommendations

__all__ = [
    "list_available_books",
    "FailureKind",
    "RecommendationError",
    "GeminiModelInvoker",
    "get_model_invoker",
    "PipelineState",
    "RecommendationPipeline",
    "generate_recommendations",
    "extract_json_payload",
    "validate_recommendations",
]
