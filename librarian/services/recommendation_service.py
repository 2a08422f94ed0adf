"""
Recommendation Service - Catalog-Grounded Gemini Pipeline

This service implements book recommendations grounded in the library catalog.
It is the single orchestrator shared by every transport adapter (the FastAPI
route and the local CLI script), so validation and error mapping cannot drift
between entry points.

Architecture:
- Pattern: Grounded LLM (single API call, catalog embedded in the prompt)
- Model: Gemini Flash-Lite by default (RECOMMENDATION_MODEL)
- API: Google Gen AI Python SDK (google-genai)
- Output: JSON parsed from text, then validated and sanitized

State machine (strictly sequential, no state revisited, no retries):

    ValidatingInput -> FetchingCatalog -> BuildingPrompt -> InvokingModel
        -> Extracting -> Validating -> Done | Failed(kind)

Input validation runs before any external call so invalid requests never
cost a catalog read or a model call.
"""

import functools
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from supabase import Client

from librarian.agents.recommendation.prompts import build_recommendation_prompt
from librarian.config import settings
from librarian.schemas.books import CatalogItem
from librarian.schemas.recommendations import (
    NO_MATCH_MESSAGE,
    BookRecommendation,
    RecommendationResponse,
)
from librarian.services.catalog_service import list_available_books
from librarian.services.errors import (
    BadRequestError,
    CatalogUnavailableError,
    ModelInvocationError,
    RecommendationError,
    ResponseParsingError,
)
from librarian.services.model_invoker import get_model_invoker
from librarian.services.response_parser import (
    extract_json_payload,
    filter_to_catalog,
    validate_recommendations,
)
from librarian.utils.logging import query_preview, truncate_excerpt

logger = logging.getLogger(__name__)

CatalogFetcher = Callable[[], Awaitable[List[CatalogItem]]]
ModelCall = Callable[[str], Awaitable[str]]


class PipelineState(str, Enum):
    """States of a single recommendation request."""
    VALIDATING_INPUT = "ValidatingInput"
    FETCHING_CATALOG = "FetchingCatalog"
    BUILDING_PROMPT = "BuildingPrompt"
    INVOKING_MODEL = "InvokingModel"
    EXTRACTING = "Extracting"
    VALIDATING = "Validating"
    DONE = "Done"
    FAILED = "Failed"


class RecommendationPipeline:
    """
    One grounding-and-validation cycle for one request.

    Collaborators are injected as async callables so adapters and tests can
    supply their own catalog source and model backend. Instances are
    single-use: `state` reflects where this request ended up and `failure`
    holds the classified error when the state is FAILED.
    """

    def __init__(
        self,
        fetch_catalog: CatalogFetcher,
        invoke_model: ModelCall,
        max_query_length: int = settings.RECOMMENDATION_MAX_QUERY_LENGTH,
        max_results: int = settings.RECOMMENDATION_MAX_RESULTS,
        max_catalog_items: int = settings.RECOMMENDATION_MAX_CATALOG_ITEMS,
        require_catalog_match: bool = settings.RECOMMENDATION_REQUIRE_CATALOG_MATCH,
        model_id: str = settings.RECOMMENDATION_MODEL,
    ):
        self.fetch_catalog = fetch_catalog
        self.invoke_model = invoke_model
        self.max_query_length = max_query_length
        self.max_results = max_results
        self.max_catalog_items = max_catalog_items
        self.require_catalog_match = require_catalog_match
        self.model_id = model_id

        self.state = PipelineState.VALIDATING_INPUT
        self.failure: Optional[RecommendationError] = None

    def _advance(self, state: PipelineState) -> None:
        logger.debug(f"Recommendation pipeline: {self.state.value} -> {state.value}")
        self.state = state

    def _validate_input(self, query_text: Optional[str]) -> str:
        if not isinstance(query_text, str) or not query_text.strip():
            raise BadRequestError("Query is required")

        if len(query_text) > self.max_query_length:
            raise BadRequestError(
                "Query too long",
                details=f"Query must be {self.max_query_length} characters or less",
                max_length=self.max_query_length,
            )

        return query_text

    async def _fetch_catalog(self) -> List[CatalogItem]:
        try:
            return await self.fetch_catalog()
        except RecommendationError:
            raise
        except Exception as e:
            raise CatalogUnavailableError(str(e)) from e

    async def _invoke_model(self, prompt: str) -> str:
        try:
            return await self.invoke_model(prompt)
        except RecommendationError:
            raise
        except Exception as e:
            raise ModelInvocationError(str(e)) from e

    def _validate(
        self,
        candidate_text: str,
        catalog: Sequence[CatalogItem],
    ) -> List[BookRecommendation]:
        if not self.require_catalog_match:
            return validate_recommendations(candidate_text, max_results=self.max_results)

        # Filter before truncating so up to max_results grounded books survive
        validated = validate_recommendations(candidate_text, max_results=None)
        return filter_to_catalog(validated, catalog)[:self.max_results]

    async def run(self, query_text: Optional[str], requestor_id: str = "anonymous") -> RecommendationResponse:
        """
        Execute the pipeline.

        Args:
            query_text: Free-text query from the client (may be None/invalid)
            requestor_id: Opaque caller id, used only for logging

        Returns:
            RecommendationResponse with up to max_results recommendations, or
            an empty list plus the "no relevant books" message

        Raises:
            RecommendationError: Classified, terminal failure (see errors.py)
        """
        if self.state is not PipelineState.VALIDATING_INPUT:
            raise RuntimeError("RecommendationPipeline instances are single-use")

        start_time = time.monotonic()
        query_length = len(query_text) if isinstance(query_text, str) else 0
        raw_response: Optional[str] = None

        try:
            query = self._validate_input(query_text)
            logger.info(
                f"Processing recommendation request for requestor_id={requestor_id}: "
                f"'{query_preview(query)}'"
            )

            self._advance(PipelineState.FETCHING_CATALOG)
            catalog = await self._fetch_catalog()

            self._advance(PipelineState.BUILDING_PROMPT)
            prompt = build_recommendation_prompt(query, catalog, self.max_catalog_items)

            self._advance(PipelineState.INVOKING_MODEL)
            raw_response = await self._invoke_model(prompt)

            self._advance(PipelineState.EXTRACTING)
            candidate_text = extract_json_payload(raw_response)

            self._advance(PipelineState.VALIDATING)
            recommendations = self._validate(candidate_text, catalog)

        except RecommendationError as e:
            if isinstance(e, ResponseParsingError):
                # Diagnostics always show the model's own text, not the fragment
                e.raw_excerpt = truncate_excerpt(raw_response)
            self._fail(e, requestor_id, query_length)
            raise

        self._advance(PipelineState.DONE)
        processing_time_ms = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "Recommendation request successful: "
            f"requestor_id={requestor_id} query_length={query_length} "
            f"recommendation_count={len(recommendations)} "
            f"processing_time_ms={processing_time_ms} model={self.model_id}"
        )

        if not recommendations:
            return RecommendationResponse(recommendations=[], message=NO_MATCH_MESSAGE)

        return RecommendationResponse(recommendations=recommendations)

    def _fail(self, error: RecommendationError, requestor_id: str, query_length: int) -> None:
        failed_in = self.state
        self.failure = error
        self._advance(PipelineState.FAILED)

        if isinstance(error, BadRequestError):
            logger.warning(
                f"Recommendation request rejected: kind={error.kind.value} "
                f"requestor_id={requestor_id} query_length={query_length} error='{error.error}'"
            )
            return

        message = (
            f"Recommendation request failed: kind={error.kind.value} stage={failed_in.value} "
            f"requestor_id={requestor_id} query_length={query_length} details='{error.details}'"
        )
        if isinstance(error, ResponseParsingError):
            message += f" raw_excerpt={error.raw_excerpt!r}"
        logger.error(message)


async def _read_catalog(client_factory: Callable[[], Client]) -> List[CatalogItem]:
    return await list_available_books(client_factory())


async def generate_recommendations(
    client_factory: Callable[[], Client],
    query_text: Optional[str],
    requestor_id: str = "anonymous",
    invoke_model: Optional[ModelCall] = None,
) -> RecommendationResponse:
    """
    Run the recommendation pipeline against the Supabase catalog and Gemini.

    Args:
        client_factory: Builds the Supabase client for the catalog read. It is
            only called once the query is valid, inside the catalog step
        query_text: Free-text query from the client
        requestor_id: Opaque caller id (logging only)
        invoke_model: Optional model backend override (defaults to Gemini)

    Returns:
        RecommendationResponse

    Raises:
        RecommendationError: Classified, terminal failure
    """
    pipeline = RecommendationPipeline(
        fetch_catalog=functools.partial(_read_catalog, client_factory),
        invoke_model=invoke_model or get_model_invoker(),
    )
    return await pipeline.run(query_text, requestor_id=requestor_id)
