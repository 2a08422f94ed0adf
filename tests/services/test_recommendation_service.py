"""
Tests for the Recommendation Service pipeline.

These tests verify the recommendation pipeline behavior including:
- Prompt contents and determinism
- Query validation (no external calls on invalid input)
- State transitions for success and each failure kind
- The "no relevant books" success case
- Raw-response excerpts attached to parse failures
- Opt-in catalog membership filtering
- generate_recommendations wiring (Supabase catalog + Gemini invoker)

Note: These tests use mocked catalog reads and Gemini responses to avoid
actual API calls and ensure deterministic test behavior.
"""

import json
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from librarian.agents.recommendation.prompts import (
    EMPTY_CATALOG_LINE,
    build_recommendation_prompt,
)
from librarian.schemas.books import CatalogItem
from librarian.schemas.recommendations import NO_MATCH_MESSAGE, BookRecommendation
from librarian.services.errors import (
    BadRequestError,
    CatalogUnavailableError,
    FailureKind,
    InvalidFieldError,
    MalformedJsonError,
    ModelAccessDeniedError,
    ModelInvocationError,
    ModelRateLimitedError,
)
from librarian.services.recommendation_service import (
    PipelineState,
    RecommendationPipeline,
    generate_recommendations,
)


def _model_reply(*recs) -> str:
    return json.dumps({"recommendations": list(recs)})


def _pipeline(catalog_fetcher, model_call, **kwargs) -> RecommendationPipeline:
    options = {
        "max_query_length": 1000,
        "max_results": 3,
        "max_catalog_items": 500,
        "require_catalog_match": False,
        "model_id": "gemini-test",
    }
    options.update(kwargs)
    return RecommendationPipeline(fetch_catalog=catalog_fetcher, invoke_model=model_call, **options)


# =============================================================================
# UNIT TESTS: Prompt builder
# =============================================================================

class TestBuildRecommendationPrompt:
    """Tests for build_recommendation_prompt function."""

    def test_prompt_contains_query_and_catalog_lines(self, sample_catalog):
        prompt = build_recommendation_prompt("mystery with unreliable narrator", sample_catalog)

        assert "mystery with unreliable narrator" in prompt
        assert '"Gone Girl" by Gillian Flynn (Mystery)' in prompt
        assert '"Dune" by Frank Herbert (Science Fiction)' in prompt
        assert '"Pride and Prejudice" by Jane Austen (Romance)' in prompt

    def test_prompt_states_output_contract(self, sample_catalog):
        prompt = build_recommendation_prompt("anything", sample_catalog)

        assert '"recommendations"' in prompt
        assert '"confidence"' in prompt
        assert '{"recommendations": []}' in prompt
        assert "at most 3" in prompt

    def test_prompt_is_deterministic(self, sample_catalog):
        first = build_recommendation_prompt("cozy mystery", sample_catalog)
        second = build_recommendation_prompt("cozy mystery", list(sample_catalog))

        assert first == second

    def test_catalog_order_is_preserved(self, sample_catalog):
        prompt = build_recommendation_prompt("anything", sample_catalog)

        assert prompt.index("Gone Girl") < prompt.index("Dune") < prompt.index("Pride and Prejudice")

    def test_empty_catalog_is_stated(self):
        prompt = build_recommendation_prompt("anything", [])

        assert EMPTY_CATALOG_LINE in prompt

    def test_catalog_lines_are_bounded(self):
        catalog = [
            CatalogItem(id=str(i), title=f"Book {i}", author="Author", genre="Fiction")
            for i in range(10)
        ]

        prompt = build_recommendation_prompt("anything", catalog, max_catalog_items=4)

        assert '"Book 3" by Author' in prompt
        assert '"Book 4" by Author' not in prompt

    def test_missing_genre_renders_uncategorized(self):
        catalog = [CatalogItem(id="1", title="Beloved", author="Toni Morrison")]

        prompt = build_recommendation_prompt("anything", catalog)

        assert '"Beloved" by Toni Morrison (Uncategorized)' in prompt


# =============================================================================
# UNIT TESTS: Input validation
# =============================================================================

class TestQueryValidation:
    """Invalid queries fail before any catalog read or model call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [None, "", "   ", "\n\t", 42])
    async def test_missing_or_blank_query_is_bad_request(self, catalog_fetcher, model_call, query):
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(BadRequestError) as exc_info:
            await pipeline.run(query)

        assert exc_info.value.error == "Query is required"
        assert exc_info.value.to_response_body() == {"error": "Query is required"}
        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failure.kind == FailureKind.BAD_REQUEST
        catalog_fetcher.assert_not_called()
        model_call.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_too_long_is_bad_request(self, catalog_fetcher, model_call):
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(BadRequestError) as exc_info:
            await pipeline.run("x" * 1001)

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_response_body() == {
            "error": "Query too long",
            "details": "Query must be 1000 characters or less",
            "maxLength": 1000,
        }
        catalog_fetcher.assert_not_called()
        model_call.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_at_limit_is_accepted(self, catalog_fetcher, model_call):
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("x" * 1000)

        assert pipeline.state == PipelineState.DONE
        assert len(response.recommendations) == 1
        catalog_fetcher.assert_awaited_once()
        model_call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_query_is_embedded_literally(self, catalog_fetcher, model_call):
        pipeline = _pipeline(catalog_fetcher, model_call)

        await pipeline.run("  books like 'Rebecca' <3  ")

        prompt = model_call.await_args.args[0]
        assert "  books like 'Rebecca' <3  " in prompt


# =============================================================================
# INTEGRATION TESTS: Pipeline outcomes
# =============================================================================

class TestRecommendationPipeline:
    """End-to-end pipeline runs with injected collaborators."""

    @pytest.mark.asyncio
    async def test_gone_girl_end_to_end(self, catalog_fetcher, model_call):
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("mystery with unreliable narrator", requestor_id="user-1")

        assert pipeline.state == PipelineState.DONE
        assert pipeline.failure is None
        assert response.message is None
        assert response.recommendations == [
            BookRecommendation(
                title="Gone Girl",
                author="Gillian Flynn",
                reason="Two narrators whose accounts of a marriage cannot both be true.",
                confidence=0.93,
            )
        ]

        prompt = model_call.await_args.args[0]
        assert "mystery with unreliable narrator" in prompt
        assert '"Gone Girl" by Gillian Flynn (Mystery)' in prompt

    @pytest.mark.asyncio
    async def test_empty_array_is_no_match_success(self, catalog_fetcher):
        model_call = AsyncMock(return_value='{"recommendations": []}')
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("books about quantum chromodynamics")

        assert pipeline.state == PipelineState.DONE
        assert response.recommendations == []
        assert response.message == NO_MATCH_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_catalog_still_calls_model(self, model_call):
        catalog_fetcher = AsyncMock(return_value=[])
        model_call.return_value = '{"recommendations": []}'
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("anything")

        assert response.message == NO_MATCH_MESSAGE
        assert EMPTY_CATALOG_LINE in model_call.await_args.args[0]

    @pytest.mark.asyncio
    async def test_results_are_truncated_to_max_results(self, catalog_fetcher):
        model_call = AsyncMock(return_value=_model_reply(*[
            {"title": f"Book {i}", "author": "A", "reason": "R", "confidence": 0.5}
            for i in range(1, 6)
        ]))
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("anything")

        assert [r.title for r in response.recommendations] == ["Book 1", "Book 2", "Book 3"]

    @pytest.mark.asyncio
    async def test_invalid_field_reports_index(self, catalog_fetcher):
        model_call = AsyncMock(
            return_value='{"recommendations":[{"title":"","author":"B","reason":"C","confidence":0.5}]}'
        )
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(InvalidFieldError) as exc_info:
            await pipeline.run("anything")

        assert exc_info.value.field == "title"
        assert exc_info.value.index == 1
        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failure.kind == FailureKind.INVALID_FIELD

    @pytest.mark.asyncio
    async def test_parse_failure_excerpt_is_from_raw_response(self, catalog_fetcher):
        raw = "Here you go:\n```json\n{\"recommendations\": [oops]}\n```\n" + "z" * 1000
        model_call = AsyncMock(return_value=raw)
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(MalformedJsonError) as exc_info:
            await pipeline.run("anything")

        error = exc_info.value
        assert error.kind == FailureKind.MALFORMED_JSON
        assert error.raw_excerpt == raw[:500]
        body = error.to_response_body()
        assert body["error"] == "Failed to parse AI response"
        assert body["rawResponse"] == raw[:500]

    @pytest.mark.asyncio
    async def test_catalog_failure_is_upstream_unavailable(self, model_call):
        catalog_fetcher = AsyncMock(side_effect=ConnectionError("connection refused"))
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(CatalogUnavailableError) as exc_info:
            await pipeline.run("anything")

        assert exc_info.value.kind == FailureKind.UPSTREAM_UNAVAILABLE
        assert exc_info.value.status_code == 500
        assert "connection refused" not in str(exc_info.value.to_response_body())
        model_call.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,kind,status_code", [
        (ModelAccessDeniedError("403"), FailureKind.ACCESS_DENIED, 403),
        (ModelRateLimitedError("429", retry_after=60), FailureKind.RATE_LIMITED, 429),
        (ModelInvocationError("503"), FailureKind.UPSTREAM_ERROR, 500),
    ])
    async def test_model_failures_propagate(self, catalog_fetcher, error, kind, status_code):
        model_call = AsyncMock(side_effect=error)
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(type(error)) as exc_info:
            await pipeline.run("anything")

        assert exc_info.value.kind == kind
        assert exc_info.value.status_code == status_code
        assert pipeline.state == PipelineState.FAILED
        model_call.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unclassified_model_exception_is_upstream_error(self, catalog_fetcher):
        model_call = AsyncMock(side_effect=RuntimeError("boom"))
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(ModelInvocationError):
            await pipeline.run("anything")

        assert pipeline.failure.kind == FailureKind.UPSTREAM_ERROR

    @pytest.mark.asyncio
    async def test_huge_integer_confidence_completes(self, catalog_fetcher):
        model_call = AsyncMock(
            return_value='{"recommendations":[{"title":"A","author":"B","reason":"C","confidence":1'
            + "0" * 400 + "}]}"
        )
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("anything")

        assert pipeline.state == PipelineState.DONE
        assert response.recommendations[0].confidence == 1.0

    @pytest.mark.asyncio
    @pytest.mark.skipif(
        not hasattr(sys, "get_int_max_str_digits"),
        reason="interpreter has no integer string conversion limit",
    )
    async def test_integer_over_digit_limit_fails_classified(self, catalog_fetcher):
        model_call = AsyncMock(
            return_value='{"recommendations":[{"title":"A","author":"B","reason":"C","confidence":1'
            + "0" * 5000 + "}]}"
        )
        pipeline = _pipeline(catalog_fetcher, model_call)

        with pytest.raises(MalformedJsonError):
            await pipeline.run("anything")

        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failure.kind == FailureKind.MALFORMED_JSON

    @pytest.mark.asyncio
    async def test_pipeline_is_single_use(self, catalog_fetcher, model_call):
        pipeline = _pipeline(catalog_fetcher, model_call)
        await pipeline.run("anything")

        with pytest.raises(RuntimeError):
            await pipeline.run("anything")


# =============================================================================
# INTEGRATION TESTS: Catalog membership
# =============================================================================

class TestRequireCatalogMatch:
    """Opt-in filter that drops books absent from the snapshot."""

    HALLUCINATED = {"title": "Rebecca", "author": "Daphne du Maurier", "reason": "R", "confidence": 0.9}
    GROUNDED = {"title": "Gone Girl", "author": "Gillian Flynn", "reason": "R", "confidence": 0.8}

    @pytest.mark.asyncio
    async def test_disabled_by_default_keeps_model_output(self, catalog_fetcher):
        model_call = AsyncMock(return_value=_model_reply(self.HALLUCINATED))
        pipeline = _pipeline(catalog_fetcher, model_call)

        response = await pipeline.run("gothic")

        assert [r.title for r in response.recommendations] == ["Rebecca"]

    @pytest.mark.asyncio
    async def test_enabled_drops_unknown_books(self, catalog_fetcher):
        model_call = AsyncMock(return_value=_model_reply(self.HALLUCINATED, self.GROUNDED))
        pipeline = _pipeline(catalog_fetcher, model_call, require_catalog_match=True)

        response = await pipeline.run("gothic")

        assert [r.title for r in response.recommendations] == ["Gone Girl"]

    @pytest.mark.asyncio
    async def test_enabled_filters_before_truncating(self, catalog_fetcher):
        model_call = AsyncMock(return_value=_model_reply(
            self.HALLUCINATED, self.HALLUCINATED, self.HALLUCINATED, self.GROUNDED,
        ))
        pipeline = _pipeline(catalog_fetcher, model_call, require_catalog_match=True)

        response = await pipeline.run("gothic")

        assert [r.title for r in response.recommendations] == ["Gone Girl"]

    @pytest.mark.asyncio
    async def test_enabled_with_nothing_left_is_no_match(self, catalog_fetcher):
        model_call = AsyncMock(return_value=_model_reply(self.HALLUCINATED))
        pipeline = _pipeline(catalog_fetcher, model_call, require_catalog_match=True)

        response = await pipeline.run("gothic")

        assert response.recommendations == []
        assert response.message == NO_MATCH_MESSAGE


# =============================================================================
# INTEGRATION TESTS: generate_recommendations
# =============================================================================

class TestGenerateRecommendations:
    """Wiring of the default Supabase catalog reader and Gemini invoker."""

    @pytest.mark.asyncio
    async def test_reads_catalog_with_factory_client(self, supabase_client, sample_catalog, model_call):
        client_factory = MagicMock(return_value=supabase_client)

        with patch(
            "librarian.services.recommendation_service.list_available_books",
            new=AsyncMock(return_value=sample_catalog),
        ) as mock_list:
            response = await generate_recommendations(
                client_factory=client_factory,
                query_text="mystery with unreliable narrator",
                requestor_id="user-1",
                invoke_model=model_call,
            )

        client_factory.assert_called_once_with()
        mock_list.assert_awaited_once_with(supabase_client)
        assert response.recommendations[0].title == "Gone Girl"

    @pytest.mark.asyncio
    async def test_defaults_to_gemini_invoker(self, supabase_client, sample_catalog, model_call):
        with patch(
            "librarian.services.recommendation_service.list_available_books",
            new=AsyncMock(return_value=sample_catalog),
        ), patch(
            "librarian.services.recommendation_service.get_model_invoker",
            return_value=model_call,
        ) as mock_get_invoker:
            response = await generate_recommendations(lambda: supabase_client, "mystery")

        mock_get_invoker.assert_called_once()
        model_call.assert_awaited_once()
        assert len(response.recommendations) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   ", "x" * 1001])
    async def test_invalid_query_never_builds_client(self, query):
        """The client (and its auth session call) is only created after validation."""
        client_factory = MagicMock()

        with patch(
            "librarian.services.recommendation_service.list_available_books",
            new=AsyncMock(),
        ) as mock_list, patch(
            "librarian.services.recommendation_service.get_model_invoker",
        ) as mock_get_invoker:
            mock_get_invoker.return_value = AsyncMock()

            with pytest.raises(BadRequestError):
                await generate_recommendations(client_factory, query)

        client_factory.assert_not_called()
        mock_list.assert_not_called()
        mock_get_invoker.return_value.assert_not_called()

    @pytest.mark.asyncio
    async def test_client_factory_failure_is_catalog_unavailable(self, model_call):
        client_factory = MagicMock(side_effect=RuntimeError("session refresh failed"))

        with pytest.raises(CatalogUnavailableError):
            await generate_recommendations(client_factory, "mystery", invoke_model=model_call)

        model_call.assert_not_called()
